import pytest

from svcgov.plugin import PluginContainer


class Recorder:
    def __init__(self, name, log):
        self.name = name
        self.log = log

    def pre_call(self, service_path, service_method, args):
        self.log.append((self.name, service_path, service_method, args))

    def post_call(self, service_path, service_method, args, reply, error):
        self.log.append((self.name, reply, error))


class Failing:
    def pre_call(self, service_path, service_method, args):
        raise RuntimeError("denied")

    def client_before_encode(self, message):
        raise ValueError("bad message")


class Wrapper:
    def __init__(self, tag):
        self.tag = tag

    def conn_created(self, conn):
        return conn + [self.tag]

    def client_connected(self, conn):
        return conn + [self.tag]

    def wrap_select(self, fn):
        return lambda path, method, args: fn(path, method, args) + self.tag


def test_add_remove_all():
    c = PluginContainer()
    a, b = object(), object()
    c.add(a)
    c.add(b)
    assert c.all() == [a, b]
    c.remove(a)
    assert c.all() == [b]
    c.remove(a)
    assert c.all() == [b]


def test_all_returns_copy():
    c = PluginContainer()
    p = object()
    c.add(p)
    c.all().clear()
    assert c.all() == [p]


def test_pre_call_runs_in_order_and_skips_others():
    log = []
    c = PluginContainer()
    c.add(Recorder("one", log))
    c.add(object())
    c.add(Recorder("two", log))
    c.do_pre_call("Arith", "Mul", 7)
    assert log == [("one", "Arith", "Mul", 7), ("two", "Arith", "Mul", 7)]


def test_pre_call_error_stops_chain():
    log = []
    c = PluginContainer()
    c.add(Failing())
    c.add(Recorder("after", log))
    with pytest.raises(RuntimeError):
        c.do_pre_call("Arith", "Mul", None)
    assert log == []


def test_post_call_error_cleared_after_first_plugin():
    log = []
    err = OSError("boom")
    c = PluginContainer()
    c.add(Recorder("one", log))
    c.add(Recorder("two", log))
    c.do_post_call("Arith", "Mul", 1, "reply", err)
    assert log == [("one", "reply", err), ("two", "reply", None)]


def test_conn_hooks_chain_connection():
    c = PluginContainer()
    c.add(Wrapper("x"))
    c.add(Wrapper("y"))
    assert c.do_conn_created([]) == ["x", "y"]
    assert c.do_client_connected(["start"]) == ["start", "x", "y"]


def test_conn_create_failed_notifies():
    seen = []

    class Watcher:
        def conn_create_failed(self, network, address):
            seen.append((network, address))

    c = PluginContainer()
    c.add(Watcher())
    assert c.do_conn_create_failed("tcp", "127.0.0.1:8972") is None
    assert seen == [("tcp", "127.0.0.1:8972")]


def test_before_encode_error_propagates():
    c = PluginContainer()
    c.add(Failing())
    with pytest.raises(ValueError):
        c.do_client_before_encode({})


def test_after_decode_and_close_receive_argument_and_propagate_errors():
    seen = []

    class Watcher:
        def client_after_decode(self, message):
            seen.append(message)
            raise LookupError("decode rejected")

        def client_connection_close(self, conn):
            seen.append(conn)
            raise ConnectionError("close rejected")

    c = PluginContainer()
    c.add(Watcher())
    with pytest.raises(LookupError, match="decode rejected"):
        c.do_client_after_decode("msg")
    with pytest.raises(ConnectionError, match="close rejected"):
        c.do_client_connection_close("conn")
    assert seen == ["msg", "conn"]


def test_wrap_select_composes():
    c = PluginContainer()
    c.add(Wrapper("-a"))
    c.add(Wrapper("-b"))
    fn = c.do_wrap_select(lambda path, method, args: path)
    assert fn("srv", "Mul", None) == "srv-a-b"


def test_wrap_select_without_plugins_returns_same_function():
    c = PluginContainer()

    def base(path, method, args):
        return path

    assert c.do_wrap_select(base) is base