"""A container of client plugins and the extension points they hook into."""

from __future__ import annotations

from typing import Any, Callable, Optional

SelectFunc = Callable[[str, str, Any], str]


class PluginContainer:
    """Holds plugins and runs each extension point on those that implement it.

    A plugin implements an extension point by defining the method of that
    name (``pre_call``, ``post_call``, ``conn_created``, ``conn_create_failed``,
    ``client_connected``, ``client_connection_close``, ``client_before_encode``,
    ``client_after_decode``, ``wrap_select``). A plugin stops the chain by
    raising an exception, which propagates to the caller.
    """

    def __init__(self) -> None:
        self._plugins: list[Any] = []

    def add(self, plugin: Any) -> None:
        """Add a plugin."""
        self._plugins.append(plugin)

    def remove(self, plugin: Any) -> None:
        """Remove every occurrence of a plugin."""
        self._plugins = [p for p in self._plugins if p != plugin]

    def all(self) -> list[Any]:
        """Return all plugins in the order they were added."""
        return list(self._plugins)

    def _with(self, hook: str):
        for plugin in self._plugins:
            method = getattr(plugin, hook, None)
            if callable(method):
                yield method

    def do_pre_call(self, service_path: str, service_method: str, args: Any) -> None:
        """Run before a call is made."""
        for hook in self._with("pre_call"):
            hook(service_path, service_method, args)

    def do_post_call(
        self,
        service_path: str,
        service_method: str,
        args: Any,
        reply: Any,
        error: Optional[BaseException],
    ) -> None:
        """Run after a call; a plugin that returns normally clears the error for the next."""
        for hook in self._with("post_call"):
            hook(service_path, service_method, args, reply, error)
            error = None

    def do_conn_created(self, conn: Any) -> Any:
        """Let plugins wrap or replace a newly created connection."""
        for hook in self._with("conn_created"):
            conn = hook(conn)
        return conn

    def do_conn_create_failed(self, network: str, address: str) -> None:
        """Notify plugins that a connection could not be created."""
        for hook in self._with("conn_create_failed"):
            hook(network, address)

    def do_client_connected(self, conn: Any) -> Any:
        """Let plugins wrap or replace the connection once connected."""
        for hook in self._with("client_connected"):
            conn = hook(conn)
        return conn

    def do_client_connection_close(self, conn: Any) -> None:
        """Notify plugins that a connection is closing."""
        for hook in self._with("client_connection_close"):
            hook(conn)

    def do_client_before_encode(self, message: Any) -> None:
        """Run on a request before it is encoded and sent."""
        for hook in self._with("client_before_encode"):
            hook(message)

    def do_client_after_decode(self, message: Any) -> None:
        """Run on a response after it is decoded."""
        for hook in self._with("client_after_decode"):
            hook(message)

    def do_wrap_select(self, fn: SelectFunc) -> SelectFunc:
        """Wrap a select function with every plugin that provides ``wrap_select``."""
        for hook in self._with("wrap_select"):
            fn = hook(fn)
        return fn

    def __len__(self) -> int:
        return len(self._plugins)