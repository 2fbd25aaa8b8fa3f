"""Client-side service governance: selection, circuit breaking, hashing and discovery."""

__version__ = "0.1.0"