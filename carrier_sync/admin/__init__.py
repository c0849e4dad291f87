"""Order table processing and per-order carrier sync."""

__all__ = ["main"]


def __getattr__(name: str):
    if name == "main":
        from .main import main as carrier_sync_main

        return carrier_sync_main
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
