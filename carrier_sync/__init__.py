"""Carrier assignment automation for the order-management admin panel."""

from typing import Any

__all__ = ["run_carrier_sync"]


def __getattr__(name: str) -> Any:
    if name == "run_carrier_sync":
        from carrier_sync.admin.main import main as _main

        return _main
    raise AttributeError(name)
