"""Per-carrier serviceable pincode cache backed by ``<data_dir>/<carrier>.xlsx``."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable

from carrier_sync.admin.spreadsheet import read_first_column_values
from carrier_sync.json_logger import JsonLogger, log_event

DEFAULT_TTL_SECONDS = 60
WORKBOOK_SUFFIX = ".xlsx"

PincodeLoader = Callable[[Path], frozenset[str]]


def normalize_carrier(carrier: str | None) -> str:
    return (carrier or "").strip()


@dataclass(frozen=True)
class RegistryEntry:
    carrier: str
    pincodes: frozenset[str]
    loaded_at: float

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.loaded_at < ttl_seconds


class CarrierPincodeRegistry:
    """Cache of serviceable pincodes keyed by the exact (trimmed) carrier name.

    Entries older than ``ttl_seconds`` are reloaded on the next read. A carrier
    without a workbook maps to an empty set, which callers treat as "no
    restriction data". Reloads build the new set first and then swap the entry
    in, so readers only ever see complete sets.
    """

    def __init__(
        self,
        data_dir: Path | str,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        loader: PincodeLoader = read_first_column_values,
        clock: Callable[[], float] = time.monotonic,
        logger: JsonLogger | None = None,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.ttl_seconds = ttl_seconds
        self._loader = loader
        self._clock = clock
        self._logger = logger
        self._entries: Dict[str, RegistryEntry] = {}
        self._lock = threading.Lock()

    def source_path(self, carrier: str) -> Path:
        return self.data_dir / f"{normalize_carrier(carrier)}{WORKBOOK_SUFFIX}"

    def has_source(self, carrier: str | None) -> bool:
        name = normalize_carrier(carrier)
        if not _is_safe_name(name):
            return False
        return self.source_path(name).is_file()

    def get_serviceable_pincodes(self, carrier: str | None) -> frozenset[str]:
        name = normalize_carrier(carrier)
        if not _is_safe_name(name):
            return frozenset()

        entry = self._entries.get(name)
        if entry is not None and entry.is_fresh(self._clock(), self.ttl_seconds):
            return entry.pincodes
        return self._reload(name).pincodes

    def invalidate(self, carrier: str | None = None) -> None:
        with self._lock:
            if carrier is None:
                self._entries.clear()
            else:
                self._entries.pop(normalize_carrier(carrier), None)

    def preload(self, carriers: Iterable[str]) -> None:
        for carrier in carriers:
            self.get_serviceable_pincodes(carrier)

    def _reload(self, name: str) -> RegistryEntry:
        path = self.source_path(name)
        try:
            pincodes = frozenset(self._loader(path))
        except Exception as exc:
            pincodes = frozenset()
            self._log(
                status="warn",
                message="Failed to read pincode workbook; treating carrier as unrestricted",
                carrier=name,
                path=str(path),
                error=str(exc),
            )
        else:
            self._log(
                message="Loaded serviceable pincodes",
                carrier=name,
                path=str(path),
                pincode_count=len(pincodes),
            )

        entry = RegistryEntry(carrier=name, pincodes=pincodes, loaded_at=self._clock())
        with self._lock:
            self._entries[name] = entry
        return entry

    def _log(self, *, status: str = "ok", message: str, **fields: object) -> None:
        if self._logger is None:
            return
        log_event(logger=self._logger, phase="pincodes", status=status, message=message, **fields)


def _is_safe_name(name: str) -> bool:
    return bool(name) and "/" not in name and "\\" not in name and name not in {".", ".."}
