"""
CONFIG.PY - SINGLE SOURCE OF TRUTH (SSOT)

This module is the ONLY place allowed to read environment variables.

Values are read ONCE at import time from the process environment (a `.env`
file at the project root is loaded first; OS env overrides it) and cached in a
single in-memory Config object. Optional keys fall back to the defaults below;
a key that is present but malformed fails early with ConfigError.

To use a config value, import:

    from carrier_sync.config import config

Do not access os.getenv directly from any other module.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv


# Directory containing the top-level package
PROJECT_ROOT = Path(__file__).resolve().parents[1]

load_dotenv(PROJECT_ROOT / ".env")

if os.getenv("DEBUG_CONFIG") == "1":
    print("[CONFIG] Loaded .env from:", PROJECT_ROOT / ".env")


logger = logging.getLogger(__name__)

DEFAULTS: dict[str, str] = {
    "RUN_ENV": "local",
    "BASE_URL": "https://diyaa.in",
    "ORDER_LIST_PATH": "/inventory/order",
    "CARRIER_OVERRIDE": "",
    "PROCESS_COUNT": "",
    "ORDERS_TO_PROCESS": "",
    "PINCODE_DATA_DIR": str(PROJECT_ROOT / "data"),
    "PINCODE_CACHE_TTL_SECONDS": "60",
    "LOGS_DIR": str(PROJECT_ROOT / "logs"),
    "JSON_LOG_FILE": "",
    "STORAGE_STATE_PATH": "",
    "ETL_HEADLESS": "true",
    "CHROME_EXECUTABLE": "",
    "MIN_ADDRESS_TEXT_LENGTH": "150",
    "ROW_PAUSE_MS": "200",
    "SYNC_SETTLE_MS": "2500",
}

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


def _read(env: Mapping[str, str], key: str) -> str:
    value = env.get(key)
    if value is None or not value.strip():
        return DEFAULTS[key]
    return value.strip()


def _parse_bool(value: str, *, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    message = f"Config key {key} must be a boolean string; got {value!r}"
    logger.error(message)
    raise ConfigError(message)


def _parse_int(value: str, *, key: str) -> int:
    try:
        return int(value.strip())
    except (TypeError, ValueError):
        message = f"Config key {key} must be an integer; got {value!r}"
        logger.error(message)
        raise ConfigError(message)


def _parse_non_negative(value: str, *, key: str) -> int:
    parsed = _parse_int(value, key=key)
    if parsed < 0:
        message = f"Config key {key} cannot be negative; got {value!r}"
        logger.error(message)
        raise ConfigError(message)
    return parsed


def _parse_quota(value: str) -> int | None:
    if not value:
        return None
    parsed = _parse_int(value, key="PROCESS_COUNT")
    return parsed if parsed > 0 else None


def _parse_list(value: str) -> list[str]:
    if not value:
        return []
    tokens = re.split(r"[,\n]", value)
    return [token.strip() for token in tokens if token and token.strip()]


def _clean_url(value: str, *, key: str) -> str:
    stripped = value.strip().rstrip("/")
    if not stripped:
        message = f"Config key {key} cannot be blank"
        logger.error(message)
        raise ConfigError(message)
    return stripped


def _clean_path(value: str) -> str:
    path = "/" + value.strip().strip("/")
    return path if path != "/" else ""


@dataclass(slots=True, frozen=True)
class Config:
    run_env: str
    base_url: str
    order_list_path: str
    carrier_override: str
    process_count: int | None
    orders_to_process: list[str]
    pincode_data_dir: str
    pincode_cache_ttl_seconds: int
    logs_dir: str
    json_log_file: str
    storage_state_path: str
    etl_headless: bool
    chrome_executable: str
    min_address_text_length: int
    row_pause_ms: int
    sync_settle_ms: int

    @property
    def order_list_url(self) -> str:
        return f"{self.base_url}{self.order_list_path}"

    def order_url(self, order_id: str) -> str:
        return f"{self.base_url}/inventory/order/{order_id}"

    @classmethod
    def load_from_env(cls, env: Mapping[str, str] | None = None) -> Config:
        source = os.environ if env is None else env
        values = {key: _read(source, key) for key in DEFAULTS}

        return cls(
            run_env=values["RUN_ENV"],
            base_url=_clean_url(values["BASE_URL"], key="BASE_URL"),
            order_list_path=_clean_path(values["ORDER_LIST_PATH"]),
            carrier_override=values["CARRIER_OVERRIDE"],
            process_count=_parse_quota(values["PROCESS_COUNT"]),
            orders_to_process=_parse_list(values["ORDERS_TO_PROCESS"]),
            pincode_data_dir=values["PINCODE_DATA_DIR"],
            pincode_cache_ttl_seconds=_parse_non_negative(
                values["PINCODE_CACHE_TTL_SECONDS"], key="PINCODE_CACHE_TTL_SECONDS"
            ),
            logs_dir=values["LOGS_DIR"],
            json_log_file=values["JSON_LOG_FILE"],
            storage_state_path=values["STORAGE_STATE_PATH"],
            etl_headless=_parse_bool(values["ETL_HEADLESS"], key="ETL_HEADLESS"),
            chrome_executable=values["CHROME_EXECUTABLE"],
            min_address_text_length=_parse_non_negative(
                values["MIN_ADDRESS_TEXT_LENGTH"], key="MIN_ADDRESS_TEXT_LENGTH"
            ),
            row_pause_ms=_parse_non_negative(values["ROW_PAUSE_MS"], key="ROW_PAUSE_MS"),
            sync_settle_ms=_parse_non_negative(values["SYNC_SETTLE_MS"], key="SYNC_SETTLE_MS"),
        )


config = Config.load_from_env()
