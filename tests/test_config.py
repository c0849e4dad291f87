from pathlib import Path

import pytest

from carrier_sync.config import DEFAULTS, PROJECT_ROOT, Config, ConfigError


def test_defaults_apply_when_env_is_empty() -> None:
    cfg = Config.load_from_env({})

    assert cfg.run_env == "local"
    assert cfg.base_url == "https://diyaa.in"
    assert cfg.order_list_url == "https://diyaa.in/inventory/order"
    assert cfg.carrier_override == ""
    assert cfg.process_count is None
    assert cfg.orders_to_process == []
    assert Path(cfg.pincode_data_dir) == PROJECT_ROOT / "data"
    assert cfg.pincode_cache_ttl_seconds == 60
    assert cfg.etl_headless is True
    assert cfg.min_address_text_length == 150
    assert set(DEFAULTS) >= {"CARRIER_OVERRIDE", "PROCESS_COUNT", "ORDERS_TO_PROCESS", "PINCODE_DATA_DIR"}


def test_blank_values_fall_back_to_defaults() -> None:
    cfg = Config.load_from_env({"BASE_URL": "   ", "ROW_PAUSE_MS": ""})

    assert cfg.base_url == "https://diyaa.in"
    assert cfg.row_pause_ms == 200


def test_urls_are_normalised() -> None:
    cfg = Config.load_from_env({"BASE_URL": "https://admin.example.com/", "ORDER_LIST_PATH": "orders/list/"})

    assert cfg.order_list_url == "https://admin.example.com/orders/list"
    assert cfg.order_url("1599") == "https://admin.example.com/inventory/order/1599"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("5", 5), (" 12 ", 12), ("0", None), ("-3", None), ("", None)],
)
def test_process_count_parsing(raw: str, expected: int | None) -> None:
    assert Config.load_from_env({"PROCESS_COUNT": raw}).process_count == expected


def test_order_allow_list_accepts_commas_and_newlines() -> None:
    cfg = Config.load_from_env({"ORDERS_TO_PROCESS": "1599, 1600\n1601,,\n"})

    assert cfg.orders_to_process == ["1599", "1600", "1601"]


def test_carrier_override_is_trimmed() -> None:
    assert Config.load_from_env({"CARRIER_OVERRIDE": "  stcourier "}).carrier_override == "stcourier"


@pytest.mark.parametrize(
    "env",
    [
        {"PROCESS_COUNT": "five"},
        {"PINCODE_CACHE_TTL_SECONDS": "-1"},
        {"ETL_HEADLESS": "maybe"},
        {"ROW_PAUSE_MS": "1.5"},
    ],
)
def test_malformed_values_raise_config_error(env: dict[str, str]) -> None:
    with pytest.raises(ConfigError):
        Config.load_from_env(env)


def test_headless_flag_parsing() -> None:
    assert Config.load_from_env({"ETL_HEADLESS": "No"}).etl_headless is False
    assert Config.load_from_env({"ETL_HEADLESS": "on"}).etl_headless is True
