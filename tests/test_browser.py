from __future__ import annotations

import io
import json
from types import SimpleNamespace
from typing import Any

import pytest

from carrier_sync import browser as browser_module
from carrier_sync.json_logger import JsonLogger


class _Chromium:
    def __init__(self, fail_with_executable: bool = False) -> None:
        self.fail_with_executable = fail_with_executable
        self.launches: list[dict[str, Any]] = []

    async def launch(self, **kwargs: Any) -> str:
        self.launches.append(dict(kwargs))
        if self.fail_with_executable and "executable_path" in kwargs:
            raise RuntimeError("chrome crashed")
        return "browser"


class _Browser:
    def __init__(self) -> None:
        self.contexts: list[dict[str, Any]] = []

    async def new_context(self, **kwargs: Any) -> str:
        self.contexts.append(kwargs)
        return "context"


def _settings(**overrides: Any) -> SimpleNamespace:
    values = {"chrome_executable": "", "etl_headless": True, "storage_state_path": ""}
    values.update(overrides)
    return SimpleNamespace(**values)


def _logger(stream: io.StringIO) -> JsonLogger:
    return JsonLogger(run_id="run-b", stream=stream, log_file_path=None)


@pytest.mark.asyncio
async def test_local_chrome_failure_retries_with_bundled_chromium(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    chrome = tmp_path / "chrome"
    chrome.write_text("", encoding="utf-8")
    monkeypatch.setattr(browser_module, "config", _settings(chrome_executable=str(chrome), etl_headless=False))
    chromium = _Chromium(fail_with_executable=True)
    stream = io.StringIO()

    result = await browser_module.launch_browser(playwright=SimpleNamespace(chromium=chromium), logger=_logger(stream))

    assert result == "browser"
    assert chromium.launches == [{"headless": False, "executable_path": str(chrome)}, {"headless": False}]
    records = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert records[-1]["status"] == "warn"


@pytest.mark.asyncio
async def test_missing_chrome_executable_uses_bundled_chromium(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setattr(browser_module, "config", _settings(chrome_executable=str(tmp_path / "absent")))
    chromium = _Chromium()

    await browser_module.launch_browser(playwright=SimpleNamespace(chromium=chromium), logger=_logger(io.StringIO()))

    assert chromium.launches == [{"headless": True}]


@pytest.mark.asyncio
async def test_bundled_chromium_failure_propagates(monkeypatch: pytest.MonkeyPatch) -> None:
    class _Broken:
        async def launch(self, **kwargs: Any) -> None:
            raise RuntimeError("no browsers installed")

    monkeypatch.setattr(browser_module, "config", _settings())

    with pytest.raises(RuntimeError):
        await browser_module.launch_browser(playwright=SimpleNamespace(chromium=_Broken()), logger=_logger(io.StringIO()))


@pytest.mark.asyncio
async def test_session_context_uses_storage_state_when_present(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    state = tmp_path / "storage_state.json"
    state.write_text("{}", encoding="utf-8")
    browser = _Browser()

    monkeypatch.setattr(browser_module, "config", _settings(storage_state_path=str(state)))
    await browser_module.open_session_context(browser=browser, logger=_logger(io.StringIO()))

    monkeypatch.setattr(browser_module, "config", _settings(storage_state_path=str(tmp_path / "missing.json")))
    await browser_module.open_session_context(browser=browser, logger=_logger(io.StringIO()))

    assert browser.contexts == [{"storage_state": str(state)}, {}]
