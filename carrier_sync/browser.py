from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from playwright.async_api import Browser, BrowserContext

from carrier_sync.config import config
from carrier_sync.json_logger import JsonLogger, log_event


async def launch_browser(*, playwright: Any, logger: JsonLogger) -> Browser:
    chrome_exec = (config.chrome_executable or "").strip() or None
    headless = config.etl_headless
    launch_kwargs: Dict[str, Any] = {"headless": headless}

    if chrome_exec and Path(chrome_exec).is_file():
        launch_kwargs["executable_path"] = chrome_exec
        log_event(
            logger=logger,
            phase="init",
            message="Launching Playwright with local Chrome executable",
            executable_path=chrome_exec,
            headless=headless,
        )
    elif chrome_exec:
        log_event(
            logger=logger,
            phase="init",
            status="warn",
            message="Configured Chrome executable missing; falling back to bundled Chromium",
            executable_path=chrome_exec,
            headless=headless,
        )
    else:
        log_event(
            logger=logger,
            phase="init",
            message="Launching Playwright with bundled Chromium",
            headless=headless,
        )

    try:
        return await playwright.chromium.launch(**launch_kwargs)
    except Exception as exc:
        if launch_kwargs.pop("executable_path", None) is not None:
            log_event(
                logger=logger,
                phase="init",
                status="warn",
                message="Local Chrome launch failed; retrying with bundled Chromium",
                executable_path=chrome_exec,
                error=str(exc),
            )
            return await playwright.chromium.launch(**launch_kwargs)
        raise


async def open_session_context(*, browser: Browser, logger: JsonLogger) -> BrowserContext:
    """Open a context that reuses the saved admin session when one is configured."""

    state_path = (config.storage_state_path or "").strip()
    if state_path and Path(state_path).expanduser().is_file():
        resolved = str(Path(state_path).expanduser())
        log_event(logger=logger, phase="init", message="Reusing saved session state", storage_state=resolved)
        return await browser.new_context(storage_state=resolved)

    if state_path:
        log_event(
            logger=logger,
            phase="init",
            status="warn",
            message="Configured storage state file missing; starting without a saved session",
            storage_state=state_path,
        )
    return await browser.new_context()
