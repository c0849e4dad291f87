"""Thin page driver over Playwright whose steps report a tagged outcome.

Every externally facing step returns a :class:`StepResult` instead of raising,
so callers branch on ``completed``/``interrupted``/``timed_out``. Native
dialogs are handled by a single listener: during steps that expect a dialog it
is accepted, otherwise it is dismissed and the running step is reported as
interrupted.
"""

from __future__ import annotations

import contextlib
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Sequence

from playwright.async_api import BrowserContext, Dialog, Page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from carrier_sync.json_logger import JsonLogger, log_event


class StepStatus(str, Enum):
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class StepResult:
    status: StepStatus
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is StepStatus.COMPLETED

    @property
    def interrupted(self) -> bool:
        return self.status is StepStatus.INTERRUPTED


COMPLETED = StepResult(StepStatus.COMPLETED)

SELECT_OPTION_BY_TEXT_SCRIPT = """
({ container, text }) => {
  const root = document.querySelector(container);
  if (!root) return false;
  const wanted = text.toLowerCase();
  const match = Array.from(root.querySelectorAll('li, option, div')).find(
    (el) => el.innerText && el.innerText.trim().toLowerCase() === wanted
  );
  if (!match) return false;
  try { match.click(); } catch (e) {}
  return true;
}
"""


def _timed_out(exc: Exception) -> StepResult:
    return StepResult(StepStatus.TIMED_OUT, detail=str(exc).splitlines()[0] if str(exc) else repr(exc))


class PageDriver:
    def __init__(self, page: Page, *, logger: JsonLogger) -> None:
        self.page = page
        self.logger = logger
        self._accept_dialogs = False
        self._dismissed: list[str] = []
        page.on("dialog", self._on_dialog)

    @classmethod
    @asynccontextmanager
    async def open_surface(cls, context: BrowserContext, *, logger: JsonLogger) -> AsyncIterator["PageDriver"]:
        """Open a new tab for the duration of the block; it is closed on every exit path."""

        page = await context.new_page()
        driver = cls(page, logger=logger)
        try:
            yield driver
        finally:
            await driver.close()

    @property
    def dismissed_dialogs(self) -> list[str]:
        return list(self._dismissed)

    async def _on_dialog(self, dialog: Dialog) -> None:
        message = dialog.message
        if self._accept_dialogs:
            log_event(logger=self.logger, phase="dialog", message="Accepting expected dialog", dialog_message=message)
            with contextlib.suppress(PlaywrightError):
                await dialog.accept()
            return

        self._dismissed.append(message)
        log_event(
            logger=self.logger,
            phase="dialog",
            status="warn",
            message="Dismissing unexpected dialog",
            dialog_message=message,
        )
        with contextlib.suppress(PlaywrightError):
            await dialog.dismiss()

    async def navigate(self, url: str, *, timeout_ms: int) -> StepResult:
        try:
            await self.page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except (PlaywrightTimeoutError, PlaywrightError) as exc:
            return _timed_out(exc)
        return COMPLETED

    async def wait_for(self, selector: str, *, timeout_ms: int, state: str = "visible") -> StepResult:
        try:
            await self.page.wait_for_selector(selector, state=state, timeout=timeout_ms)
        except (PlaywrightTimeoutError, PlaywrightError) as exc:
            return _timed_out(exc)
        return COMPLETED

    async def wait_for_function(self, expression: str, *, timeout_ms: int, arg: Any = None) -> StepResult:
        try:
            await self.page.wait_for_function(expression, arg=arg, timeout=timeout_ms)
        except (PlaywrightTimeoutError, PlaywrightError) as exc:
            return _timed_out(exc)
        return COMPLETED

    async def click(
        self,
        selector: str,
        *,
        timeout_ms: int,
        expect_dialog: bool = False,
        settle_ms: int = 0,
    ) -> StepResult:
        """Click ``selector`` and wait ``settle_ms`` for side effects.

        With ``expect_dialog`` a dialog raised by the click is accepted;
        otherwise any dialog seen before the step ends marks it interrupted.
        """

        seen = len(self._dismissed)
        self._accept_dialogs = expect_dialog
        try:
            await self.page.click(selector, timeout=timeout_ms)
            if settle_ms:
                await self.page.wait_for_timeout(settle_ms)
        except (PlaywrightTimeoutError, PlaywrightError) as exc:
            return _timed_out(exc)
        finally:
            self._accept_dialogs = False
        return self._outcome(seen)

    def _outcome(self, seen: int, result: StepResult = COMPLETED) -> StepResult:
        if len(self._dismissed) > seen:
            return StepResult(StepStatus.INTERRUPTED, detail=self._dismissed[-1])
        return result

    async def read_text(self, selector: str, *, timeout_ms: int) -> str | None:
        if not (await self.wait_for(selector, timeout_ms=timeout_ms)).ok:
            return None
        try:
            element = await self.page.query_selector(selector)
            if element is None:
                return None
            return (await element.inner_text()).strip()
        except PlaywrightError:
            return None

    async def evaluate_step(self, expression: str, arg: Any = None) -> StepResult:
        """Run an in-page script as a step; script errors time the step out."""

        seen = len(self._dismissed)
        try:
            await self.page.evaluate(expression, arg)
        except PlaywrightError as exc:
            return self._outcome(seen, _timed_out(exc))
        return self._outcome(seen)

    async def select_option_by_text(
        self,
        text: str,
        *,
        option_selectors: Sequence[str],
        container: str,
        click_timeout_ms: int,
        settle_ms: int = 250,
    ) -> StepResult:
        """Click the first option whose text contains ``text`` (case-insensitive).

        Falls back to an in-page scan of ``container`` for an exact match.
        """

        seen = len(self._dismissed)
        pattern = re.compile(re.escape(text), re.IGNORECASE)
        for selector in option_selectors:
            try:
                options = self.page.locator(selector).filter(has_text=pattern)
                if await options.count() == 0:
                    continue
                with contextlib.suppress(PlaywrightError):
                    await options.first.click(timeout=click_timeout_ms, force=True)
                await self.page.wait_for_timeout(settle_ms)
                return self._outcome(seen)
            except PlaywrightError:
                continue

        try:
            found = bool(await self.page.evaluate(SELECT_OPTION_BY_TEXT_SCRIPT, {"container": container, "text": text}))
        except PlaywrightError as exc:
            return self._outcome(seen, _timed_out(exc))
        if not found:
            return self._outcome(seen, StepResult(StepStatus.TIMED_OUT, detail=f"no option matching {text!r}"))
        return self._outcome(seen)

    async def press(self, key: str) -> StepResult:
        try:
            await self.page.keyboard.press(key)
        except PlaywrightError as exc:
            return _timed_out(exc)
        return COMPLETED

    async def pause(self, ms: int) -> StepResult:
        seen = len(self._dismissed)
        if ms > 0:
            try:
                await self.page.wait_for_timeout(ms)
            except PlaywrightError as exc:
                return self._outcome(seen, _timed_out(exc))
        return self._outcome(seen)

    async def close(self) -> None:
        with contextlib.suppress(Exception):
            self.page.remove_listener("dialog", self._on_dialog)
        with contextlib.suppress(Exception):
            await self.page.close()
