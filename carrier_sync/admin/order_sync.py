"""Carrier sync workflow for a single order, run in its own browser tab."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Callable

from carrier_sync.admin.driver import PageDriver, StepResult
from carrier_sync.admin.eligibility import SHIPROCKET, CarrierEligibilityEngine
from carrier_sync.admin.models import OrderFacts
from carrier_sync.json_logger import JsonLogger, log_event

SYNC_BUTTON_SELECTOR = "#sync_shiprocket"
CARRIER_DROPDOWN_SELECTOR = (
    "#logisticsModal > div > div > div.modal-body > div > div > div.col-md-9 > div > span > span.selection > span"
)
CARRIER_OPTION_SELECTORS = (
    "#select2-logistics-results li.select2-results__option",
    "ul.select2-results__options li.select2-results__option",
    "#logisticsModal .select2-results__option",
    "#logisticsModal .dropdown-menu li",
    "#logisticsModal li",
)
LOGISTICS_MODAL_SELECTOR = "#logisticsModal"
LIST_YES_RADIO_SELECTOR = "#chk_lst_yes"
CONFIRM_BUTTON_SELECTOR = "#logistic_sync"
CLOSE_POPUP_SELECTOR = "#SyncClose"
FETCH_BUTTON_SELECTOR = (
    "body > div.wrapper > div.content-wrapper > section > div.row > div > "
    "div.row.col-mb-4 > div:nth-child(3) > div:nth-child(1) > button"
)
SAVE_BUTTON_SELECTOR = "#save_order"

CHECK_LIST_YES_SCRIPT = """
(selector) => {
  const el = document.querySelector(selector);
  if (!el) return false;
  el.checked = true;
  el.dispatchEvent(new Event('input', { bubbles: true }));
  el.dispatchEvent(new Event('change', { bubbles: true }));
  return true;
}
"""
CONFIRM_ENABLED_SCRIPT = """
(selector) => {
  const btn = document.querySelector(selector);
  return !!btn && !btn.disabled && !btn.hasAttribute('disabled');
}
"""

REASON_NO_ORDER_ID = "no-order-id"
REASON_NAVIGATION_FAILED = "navigation-failed"
REASON_NO_SYNC_BUTTON = "no-sync-button"
REASON_DIALOG = "dialog-appeared"
REASON_NOT_ELIGIBLE = "carrier-conditions-not-met"
REASON_NO_CONFIRM = "no-confirm-control"


@dataclass(frozen=True)
class SyncTimeouts:
    navigation_ms: int = 15_000
    sync_button_ms: int = 4_000
    dialog_watch_ms: int = 1_000
    dropdown_ms: int = 5_000
    option_click_ms: int = 2_000
    list_yes_ms: int = 3_000
    confirm_visible_ms: int = 3_000
    confirm_enabled_ms: int = 5_000
    modal_detach_ms: int = 8_000
    modal_detach_fallback_ms: int = 2_500
    close_popup_ms: int = 3_000
    fetch_ms: int = 5_000
    fetch_settle_ms: int = 3_000
    fetch_fallback_ms: int = 1_500
    save_ms: int = 5_000
    save_settle_ms: int = 3_000
    click_ms: int = 5_000


@dataclass(frozen=True)
class SyncResult:
    synced: bool
    carrier: str | None = None
    reason: str | None = None
    detail: str | None = None
    skipped: bool = False

    @classmethod
    def failed(cls, reason: str, detail: str | None = None, *, skipped: bool = False) -> "SyncResult":
        return cls(synced=False, reason=reason, detail=detail, skipped=skipped)


SurfaceFactory = Callable[[], AbstractAsyncContextManager[PageDriver]]


def _dialog_since(driver: PageDriver, mark: int) -> str | None:
    dialogs = driver.dismissed_dialogs
    return dialogs[-1] if len(dialogs) > mark else None


def _dialog_skip(logger: JsonLogger, step: str, detail: str | None) -> SyncResult:
    log_event(
        logger=logger,
        phase="sync",
        status="warn",
        message="Unexpected dialog; skipping order",
        step=step,
        dialog_message=detail,
    )
    return SyncResult.failed(REASON_DIALOG, detail, skipped=True)


class OrderSyncOrchestrator:
    """Drive the order page's logistics sync for one order at a time.

    ``open_surface`` yields a :class:`PageDriver` over a fresh tab and must
    close it when the block exits.
    """

    def __init__(
        self,
        *,
        open_surface: SurfaceFactory,
        eligibility: CarrierEligibilityEngine,
        order_url: Callable[[str], str],
        carrier_override: str | None,
        logger: JsonLogger,
        settle_ms: int = 2_500,
        timeouts: SyncTimeouts | None = None,
    ) -> None:
        self._open_surface = open_surface
        self._eligibility = eligibility
        self._order_url = order_url
        self.carrier = (carrier_override or "").strip() or None
        self.logger = logger
        self.settle_ms = settle_ms
        self.timeouts = timeouts or SyncTimeouts()

    async def sync_order(self, order_id: str | None, facts: OrderFacts) -> SyncResult:
        if not order_id:
            return SyncResult.failed(REASON_NO_ORDER_ID)

        logger = self.logger.bind(order_id=order_id)
        try:
            async with self._open_surface() as driver:
                return await self._run(driver, order_id, facts, logger)
        except Exception as exc:
            log_event(logger=logger, phase="sync", status="error", message="Order sync failed", error=str(exc))
            return SyncResult.failed(str(exc) or exc.__class__.__name__)

    async def _run(self, driver: PageDriver, order_id: str, facts: OrderFacts, logger: JsonLogger) -> SyncResult:
        t = self.timeouts

        url = self._order_url(order_id)
        opened = await driver.navigate(url, timeout_ms=t.navigation_ms)
        if not opened.ok:
            log_event(logger=logger, phase="sync", status="error", message="Order page did not load", url=url)
            return SyncResult.failed(REASON_NAVIGATION_FAILED, opened.detail)

        if not (await driver.wait_for(SYNC_BUTTON_SELECTOR, timeout_ms=t.sync_button_ms)).ok:
            log_event(logger=logger, phase="sync", status="warn", message="Sync control not found")
            return SyncResult.failed(REASON_NO_SYNC_BUTTON)

        mark = len(driver.dismissed_dialogs)
        clicked = await driver.click(SYNC_BUTTON_SELECTOR, timeout_ms=t.click_ms, settle_ms=t.dialog_watch_ms)
        if clicked.interrupted:
            return _dialog_skip(logger, "open sync popup", clicked.detail)
        if not clicked.ok:
            return SyncResult.failed(REASON_NO_SYNC_BUTTON, clicked.detail)

        dropdown_open = (await driver.wait_for(CARRIER_DROPDOWN_SELECTOR, timeout_ms=t.dropdown_ms)).ok
        if dropdown_open:
            opened_dropdown = await driver.click(CARRIER_DROPDOWN_SELECTOR, timeout_ms=t.click_ms)
            if opened_dropdown.interrupted:
                return _dialog_skip(logger, "open carrier dropdown", opened_dropdown.detail)
            dropdown_open = opened_dropdown.ok
        if not dropdown_open:
            log_event(logger=logger, phase="sync", status="warn", message="Carrier dropdown did not open")

        selected_carrier: str | None = None
        if self.carrier:
            verdict = self._eligibility.evaluate(
                self.carrier, facts.pincode, facts.state, facts.payment_type, facts.payment_status
            )
            if not verdict.eligible:
                log_event(
                    logger=logger,
                    phase="eligibility",
                    status="warn",
                    message="Skipping carrier selection",
                    carrier=self.carrier,
                    reason=verdict.reason,
                )
                await self._close_popup(driver)
                return SyncResult.failed(REASON_NOT_ELIGIBLE, verdict.reason, skipped=True)

            if dropdown_open:
                selected = await driver.select_option_by_text(
                    self.carrier,
                    option_selectors=CARRIER_OPTION_SELECTORS,
                    container=LOGISTICS_MODAL_SELECTOR,
                    click_timeout_ms=t.option_click_ms,
                )
                if selected.interrupted:
                    return _dialog_skip(logger, "select carrier", selected.detail)
                if selected.ok:
                    selected_carrier = self.carrier
            if selected_carrier is None:
                log_event(
                    logger=logger,
                    phase="sync",
                    status="warn",
                    message="Carrier not found in dropdown",
                    carrier=self.carrier,
                )
        else:
            log_event(logger=logger, phase="sync", status="warn", message="No carrier override configured")

        if (await driver.wait_for(LIST_YES_RADIO_SELECTOR, timeout_ms=t.list_yes_ms)).ok:
            marked = await driver.evaluate_step(CHECK_LIST_YES_SCRIPT, LIST_YES_RADIO_SELECTOR)
            if not marked.ok and not marked.interrupted:
                log_event(
                    logger=logger,
                    phase="sync",
                    status="warn",
                    message="Could not mark list option",
                    detail=marked.detail,
                )

        await driver.pause(self.settle_ms)
        pending = _dialog_since(driver, mark)
        if pending is not None:
            return _dialog_skip(logger, "before confirm", pending)

        confirmed = await self._confirm(driver)
        if not confirmed:
            log_event(logger=logger, phase="sync", status="error", message="Confirm control unavailable")
            await self._close_popup(driver)
            return SyncResult.failed(REASON_NO_CONFIRM)

        if not (await driver.wait_for(LOGISTICS_MODAL_SELECTOR, timeout_ms=t.modal_detach_ms, state="detached")).ok:
            await driver.pause(t.modal_detach_fallback_ms)
        closed = await self._close_popup(driver)
        if closed.interrupted:
            return _dialog_skip(logger, "close sync popup", closed.detail)

        if (self.carrier or "").lower() == SHIPROCKET:
            log_event(logger=logger, phase="sync", message="Shiprocket carrier: skipping fetch and save")
        else:
            await self._fetch_and_save(driver, logger)

        closed = await self._close_popup(driver)
        pending = closed.detail if closed.interrupted else _dialog_since(driver, mark)
        if pending is not None:
            return _dialog_skip(logger, "after save", pending)
        log_event(logger=logger, phase="sync", message="Order sync finished", carrier=selected_carrier)
        return SyncResult(synced=True, carrier=selected_carrier)

    async def _confirm(self, driver: PageDriver) -> bool:
        t = self.timeouts
        if not (await driver.wait_for(CONFIRM_BUTTON_SELECTOR, timeout_ms=t.confirm_visible_ms)).ok:
            return False
        enabled = await driver.wait_for_function(
            CONFIRM_ENABLED_SCRIPT, arg=CONFIRM_BUTTON_SELECTOR, timeout_ms=t.confirm_enabled_ms
        )
        if not enabled.ok:
            return False
        return (await driver.click(CONFIRM_BUTTON_SELECTOR, timeout_ms=t.click_ms, expect_dialog=True)).ok

    async def _fetch_and_save(self, driver: PageDriver, logger: JsonLogger) -> None:
        t = self.timeouts

        fetched = False
        if (await driver.wait_for(FETCH_BUTTON_SELECTOR, timeout_ms=t.fetch_ms)).ok:
            fetched = (
                await driver.click(
                    FETCH_BUTTON_SELECTOR, timeout_ms=t.click_ms, expect_dialog=True, settle_ms=t.fetch_settle_ms
                )
            ).ok
        if not fetched:
            log_event(logger=logger, phase="sync", status="warn", message="Fetch control unavailable")
            await driver.pause(t.fetch_fallback_ms)

        saved = False
        if (await driver.wait_for(SAVE_BUTTON_SELECTOR, timeout_ms=t.save_ms)).ok:
            saved = (await driver.click(SAVE_BUTTON_SELECTOR, timeout_ms=t.click_ms, expect_dialog=True)).ok
        if not saved:
            log_event(logger=logger, phase="sync", status="warn", message="Save control unavailable")
        await driver.pause(t.save_settle_ms)

    async def _close_popup(self, driver: PageDriver) -> StepResult:
        if (await driver.wait_for(CLOSE_POPUP_SELECTOR, timeout_ms=self.timeouts.close_popup_ms)).ok:
            closed = await driver.click(CLOSE_POPUP_SELECTOR, timeout_ms=self.timeouts.click_ms)
            if closed.ok or closed.interrupted:
                return closed
        return await driver.press("Escape")
