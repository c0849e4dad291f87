"""Walk the order table, collect per-row facts and run the carrier sync for each row."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from playwright.async_api import ElementHandle, Page
from playwright.async_api import Error as PlaywrightError

from carrier_sync.admin.driver import PageDriver
from carrier_sync.admin.extractors import extract_pincode, extract_state
from carrier_sync.admin.models import (
    SKIP_DIALOG,
    SKIP_INELIGIBLE,
    SKIP_NOT_LISTED,
    ErrorOutcome,
    OrderFacts,
    ProcessedOutcome,
    RowOutcome,
    SkippedOutcome,
)
from carrier_sync.admin.order_sync import REASON_DIALOG, REASON_NOT_ELIGIBLE, OrderSyncOrchestrator, SyncResult
from carrier_sync.admin.run_summary import RunSummary, build_summary
from carrier_sync.json_logger import JsonLogger, log_event

TABLE_SELECTOR = "table#example"
ROW_SELECTOR = f"{TABLE_SELECTOR} tbody tr"
NAME_CELL_SELECTOR = "td:nth-child(2)"
BADGE_SELECTOR = ".badge"
NEW_BADGE_TEXT = "New"

ADDRESS_BUTTON_SELECTOR = "td.sorting_1 > button.address-show-btn"
ADDRESS_BUTTON_FALLBACK_SELECTOR = "button.address-show-btn, a.address-show-btn"
ORDER_ID_BUTTON_SELECTOR = "td.sorting_1 > button.address-show-btn, td.sorting_1 > a.address-show-btn"
ORDER_ID_ATTRIBUTES = ("data-order-id", "data-id", "data-order", "title", "aria-label")
ORDER_ID_CELL_SELECTOR = "td.order-id, th.order-id"
FIRST_CELL_SELECTOR = "td:first-child"
PAYMENT_TYPE_COLUMN = 8
PAYMENT_STATUS_COLUMN = 9

ADDRESS_BODY_SELECTOR = "#addressShowBody"
ADDRESS_CLOSE_SELECTOR = "#addressShowModal > div > div > div.modal-footer > button"

MISSING_FACTS_MESSAGE = "missing pincode or order id"
NO_CARRIER_MESSAGE = "sync successful but no carrier identified"
DIALOG_SKIP_REASON = "skipped due to browser dialog"
NOT_LISTED_REASON = "not in allow-list"


@dataclass(frozen=True)
class RowFields:
    order_id: str | None
    payment_type: str | None = None
    payment_status: str | None = None


@dataclass(frozen=True)
class AddressPopup:
    found: bool
    pincode: str | None = None
    pincodes: tuple[str, ...] = ()
    state: str | None = None
    text_length: int = 0


# ── Row facts ────────────────────────────────────────────────────────────────


async def _query(handle: Any, selector: str) -> Any:
    try:
        return await handle.query_selector(selector)
    except PlaywrightError:
        return None


async def _attribute(handle: Any, name: str) -> str | None:
    try:
        value = await handle.get_attribute(name)
    except PlaywrightError:
        return None
    return (value or "").strip() or None


async def _inner_text(handle: Any) -> str | None:
    if handle is None:
        return None
    try:
        value = await handle.inner_text()
    except PlaywrightError:
        return None
    return (value or "").strip() or None


async def has_new_badge(row: ElementHandle) -> bool:
    cell = await _query(row, NAME_CELL_SELECTOR)
    if cell is None:
        return False
    badge = await _query(cell, BADGE_SELECTOR)
    if badge is None:
        return False
    try:
        text = await badge.text_content()
    except PlaywrightError:
        return False
    return (text or "").strip() == NEW_BADGE_TEXT


async def read_order_id(row: ElementHandle) -> str | None:
    """Resolve the row's order id from the first source that yields a value.

    Order: address button attributes (``ORDER_ID_ATTRIBUTES``), address button
    text, the row's ``data-order-id``, an ``order-id`` cell, the first cell.
    """

    button = await _query(row, ORDER_ID_BUTTON_SELECTOR)
    if button is not None:
        for name in ORDER_ID_ATTRIBUTES:
            value = await _attribute(button, name)
            if value:
                return value
        text = await _inner_text(button)
        if text:
            return text

    value = await _attribute(row, "data-order-id")
    if value:
        return value

    for selector in (ORDER_ID_CELL_SELECTOR, FIRST_CELL_SELECTOR):
        text = await _inner_text(await _query(row, selector))
        if text:
            return text
    return None


async def read_row_fields(row: ElementHandle) -> RowFields:
    order_id = await read_order_id(row)
    payment_type = payment_status = None
    try:
        cells = await row.query_selector_all("td")
    except PlaywrightError:
        cells = []
    if len(cells) > PAYMENT_STATUS_COLUMN:
        payment_type = await _inner_text(cells[PAYMENT_TYPE_COLUMN])
        payment_status = await _inner_text(cells[PAYMENT_STATUS_COLUMN])
    return RowFields(order_id=order_id, payment_type=payment_type, payment_status=payment_status)


def classify_sync_result(facts: OrderFacts, result: SyncResult) -> RowOutcome:
    if result.synced:
        if result.carrier and facts.order_id and facts.pincode:
            return ProcessedOutcome(
                carrier=result.carrier,
                order_id=facts.order_id,
                pincode=facts.pincode,
                state=facts.state,
                payment_type=facts.payment_type,
                payment_status=facts.payment_status,
            )
        return ErrorOutcome(order_id=facts.order_id, pincode=facts.pincode, message=NO_CARRIER_MESSAGE)

    if result.reason == REASON_DIALOG:
        return _skipped(facts, reason=DIALOG_SKIP_REASON, kind=SKIP_DIALOG)
    if result.reason == REASON_NOT_ELIGIBLE:
        return _skipped(facts, reason=result.detail or REASON_NOT_ELIGIBLE, kind=SKIP_INELIGIBLE)

    detail = f" - {result.detail}" if result.detail else ""
    return ErrorOutcome(
        order_id=facts.order_id,
        pincode=facts.pincode,
        message=f"sync failed: {result.reason or 'unknown sync failure'}{detail}",
    )


def _skipped(facts: OrderFacts, *, reason: str, kind: str) -> SkippedOutcome:
    return SkippedOutcome(
        reason=reason,
        kind=kind,
        order_id=facts.order_id,
        pincode=facts.pincode,
        state=facts.state,
        payment_type=facts.payment_type,
        payment_status=facts.payment_status,
    )


# ── Processing loop ──────────────────────────────────────────────────────────


class OrderListProcessor:
    def __init__(
        self,
        *,
        page: Page,
        orchestrator: OrderSyncOrchestrator,
        logger: JsonLogger,
        allow_list: Iterable[str] = (),
        min_address_text_length: int = 150,
        row_pause_ms: int = 200,
        popup_open_ms: int = 1_000,
        popup_timeout_ms: int = 1_500,
        table_timeout_ms: int = 10_000,
    ) -> None:
        self.page = page
        self.driver = PageDriver(page, logger=logger)
        self.orchestrator = orchestrator
        self.logger = logger
        self.allow_list = frozenset(str(item).strip() for item in allow_list if str(item).strip())
        self.min_address_text_length = min_address_text_length
        self.row_pause_ms = row_pause_ms
        self.popup_open_ms = popup_open_ms
        self.popup_timeout_ms = popup_timeout_ms
        self.table_timeout_ms = table_timeout_ms
        self.summary: RunSummary | None = None

    async def run(self, quota: int | None = None) -> RunSummary:
        wait = await self.driver.wait_for(ROW_SELECTOR, timeout_ms=self.table_timeout_ms)
        if not wait.ok:
            log_event(logger=self.logger, phase="rows", status="warn", message="Order table not visible", detail=wait.detail)
            return build_summary([], quota)
        try:
            rows = await self.page.query_selector_all(ROW_SELECTOR)
        except PlaywrightError as exc:
            log_event(logger=self.logger, phase="rows", status="error", message="Order rows unavailable", error=str(exc))
            rows = []
        return await self.process_rows(rows, quota)

    async def process_rows(self, rows: Sequence[ElementHandle], quota: int | None = None) -> RunSummary:
        """Process ``rows`` in order; ``self.summary`` keeps the outcomes gathered even if the loop is cancelled."""

        outcomes: list[RowOutcome] = []
        try:
            candidates = [row for row in rows if await has_new_badge(row)]
            log_event(
                logger=self.logger,
                phase="rows",
                message="Filtered order rows",
                total_rows=len(rows),
                new_rows=len(candidates),
                quota=quota,
                allow_list=sorted(self.allow_list) or None,
            )

            successful = 0
            for index, row in enumerate(candidates, start=1):
                try:
                    outcome = await self.process_row(row, index)
                except Exception as exc:
                    log_event(logger=self.logger, phase="row", status="error", message="Row processing failed", row=index, error=str(exc))
                    outcome = ErrorOutcome(order_id=None, pincode=None, message=f"exception during row processing: {exc}")
                outcomes.append(outcome)

                if isinstance(outcome, ProcessedOutcome):
                    successful += 1
                    if quota and successful >= quota:
                        log_event(
                            logger=self.logger,
                            phase="rows",
                            message="Reached PROCESS_COUNT limit; stopping",
                            quota=quota,
                            row=index,
                        )
                        break

                paused = await self.driver.pause(self.row_pause_ms)
                if not paused.ok:
                    log_event(
                        logger=self.logger,
                        phase="rows",
                        status="warn",
                        message="Pause between rows failed",
                        row=index,
                        detail=paused.detail,
                    )
        finally:
            self.summary = build_summary(outcomes, quota)

        return self.summary

    async def process_row(self, row: ElementHandle, index: int) -> RowOutcome:
        fields = await read_row_fields(row)
        if self.allow_list and (fields.order_id or "") not in self.allow_list:
            log_event(logger=self.logger, phase="row", message="Order not in allow-list; skipping", row=index, order_id=fields.order_id)
            return SkippedOutcome(reason=NOT_LISTED_REASON, kind=SKIP_NOT_LISTED, order_id=fields.order_id)

        popup = AddressPopup(found=False)
        try:
            popup = await self.capture_address(row, row_index=index, order_id=fields.order_id)
            facts = OrderFacts(
                order_id=fields.order_id,
                pincode=popup.pincode,
                state=popup.state,
                payment_type=fields.payment_type,
                payment_status=fields.payment_status,
            )
            if facts.order_id and facts.pincode:
                result = await self.orchestrator.sync_order(facts.order_id, facts)
                outcome = classify_sync_result(facts, result)
            else:
                outcome = ErrorOutcome(order_id=facts.order_id, pincode=facts.pincode, message=MISSING_FACTS_MESSAGE)
        except Exception as exc:
            log_event(
                logger=self.logger,
                phase="row",
                status="error",
                message="Exception during sync",
                row=index,
                order_id=fields.order_id,
                error=str(exc),
            )
            return ErrorOutcome(order_id=fields.order_id, pincode=popup.pincode, message=f"exception during sync: {exc}")

        log_event(
            logger=self.logger,
            phase="row",
            status="ok" if isinstance(outcome, ProcessedOutcome) else "warn",
            message="Row processed",
            row=index,
            order_id=facts.order_id,
            pincode=facts.pincode,
            state=facts.state,
            payment_type=facts.payment_type,
            payment_status=facts.payment_status,
            outcome=type(outcome).__name__,
            carrier=getattr(outcome, "carrier", None),
        )
        return outcome

    async def capture_address(self, row: ElementHandle, *, row_index: int, order_id: str | None) -> AddressPopup:
        """Open the row's address popup, parse pincode and state, then close it."""

        button = await _query(row, ADDRESS_BUTTON_SELECTOR) or await _query(row, ADDRESS_BUTTON_FALLBACK_SELECTOR)
        if button is None:
            log_event(logger=self.logger, phase="address", status="warn", message="Address button missing", row=row_index, order_id=order_id)
            return AddressPopup(found=False)

        await button.click()
        await self.driver.pause(self.popup_open_ms)

        raw_text = await self.driver.read_text(ADDRESS_BODY_SELECTOR, timeout_ms=self.popup_timeout_ms)
        if raw_text is None:
            return AddressPopup(found=False)

        if len(raw_text) < self.min_address_text_length:
            log_event(
                logger=self.logger,
                phase="address",
                status="warn",
                message="Address text too short; skipping pincode extraction",
                row=row_index,
                order_id=order_id,
                text_length=len(raw_text),
            )
            await self._close_address_popup()
            return AddressPopup(found=False, text_length=len(raw_text))

        pincodes = tuple(extract_pincode(raw_text))
        state = extract_state(raw_text)
        log_event(
            logger=self.logger,
            phase="address",
            message="Extracted address facts",
            row=row_index,
            order_id=order_id,
            pincode=pincodes[0] if pincodes else None,
            state=state,
        )
        await self._close_address_popup()
        return AddressPopup(
            found=any(ch.isalnum() for ch in raw_text),
            pincode=pincodes[0] if pincodes else None,
            pincodes=pincodes,
            state=state,
            text_length=len(raw_text),
        )

    async def _close_address_popup(self) -> None:
        button = await _query(self.page, ADDRESS_CLOSE_SELECTOR)
        if button is not None:
            try:
                await button.click()
                await self.driver.pause(150)
                return
            except PlaywrightError:
                pass
        await self.driver.press("Escape")
        await self.driver.pause(100)
