from __future__ import annotations

import io
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from carrier_sync.admin.models import SKIP_DIALOG, SKIP_INELIGIBLE, ErrorOutcome, ProcessedOutcome, SkippedOutcome
from carrier_sync.admin.run_summary import build_summary, persist_summary, render_summary
from carrier_sync.json_logger import JsonLogger

NOW = datetime(2026, 3, 14, 9, 30, 0, 123456, tzinfo=timezone.utc)


def _processed(order_id: str, carrier: str, pincode: str = "600001") -> ProcessedOutcome:
    return ProcessedOutcome(
        carrier=carrier,
        order_id=order_id,
        pincode=pincode,
        state="Tamil Nadu",
        payment_type="Prepaid",
        payment_status="success",
    )


OUTCOMES = [
    _processed("101", "DTDC"),
    SkippedOutcome(reason="skipped due to browser dialog", kind=SKIP_DIALOG, order_id="102", pincode="600002"),
    _processed("103", "stcourier", pincode="600003"),
    ErrorOutcome(order_id="104", pincode=None, message="missing pincode or order id"),
    _processed("105", "DTDC", pincode="600005"),
    SkippedOutcome(reason="pincode not serviceable", kind=SKIP_INELIGIBLE, order_id="106", pincode="689672"),
]


def test_totals_add_up_and_groups_keep_first_seen_order() -> None:
    summary = build_summary(OUTCOMES, quota=None)

    assert summary.attempted == 6
    assert (summary.successful, summary.skipped, summary.errored) == (3, 2, 1)
    assert summary.attempted == summary.successful + summary.skipped + summary.errored
    assert [carrier for carrier, _ in summary.carrier_groups] == ["DTDC", "stcourier"]
    assert [item.order_id for item in summary.by_carrier["DTDC"]] == ["101", "105"]
    assert summary.limit_reached is False


def test_build_is_pure_and_repeatable() -> None:
    first = build_summary(OUTCOMES, quota=3)
    second = build_summary(OUTCOMES, quota=3)

    assert first == second
    assert render_summary(first) == render_summary(second)
    assert first.build_record() == {
        "attempted": 6,
        "successful": 3,
        "skipped": 2,
        "dialog_skipped": 1,
        "errored": 1,
        "quota": 3,
        "limit_reached": True,
        "carriers": {"DTDC": ["101", "105"], "stcourier": ["103"]},
    }


def test_empty_run_renders_zero_totals() -> None:
    text = render_summary(build_summary([]))

    assert "Total rows attempted: 0" in text
    assert "SUCCESSFUL ORDERS SUMMARY" not in text
    assert "PROCESS_COUNT limit" not in text


def test_unknown_outcome_type_is_rejected() -> None:
    with pytest.raises(TypeError):
        build_summary([object()])  # type: ignore[list-item]


def test_rendered_report_sections() -> None:
    text = render_summary(build_summary(OUTCOMES, quota=5))

    assert "Total rows attempted: 6" in text
    assert "Successfully processed: 3" in text
    assert "PROCESS_COUNT limit: 5" in text
    assert "Limit reached: NO" in text
    assert "SUCCESSFUL ORDERS SUMMARY (3)" in text
    assert "3. Order: 103 | Pincode: 600003 | State: Tamil Nadu | Payment: Prepaid | Status: success | Carrier: stcourier" in text
    assert "Processed on DTDC (2)" in text
    assert "Processed on stcourier (1)" in text
    assert "Skipped due to Browser Dialog (1)" in text
    assert "1. Order: 102, Pincode: 600002, State: N/A, Payment Type: N/A, Payment Status: N/A" in text
    assert "1. Order: 106, Pincode: 689672, Reason: pincode not serviceable" in text
    assert "1. Order: 104, Pincode: N/A, Error: missing pincode or order id" in text
    assert text.index("Processed on DTDC") < text.index("Processed on stcourier")


def test_limit_reached_when_quota_met() -> None:
    text = render_summary(build_summary(OUTCOMES[:3], quota=2))

    assert "Limit reached: YES" in text


def test_persist_never_overwrites_existing_summary(tmp_path: Path) -> None:
    logger = JsonLogger(stream=io.StringIO(), log_file_path=None)
    first_summary = build_summary(OUTCOMES[:1])
    second_summary = build_summary(OUTCOMES)

    first = persist_summary(first_summary, tmp_path, logger=logger, now=NOW)
    second = persist_summary(second_summary, tmp_path, logger=logger, now=NOW)

    assert first is not None and second is not None
    assert first != second
    assert first.name == "summary-2026-03-14T09-30-00-123456.txt"
    assert second.name == "summary-2026-03-14T09-30-00-123456-1.txt"
    assert first.read_text(encoding="utf-8") == render_summary(first_summary)
    assert second.read_text(encoding="utf-8") == render_summary(second_summary)


def test_persist_creates_missing_directory(tmp_path: Path) -> None:
    logger = JsonLogger(stream=io.StringIO(), log_file_path=None)

    path = persist_summary(build_summary([]), tmp_path / "nested" / "logs", logger=logger, now=NOW)

    assert path is not None and path.exists()


def test_persist_failure_is_logged_and_returns_none(tmp_path: Path) -> None:
    stream = io.StringIO()
    logger = JsonLogger(stream=stream, log_file_path=None)
    blocker = tmp_path / "logs"
    blocker.write_text("not a directory", encoding="utf-8")

    assert persist_summary(build_summary(OUTCOMES), blocker, logger=logger, now=NOW) is None

    record = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert record["status"] == "error"
    assert record["phase"] == "summary"
    assert record["logs_dir"] == str(blocker)
