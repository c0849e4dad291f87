from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable

from jinja2 import Environment

from carrier_sync.admin.models import (
    NOT_AVAILABLE,
    SKIP_DIALOG,
    ErrorOutcome,
    ProcessedOutcome,
    RowOutcome,
    SkippedOutcome,
)
from carrier_sync.json_logger import JsonLogger, log_event

SUMMARY_FILENAME_PREFIX = "summary-"
MAX_FILENAME_ATTEMPTS = 1000

SUMMARY_TEMPLATE = """\
PROCESSING SUMMARY
================================
Total rows attempted: {{ summary.attempted }}
Successfully processed: {{ summary.successful }}
Skipped: {{ summary.skipped }}
Errors: {{ summary.errored }}
{% if summary.quota %}
PROCESS_COUNT limit: {{ summary.quota }}
Limit reached: {{ "YES" if summary.limit_reached else "NO" }}
{% endif %}
{% if summary.successful %}

SUCCESSFUL ORDERS SUMMARY ({{ summary.successful }})
============================================
{% for carrier, item in numbered %}
{{ loop.index }}. Order: {{ item.order_id }} | Pincode: {{ item.pincode }} | State: {{ item.state|na }} | Payment: {{ item.payment_type|na }} | Status: {{ item.payment_status|na }} | Carrier: {{ carrier }}
{% endfor %}
{% endif %}
{% for carrier, items in summary.carrier_groups %}

Processed on {{ carrier }} ({{ items|length }})
--------------------------------
{% for item in items %}
{{ loop.index }}. Order: {{ item.order_id }}, Pincode: {{ item.pincode }}, State: {{ item.state|na }}, Payment Type: {{ item.payment_type|na }}, Payment Status: {{ item.payment_status|na }}
{% endfor %}
{% endfor %}
{% if summary.dialog_skipped %}

Skipped due to Browser Dialog ({{ summary.dialog_skipped|length }})
--------------------------------------------------
{% for item in summary.dialog_skipped %}
{{ loop.index }}. Order: {{ item.order_id|na }}, Pincode: {{ item.pincode|na }}, State: {{ item.state|na }}, Payment Type: {{ item.payment_type|na }}, Payment Status: {{ item.payment_status|na }}
{% endfor %}
{% endif %}
{% if summary.other_skipped %}

Skipped ({{ summary.other_skipped|length }})
--------------------------------
{% for item in summary.other_skipped %}
{{ loop.index }}. Order: {{ item.order_id|na }}, Pincode: {{ item.pincode|na }}, Reason: {{ item.reason }}
{% endfor %}
{% endif %}
{% if summary.errors %}

Processing Errors ({{ summary.errors|length }})
--------------------------------
{% for item in summary.errors %}
{{ loop.index }}. Order: {{ item.order_id|na }}, Pincode: {{ item.pincode|na }}, Error: {{ item.message }}
{% endfor %}
{% endif %}
"""


@dataclass(frozen=True)
class RunSummary:
    outcomes: tuple[RowOutcome, ...]
    quota: int | None
    carrier_groups: tuple[tuple[str, tuple[ProcessedOutcome, ...]], ...]
    dialog_skipped: tuple[SkippedOutcome, ...]
    other_skipped: tuple[SkippedOutcome, ...]
    errors: tuple[ErrorOutcome, ...]

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def successful(self) -> int:
        return sum(len(items) for _, items in self.carrier_groups)

    @property
    def skipped(self) -> int:
        return len(self.dialog_skipped) + len(self.other_skipped)

    @property
    def errored(self) -> int:
        return len(self.errors)

    @property
    def limit_reached(self) -> bool:
        return self.quota is not None and self.successful >= self.quota

    @property
    def by_carrier(self) -> Dict[str, tuple[ProcessedOutcome, ...]]:
        return dict(self.carrier_groups)

    def build_record(self) -> Dict[str, Any]:
        return {
            "attempted": self.attempted,
            "successful": self.successful,
            "skipped": self.skipped,
            "dialog_skipped": len(self.dialog_skipped),
            "errored": self.errored,
            "quota": self.quota,
            "limit_reached": self.limit_reached,
            "carriers": {carrier: [item.order_id for item in items] for carrier, items in self.carrier_groups},
        }


def build_summary(outcomes: Iterable[RowOutcome], quota: int | None = None) -> RunSummary:
    ordered = tuple(outcomes)
    groups: Dict[str, list[ProcessedOutcome]] = {}
    dialog_skipped: list[SkippedOutcome] = []
    other_skipped: list[SkippedOutcome] = []
    errors: list[ErrorOutcome] = []

    for outcome in ordered:
        if isinstance(outcome, ProcessedOutcome):
            groups.setdefault(outcome.carrier, []).append(outcome)
        elif isinstance(outcome, SkippedOutcome):
            (dialog_skipped if outcome.kind == SKIP_DIALOG else other_skipped).append(outcome)
        elif isinstance(outcome, ErrorOutcome):
            errors.append(outcome)
        else:
            raise TypeError(f"Unsupported row outcome: {outcome!r}")

    return RunSummary(
        outcomes=ordered,
        quota=quota,
        carrier_groups=tuple((carrier, tuple(items)) for carrier, items in groups.items()),
        dialog_skipped=tuple(dialog_skipped),
        other_skipped=tuple(other_skipped),
        errors=tuple(errors),
    )


def _na(value: Any) -> Any:
    return value if value not in (None, "") else NOT_AVAILABLE


_environment = Environment(trim_blocks=True, lstrip_blocks=True, keep_trailing_newline=True)
_environment.filters["na"] = _na


def render_summary(summary: RunSummary) -> str:
    numbered = [(carrier, item) for carrier, items in summary.carrier_groups for item in items]
    template = _environment.from_string(SUMMARY_TEMPLATE)
    return template.render(summary=summary, numbered=numbered)


def _summary_timestamp(now: datetime | None) -> str:
    moment = now or datetime.now(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H-%M-%S-%f")


def _write_exclusive(directory: Path, stamp: str, text: str) -> Path:
    for attempt in range(MAX_FILENAME_ATTEMPTS):
        suffix = f"-{attempt}" if attempt else ""
        path = directory / f"{SUMMARY_FILENAME_PREFIX}{stamp}{suffix}.txt"
        try:
            with path.open("x", encoding="utf-8") as handle:
                handle.write(text)
        except FileExistsError:
            continue
        return path
    raise FileExistsError(f"No free summary filename for {stamp} in {directory}")


def persist_summary(
    summary: RunSummary,
    logs_dir: Path | str,
    *,
    logger: JsonLogger,
    now: datetime | None = None,
) -> Path | None:
    """Write the rendered summary to a new timestamped file.

    Existing files are never overwritten. Write failures are logged and
    reported as ``None``.
    """

    directory = Path(logs_dir)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        path = _write_exclusive(directory, _summary_timestamp(now), render_summary(summary))
    except OSError as exc:
        log_event(
            logger=logger,
            phase="summary",
            status="error",
            message="Failed to write run summary",
            logs_dir=str(directory),
            error=str(exc),
        )
        return None

    log_event(logger=logger, phase="summary", message="Run summary written", path=str(path))
    return path
