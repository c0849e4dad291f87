from __future__ import annotations

from dataclasses import dataclass
from typing import Union

NOT_AVAILABLE = "N/A"

SKIP_DIALOG = "dialog"
SKIP_INELIGIBLE = "ineligible"
SKIP_NOT_LISTED = "not-listed"


@dataclass(frozen=True)
class OrderFacts:
    """Facts gathered for one table row; built once, never updated."""

    order_id: str | None
    pincode: str | None = None
    state: str | None = None
    payment_type: str | None = None
    payment_status: str | None = None


@dataclass(frozen=True)
class ProcessedOutcome:
    carrier: str
    order_id: str
    pincode: str
    state: str | None = None
    payment_type: str | None = None
    payment_status: str | None = None


@dataclass(frozen=True)
class SkippedOutcome:
    reason: str
    kind: str
    order_id: str | None = None
    pincode: str | None = None
    state: str | None = None
    payment_type: str | None = None
    payment_status: str | None = None


@dataclass(frozen=True)
class ErrorOutcome:
    order_id: str | None
    pincode: str | None
    message: str


RowOutcome = Union[ProcessedOutcome, SkippedOutcome, ErrorOutcome]
