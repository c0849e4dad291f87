"""Parse pincode and state values out of the free-text address popup."""

from __future__ import annotations

import re
from typing import Any

LABELLED_PINCODE_PATTERN = re.compile(r"Pincode\s*[:\-]?\s*(\d{4,6})", re.IGNORECASE)
BARE_PINCODE_PATTERN = re.compile(r"\b\d{4,6}\b")
STATE_PATTERN = re.compile(r"State\s*[:\-]?\s*([^,\n\r]+)", re.IGNORECASE)


def extract_pincode(text: Any) -> list[str]:
    """Return distinct pincodes in order of appearance.

    Labelled ``Pincode: NNNNNN`` occurrences win; only when none exist is the
    text scanned for standalone 4-6 digit tokens.
    """

    if not text or not isinstance(text, str):
        return []

    candidates = LABELLED_PINCODE_PATTERN.findall(text)
    if not candidates:
        candidates = BARE_PINCODE_PATTERN.findall(text)
    return list(dict.fromkeys(candidates))


def extract_state(text: Any) -> str | None:
    if not text or not isinstance(text, str):
        return None
    match = STATE_PATTERN.search(text)
    if not match:
        return None
    return match.group(1).strip() or None
