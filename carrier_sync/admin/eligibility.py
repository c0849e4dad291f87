"""Business rules deciding whether a carrier may be assigned to an order."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

STCOURIER = "stcourier"
SHIPROCKET = "shiprocket"
HOME_STATE = "tamil nadu"
PINCODE_NOT_SERVICEABLE = "pincode not serviceable"


class PincodeSource(Protocol):
    def get_serviceable_pincodes(self, carrier: str | None) -> frozenset[str]: ...


@dataclass(frozen=True)
class EligibilityVerdict:
    eligible: bool
    reason: str

    @classmethod
    def allow(cls, reason: str = "eligible") -> "EligibilityVerdict":
        return cls(eligible=True, reason=reason)

    @classmethod
    def deny(cls, reason: str) -> "EligibilityVerdict":
        return cls(eligible=False, reason=reason)


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def _stcourier_failures(state: str, payment_type: str, payment_status: str) -> list[str]:
    failures = []
    if state != HOME_STATE:
        failures.append("state must be 'Tamil Nadu'")
    if "prepaid" not in payment_type:
        failures.append("payment type must contain 'prepaid'")
    if payment_status != "success":
        failures.append("payment status must be 'success'")
    return failures


def _shiprocket_allowed(state: str, payment_type: str, payment_status: str) -> bool:
    if payment_status != "success":
        return False
    if "cod" in payment_type:
        return True
    # An unknown state must not count as "outside Tamil Nadu".
    return "prepaid" in payment_type and bool(state) and state != HOME_STATE


def evaluate_business_rules(
    carrier: str | None,
    state: str | None,
    payment_type: str | None,
    payment_status: str | None,
) -> EligibilityVerdict:
    """Apply the carrier-specific state and payment rules.

    Carriers without a named rule are eligible. Missing fields never match.
    """

    name = _norm(carrier)
    state_n, type_n, status_n = _norm(state), _norm(payment_type), _norm(payment_status)
    current = f"state={state!r}, paymentType={payment_type!r}, paymentStatus={payment_status!r}"

    if name == STCOURIER:
        failures = _stcourier_failures(state_n, type_n, status_n)
        if failures:
            return EligibilityVerdict.deny(f"STCourier conditions not met: {'; '.join(failures)} ({current})")
    elif name == SHIPROCKET:
        if not _shiprocket_allowed(state_n, type_n, status_n):
            return EligibilityVerdict.deny(
                "Shiprocket conditions not met: requires (COD + success) or "
                f"(Prepaid + state other than Tamil Nadu + success) ({current})"
            )
    return EligibilityVerdict.allow()


class CarrierEligibilityEngine:
    """Combine pincode serviceability with the business rules.

    The pincode check only applies when the carrier has a non-empty pincode
    set; an empty set means no restriction data is available.
    """

    def __init__(self, pincodes: PincodeSource) -> None:
        self._pincodes = pincodes

    def evaluate(
        self,
        carrier: str | None,
        pincode: str | None,
        state: str | None,
        payment_type: str | None,
        payment_status: str | None,
    ) -> EligibilityVerdict:
        reasons: list[str] = []

        serviceable = self._pincodes.get_serviceable_pincodes(carrier)
        if serviceable and (pincode or "").strip() not in serviceable:
            reasons.append(PINCODE_NOT_SERVICEABLE)

        rules = evaluate_business_rules(carrier, state, payment_type, payment_status)
        if not rules.eligible:
            reasons.append(rules.reason)

        if reasons:
            return EligibilityVerdict.deny("; ".join(reasons))
        return EligibilityVerdict.allow()
