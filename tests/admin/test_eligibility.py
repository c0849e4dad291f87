from __future__ import annotations

import pytest

from carrier_sync.admin.eligibility import (
    PINCODE_NOT_SERVICEABLE,
    CarrierEligibilityEngine,
    evaluate_business_rules,
)


class _StaticPincodes:
    def __init__(self, mapping: dict[str, set[str]] | None = None) -> None:
        self.mapping = mapping or {}
        self.calls: list[str | None] = []

    def get_serviceable_pincodes(self, carrier: str | None) -> frozenset[str]:
        self.calls.append(carrier)
        return frozenset(self.mapping.get((carrier or "").strip(), set()))


def test_stcourier_requires_tamil_nadu_prepaid_success() -> None:
    engine = CarrierEligibilityEngine(_StaticPincodes())

    assert engine.evaluate("stcourier", "600001", "Tamil Nadu", "Prepaid", "success").eligible is True

    verdict = engine.evaluate("stcourier", "600001", "Kerala", "Prepaid", "success")
    assert verdict.eligible is False
    assert "state must be 'Tamil Nadu'" in verdict.reason


def test_stcourier_reason_names_every_unmet_condition() -> None:
    verdict = evaluate_business_rules("STCourier", "Kerala", "COD", "pending")

    assert verdict.eligible is False
    assert "state" in verdict.reason
    assert "prepaid" in verdict.reason
    assert "payment status" in verdict.reason


def test_rules_are_case_insensitive_and_trimmed() -> None:
    verdict = evaluate_business_rules("  StCourier ", " TAMIL NADU ", "PREPAID - Razorpay", " Success ")
    assert verdict.eligible is True


@pytest.mark.parametrize("state", ["Tamil Nadu", "Kerala", None])
def test_shiprocket_accepts_cod_success_in_any_state(state: str | None) -> None:
    assert evaluate_business_rules("shiprocket", state, "COD", "success").eligible is True


def test_shiprocket_rejects_prepaid_tamil_nadu() -> None:
    verdict = evaluate_business_rules("shiprocket", "Tamil Nadu", "Prepaid", "success")
    assert verdict.eligible is False
    assert verdict.reason.startswith("Shiprocket conditions not met")


def test_shiprocket_accepts_prepaid_outside_tamil_nadu() -> None:
    assert evaluate_business_rules("Shiprocket", "Kerala", "Prepaid", "success").eligible is True


@pytest.mark.parametrize(
    ("state", "payment_type", "payment_status"),
    [
        (None, "Prepaid", "success"),
        ("Kerala", None, "success"),
        ("Kerala", "COD", None),
        ("Kerala", "COD", "failed"),
    ],
)
def test_shiprocket_treats_missing_fields_as_non_matching(
    state: str | None, payment_type: str | None, payment_status: str | None
) -> None:
    assert evaluate_business_rules("shiprocket", state, payment_type, payment_status).eligible is False


def test_stcourier_missing_fields_fail() -> None:
    assert evaluate_business_rules("stcourier", None, None, None).eligible is False


def test_other_carriers_are_eligible_without_pincode_data() -> None:
    engine = CarrierEligibilityEngine(_StaticPincodes())
    assert engine.evaluate("DTDC", None, None, None, None).eligible is True


def test_pincode_restriction_applies_when_data_exists() -> None:
    engine = CarrierEligibilityEngine(_StaticPincodes({"DTDC": {"600001", "012345"}}))

    assert engine.evaluate("DTDC", "012345", None, None, None).eligible is True

    verdict = engine.evaluate("DTDC", "689672", "Kerala", "COD", "success")
    assert verdict.eligible is False
    assert verdict.reason == PINCODE_NOT_SERVICEABLE


def test_missing_pincode_fails_restricted_carrier() -> None:
    engine = CarrierEligibilityEngine(_StaticPincodes({"DTDC": {"600001"}}))
    assert engine.evaluate("DTDC", None, None, None, None).eligible is False


def test_pincode_and_business_rules_must_both_pass() -> None:
    engine = CarrierEligibilityEngine(_StaticPincodes({"stcourier": {"600001"}}))

    assert engine.evaluate("stcourier", "600001", "Tamil Nadu", "Prepaid", "success").eligible is True

    verdict = engine.evaluate("stcourier", "999999", "Tamil Nadu", "Prepaid", "success")
    assert verdict.eligible is False
    assert verdict.reason == PINCODE_NOT_SERVICEABLE

    verdict = engine.evaluate("stcourier", "999999", "Kerala", "Prepaid", "success")
    assert PINCODE_NOT_SERVICEABLE in verdict.reason
    assert "STCourier conditions not met" in verdict.reason


def test_registry_lookup_keeps_carrier_case() -> None:
    pincodes = _StaticPincodes({"Delhivery": {"600001"}})
    engine = CarrierEligibilityEngine(pincodes)

    assert engine.evaluate("delhivery", "999999", None, None, None).eligible is True
    assert engine.evaluate("Delhivery", "999999", None, None, None).eligible is False
    assert pincodes.calls == ["delhivery", "Delhivery"]
