"""Onboarding pipeline status derivation for pitched prospects.

Given the instruction record linked to a pitch, computes the five
independent pipeline dimensions (identity, payment, risk, matter,
compliance letter). Rules are priority ordered and the first match wins
within each dimension.

derive_status() is pure: no I/O, no clock, no logging. The full status is
recomputed from the latest payload every time; nothing is patched
incrementally.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from src.enquiry_timeline.timeline.schemas import (
    ComplianceLetterStatus,
    IdentityStatus,
    InstructionPayload,
    InstructionStatus,
    MatterStatus,
    PaymentStatus,
    RiskStatus,
)

# ── Vocabularies ────────────────────────────────────────────────────────────

# Stage values meaning proof of identity has been completed by the client.
IDENTITY_STAGE_COMPLETE: frozenset[str] = frozenset({"proof-of-id-complete", "complete"})

IDENTITY_PASSED: frozenset[str] = frozenset({"passed", "pass", "approved", "verified"})
IDENTITY_NEEDS_REVIEW: frozenset[str] = frozenset({"review", "failed", "fail", "rejected"})

# External (payment processor) states that mean the money is secured.
PAYMENT_SETTLED: frozenset[str] = frozenset({"succeeded", "confirmed", "requires_capture"})
PAYMENT_INTERNAL_COMPLETE: frozenset[str] = frozenset({"completed", "paid"})
PAYMENT_PROCESSING = "processing"

RISK_LOW: frozenset[str] = frozenset({"low", "low risk", "pass", "approved"})


def _lower(value: str | None) -> str:
    return value.strip().lower() if value else ""


# ── Dimensions ──────────────────────────────────────────────────────────────


def identity_status(payload: InstructionPayload) -> IdentityStatus:
    """Identity verification, fail-closed once proof of ID is in."""
    result = _lower(payload.eid_result)
    check_status = _lower(payload.eid_status)

    if _lower(payload.stage) in IDENTITY_STAGE_COMPLETE:
        if result in IDENTITY_NEEDS_REVIEW:
            return IdentityStatus.REVIEW
        if result in IDENTITY_PASSED:
            return IdentityStatus.COMPLETE
        return IdentityStatus.REVIEW

    if not payload.electronic_id_checks or check_status == "pending":
        if payload.passport_number or payload.drivers_license_number:
            return IdentityStatus.RECEIVED
        return IdentityStatus.PENDING

    if result in IDENTITY_PASSED:
        return IdentityStatus.COMPLETE
    return IdentityStatus.REVIEW


def payment_status(payload: InstructionPayload) -> PaymentStatus:
    """Payment, from the internal flag first, then the most recent payment.

    The instruction lookup lists payments newest first, so the first record
    is the most recent one.
    """
    if _lower(payload.internal_status) == "paid":
        return PaymentStatus.COMPLETE
    if not payload.payments:
        return PaymentStatus.PENDING

    latest = payload.payments[0]
    external = _lower(latest.payment_status)
    internal = _lower(latest.internal_status)

    settled = external in PAYMENT_SETTLED and internal in PAYMENT_INTERNAL_COMPLETE
    if settled or internal in PAYMENT_INTERNAL_COMPLETE:
        return PaymentStatus.COMPLETE
    if external == PAYMENT_PROCESSING:
        return PaymentStatus.PROCESSING
    return PaymentStatus.PENDING


def risk_status(payload: InstructionPayload) -> RiskStatus:
    records = payload.risk_assessments or payload.compliance
    result = _lower(records[0].result) if records else ""
    if not result:
        return RiskStatus.PENDING
    return RiskStatus.COMPLETE if result in RISK_LOW else RiskStatus.REVIEW


def matter_status(payload: InstructionPayload) -> MatterStatus:
    if payload.matter_id or payload.matters:
        return MatterStatus.COMPLETE
    return MatterStatus.PENDING


def compliance_letter_status(payload: InstructionPayload) -> ComplianceLetterStatus:
    if payload.ccl_submitted:
        return ComplianceLetterStatus.COMPLETE
    return ComplianceLetterStatus.PENDING


# ── Entry Point ─────────────────────────────────────────────────────────────


def derive_status(payload: InstructionPayload | Mapping[str, Any]) -> InstructionStatus:
    """Compute all five pipeline dimensions from an instruction payload.

    Args:
        payload: Instruction record, parsed or as returned by the lookup.

    Returns:
        InstructionStatus. Identical payloads always give identical results.
    """
    if not isinstance(payload, InstructionPayload):
        payload = InstructionPayload.model_validate(payload)

    return InstructionStatus(
        identity=identity_status(payload),
        payment=payment_status(payload),
        risk=risk_status(payload),
        matter=matter_status(payload),
        compliance_letter=compliance_letter_status(payload),
    )
