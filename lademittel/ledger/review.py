from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from lademittel.config import EngineConfig
from lademittel.ledger.model import DeliveryLedger, PalletMovementOutput
from lademittel.ledger.validate import ValidationResult


class ReviewDecision(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    needs_review: bool
    reasons: Tuple[str, ...] = ()


def decide_review(
    *,
    confidence: float,
    error_count: int,
    warning_count: int,
    pickup_received: int,
    delivery_given: int,
    tie_break_applied: bool = False,
    config: Optional[EngineConfig] = None,
) -> ReviewDecision:
    """
    needs_review = low confidence OR any validation error OR too many
    warnings OR nothing received at pickup and nothing given at delivery
    (plus the tie-break heuristic, when flagged).
    """
    config = config or EngineConfig()
    reasons: List[str] = []

    if config.flag_low_confidence and confidence < config.review_threshold:
        reasons.append(f"Low extraction confidence: {confidence * 100:.1f}%")
    if error_count > 0:
        reasons.append(f"Validation errors detected: {error_count} error(s)")
    if warning_count > config.max_warnings:
        reasons.append(f"Multiple warnings: {warning_count} warning(s)")
    if pickup_received == 0 and delivery_given == 0:
        reasons.append("No pallet movements extracted")
    if config.flag_tie_break and tie_break_applied:
        reasons.append("Stop role decided by tie-break rule")

    return ReviewDecision(needs_review=bool(reasons), reasons=tuple(reasons))


def review_settlement(
    validation: ValidationResult, config: Optional[EngineConfig] = None
) -> ReviewDecision:
    rec = validation.original
    return decide_review(
        confidence=rec.confidence,
        error_count=len(validation.errors),
        warning_count=len(validation.warnings),
        pickup_received=rec.pickup.received,
        delivery_given=rec.delivery.given,
        config=config,
    )


def review_ledger(
    ledger: DeliveryLedger,
    rows: Sequence[PalletMovementOutput],
    validations: Sequence[ValidationResult],
    config: Optional[EngineConfig] = None,
) -> ReviewDecision:
    """
    Ledger-level decision. Warnings are the ledger's own plus the distinct
    validation warnings (the same warning raised for several pallet types
    counts once).
    """
    validation_warnings = dict.fromkeys(w.message for v in validations for w in v.warnings)
    return decide_review(
        confidence=ledger.average_confidence,
        error_count=sum(len(v.errors) for v in validations),
        warning_count=len(ledger.warnings) + len(validation_warnings),
        pickup_received=sum(r.pickup_received for r in rows),
        delivery_given=sum(r.delivery_given for r in rows),
        tie_break_applied=ledger.tie_break_applied,
        config=config,
    )
