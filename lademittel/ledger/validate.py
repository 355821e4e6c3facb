"""
Consistency checks over a SettlementRecord.

Issues are data, never exceptions. Corrections are applied to a copy of the
record; the result keeps both versions. Checks run in a fixed order on the
working copy, so a correction made by one check is visible to the next.
"""

from __future__ import annotations

import logging
from typing import List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from lademittel.config import EngineConfig
from lademittel.ledger.settlement import SettlementRecord

logger = logging.getLogger(__name__)

IssueCode = Literal[
    "saldo_mismatch",
    "exchange_inconsistent",
    "dpl_conflict",
    "missing_voucher_number",
    "cross_stop_mismatch",
    "missing_date",
    "missing_location",
    "missing_carrier",
    "no_movements",
    "negative_quantity",
    "unknown_pallet_type",
    "exchange_unclear",
]
Severity = Literal["error", "warning"]


class ValidationIssue(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    code: IssueCode
    message: str
    severity: Severity
    corrected: bool = False


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    original: SettlementRecord
    result: SettlementRecord
    issues: Tuple[ValidationIssue, ...] = ()

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def corrected(self) -> bool:
        return any(i.corrected for i in self.issues)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _update(rec: SettlementRecord, **exchange) -> SettlementRecord:
    return rec.model_copy(update={"exchange": rec.exchange.model_copy(update=exchange)})


def validate_settlement(
    record: SettlementRecord, config: Optional[EngineConfig] = None
) -> ValidationResult:
    config = config or EngineConfig()
    rec = record
    issues: List[ValidationIssue] = []

    def issue(code: IssueCode, message: str, severity: Severity, corrected: bool = False) -> None:
        issues.append(
            ValidationIssue(code=code, message=message, severity=severity, corrected=corrected)
        )

    # 1. saldo
    expected = rec.computed_saldo
    if rec.saldo is None:
        rec = rec.model_copy(update={"saldo": expected})
    elif rec.saldo != expected:
        fix = config.auto_correct_saldo
        issue(
            "saldo_mismatch",
            f"Saldo mismatch: expected {expected} (pickup given {rec.pickup.given} - "
            f"pickup received {rec.pickup.received}), got {rec.saldo}",
            "error",
            corrected=fix,
        )
        if fix:
            rec = rec.model_copy(update={"saldo": expected})

    # 2. marked not exchanged although pallets were received at pickup
    if rec.exchange.exchanged is False and rec.pickup.received > 0:
        fix = config.auto_correct_exchange_status
        issue(
            "exchange_inconsistent",
            f"Inconsistent: marked as not exchanged but pickup received = {rec.pickup.received}",
            "error",
            corrected=fix,
        )
        if fix:
            if rec.pickup.received == rec.pickup.given:
                rec = _update(rec, exchanged=True)
            else:
                rec = _update(rec, partial=True)

    # 3. DPL voucher excludes a full exchange
    if rec.exchange.dpl_issued and rec.exchange.exchanged is True:
        fix = config.auto_correct_exchange_status
        issue("dpl_conflict", "DPL voucher issued but marked as fully exchanged", "error", corrected=fix)
        if fix:
            rec = _update(rec, exchanged=False)

    if rec.exchange.dpl_issued and not rec.references.dpl_voucher_number:
        issue(
            "missing_voucher_number",
            "DPL marked as issued but no voucher number provided",
            "warning",
        )

    if rec.delivery.given != rec.pickup.received:
        issue(
            "cross_stop_mismatch",
            f"Delivery given ({rec.delivery.given}) does not match "
            f"pickup received ({rec.pickup.received})",
            "warning",
        )

    if not rec.pickup.date and not rec.delivery.date:
        issue("missing_date", "No date found for pickup or delivery", "warning")
    if not rec.pickup.location and not rec.delivery.location:
        issue("missing_location", "No location found for pickup or delivery", "warning")
    if not rec.carrier.name and not rec.carrier.license_plate:
        issue("missing_carrier", "No carrier identification (name or license plate)", "warning")

    sides = (rec.pickup.received, rec.pickup.given, rec.delivery.received, rec.delivery.given)
    if not any(sides):
        issue("no_movements", "No pallet movements detected", "warning")
    if rec.discarded_negative or any(q < 0 for q in sides):
        issue("negative_quantity", "Negative pallet quantities detected", "error")

    if rec.pallet_type == "unknown":
        issue("unknown_pallet_type", "Pallet type is unknown", "warning")
    if rec.exchange.exchanged is None:
        issue("exchange_unclear", "Exchange status is unclear", "warning")

    result = ValidationResult(original=record, result=rec, issues=tuple(issues))
    if issues:
        logger.debug(
            "%s: %d error(s), %d warning(s)",
            record.pallet_type,
            len(result.errors),
            len(result.warnings),
        )
    return result


def validate_settlements(
    records: Sequence[SettlementRecord], config: Optional[EngineConfig] = None
) -> Tuple[ValidationResult, ...]:
    return tuple(validate_settlement(r, config) for r in records)
