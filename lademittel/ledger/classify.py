from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from lademittel.ledger.model import StopRecord, StopRole

RoleReason = Literal[
    "explicit",
    "document_type",
    "received_only",
    "given_only",
    "majority",
    "tie_break",
    "no_evidence",
]


@dataclass(frozen=True)
class RoleDecision:
    role: StopRole
    reason: RoleReason


def classify_role(
    record: StopRecord, *, tie_break_role: StopRole = "delivery"
) -> Optional[RoleDecision]:
    """
    Infer the stop role of a carrier-perspective record.

    Returns None for delivery notes: they carry party/reference metadata only
    and never become a stop themselves.
    """
    if record.source_document_type == "lieferschein":
        return None
    if record.source_document_type == "ladeliste":
        # loading lists describe the loading location
        return RoleDecision("pickup", "document_type")
    if record.role is not None:
        return RoleDecision(record.role, "explicit")

    received = record.total_received
    given = record.total_given
    if received > 0 and given == 0:
        return RoleDecision("pickup", "received_only")
    if given > 0 and received == 0:
        return RoleDecision("delivery", "given_only")
    if received > 0 and given > 0:
        if received > given:
            return RoleDecision("pickup", "majority")
        if given > received:
            return RoleDecision("delivery", "majority")
        return RoleDecision(tie_break_role, "tie_break")
    # no movement evidence: keep for metadata, outside pickup/delivery
    return RoleDecision("handoff", "no_evidence")


def apply_role(record: StopRecord, decision: RoleDecision) -> StopRecord:
    if record.role == decision.role:
        return record
    return record.model_copy(update={"role": decision.role})
