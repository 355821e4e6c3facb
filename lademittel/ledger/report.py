from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from lademittel.config import EngineConfig
from lademittel.ledger.model import DeliveryLedger, PalletMovementOutput
from lademittel.ledger.review import ReviewDecision, review_ledger
from lademittel.ledger.saldo import compute_movements
from lademittel.ledger.settlement import SettlementRecord, settlements_from_ledger
from lademittel.ledger.validate import ValidationResult, validate_settlements

logger = logging.getLogger(__name__)


class LedgerReport(BaseModel):
    """Everything produced for one document group."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: str
    ledger: DeliveryLedger
    movements: Tuple[PalletMovementOutput, ...] = ()
    validations: Tuple[ValidationResult, ...] = ()
    review: ReviewDecision


def build_report(
    ledger: DeliveryLedger,
    config: Optional[EngineConfig] = None,
    settlements: Optional[Sequence[SettlementRecord]] = None,
) -> LedgerReport:
    """
    Saldo rows, validation and review for a finished ledger. Pass
    ``settlements`` to validate records as reported by the oracle instead of
    the ones derived from the ledger.
    """
    config = config or EngineConfig()
    rows = compute_movements(ledger.stops)
    if settlements is None:
        settlements = settlements_from_ledger(ledger, rows)
    validations = validate_settlements(settlements, config)
    review = review_ledger(ledger, rows, validations, config)
    return LedgerReport(
        source=ledger.source,
        ledger=ledger,
        movements=rows,
        validations=validations,
        review=review,
    )


def write_report(report: LedgerReport, outdir: Path) -> Path:
    outdir.mkdir(parents=True, exist_ok=True)
    path = outdir / f"{report.source}.json"
    path.write_text(
        json.dumps(report.model_dump(mode="json"), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    logger.debug("wrote %s", path)
    return path


def load_report(path: Path) -> LedgerReport:
    return LedgerReport.model_validate_json(path.read_text(encoding="utf-8"))


def report_json_schema() -> Dict[str, Any]:
    return LedgerReport.model_json_schema()
