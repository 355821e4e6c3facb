"""
Correlation: fold per-page extractions into one DeliveryLedger.

The fold only collects: first-wins metadata, records, warnings and
confidences. Everything after it (perspective resolution, role
classification, merging, gap filling) is applied once to the collected
records, and the ledger is built at the very end. Input order matters for
first-wins fields, so extractions must arrive in page order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from functools import reduce
from typing import List, Optional, Sequence, Tuple

from lademittel.config import EngineConfig
from lademittel.ledger.classify import apply_role, classify_role
from lademittel.ledger.gapfill import GapFillContext, fill_gaps
from lademittel.ledger.merge import merge_records
from lademittel.ledger.model import (
    DeliveryLedger,
    DiscardedMovement,
    DplVoucher,
    PalletMovement,
    References,
    SourceExtraction,
    StopRecord,
)
from lademittel.ledger.perspective import resolve_perspective

logger = logging.getLogger(__name__)

WARN_NO_DELIVERY_LOCATION = "Delivery location not found in delivery note"


@dataclass(frozen=True)
class FoldState:
    references: References = field(default_factory=References)
    shipper: Optional[str] = None
    consignee: Optional[str] = None
    consignee_address: Optional[str] = None
    carrier: Optional[str] = None
    vehicle_plate: Optional[str] = None
    driver_name: Optional[str] = None
    delivery_date: Optional[str] = None
    declared_delivery: Tuple[PalletMovement, ...] = ()
    declared_loading: Tuple[PalletMovement, ...] = ()
    dpl: DplVoucher = field(default_factory=DplVoucher)
    records: Tuple[StopRecord, ...] = ()
    discarded: Tuple[DiscardedMovement, ...] = ()
    warnings: Tuple[str, ...] = ()
    confidences: Tuple[float, ...] = ()


def _first(a: Optional[str], b: Optional[str]) -> Optional[str]:
    return a if a else b


def _fold_references(refs: References, ext: SourceExtraction) -> References:
    order, delivery = refs.order_number, refs.delivery_number
    # classification identifiers: first fills the order number, next distinct one the delivery number
    for candidate in ext.reference_candidates:
        if not order:
            order = candidate
        elif not delivery and candidate != order:
            delivery = candidate
    return References(
        order_number=_first(order, ext.references.order_number),
        delivery_number=_first(delivery, ext.references.delivery_number),
        tour_number=_first(refs.tour_number, ext.references.tour_number),
    )


def fold_extraction(state: FoldState, ext: SourceExtraction) -> FoldState:
    """One step of the correlation fold. Pure: returns a new state."""
    declared_delivery = state.declared_delivery
    declared_loading = state.declared_loading
    if ext.document_type == "lieferschein" and not declared_delivery:
        declared_delivery = ext.declared_pallets
    if ext.document_type == "ladeliste" and not declared_loading:
        declared_loading = ext.declared_pallets

    page_discards = tuple(d for r in ext.records for d in r.discarded)
    return replace(
        state,
        references=_fold_references(state.references, ext),
        shipper=_first(state.shipper, ext.shipper),
        consignee=_first(state.consignee, ext.consignee),
        consignee_address=_first(state.consignee_address, ext.consignee_address),
        carrier=_first(state.carrier, ext.carrier),
        vehicle_plate=_first(state.vehicle_plate, ext.vehicle_plate),
        driver_name=_first(state.driver_name, ext.driver_name),
        delivery_date=_first(state.delivery_date, ext.delivery_date),
        declared_delivery=declared_delivery,
        declared_loading=declared_loading,
        dpl=DplVoucher(
            issued=state.dpl.issued or ext.dpl.issued,
            number=_first(state.dpl.number, ext.dpl.number),
        ),
        records=state.records + ext.records,
        discarded=state.discarded + ext.discarded + page_discards,
        warnings=state.warnings + ext.warnings,
        confidences=state.confidences + (ext.confidence,),
    )


def _bind_goods_receipts(state: FoldState) -> Tuple[Tuple[StopRecord, ...], Tuple[str, ...]]:
    """Goods receipts rarely name the location; it is the consignee."""
    records: List[StopRecord] = []
    warned = False
    for r in state.records:
        if r.source_document_type == "wareneingangsbeleg" and not r.location_name:
            if state.consignee:
                r = r.model_copy(
                    update={
                        "location_name": state.consignee,
                        "location_address": r.location_address or state.consignee_address,
                    }
                )
            else:
                warned = True
        records.append(r)
    return tuple(records), ((WARN_NO_DELIVERY_LOCATION,) if warned else ())


def correlate(
    source: str,
    extractions: Sequence[SourceExtraction],
    config: Optional[EngineConfig] = None,
    *,
    failed_pages: Sequence[int] = (),
    warnings: Sequence[str] = (),
) -> DeliveryLedger:
    """
    Build the ledger of one document group.

    ``failed_pages`` / ``warnings`` come from the oracle layer: pages whose
    extraction failed are excluded from the fold but stay visible on the
    ledger.
    """
    config = config or EngineConfig()
    state = reduce(fold_extraction, extractions, FoldState(warnings=tuple(warnings)))

    records, bind_warnings = _bind_goods_receipts(state)
    ledger_warnings: List[str] = list(state.warnings) + list(bind_warnings)

    classified: List[StopRecord] = []
    tie_break = False
    for record in records:
        record = resolve_perspective(record)
        decision = classify_role(record, tie_break_role=config.tie_break_role)
        if decision is None:
            continue
        if decision.reason == "tie_break":
            tie_break = True
            ledger_warnings.append(
                f"Equal given and received totals at {record.location_name or 'unknown location'}: "
                f"role set to {decision.role} by tie-break"
            )
        classified.append(apply_role(record, decision))

    stops = merge_records(classified)
    stops, gap_warnings = fill_gaps(
        stops,
        GapFillContext(
            consignee=state.consignee,
            consignee_address=state.consignee_address,
            delivery_date=state.delivery_date,
            declared_pallets=state.declared_delivery or state.declared_loading,
        ),
    )
    ledger_warnings.extend(gap_warnings)

    confidences = state.confidences
    ledger = DeliveryLedger(
        source=source,
        references=state.references,
        shipper=state.shipper,
        consignee=state.consignee,
        consignee_address=state.consignee_address,
        carrier=state.carrier,
        vehicle_plate=state.vehicle_plate,
        driver_name=state.driver_name,
        stops=stops,
        average_confidence=sum(confidences) / len(confidences) if confidences else 0.0,
        warnings=tuple(ledger_warnings),
        dpl=state.dpl,
        discarded=state.discarded,
        tie_break_applied=tie_break,
        pages_processed=len(extractions),
        pages_failed=tuple(sorted(failed_pages)),
    )
    logger.info(
        "%s: %d stop(s), %d warning(s), confidence %.2f",
        source,
        len(ledger.stops),
        len(ledger.warnings),
        ledger.average_confidence,
    )
    return ledger
