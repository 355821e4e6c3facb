"""
Schema adapters: raw oracle response -> canonical SourceExtraction.

One pure function per raw generation. Adapters normalize pallet labels,
reject negative counts (kept as DiscardedMovement), drop zero counts and tag
every record with its author's perspective. They never swap given/received
themselves; the perspective resolver does that exactly once during
correlation.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from lademittel.extract.schema import (
    ClassificationResponse,
    GroupResponse,
    LadelisteResponse,
    LieferscheinResponse,
    PalettennachweisResponse,
    RawMovement,
    SettlementResponse,
    WareneingangsbelegResponse,
)
from lademittel.ledger.merge import merge_movements
from lademittel.ledger.model import (
    DiscardedMovement,
    DocumentType,
    DplVoucher,
    PalletMovement,
    References,
    Signatures,
    SourceExtraction,
    StopRecord,
)
from lademittel.ledger.pallet_types import normalize_pallet_type, normalize_quality
from lademittel.ledger.perspective import author_perspective
from lademittel.ledger.settlement import (
    CarrierInfo,
    ExchangeStatus,
    SettlementRecord,
    SettlementReferences,
    SideTotals,
)
from lademittel.ledger.textnorm import normalize_text

logger = logging.getLogger(__name__)

# labels the oracle uses for the document, per generation
DOCUMENT_TYPE_ALIASES: Dict[str, DocumentType] = {
    "lieferschein": "lieferschein",
    "lieferanweisung": "lieferschein",
    "desadv": "lieferschein",
    "speditions_auftrag": "lieferschein",
    "ladeliste": "ladeliste",
    "ladeschein": "ladeliste",
    "speditions_uebergabeschein": "ladeliste",
    "palettennachweis": "palettennachweis",
    "palettenschein": "palettennachweis",
    "europalettenschein": "palettennachweis",
    "rueckladeschein": "palettennachweis",
    "palettenbewegung": "palettennachweis",
    "dpl_gutschrift": "palettennachweis",
    "wareneingangsbeleg": "wareneingangsbeleg",
    "we_beleg": "wareneingangsbeleg",
    "wareneingangsbestaetigung": "wareneingangsbeleg",
}

_ROLES = ("pickup", "delivery", "handoff")


def normalize_document_type(label: Any) -> DocumentType:
    if not isinstance(label, str):
        return "unknown"
    return DOCUMENT_TYPE_ALIASES.get(label.strip().lower(), "unknown")


def _movements(
    raw: Iterable[RawMovement], page_number: Optional[int]
) -> Tuple[Tuple[PalletMovement, ...], Tuple[DiscardedMovement, ...]]:
    kept: List[PalletMovement] = []
    discarded: List[DiscardedMovement] = []
    for m in raw:
        pallet_type = normalize_pallet_type(m.pallet_type)
        qty = m.quantity
        if not qty:
            continue
        if qty < 0:
            discarded.append(
                DiscardedMovement(
                    pallet_type=pallet_type,
                    quantity=qty,
                    reason="negative quantity",
                    page_number=page_number,
                )
            )
            continue
        damaged = min(m.damaged, qty) if m.damaged and m.damaged > 0 else None
        kept.append(
            PalletMovement(
                pallet_type=pallet_type,
                quantity=qty,
                damaged=damaged,
                quality=normalize_quality(m.quality),
            )
        )
    return merge_movements(kept), tuple(discarded)


def _confidence(own: Optional[float], classification: Optional[ClassificationResponse]) -> float:
    if own is not None:
        return own
    if classification is not None:
        return classification.confidence
    return 0.5


def _adapt_lieferschein(
    raw: Mapping[str, Any], base: Dict[str, Any], classification: Optional[ClassificationResponse]
) -> SourceExtraction:
    data = LieferscheinResponse.model_validate(raw)
    page = base["page_number"]
    # handwritten corrections replace the printed pallet line
    declared, discarded = _movements(data.corrections or data.pallet_info, page)
    return SourceExtraction(
        **base,
        confidence=_confidence(data.confidence, classification),
        references=References(
            order_number=data.stammnummer or data.belegnummer,
            tour_number=data.tour,
        ),
        shipper=normalize_text(data.sender.name),
        consignee=normalize_text(data.recipient.name),
        consignee_address=normalize_text(data.recipient.address),
        delivery_date=data.lieferdatum,
        declared_pallets=declared,
        discarded=discarded,
    )


def _adapt_ladeliste(
    raw: Mapping[str, Any], base: Dict[str, Any], classification: Optional[ClassificationResponse]
) -> SourceExtraction:
    data = LadelisteResponse.model_validate(raw)
    page = base["page_number"]
    confidence = _confidence(data.confidence, classification)
    total, discarded = _movements(data.total_pallets, page)

    name: Optional[str] = None
    address: Optional[str] = None
    pallets = total
    has_location = True
    if data.beladeort and (data.beladeort.name or data.beladeort.address):
        name, address = data.beladeort.name, data.beladeort.address
    elif data.stops:
        first = data.stops[0]
        name = first.customer_name or (
            f"Pickup {first.stop_number}" if first.stop_number is not None else None
        )
        address = first.address
        stop_pallets, stop_discarded = _movements(first.pallets, page)
        discarded += stop_discarded
        if stop_pallets:
            pallets = stop_pallets
    else:
        has_location = False

    records: Tuple[StopRecord, ...] = ()
    if has_location or pallets:
        records = (
            StopRecord(
                role="pickup",
                location_name=name,
                location_address=address,
                date=data.pickup_date or data.date,
                received=pallets,
                exchanged=False if data.palletten_nicht_getauscht else None,
                notes=tuple(data.handwritten_notes),
                source_document_type="ladeliste",
                perspective=author_perspective("ladeliste"),
                confidence=confidence,
                page_number=page,
                discarded=discarded,
            ),
        )
        discarded = ()

    return SourceExtraction(
        **base,
        confidence=confidence,
        records=records,
        references=References(tour_number=data.tour),
        vehicle_plate=data.vehicle_plate,
        driver_name=data.driver,
        declared_pallets=total,
        discarded=discarded,
    )


def _adapt_palettennachweis(
    raw: Mapping[str, Any], base: Dict[str, Any], classification: Optional[ClassificationResponse]
) -> SourceExtraction:
    data = PalettennachweisResponse.model_validate(raw)
    page = base["page_number"]
    confidence = _confidence(data.confidence, classification)
    given, d_given = _movements(data.pallets_given, page)
    received, d_received = _movements(data.pallets_received, page)
    notes = tuple(data.notes) + ((f"Reason: {data.reason}",) if data.reason else ())

    record = StopRecord(
        location_name=data.from_company or data.to_company,
        location_address=data.location,
        date=data.date,
        received=received,
        given=given,
        # both directions on one receipt means an exchange took place
        exchanged=True if given and received else None,
        signatures=Signatures(
            driver=bool(data.signatures.driver),
            customer=bool(data.signatures.customer),
        ),
        notes=notes,
        source_document_type="palettennachweis",
        perspective=author_perspective("palettennachweis"),
        confidence=confidence,
        page_number=page,
        discarded=d_given + d_received,
    )
    return SourceExtraction(**base, confidence=confidence, records=(record,))


def _adapt_wareneingangsbeleg(
    raw: Mapping[str, Any], base: Dict[str, Any], classification: Optional[ClassificationResponse]
) -> SourceExtraction:
    data = WareneingangsbelegResponse.model_validate(raw)
    page = base["page_number"]
    confidence = _confidence(data.confidence, classification)
    # stated by the receiving location: what it received / handed back
    received, d_received = _movements(
        (RawMovement(pallet_type=line.pallet_type, quantity=line.received) for line in data.pallet_exchange),
        page,
    )
    given, d_given = _movements(
        (RawMovement(pallet_type=line.pallet_type, quantity=line.returned) for line in data.pallet_exchange),
        page,
    )
    record = StopRecord(
        role="delivery",
        date=data.date,
        received=received,
        given=given,
        exchanged=True if given and received else None,
        notes=tuple(data.notes),
        source_document_type="wareneingangsbeleg",
        perspective=author_perspective("wareneingangsbeleg"),
        confidence=confidence,
        page_number=page,
        discarded=d_received + d_given,
    )
    return SourceExtraction(
        **base,
        confidence=confidence,
        records=(record,),
        references=References(delivery_number=data.delivery_number),
    )


_PAGE_ADAPTERS = {
    "lieferschein": _adapt_lieferschein,
    "ladeliste": _adapt_ladeliste,
    "palettennachweis": _adapt_palettennachweis,
    "wareneingangsbeleg": _adapt_wareneingangsbeleg,
}


def adapt_page(
    document_type: DocumentType,
    raw: Mapping[str, Any],
    classification: Optional[ClassificationResponse] = None,
    *,
    page_number: Optional[int] = None,
) -> SourceExtraction:
    """Adapt one per-page extraction of the given (classified) document type."""
    base: Dict[str, Any] = {
        "document_type": document_type,
        "page_number": page_number,
        "reference_candidates": (
            tuple(classification.identifiers.order_numbers) if classification else ()
        ),
    }
    adapter = _PAGE_ADAPTERS.get(document_type)
    if adapter is None:
        return SourceExtraction(
            **base,
            confidence=_confidence(None, classification),
            warnings=(f"Page {page_number}: unknown document type",),
        )
    return adapter(raw, base, classification)


def adapt_group(raw: Mapping[str, Any], *, page_number: Optional[int] = None) -> SourceExtraction:
    """Adapt one entry of a single-pass group response."""
    data = GroupResponse.model_validate(raw)
    doc_type = normalize_document_type(data.document_type)
    perspective = author_perspective(doc_type)
    warnings: List[str] = []

    reported = (data.perspective or "").lower()
    if reported in ("carrier", "location") and reported != perspective:
        warnings.append(
            f"Oracle reported {reported} perspective for {doc_type}; using {perspective}"
        )

    role = (data.location_type or "").lower()
    given, d_given = _movements(data.pallets_given, page_number)
    received, d_received = _movements(data.pallets_received, page_number)
    notes = tuple(
        n
        for n in (
            data.extraction_notes,
            data.exchange_comment,
            data.damage_notes,
            f"Not exchanged: {data.non_exchange_reason}" if data.non_exchange_reason else None,
        )
        if n
    )
    # a delivery note with movements in a group response still describes a stop
    record_type: DocumentType = "unknown" if doc_type == "lieferschein" else doc_type

    records: List[StopRecord] = []
    if doc_type != "lieferschein" or given or received or d_given or d_received:
        records.append(
            StopRecord(
                role=role if role in _ROLES else None,
                location_name=data.location.name,
                location_address=data.location.address,
                date=data.date,
                received=received,
                given=given,
                exchanged=data.exchanged,
                notes=notes,
                source_document_type=record_type,
                perspective=perspective,
                confidence=data.confidence,
                page_number=page_number,
                discarded=d_given + d_received,
            )
        )
    pickup = data.pickup_location
    if pickup is not None and pickup.name and role != "pickup":
        # metadata only: where the goods were loaded
        records.append(
            StopRecord(
                role="pickup",
                location_name=pickup.name,
                location_address=pickup.address,
                source_document_type=record_type,
                confidence=data.confidence,
                page_number=page_number,
            )
        )

    consignee = data.location.name if role == "delivery" else None
    return SourceExtraction(
        document_type=doc_type,
        page_number=page_number,
        confidence=data.confidence,
        records=tuple(records),
        reference_candidates=tuple(data.references),
        shipper=data.shipper.name if data.shipper else None,
        consignee=consignee,
        consignee_address=data.location.address if consignee else None,
        carrier=data.carrier.name or data.carrier.sub_carrier,
        vehicle_plate=data.carrier.license_plate or data.carrier.vehicle_number,
        driver_name=data.carrier.driver_name,
        delivery_date=data.date if role == "delivery" else None,
        dpl=DplVoucher(issued=bool(data.dpl_issued), number=data.dpl_voucher_number),
        warnings=tuple(warnings),
    )


def adapt_group_response(raw: Any, *, page_number: Optional[int] = None) -> List[SourceExtraction]:
    """A group call answers with one object or an array of them."""
    items = raw if isinstance(raw, list) else [raw]
    return [adapt_group(item, page_number=page_number) for item in items if isinstance(item, dict)]


def adapt_settlement(raw: Mapping[str, Any]) -> SettlementRecord:
    """Adapt one entry of the two-pass settlement response."""
    data = SettlementResponse.model_validate(raw)

    def side(s) -> SideTotals:
        return SideTotals(
            date=s.date,
            time=s.time,
            location=s.location,
            address=s.address,
            received=s.received or 0,
            given=s.given or 0,
        )

    refs = data.references
    status = data.exchange_status
    return SettlementRecord(
        pallet_type=normalize_pallet_type(data.pallet_type),
        pickup=side(data.pickup),
        delivery=side(data.delivery),
        saldo=data.saldo,
        exchange=ExchangeStatus(
            exchanged=status.exchanged,
            partial=bool(status.partial),
            dpl_issued=bool(status.dpl_issued),
            comment=status.comment,
            non_exchange_reason=status.non_exchange_reason,
        ),
        references=SettlementReferences(
            order_number=refs.sendungsnummer or refs.ladenummer,
            delivery_number=refs.lieferschein_nr,
            tour_number=refs.tour_nr,
            dpl_voucher_number=refs.dpl_voucher_nr,
        ),
        carrier=CarrierInfo(name=data.carrier.name, license_plate=data.carrier.license_plate),
        confidence=data.confidence,
        notes=(data.notes,) if data.notes else (),
    )


def adapt_settlement_response(raw: Any) -> List[SettlementRecord]:
    items = raw if isinstance(raw, list) else [raw]
    return [adapt_settlement(item) for item in items if isinstance(item, dict)]
