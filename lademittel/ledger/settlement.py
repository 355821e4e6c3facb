"""
Settlement records: the per-pallet-type view the validator works on.

A SettlementRecord exposes pickup/delivery totals, reported saldo, exchange
status and DPL fields for one pallet type. They come either from a
correlated ledger (``settlements_from_ledger``) or straight from the
two-pass oracle schema (see ``lademittel.extract.adapters.adapt_settlement``).
Side totals are plain ints here: negative values from the oracle are kept so
the validator can reject them.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from lademittel.ledger.merge import merge_exchanged, merge_stops
from lademittel.ledger.model import (
    DeliveryLedger,
    DiscardedMovement,
    DplVoucher,
    PalletMovement,
    PalletMovementOutput,
    PalletType,
    References,
    Stop,
    StopRole,
    pallet_sort_key,
)


class SideTotals(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None
    received: int = 0
    given: int = 0


class ExchangeStatus(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    exchanged: Optional[bool] = None
    partial: bool = False
    dpl_issued: bool = False
    comment: Optional[str] = None
    non_exchange_reason: Optional[str] = None


class SettlementReferences(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    order_number: Optional[str] = None
    delivery_number: Optional[str] = None
    tour_number: Optional[str] = None
    dpl_voucher_number: Optional[str] = None


class CarrierInfo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Optional[str] = None
    license_plate: Optional[str] = None


class SettlementRecord(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    pallet_type: PalletType
    pickup: SideTotals = Field(default_factory=SideTotals)
    delivery: SideTotals = Field(default_factory=SideTotals)
    saldo: Optional[int] = None  # as reported; None = not reported
    exchange: ExchangeStatus = Field(default_factory=ExchangeStatus)
    references: SettlementReferences = Field(default_factory=SettlementReferences)
    carrier: CarrierInfo = Field(default_factory=CarrierInfo)
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    notes: Tuple[str, ...] = ()
    discarded_negative: bool = False

    @property
    def computed_saldo(self) -> int:
        return self.pickup.given - self.pickup.received


def _side(stops: Sequence[Stop], received: int, given: int) -> SideTotals:
    first = stops[0] if stops else None
    return SideTotals(
        date=next((s.date for s in stops if s.date), None),
        time=next((s.time for s in stops if s.time), None),
        location=first.location_name if first else None,
        address=first.location_address if first else None,
        received=received,
        given=given,
    )


def settlements_from_ledger(
    ledger: DeliveryLedger, rows: Sequence[PalletMovementOutput]
) -> Tuple[SettlementRecord, ...]:
    """
    One record per movement row, plus one zero record for every pallet type
    that only appears among the discarded (negative) movements.
    """
    pickups = ledger.stops_with_role("pickup")
    deliveries = ledger.stops_with_role("delivery")

    exchanged: Optional[bool] = None
    counted = pickups + deliveries
    if counted:
        exchanged = counted[0].exchanged
        for s in counted[1:]:
            exchanged = merge_exchanged(exchanged, s.exchanged)

    negative_types = {d.pallet_type for d in ledger.discarded}
    by_type = {r.pallet_type: r for r in rows}
    for t in negative_types:
        by_type.setdefault(t, PalletMovementOutput(pallet_type=t))

    notes = tuple(n for s in ledger.stops for n in s.notes)
    records: List[SettlementRecord] = []
    for pallet_type in sorted(by_type, key=pallet_sort_key):
        row = by_type[pallet_type]
        records.append(
            SettlementRecord(
                pallet_type=pallet_type,
                pickup=_side(pickups, row.pickup_received, row.pickup_given),
                delivery=_side(deliveries, row.delivery_received, row.delivery_given),
                exchange=ExchangeStatus(exchanged=exchanged, dpl_issued=ledger.dpl.issued),
                references=SettlementReferences(
                    **ledger.references.model_dump(),
                    dpl_voucher_number=ledger.dpl.number,
                ),
                carrier=CarrierInfo(name=ledger.carrier, license_plate=ledger.vehicle_plate),
                confidence=ledger.average_confidence,
                notes=notes,
                discarded_negative=pallet_type in negative_types,
            )
        )
    return tuple(records)


def _side_stop(
    role: StopRole,
    side: SideTotals,
    record: SettlementRecord,
    discarded: List[DiscardedMovement],
) -> Optional[Stop]:
    moves = {}
    for direction in ("received", "given"):
        qty = getattr(side, direction)
        if qty < 0:
            discarded.append(
                DiscardedMovement(
                    pallet_type=record.pallet_type,
                    quantity=qty,
                    reason=f"negative {role} {direction}",
                )
            )
            qty = 0
        moves[direction] = (
            (PalletMovement(pallet_type=record.pallet_type, quantity=qty),) if qty else ()
        )
    if not side.location and not moves["received"] and not moves["given"]:
        return None
    return Stop(
        role=role,
        location_name=side.location,
        location_address=side.address,
        date=side.date,
        time=side.time,
        received=moves["received"],
        given=moves["given"],
        exchanged=record.exchange.exchanged,
        notes=record.notes,
    )


def ledger_from_settlements(
    source: str, records: Sequence[SettlementRecord]
) -> DeliveryLedger:
    """Rebuild a ledger from two-pass settlement records so both paths share one report."""
    stops: List[Stop] = []
    discarded: List[DiscardedMovement] = []
    for record in records:
        for role, side in (("pickup", record.pickup), ("delivery", record.delivery)):
            stop = _side_stop(role, side, record, discarded)
            if stop is not None:
                stops.append(stop)

    first = records[0] if records else None
    refs = first.references if first else SettlementReferences()
    return DeliveryLedger(
        source=source,
        references=References(
            order_number=refs.order_number,
            delivery_number=refs.delivery_number,
            tour_number=refs.tour_number,
        ),
        carrier=next((r.carrier.name for r in records if r.carrier.name), None),
        vehicle_plate=next(
            (r.carrier.license_plate for r in records if r.carrier.license_plate), None
        ),
        stops=merge_stops(stops),
        average_confidence=(
            sum(r.confidence for r in records) / len(records) if records else 0.0
        ),
        dpl=DplVoucher(
            issued=any(r.exchange.dpl_issued for r in records),
            number=next(
                (r.references.dpl_voucher_number for r in records if r.references.dpl_voucher_number),
                None,
            ),
        ),
        discarded=tuple(discarded),
        pages_processed=len(records),
    )
