"""
Stop merging.

Records that share a merge key (role, lowercase trimmed location name) are
folded into one Stop. Movement totals are summed per pallet type, so the
result does not depend on the order of the inputs. Scalar metadata (date,
time, address) is first-non-null-wins and therefore follows input order:
callers pass records in page order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from lademittel.ledger.model import (
    DocumentType,
    PalletMovement,
    Quality,
    Signatures,
    Stop,
    StopRecord,
    pallet_sort_key,
)
from lademittel.ledger.textnorm import normalize_text


def _combine_quality(a: Optional[Quality], b: Optional[Quality]) -> Optional[Quality]:
    if a is None:
        return b
    if b is None or a == b:
        return a
    return "mixed"


def _combine_damaged(a: Optional[int], b: Optional[int]) -> Optional[int]:
    if a is None and b is None:
        return None
    return (a or 0) + (b or 0)


def merge_movements(*movement_lists: Iterable[PalletMovement]) -> Tuple[PalletMovement, ...]:
    """
    Union of movement lists, summed per pallet type (damaged counts summed
    independently). Zero-quantity movements are dropped. Output is ordered by
    pallet type, so merge(a, b) == merge(b, a).
    """
    by_type: Dict[str, PalletMovement] = {}
    for movements in movement_lists:
        for m in movements:
            if m.quantity == 0:
                continue
            cur = by_type.get(m.pallet_type)
            if cur is None:
                by_type[m.pallet_type] = m
                continue
            by_type[m.pallet_type] = PalletMovement(
                pallet_type=m.pallet_type,
                quantity=cur.quantity + m.quantity,
                damaged=_combine_damaged(cur.damaged, m.damaged),
                quality=_combine_quality(cur.quality, m.quality),
            )
    return tuple(sorted(by_type.values(), key=lambda m: pallet_sort_key(m.pallet_type)))


def merge_exchanged(a: Optional[bool], b: Optional[bool]) -> Optional[bool]:
    """Any True wins; False only when both sides say False; otherwise unknown."""
    if a is True or b is True:
        return True
    if a is False and b is False:
        return False
    return None


def stop_from_record(record: StopRecord) -> Stop:
    if record.role is None:
        raise ValueError("record must be classified before it can become a stop")
    return Stop(
        role=record.role,
        location_name=normalize_text(record.location_name),
        location_address=normalize_text(record.location_address),
        date=record.date,
        time=record.time,
        received=merge_movements(record.received),
        given=merge_movements(record.given),
        exchanged=record.exchanged,
        signatures=record.signatures,
        notes=record.notes,
        sources=(record.source_document_type,),
    )


@dataclass
class _StopAccumulator:
    """Mutable only inside merge_stops; frozen into a Stop at the end."""

    stop: Stop
    received: List[Tuple[PalletMovement, ...]] = field(default_factory=list)
    given: List[Tuple[PalletMovement, ...]] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    sources: List[DocumentType] = field(default_factory=list)

    @classmethod
    def start(cls, stop: Stop) -> "_StopAccumulator":
        acc = cls(stop=stop)
        acc.received.append(stop.received)
        acc.given.append(stop.given)
        acc.notes.extend(stop.notes)
        acc.sources.extend(stop.sources)
        return acc

    def absorb(self, other: Stop) -> None:
        cur = self.stop
        self.received.append(other.received)
        self.given.append(other.given)
        self.notes.extend(other.notes)
        self.sources.extend(other.sources)
        self.stop = cur.model_copy(
            update={
                "location_name": cur.location_name or other.location_name,
                "location_address": cur.location_address or other.location_address,
                "date": cur.date or other.date,
                "time": cur.time or other.time,
                "exchanged": merge_exchanged(cur.exchanged, other.exchanged),
                "signatures": Signatures(
                    driver=cur.signatures.driver or other.signatures.driver,
                    customer=cur.signatures.customer or other.signatures.customer,
                ),
                "synthetic": cur.synthetic or other.synthetic,
            }
        )

    def freeze(self) -> Stop:
        return self.stop.model_copy(
            update={
                "received": merge_movements(*self.received),
                "given": merge_movements(*self.given),
                "notes": tuple(self.notes),
                "sources": tuple(dict.fromkeys(self.sources)),
            }
        )


def merge_stops(stops: Iterable[Stop]) -> Tuple[Stop, ...]:
    """
    Fold stops with the same identity into one. Keys keep first-seen order.
    Idempotent: a list that is already merged comes back unchanged.
    """
    accs: Dict[Tuple[str, str], _StopAccumulator] = {}
    for stop in stops:
        acc = accs.get(stop.key)
        if acc is None:
            accs[stop.key] = _StopAccumulator.start(stop)
        else:
            acc.absorb(stop)
    return tuple(acc.freeze() for acc in accs.values())


def merge_records(
    records: Sequence[StopRecord], existing: Sequence[Stop] = ()
) -> Tuple[Stop, ...]:
    """Merge classified carrier-perspective records into an (optional) stop list."""
    return merge_stops([*existing, *(stop_from_record(r) for r in records)])
