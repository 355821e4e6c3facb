from __future__ import annotations

from collections import defaultdict
from typing import Dict, Sequence, Tuple

from lademittel.ledger.model import PalletMovementOutput, Stop, pallet_sort_key

_FIELDS = ("pickup_received", "pickup_given", "delivery_received", "delivery_given")


def movement_totals(stops: Sequence[Stop]) -> Dict[str, Dict[str, int]]:
    """Per pallet type: summed pickup/delivery received/given. Handoff stops are ignored."""
    totals: Dict[str, Dict[str, int]] = defaultdict(lambda: dict.fromkeys(_FIELDS, 0))
    for stop in stops:
        if stop.role not in ("pickup", "delivery"):
            continue
        for m in stop.received:
            totals[m.pallet_type][f"{stop.role}_received"] += m.quantity
        for m in stop.given:
            totals[m.pallet_type][f"{stop.role}_given"] += m.quantity
    return totals


def compute_movements(stops: Sequence[Stop]) -> Tuple[PalletMovementOutput, ...]:
    """
    One output row per pallet type. Saldo is the carrier's debt accrued at
    pickup: pickup_given - pickup_received. Delivery figures are reported but
    never enter it. Types whose figures are all zero are omitted.
    """
    rows = []
    for pallet_type, t in movement_totals(stops).items():
        if not any(t.values()):
            continue
        rows.append(
            PalletMovementOutput(
                pallet_type=pallet_type,
                saldo=t["pickup_given"] - t["pickup_received"],
                **t,
            )
        )
    return tuple(sorted(rows, key=lambda r: pallet_sort_key(r.pallet_type)))

