"""
Gap filling: synthesize the missing delivery stop from indirect evidence.

Two mutually exclusive rules, each fires at most once per ledger:

(a) at least one pickup stop, no delivery stop, consignee known
    -> delivery stop at the consignee, received = given = pickup received
       (or the pallets declared on the delivery note), exchanged = True
(b) neither pickup nor delivery stops, consignee known, declared pallets
    -> delivery stop at the consignee, given = declared, exchanged = False

Handoff stops count for neither side.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from lademittel.ledger.merge import merge_movements
from lademittel.ledger.model import PalletMovement, Stop

logger = logging.getLogger(__name__)

WARN_ASSUMED_EXCHANGE = (
    "No goods receipt found. Created delivery stop from delivery note consignee. "
    "Pallet exchange assumed (delivery received = delivery given)."
)
WARN_MINIMAL_DELIVERY = (
    "No exchange receipt, goods receipt or loading list stops found. "
    "Created minimal delivery stop."
)


@dataclass(frozen=True)
class GapFillContext:
    consignee: Optional[str] = None
    consignee_address: Optional[str] = None
    delivery_date: Optional[str] = None
    declared_pallets: Tuple[PalletMovement, ...] = ()


def _synthetic_delivery(
    ctx: GapFillContext,
    received: Tuple[PalletMovement, ...],
    given: Tuple[PalletMovement, ...],
    exchanged: bool,
) -> Stop:
    return Stop(
        role="delivery",
        location_name=ctx.consignee,
        location_address=ctx.consignee_address,
        date=ctx.delivery_date,
        received=received,
        given=given,
        exchanged=exchanged,
        synthetic=True,
    )


def fill_gaps(
    stops: Sequence[Stop], ctx: GapFillContext
) -> Tuple[Tuple[Stop, ...], Tuple[str, ...]]:
    """Return (stops, warnings); the input stops are never modified."""
    stops = tuple(stops)
    if not ctx.consignee:
        return stops, ()

    pickups = [s for s in stops if s.role == "pickup"]
    has_delivery = any(s.role == "delivery" for s in stops)
    if has_delivery:
        return stops, ()

    if pickups:
        pallets = merge_movements(*(s.received for s in pickups))
        if not pallets:
            pallets = merge_movements(ctx.declared_pallets)
        logger.debug("gap fill: delivery at %r from %d pickup stop(s)", ctx.consignee, len(pickups))
        stop = _synthetic_delivery(ctx, pallets, pallets, exchanged=True)
        return stops + (stop,), (WARN_ASSUMED_EXCHANGE,)

    declared = merge_movements(ctx.declared_pallets)
    if declared:
        logger.debug("gap fill: minimal delivery at %r", ctx.consignee)
        stop = _synthetic_delivery(ctx, (), declared, exchanged=False)
        return stops + (stop,), (WARN_MINIMAL_DELIVERY,)

    return stops, ()
