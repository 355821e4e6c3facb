"""
Perspective resolution.

Exchange receipts and goods receipts are written by the location: "we gave"
means the carrier received. Loading lists and delivery notes are written from
the carrier's side already. Records carry the perspective they are stated in;
resolving turns them into carrier perspective exactly once.
"""

from __future__ import annotations

from typing import Dict

from lademittel.ledger.model import DocumentType, Perspective, StopRecord

AUTHOR_PERSPECTIVE: Dict[str, Perspective] = {
    "palettennachweis": "location",
    "wareneingangsbeleg": "location",
    "ladeliste": "carrier",
    "lieferschein": "carrier",
    "unknown": "carrier",
}

INVERTS: Dict[str, bool] = {p: p == "location" for p in ("carrier", "location")}


def author_perspective(document_type: DocumentType) -> Perspective:
    return AUTHOR_PERSPECTIVE.get(document_type, "carrier")


def resolve_perspective(record: StopRecord) -> StopRecord:
    """
    Return the record stated from the carrier's point of view.
    A record that is already in carrier perspective is returned unchanged, so
    applying this twice can never flip given/received back.
    """
    if not INVERTS[record.perspective]:
        return record
    return record.model_copy(
        update={
            "received": record.given,
            "given": record.received,
            "perspective": "carrier",
        }
    )
