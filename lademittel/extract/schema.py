"""
Raw oracle response schemas.

Every generation of response shape gets its own lenient model: unknown keys
are ignored, malformed scalars fall back to None, list items that are not
objects are dropped. Nothing here interprets the data; the adapters do.
"""

from __future__ import annotations

from typing import Annotated, Any, List, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lademittel.extract.numbers import parse_quantity


def _to_str(v: Any) -> Optional[str]:
    if isinstance(v, bool) or v is None:
        return None
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, str):
        return v.strip() or None
    return None


def _to_bool(v: Any) -> Optional[bool]:
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        s = v.strip().lower()
        if s in ("true", "ja", "yes", "1"):
            return True
        if s in ("false", "nein", "no", "0"):
            return False
    return None


def _to_confidence(v: Any) -> float:
    if isinstance(v, bool) or not isinstance(v, (int, float, str)):
        return 0.5
    try:
        f = float(v)
    except ValueError:
        return 0.5
    return max(0.0, min(1.0, f))


def _dict_items(v: Any) -> List[Any]:
    if not isinstance(v, list):
        return []
    return [x for x in v if isinstance(x, dict)]


def _str_items(v: Any) -> List[str]:
    if isinstance(v, str):
        v = [v]
    if not isinstance(v, list):
        return []
    return [s for s in (_to_str(x) for x in v) if s]


def _dict_or_empty(v: Any) -> Any:
    return v if isinstance(v, dict) else {}


def _dict_or_none(v: Any) -> Any:
    return v if isinstance(v, dict) else None


LenientStr = Annotated[Optional[str], BeforeValidator(_to_str)]
LenientInt = Annotated[Optional[int], BeforeValidator(parse_quantity)]
LenientBool = Annotated[Optional[bool], BeforeValidator(_to_bool)]
Confidence = Annotated[float, BeforeValidator(_to_confidence)]
StrList = Annotated[List[str], BeforeValidator(_str_items)]


class _Lenient(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RawMovement(_Lenient):
    pallet_type: LenientStr = Field(
        default=None, validation_alias=AliasChoices("palletType", "type", "pallet_type")
    )
    quantity: LenientInt = Field(
        default=None, validation_alias=AliasChoices("quantity", "qty")
    )
    damaged: LenientInt = None
    quality: LenientStr = None
    reason: LenientStr = None


Movements = Annotated[List[RawMovement], BeforeValidator(_dict_items)]


class RawParty(_Lenient):
    name: LenientStr = None
    address: LenientStr = None


class RawLocation(_Lenient):
    name: LenientStr = None
    warehouse_id: LenientStr = None
    address: LenientStr = None


class RawSignatures(_Lenient):
    driver: LenientBool = None
    customer: LenientBool = None


# ---------- classification ----------


class Identifiers(_Lenient):
    order_numbers: StrList = Field(default_factory=list)
    dates: StrList = Field(default_factory=list)
    companies: StrList = Field(default_factory=list)


class ClassificationResponse(_Lenient):
    document_type: LenientStr = None
    confidence: Confidence = 0.5
    identifiers: Annotated[Identifiers, BeforeValidator(_dict_or_empty)] = Field(
        default_factory=Identifiers
    )
    reasoning: LenientStr = None


# ---------- per-page generation ----------


class LieferscheinResponse(_Lenient):
    stammnummer: LenientStr = None
    belegnummer: LenientStr = None
    tour: LenientStr = None
    bestelldatum: LenientStr = None
    lieferdatum: LenientStr = None
    sender: Annotated[RawParty, BeforeValidator(_dict_or_empty)] = Field(default_factory=RawParty)
    recipient: Annotated[RawParty, BeforeValidator(_dict_or_empty)] = Field(
        default_factory=RawParty
    )
    pallet_info: Movements = Field(default_factory=list)
    corrections: Movements = Field(default_factory=list)
    confidence: Optional[Confidence] = None


class LadelisteStop(_Lenient):
    stop_number: LenientInt = None
    customer_name: LenientStr = None
    address: LenientStr = None
    pallets: Movements = Field(default_factory=list)


class LadelisteResponse(_Lenient):
    tour: LenientStr = None
    date: LenientStr = None
    pickup_date: LenientStr = None
    vehicle_plate: LenientStr = None
    driver: LenientStr = None
    sendungsnummer: LenientStr = None
    beladeort: Annotated[Optional[RawParty], BeforeValidator(_dict_or_none)] = None
    stops: Annotated[List[LadelisteStop], BeforeValidator(_dict_items)] = Field(
        default_factory=list
    )
    total_pallets: Movements = Field(default_factory=list)
    handwritten_notes: StrList = Field(default_factory=list)
    # sic: the oracle prompt spells it with double "l"
    palletten_nicht_getauscht: LenientBool = None
    confidence: Optional[Confidence] = None


class PalettennachweisResponse(_Lenient):
    date: LenientStr = None
    location: LenientStr = None
    from_company: LenientStr = None
    to_company: LenientStr = None
    pallets_given: Movements = Field(default_factory=list)
    pallets_received: Movements = Field(default_factory=list)
    reason: LenientStr = None
    signatures: Annotated[RawSignatures, BeforeValidator(_dict_or_empty)] = Field(
        default_factory=RawSignatures
    )
    notes: StrList = Field(default_factory=list)
    confidence: Optional[Confidence] = None


class ExchangeLine(_Lenient):
    pallet_type: LenientStr = None
    received: LenientInt = None
    returned: LenientInt = None
    saldo: LenientInt = None


class WareneingangsbelegResponse(_Lenient):
    date: LenientStr = None
    receipt_number: LenientStr = None
    delivery_number: LenientStr = None
    supplier: LenientStr = None
    pallet_exchange: Annotated[List[ExchangeLine], BeforeValidator(_dict_items)] = Field(
        default_factory=list
    )
    confirmed: LenientBool = None
    notes: StrList = Field(default_factory=list)
    confidence: Optional[Confidence] = None


# ---------- single-pass group generation ----------


class RawCarrier(_Lenient):
    name: LenientStr = None
    sub_carrier: LenientStr = None
    driver_name: LenientStr = None
    driver_code: LenientStr = None
    vehicle_number: LenientStr = None
    license_plate: LenientStr = None


class GroupResponse(_Lenient):
    document_type: LenientStr = None
    document_subtypes: StrList = Field(default_factory=list)
    perspective: LenientStr = None
    location_type: LenientStr = None
    location: Annotated[RawLocation, BeforeValidator(_dict_or_empty)] = Field(
        default_factory=RawLocation
    )
    pickup_location: Annotated[Optional[RawLocation], BeforeValidator(_dict_or_none)] = None
    carrier: Annotated[RawCarrier, BeforeValidator(_dict_or_empty)] = Field(
        default_factory=RawCarrier
    )
    shipper: Annotated[Optional[RawParty], BeforeValidator(_dict_or_none)] = None
    date: LenientStr = None
    pallets_given: Movements = Field(default_factory=list)
    pallets_received: Movements = Field(default_factory=list)
    references: StrList = Field(default_factory=list)
    exchanged: LenientBool = None
    exchange_comment: LenientStr = None
    non_exchange_reason: LenientStr = None
    dpl_voucher_number: LenientStr = None
    dpl_issued: LenientBool = None
    damage_notes: LenientStr = None
    saldo: LenientInt = None
    confidence: Confidence = 0.5
    extraction_notes: LenientStr = None


# ---------- two-pass settlement generation ----------


class RawSide(_Lenient):
    date: LenientStr = None
    time: LenientStr = None
    location: LenientStr = None
    address: LenientStr = None
    warehouse_id: LenientStr = None
    received: LenientInt = Field(
        default=None, validation_alias=AliasChoices("übernommen", "uebernommen", "received")
    )
    given: LenientInt = Field(
        default=None, validation_alias=AliasChoices("überlassen", "ueberlassen", "given")
    )


class RawSettlementReferences(_Lenient):
    sendungsnummer: LenientStr = None
    lieferschein_nr: LenientStr = None
    ladenummer: LenientStr = None
    dpl_voucher_nr: LenientStr = None
    tour_nr: LenientStr = None


class RawExchangeStatus(_Lenient):
    exchanged: LenientBool = None
    partial: LenientBool = None
    comment: LenientStr = None
    dpl_issued: LenientBool = None
    non_exchange_reason: LenientStr = None


class SettlementResponse(_Lenient):
    pickup: Annotated[RawSide, BeforeValidator(_dict_or_empty)] = Field(default_factory=RawSide)
    delivery: Annotated[RawSide, BeforeValidator(_dict_or_empty)] = Field(
        default_factory=RawSide
    )
    pallet_type: LenientStr = None
    saldo: LenientInt = None
    carrier: Annotated[RawCarrier, BeforeValidator(_dict_or_empty)] = Field(
        default_factory=RawCarrier
    )
    references: Annotated[RawSettlementReferences, BeforeValidator(_dict_or_empty)] = Field(
        default_factory=RawSettlementReferences
    )
    exchange_status: Annotated[RawExchangeStatus, BeforeValidator(_dict_or_empty)] = Field(
        default_factory=RawExchangeStatus
    )
    confidence: Confidence = 0.5
    notes: LenientStr = None


PAGE_SCHEMAS = {
    "lieferschein": LieferscheinResponse,
    "ladeliste": LadelisteResponse,
    "palettennachweis": PalettennachweisResponse,
    "wareneingangsbeleg": WareneingangsbelegResponse,
}
