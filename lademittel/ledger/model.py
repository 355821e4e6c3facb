"""
Canonical ledger model.

Everything here is a frozen pydantic model: records are created once by the
adapters, stops once by the merge pass, the ledger once at the end of the
correlation fold. Movement fields are always named from the carrier's point
of view once a record carries ``perspective == "carrier"``.
"""

from __future__ import annotations

from typing import Literal, Optional, Tuple, get_args

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lademittel.ledger.textnorm import location_key

PalletType = Literal[
    "EUR",
    "EUR-NT",
    "Einweg",
    "Düsseldorfer",
    "CHEP",
    "CHEP-HALB",
    "CHEP-VIERTEL",
    "Gitterbox",
    "Plastik",
    "H1",
    "Rollcontainer",
    "Industrie",
    "unknown",
]
PALLET_TYPES: Tuple[str, ...] = get_args(PalletType)

Quality = Literal["A", "B", "mixed"]
StopRole = Literal["pickup", "delivery", "handoff"]
Perspective = Literal["carrier", "location"]

# lieferschein = delivery note, ladeliste = loading list,
# palettennachweis = pallet-exchange receipt, wareneingangsbeleg = goods receipt
DocumentType = Literal[
    "lieferschein",
    "ladeliste",
    "palettennachweis",
    "wareneingangsbeleg",
    "unknown",
]
DOCUMENT_TYPES: Tuple[str, ...] = get_args(DocumentType)


def pallet_sort_key(pallet_type: str) -> int:
    return PALLET_TYPES.index(pallet_type)


class PalletMovement(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    pallet_type: PalletType
    quantity: int = Field(..., ge=0)
    damaged: Optional[int] = Field(default=None, ge=0)
    quality: Optional[Quality] = None

    @model_validator(mode="after")
    def _damaged_le_quantity(self) -> "PalletMovement":
        if self.damaged is not None and self.damaged > self.quantity:
            raise ValueError("damaged must not exceed quantity")
        return self


class DiscardedMovement(BaseModel):
    """A raw movement rejected as invalid (e.g. a negative count)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pallet_type: PalletType
    quantity: int
    reason: str
    page_number: Optional[int] = None


class Signatures(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    driver: bool = False
    customer: bool = False


def total_quantity(movements: Tuple[PalletMovement, ...]) -> int:
    return sum(m.quantity for m in movements)


class StopRecord(BaseModel):
    """One stop observation from one source document/page, pre-merge."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: Optional[StopRole] = None  # None until classified
    location_name: Optional[str] = None
    location_address: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    received: Tuple[PalletMovement, ...] = ()
    given: Tuple[PalletMovement, ...] = ()
    exchanged: Optional[bool] = None  # None = unknown
    signatures: Signatures = Field(default_factory=Signatures)
    notes: Tuple[str, ...] = ()
    source_document_type: DocumentType = "unknown"
    perspective: Perspective = "carrier"
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    page_number: Optional[int] = None
    discarded: Tuple[DiscardedMovement, ...] = ()

    @property
    def total_received(self) -> int:
        return total_quantity(self.received)

    @property
    def total_given(self) -> int:
        return total_quantity(self.given)


class Stop(BaseModel):
    """Canonical stop; identity is (role, lowercase location name)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    role: StopRole
    location_name: Optional[str] = None
    location_address: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    received: Tuple[PalletMovement, ...] = ()
    given: Tuple[PalletMovement, ...] = ()
    exchanged: Optional[bool] = None
    signatures: Signatures = Field(default_factory=Signatures)
    notes: Tuple[str, ...] = ()
    sources: Tuple[DocumentType, ...] = ()
    synthetic: bool = False

    @property
    def key(self) -> Tuple[str, str]:
        return (self.role, location_key(self.location_name))

    @property
    def total_received(self) -> int:
        return total_quantity(self.received)

    @property
    def total_given(self) -> int:
        return total_quantity(self.given)


class References(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    order_number: Optional[str] = None
    delivery_number: Optional[str] = None
    tour_number: Optional[str] = None


class DplVoucher(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    issued: bool = False
    number: Optional[str] = None


class SourceExtraction(BaseModel):
    """
    Canonical form of one oracle response (one page, or one entry of a group
    response) after its schema adapter ran. Records are still in the
    author's perspective.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    document_type: DocumentType
    page_number: Optional[int] = None
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    records: Tuple[StopRecord, ...] = ()

    references: References = Field(default_factory=References)
    reference_candidates: Tuple[str, ...] = ()
    shipper: Optional[str] = None
    consignee: Optional[str] = None
    consignee_address: Optional[str] = None
    carrier: Optional[str] = None
    vehicle_plate: Optional[str] = None
    driver_name: Optional[str] = None
    delivery_date: Optional[str] = None
    declared_pallets: Tuple[PalletMovement, ...] = ()
    dpl: DplVoucher = Field(default_factory=DplVoucher)
    # rejected declared pallets; record-level rejects live on the records
    discarded: Tuple[DiscardedMovement, ...] = ()
    warnings: Tuple[str, ...] = ()


class DeliveryLedger(BaseModel):
    """Aggregate root per source file / document group."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: str
    references: References = Field(default_factory=References)
    shipper: Optional[str] = None
    consignee: Optional[str] = None
    consignee_address: Optional[str] = None
    carrier: Optional[str] = None
    vehicle_plate: Optional[str] = None
    driver_name: Optional[str] = None
    stops: Tuple[Stop, ...] = ()
    average_confidence: float = Field(0.0, ge=0.0, le=1.0)
    warnings: Tuple[str, ...] = ()

    dpl: DplVoucher = Field(default_factory=DplVoucher)
    discarded: Tuple[DiscardedMovement, ...] = ()
    tie_break_applied: bool = False
    pages_processed: int = 0
    pages_failed: Tuple[int, ...] = ()

    def stops_with_role(self, role: StopRole) -> Tuple[Stop, ...]:
        return tuple(s for s in self.stops if s.role == role)


class PalletMovementOutput(BaseModel):
    """Flattened output row, one per (ledger, pallet type)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pallet_type: PalletType
    pickup_received: int = 0
    pickup_given: int = 0
    delivery_given: int = 0
    delivery_received: int = 0
    saldo: int = 0

    @model_validator(mode="after")
    def _saldo_identity(self) -> "PalletMovementOutput":
        if self.saldo != self.pickup_given - self.pickup_received:
            raise ValueError("saldo must equal pickup_given - pickup_received")
        return self
