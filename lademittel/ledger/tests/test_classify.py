from lademittel.ledger.classify import apply_role, classify_role
from lademittel.ledger.model import PalletMovement, StopRecord


def _m(t: str, q: int) -> PalletMovement:
    return PalletMovement(pallet_type=t, quantity=q)


def _rec(received=(), given=(), **kw) -> StopRecord:
    kw.setdefault("source_document_type", "palettennachweis")
    return StopRecord(received=tuple(received), given=tuple(given), **kw)


def test_delivery_note_never_becomes_a_stop():
    assert classify_role(_rec(source_document_type="lieferschein")) is None


def test_loading_list_is_pickup():
    d = classify_role(_rec(given=[_m("EUR", 4)], source_document_type="ladeliste"))
    assert (d.role, d.reason) == ("pickup", "document_type")


def test_explicit_role_wins():
    d = classify_role(_rec(role="delivery", received=[_m("EUR", 9)]))
    assert (d.role, d.reason) == ("delivery", "explicit")


def test_received_only_is_pickup():
    d = classify_role(_rec(received=[_m("EUR", 5)]))
    assert (d.role, d.reason) == ("pickup", "received_only")


def test_given_only_is_delivery():
    d = classify_role(_rec(given=[_m("EUR", 5)]))
    assert (d.role, d.reason) == ("delivery", "given_only")


def test_majority():
    d = classify_role(_rec(received=[_m("EUR", 5)], given=[_m("CHEP", 3)]))
    assert (d.role, d.reason) == ("pickup", "majority")
    d = classify_role(_rec(received=[_m("EUR", 1)], given=[_m("EUR", 3)]))
    assert (d.role, d.reason) == ("delivery", "majority")


def test_tie_break_is_configurable():
    rec = _rec(received=[_m("EUR", 4)], given=[_m("EUR", 4)])
    assert classify_role(rec).role == "delivery"
    d = classify_role(rec, tie_break_role="pickup")
    assert (d.role, d.reason) == ("pickup", "tie_break")


def test_no_evidence_is_handoff():
    d = classify_role(_rec())
    assert (d.role, d.reason) == ("handoff", "no_evidence")


def test_apply_role():
    rec = _rec(received=[_m("EUR", 5)])
    out = apply_role(rec, classify_role(rec))
    assert out.role == "pickup"
    assert rec.role is None
