from lademittel.extract.adapters import (
    adapt_group_response,
    adapt_page,
    adapt_settlement_response,
    normalize_document_type,
)
from lademittel.extract.schema import ClassificationResponse, RawMovement
from lademittel.ledger.model import PalletMovement


def _m(t: str, q: int) -> PalletMovement:
    return PalletMovement(pallet_type=t, quantity=q)


def test_document_type_aliases():
    assert normalize_document_type("Europalettenschein") == "palettennachweis"
    assert normalize_document_type("DESADV") == "lieferschein"
    assert normalize_document_type("we_beleg") == "wareneingangsbeleg"
    assert normalize_document_type("Rechnung") == "unknown"
    assert normalize_document_type(None) == "unknown"


def test_lenient_models_tolerate_garbage():
    m = RawMovement.model_validate({"type": "EUR", "quantity": "abc", "extra": 1})
    assert (m.pallet_type, m.quantity) == ("EUR", None)

    c = ClassificationResponse.model_validate({"confidence": "hoch", "identifiers": "x"})
    assert c.confidence == 0.5
    assert c.identifiers.order_numbers == []
    assert ClassificationResponse.model_validate({"confidence": 1.7}).confidence == 1.0


def test_lieferschein():
    raw = {
        "stammnummer": "F1250031939",
        "tour": "T12",
        "lieferdatum": "04.02.2025",
        "sender": {"name": "Hersteller AG"},
        "recipient": {"name": " Müller  GmbH ", "address": "Hauptstr. 1"},
        "palletInfo": [{"type": "Europalette", "quantity": "33 Stk."}],
        "confidence": 0.92,
    }
    ext = adapt_page("lieferschein", raw, page_number=1)
    assert ext.records == ()
    assert ext.references.order_number == "F1250031939"
    assert ext.references.tour_number == "T12"
    assert ext.shipper == "Hersteller AG"
    assert ext.consignee == "Müller GmbH"
    assert ext.delivery_date == "04.02.2025"
    assert ext.declared_pallets == (_m("EUR", 33),)
    assert ext.confidence == 0.92


def test_lieferschein_corrections_replace_printed_pallets():
    raw = {
        "palletInfo": [{"type": "EUR", "quantity": 33}],
        "corrections": [{"palletType": "EUR", "quantity": 30}],
    }
    assert adapt_page("lieferschein", raw).declared_pallets == (_m("EUR", 30),)


def test_classification_confidence_and_identifiers_carry_over():
    classification = ClassificationResponse.model_validate(
        {"documentType": "lieferschein", "confidence": 0.6, "identifiers": {"orderNumbers": ["F1", "F2"]}}
    )
    ext = adapt_page("lieferschein", {}, classification, page_number=1)
    assert ext.confidence == 0.6
    assert ext.reference_candidates == ("F1", "F2")


def test_ladeliste_with_loading_location():
    raw = {
        "tour": "4711",
        "date": "03.02.2025",
        "vehiclePlate": "HI-AB 123",
        "beladeort": {"name": "AL Bockenem", "address": "Industriestr. 5"},
        "totalPallets": [{"type": "EUR", "quantity": 33}],
        "pallettenNichtGetauscht": "ja",
    }
    ext = adapt_page("ladeliste", raw, page_number=2)
    (rec,) = ext.records
    assert rec.role == "pickup"
    assert rec.location_name == "AL Bockenem"
    assert rec.received == (_m("EUR", 33),)
    assert rec.exchanged is False
    assert rec.perspective == "carrier"
    assert ext.declared_pallets == (_m("EUR", 33),)
    assert ext.vehicle_plate == "HI-AB 123"
    assert ext.references.tour_number == "4711"


def test_ladeliste_falls_back_to_first_stop():
    raw = {
        "stops": [{"stopNumber": 2, "pallets": [{"type": "CHEP", "quantity": 4}]}],
        "totalPallets": [{"type": "EUR", "quantity": 10}],
    }
    (rec,) = adapt_page("ladeliste", raw).records
    assert rec.location_name == "Pickup 2"
    assert rec.received == (_m("CHEP", 4),)
    assert rec.exchanged is None


def test_empty_ladeliste_has_no_record():
    assert adapt_page("ladeliste", {}).records == ()


def test_palettennachweis_keeps_location_perspective():
    raw = {
        "date": "03.02.2025",
        "fromCompany": "Lager Nord",
        "palletsGiven": [{"type": "EUR", "quantity": 15}, {"type": "EUR", "quantity": -2}],
        "palletsReceived": [{"type": "CHEP", "quantity": 0}],
        "signatures": {"driver": "ja"},
        "reason": "Kein Palettenvorrat",
    }
    ext = adapt_page("palettennachweis", raw, page_number=3)
    (rec,) = ext.records
    assert rec.role is None
    assert rec.perspective == "location"
    assert rec.location_name == "Lager Nord"
    assert rec.given == (_m("EUR", 15),)
    assert rec.received == ()
    assert rec.exchanged is None
    assert rec.signatures.driver and not rec.signatures.customer
    assert "Reason: Kein Palettenvorrat" in rec.notes
    (d,) = rec.discarded
    assert (d.pallet_type, d.quantity, d.page_number) == ("EUR", -2, 3)


def test_wareneingangsbeleg():
    raw = {
        "deliveryNumber": "LS-1",
        "palletExchange": [{"palletType": "EUR", "received": 5, "returned": 5}],
    }
    ext = adapt_page("wareneingangsbeleg", raw)
    (rec,) = ext.records
    assert rec.role == "delivery"
    assert rec.location_name is None
    assert rec.perspective == "location"
    assert rec.received == rec.given == (_m("EUR", 5),)
    assert rec.exchanged is True
    assert ext.references.delivery_number == "LS-1"


def test_unknown_page_becomes_warning():
    classification = ClassificationResponse.model_validate({"documentType": "Rechnung", "confidence": 0.3})
    ext = adapt_page("unknown", {}, classification, page_number=4)
    assert ext.records == ()
    assert ext.confidence == 0.3
    assert ext.warnings == ("Page 4: unknown document type",)


def test_group_response():
    raw = [
        {
            "documentType": "wareneingangsbestaetigung",
            "perspective": "carrier",
            "locationType": "delivery",
            "location": {"name": "Kunde AG", "address": "Am Markt 2"},
            "palletsReceived": [{"type": "EUR", "qty": 5}],
            "carrier": {"name": "Spedition Beispiel", "licensePlate": "HI-AB 1"},
            "references": ["LS-1"],
            "date": "04.02.2025",
            "dplIssued": "nein",
            "confidence": 0.8,
        },
        "garbage",
    ]
    (ext,) = adapt_group_response(raw, page_number=1)
    assert ext.document_type == "wareneingangsbeleg"
    assert len(ext.warnings) == 1
    assert "perspective" in ext.warnings[0]
    (rec,) = ext.records
    assert rec.role == "delivery"
    assert rec.perspective == "location"
    assert rec.received == (_m("EUR", 5),)
    assert ext.consignee == "Kunde AG"
    assert ext.consignee_address == "Am Markt 2"
    assert ext.delivery_date == "04.02.2025"
    assert (ext.carrier, ext.vehicle_plate) == ("Spedition Beispiel", "HI-AB 1")
    assert ext.reference_candidates == ("LS-1",)
    assert not ext.dpl.issued


def test_group_delivery_note_with_pickup_location():
    raw = {
        "documentType": "lieferschein",
        "locationType": "delivery",
        "location": {"name": "Kunde"},
        "pickupLocation": {"name": "Lager"},
    }
    (ext,) = adapt_group_response(raw)
    (rec,) = ext.records
    assert (rec.role, rec.location_name) == ("pickup", "Lager")
    assert rec.source_document_type == "unknown"
    assert ext.consignee == "Kunde"


def test_settlement_response():
    raw = [
        {
            "palletType": "Europalette",
            "pickup": {"location": "Lager", "übernommen": "10", "überlassen": 2},
            "delivery": {"ueberlassen": 10},
            "saldo": -8,
            "references": {"ladenummer": "L1", "dplVoucherNr": "D1"},
            "exchangeStatus": {"exchanged": "ja", "dplIssued": False},
            "confidence": 0.9,
        }
    ]
    (rec,) = adapt_settlement_response(raw)
    assert rec.pallet_type == "EUR"
    assert (rec.pickup.received, rec.pickup.given) == (10, 2)
    assert rec.delivery.given == 10
    assert rec.saldo == -8
    assert rec.references.order_number == "L1"
    assert rec.references.dpl_voucher_number == "D1"
    assert rec.exchange.exchanged is True
    assert rec.computed_saldo == -8
