from __future__ import annotations

from typing import Dict

_DOCUMENT_NOTE = (
    "The document is a scanned German freight document. It may mix printed and "
    "handwritten entries; handwritten quantities, dates and remarks matter most. "
    "Read meaning rather than exact labels. Pallet labels vary "
    "(Europaletten, EUR-Pal., EP, Düsseldorfer, DD, H1, CHEP, Gitterbox, GB, Einweg). "
    "Dates appear as DD.MM.YYYY or DD.MM.YY. Quantities may carry units (Stk., St.). "
    "If a value is not on the page, use null. Never invent numbers."
)

_JSON_ONLY = "Return ONLY valid JSON, no prose, no code fences."

CLASSIFICATION_PROMPT = (
    "Classify this German logistics document page and collect its identifiers.\n\n"
    "Document types:\n"
    "- lieferschein: printed delivery note with order numbers, sender/recipient, "
    "item list, often a 'Ladungsträger' section\n"
    "- ladeliste: loading list of what went onto the truck, stops with pallet counts\n"
    "- palettennachweis: pallet-exchange receipt, two columns "
    "'Sie erhielten von uns' / 'Wir erhielten von Ihnen', often handwritten\n"
    "- wareneingangsbeleg: goods-receipt confirmation from the recipient with a "
    "'Palettentausch / Leergutrückgabe' section\n"
    "- unknown: none of the above, or unreadable\n\n"
    f"{_DOCUMENT_NOTE}\n\n"
    "Answer format:\n"
    '{"documentType": "lieferschein|ladeliste|palettennachweis|wareneingangsbeleg|unknown", '
    '"confidence": 0.0-1.0, '
    '"identifiers": {"orderNumbers": [], "dates": [], "companies": []}, '
    '"reasoning": "short"}\n'
    "Collect every order, delivery and tour number you can find. "
    "Use 'unknown' when confidence is below 0.5.\n"
    f"{_JSON_ONLY}"
)

_MOVEMENT = '{"palletType": "EUR|EUR-NT|Düsseldorfer|CHEP|Gitterbox|...", "quantity": 0, "damaged": 0}'

PAGE_PROMPTS: Dict[str, str] = {
    "lieferschein": (
        "Extract the delivery note (Lieferschein).\n\n"
        f"{_DOCUMENT_NOTE}\n\n"
        "Fields: stammnummer, belegnummer, tour, bestelldatum, lieferdatum, "
        "sender {name, address}, recipient {name, address} (Empfänger), "
        f"palletInfo [{_MOVEMENT}] from the load-carrier section, "
        "corrections [same shape] from handwritten 'Voll-/Leergut-Korrekturen', "
        "confidence 0.0-1.0.\n"
        f"{_JSON_ONLY}"
    ),
    "ladeliste": (
        "Extract the loading list (Ladeliste).\n\n"
        f"{_DOCUMENT_NOTE}\n\n"
        "Fields: tour, date, pickupDate, vehiclePlate, driver, sendungsnummer, "
        "beladeort {name, address} (loading location), "
        f"stops [{{stopNumber, customerName, address, pallets [{_MOVEMENT}]}}], "
        f"totalPallets [{_MOVEMENT}], handwrittenNotes [string], "
        "pallettenNichtGetauscht (true if marked 'Paletten nicht getauscht'), "
        "confidence 0.0-1.0.\n"
        f"{_JSON_ONLY}"
    ),
    "palettennachweis": (
        "Extract the pallet-exchange receipt (Palettennachweis). It is written by "
        "the location, not by the carrier: report both columns exactly as the "
        "location states them.\n\n"
        f"{_DOCUMENT_NOTE}\n\n"
        "Fields: date, location, fromCompany, toCompany, "
        f"palletsGiven [{_MOVEMENT} plus quality A|B] ('Sie erhielten von uns'), "
        f"palletsReceived [same shape] ('Wir erhielten von Ihnen'), "
        "reason (ticked box, e.g. 'Kein Palettenvorrat'), "
        "signatures {driver, customer} as booleans, notes [string], confidence 0.0-1.0.\n"
        f"{_JSON_ONLY}"
    ),
    "wareneingangsbeleg": (
        "Extract the goods-receipt confirmation (Wareneingangsbeleg), written by the "
        "receiving location.\n\n"
        f"{_DOCUMENT_NOTE}\n\n"
        "Fields: date, receiptNumber, deliveryNumber, supplier, "
        "palletExchange [{palletType, received, returned, saldo}] where received is "
        "what the location took in and returned what it handed back, "
        "confirmed (boolean), notes [string], confidence 0.0-1.0.\n"
        f"{_JSON_ONLY}"
    ),
}

GROUP_PROMPT = (
    "The images are all pages of one delivery (one document group). Extract one "
    "object per physical document that records pallets, as a JSON array.\n\n"
    f"{_DOCUMENT_NOTE}\n\n"
    "Per object: documentType (lieferschein, ladeliste, ladeschein, palettennachweis, "
    "palettenschein, wareneingangsbeleg, we_beleg, dpl_gutschrift, ... or unknown), "
    "documentSubtypes [string], perspective (carrier|location: who wrote the "
    "document), locationType (pickup|delivery|handoff), "
    "location {name, warehouseId, address}, pickupLocation {name, address} or null, "
    "carrier {name, subCarrier, driverName, driverCode, vehicleNumber, licensePlate}, "
    "shipper {name} or null, date, "
    f"palletsGiven [{{type, qty, damaged}}], palletsReceived [same shape] "
    "(as stated by the document's author), references [string], "
    "exchanged (true|false|null), exchangeComment, nonExchangeReason "
    "(driver_refused|no_pallets_available|goods_refused|null), "
    "dplIssued (boolean), dplVoucherNumber, damageNotes, saldo, "
    "confidence 0.0-1.0, extractionNotes.\n"
    f"{_JSON_ONLY}"
)


def build_settlement_prompt(document_context: str) -> str:
    """Second pass: per pallet type, what moved at pickup and at delivery."""
    return (
        "Using the classified pages below, settle the pallet account of this delivery "
        "from the CARRIER's point of view. One object per pallet type, as a JSON array.\n\n"
        f"{_DOCUMENT_NOTE}\n\n"
        "Per object: palletType, "
        "pickup {date, time, location, address, warehouseId, übernommen, überlassen}, "
        "delivery {date, time, location, address, warehouseId, überlassen, übernommen} "
        "(übernommen = carrier received, überlassen = carrier gave), "
        "saldo (pickup überlassen - pickup übernommen), "
        "carrier {name, licensePlate, driverCode, driverName}, "
        "references {sendungsnummer, lieferscheinNr, ladenummer, dplVoucherNr, tourNr}, "
        "exchangeStatus {exchanged true|false|null, partial, comment, dplIssued, "
        "nonExchangeReason}, confidence 0.0-1.0, notes.\n\n"
        "--- BEGIN PAGE CONTEXT ---\n"
        f"{document_context}\n"
        "--- END PAGE CONTEXT ---\n"
        f"{_JSON_ONLY}"
    )
