from __future__ import annotations

import json
from pathlib import Path
from typing import List

import fitz

from lademittel.errors import OracleFailure
from lademittel.extract.batch import process_directory, process_group, run_pages
from lademittel.extract.oracle import ExtractionOracle
from lademittel.extract.pages import DocumentGroup, PageImage
from lademittel.llm.mock_vision_client import MockVisionClient

LIEFERSCHEIN = json.dumps({"documentType": "lieferschein", "confidence": 0.9})
LIEFERSCHEIN_DATA = json.dumps(
    {
        "stammnummer": "F1250031939",
        "recipient": {"name": "Kunde AG"},
        "palletInfo": [{"type": "EUR", "quantity": 12}],
        "confidence": 0.9,
    }
)


def _oracle(client: MockVisionClient) -> ExtractionOracle:
    return ExtractionOracle(client=client, max_attempts=1, sleep=lambda s: None)


def _group(n: int) -> DocumentGroup:
    pages = [
        PageImage(page_number=i, image_base64="AAAA", width=1, height=1, source_file="g.pdf")
        for i in range(1, n + 1)
    ]
    return DocumentGroup(prefix="g", files=[Path("g.pdf")], pages=pages)


def test_failed_page_becomes_warning():
    client = MockVisionClient(queue=[LIEFERSCHEIN, LIEFERSCHEIN_DATA, OracleFailure("timeout")])
    extractions, failed, warnings = run_pages(_oracle(client), _group(2).pages, concurrency=1)

    assert [e.page_number for e in extractions] == [1]
    assert failed == [2]
    assert len(warnings) == 1
    assert warnings[0].startswith("Failed to process page 2:")


def test_pages_mode_report():
    client = MockVisionClient(queue=[LIEFERSCHEIN, LIEFERSCHEIN_DATA, OracleFailure("timeout")])
    report = process_group(_group(2), _oracle(client), mode="pages", concurrency=1)

    ledger = report.ledger
    assert ledger.pages_failed == (2,)
    assert ledger.pages_processed == 1
    assert ledger.references.order_number == "F1250031939"
    # no pickup evidence: the delivery note alone gives a minimal delivery stop
    (stop,) = ledger.stops
    assert (stop.role, stop.location_name, stop.synthetic) == ("delivery", "Kunde AG", True)
    assert report.review.needs_review


def test_group_mode_failure_degrades_to_flagged_ledger():
    client = MockVisionClient(queue=[OracleFailure("service unavailable")])
    report = process_group(_group(3), _oracle(client), mode="group")

    assert report.ledger.stops == ()
    assert report.ledger.pages_failed == (1, 2, 3)
    assert report.ledger.warnings[0].startswith("Extraction failed:")
    assert report.review.needs_review


def test_settlement_mode():
    settlement = [
        {
            "palletType": "EUR",
            "pickup": {"location": "Lager", "received": 5, "given": 5},
            "delivery": {"location": "Kunde", "received": 5, "given": 5},
            "saldo": 3,
            "exchangeStatus": {"exchanged": True},
            "confidence": 0.9,
        }
    ]
    client = MockVisionClient(
        queue=['{"documentType": "palettennachweis", "confidence": 0.9}', json.dumps(settlement)]
    )
    report = process_group(_group(1), _oracle(client), mode="settlement")

    (validation,) = report.validations
    assert validation.original.saldo == 3
    assert validation.result.saldo == 0
    assert "saldo_mismatch" in [i.code for i in validation.errors]
    assert [s.role for s in report.ledger.stops] == ["pickup", "delivery"]


def _pdf(path: Path) -> None:
    doc = fitz.open()
    doc.new_page(width=100, height=100)
    doc.save(str(path))
    doc.close()


def test_one_broken_file_does_not_stop_the_batch(tmp_path):
    src = tmp_path / "in"
    src.mkdir()
    _pdf(src / "good.pdf")
    (src / "broken.pdf").write_bytes(b"this is not a pdf")
    out = tmp_path / "out"

    client = MockVisionClient(responses={"Classify this German": '{"documentType": "unknown"}'})
    summary = process_directory(src, _oracle(client), out, show_progress=False)

    assert (summary.total_groups, summary.success_count, summary.failure_count) == (2, 1, 1)
    assert summary.failures[0].source == "broken"
    assert (out / "good.json").exists()
    written = json.loads((out / "batch_summary.json").read_text(encoding="utf-8"))
    assert written["failure_count"] == 1
    names: List[str] = [r["source"] for r in written["reports"]]
    assert names == ["good"]
