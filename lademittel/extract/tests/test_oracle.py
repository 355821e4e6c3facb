from __future__ import annotations

import json
from typing import List

import pytest

from lademittel.errors import OracleFailure
from lademittel.extract.oracle import ExtractionOracle
from lademittel.llm.mock_vision_client import MockVisionClient

CLASSIFY = "Classify this German"


def _oracle(client: MockVisionClient, sleeps: List[float], attempts: int = 3) -> ExtractionOracle:
    return ExtractionOracle(client=client, max_attempts=attempts, backoff_s=1.0, sleep=sleeps.append)


def test_retries_with_exponential_backoff():
    client = MockVisionClient(
        queue=[
            OracleFailure("timeout"),
            "not json at all",
            json.dumps({"documentType": "palettennachweis", "confidence": 0.9}),
        ]
    )
    sleeps: List[float] = []
    pc = _oracle(client, sleeps).classify("img", page_number=1)
    assert pc.document_type == "palettennachweis"
    assert sleeps == [1.0, 2.0]
    assert len(client.calls) == 3


def test_exhausted_retries_raise_with_attempt_count():
    client = MockVisionClient(queue=[OracleFailure("down")] * 3)
    sleeps: List[float] = []
    with pytest.raises(OracleFailure) as exc:
        _oracle(client, sleeps).classify("img", page_number=7)
    assert exc.value.attempts == 3
    assert "classify page 7" in str(exc.value)
    assert sleeps == [1.0, 2.0]


def test_extract_page_runs_type_specific_prompt():
    client = MockVisionClient(
        responses={
            CLASSIFY: json.dumps({"documentType": "palettennachweis", "confidence": 0.8}),
            "Extract the pallet-exchange receipt": json.dumps(
                {"fromCompany": "Lager Nord", "palletsGiven": [{"type": "EUR", "quantity": 15}]}
            ),
        }
    )
    ext = _oracle(client, []).extract_page("img", page_number=2)
    assert ext.document_type == "palettennachweis"
    assert ext.page_number == 2
    assert ext.confidence == 0.8
    (rec,) = ext.records
    assert rec.location_name == "Lager Nord"
    assert [n for _, n in client.calls] == [1, 1]


def test_unknown_page_skips_extraction():
    client = MockVisionClient(responses={CLASSIFY: '{"documentType": "Rechnung", "confidence": 0.4}'})
    ext = _oracle(client, []).extract_page("img", page_number=5)
    assert ext.document_type == "unknown"
    assert ext.warnings == ("Page 5: unknown document type",)
    assert len(client.calls) == 1


def test_extraction_must_be_an_object():
    client = MockVisionClient(
        queue=['{"documentType": "ladeliste"}', "[1, 2, 3]"],
    )
    with pytest.raises(OracleFailure):
        _oracle(client, [], attempts=1).extract_page("img", page_number=1)


def test_extract_group_sends_all_pages():
    answer = [
        {"documentType": "ladeliste", "locationType": "pickup", "location": {"name": "Lager"}},
        {"documentType": "palettenschein", "location": {"name": "Kunde"}},
    ]
    client = MockVisionClient(queue=[json.dumps(answer)])
    extractions = _oracle(client, []).extract_group(["p1", "p2", "p3"])
    assert [e.document_type for e in extractions] == ["ladeliste", "palettennachweis"]
    assert client.calls[0][1] == 3


def test_extract_settlements_uses_relevant_pages_only():
    settlement = [{"palletType": "EUR", "pickup": {"received": 5, "given": 5}, "confidence": 0.9}]
    client = MockVisionClient(
        queue=[
            json.dumps(
                {
                    "documentType": "palettennachweis",
                    "confidence": 0.9,
                    "identifiers": {"orderNumbers": ["4711"]},
                }
            ),
            '{"documentType": "unknown"}',
            json.dumps(settlement),
        ]
    )
    classifications, records = _oracle(client, []).extract_settlements(["p1", "p2"])
    assert [c.document_type for c in classifications] == ["palettennachweis", "unknown"]
    (rec,) = records
    assert rec.pallet_type == "EUR"
    prompt, n_images = client.calls[-1]
    assert n_images == 1
    assert "Page 1: palettennachweis" in prompt
    assert "4711" in prompt


def test_extract_settlements_without_relevant_pages_fails():
    client = MockVisionClient(responses={CLASSIFY: '{"documentType": "unknown"}'})
    with pytest.raises(OracleFailure):
        _oracle(client, []).extract_settlements(["p1"])
