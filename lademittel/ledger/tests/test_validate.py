import pytest

from lademittel.config import EngineConfig
from lademittel.ledger.settlement import (
    CarrierInfo,
    ExchangeStatus,
    SettlementRecord,
    SettlementReferences,
    SideTotals,
)
from lademittel.ledger.validate import validate_settlement


def _clean(**update) -> SettlementRecord:
    rec = SettlementRecord(
        pallet_type="EUR",
        pickup=SideTotals(date="03.02.2025", location="Lager Nord", received=5, given=5),
        delivery=SideTotals(location="Kunde AG", received=5, given=5),
        saldo=0,
        exchange=ExchangeStatus(exchanged=True),
        carrier=CarrierInfo(name="Spedition Beispiel"),
        confidence=0.9,
    )
    return rec.model_copy(update=update)


def _codes(result):
    return [i.code for i in result.issues]


def test_clean_record_has_no_issues():
    result = validate_settlement(_clean())
    assert result.issues == ()
    assert result.is_valid
    assert result.result == result.original


def test_saldo_mismatch_is_corrected():
    rec = _clean(pickup=SideTotals(location="Lager", received=2, given=10), saldo=5)
    result = validate_settlement(rec)
    (issue,) = [i for i in result.issues if i.code == "saldo_mismatch"]
    assert issue.severity == "error"
    assert issue.corrected
    assert "expected 8" in issue.message
    assert result.result.saldo == 8
    assert result.original.saldo == 5
    assert not result.is_valid


def test_saldo_correction_can_be_disabled():
    rec = _clean(pickup=SideTotals(location="Lager", received=2, given=10), saldo=5)
    result = validate_settlement(rec, EngineConfig(auto_correct_saldo=False))
    assert result.result.saldo == 5
    assert not result.corrected


def test_missing_saldo_is_filled_without_issue():
    result = validate_settlement(_clean(saldo=None))
    assert result.result.saldo == 0
    assert "saldo_mismatch" not in _codes(result)


def test_dpl_voucher_forces_not_exchanged():
    rec = _clean(
        exchange=ExchangeStatus(exchanged=True, dpl_issued=True),
        references=SettlementReferences(dpl_voucher_number="DPL-4711"),
    )
    result = validate_settlement(rec)
    assert "dpl_conflict" in _codes(result)
    assert "missing_voucher_number" not in _codes(result)
    assert result.result.exchange.exchanged is False


def test_dpl_without_number_warns():
    rec = _clean(exchange=ExchangeStatus(exchanged=False, dpl_issued=True), pickup=SideTotals(location="A"))
    result = validate_settlement(rec)
    assert "missing_voucher_number" in _codes(result)


def test_not_exchanged_but_received_is_corrected_to_exchanged():
    rec = _clean(exchange=ExchangeStatus(exchanged=False))
    result = validate_settlement(rec)
    assert "exchange_inconsistent" in _codes(result)
    assert result.result.exchange.exchanged is True


def test_not_exchanged_with_unequal_counts_becomes_partial():
    rec = _clean(
        pickup=SideTotals(date="03.02.2025", location="Lager", received=5, given=3),
        saldo=-2,
        exchange=ExchangeStatus(exchanged=False),
    )
    result = validate_settlement(rec)
    assert result.result.exchange.partial
    assert result.result.exchange.exchanged is False


@pytest.mark.parametrize(
    "config",
    [EngineConfig(), EngineConfig(auto_correct_saldo=False, auto_correct_exchange_status=False)],
)
def test_negative_quantities_are_never_corrected(config):
    rec = _clean(
        pickup=SideTotals(date="03.02.2025", location="Lager", received=-3, given=0),
        saldo=3,
        delivery=SideTotals(location="Kunde AG"),
    )
    result = validate_settlement(rec, config)
    (issue,) = [i for i in result.issues if i.code == "negative_quantity"]
    assert issue.severity == "error"
    assert not issue.corrected


def test_discarded_negative_flag_is_an_error():
    result = validate_settlement(_clean(discarded_negative=True))
    assert "negative_quantity" in _codes(result)


def test_soft_warnings():
    rec = SettlementRecord(pallet_type="unknown")
    result = validate_settlement(rec)
    codes = _codes(result)
    for code in (
        "missing_date",
        "missing_location",
        "missing_carrier",
        "no_movements",
        "unknown_pallet_type",
        "exchange_unclear",
    ):
        assert code in codes
    assert result.errors == []


def test_cross_stop_mismatch_is_a_warning():
    rec = _clean(delivery=SideTotals(location="Kunde AG", received=5, given=4))
    result = validate_settlement(rec)
    (issue,) = result.issues
    assert issue.code == "cross_stop_mismatch"
    assert issue.severity == "warning"
