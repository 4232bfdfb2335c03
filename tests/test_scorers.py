"""Tests des scorers de similarité."""

from datetime import date

import pytest

from conftest import make_invoice, make_transaction
from lettrage.config import MatchOptions, ScoringPolicy
from lettrage.matching.schema import MatchScoreBreakdown
from lettrage.matching.scorers import (
    aggregate_score,
    contains_invoice_no,
    reference_bonus,
    score,
    score_amount,
    score_date,
    score_pair,
    score_text,
)


def test_perfect_match_scores_100() -> None:
    match_score, breakdown = score_pair(make_transaction(1), make_invoice(1))
    assert breakdown == MatchScoreBreakdown(100.0, 100.0, 100.0, 10.0)
    assert match_score == 100.0
    assert ScoringPolicy().confidence(match_score) == "high"


def test_amount_miss_caps_score_below_medium() -> None:
    """Montant hors tolérance, tout le reste parfait : 20 + 20 + 10."""
    match_score, breakdown = score_pair(make_transaction(1, amount=500.0), make_invoice(1))
    assert breakdown.amount_score == 0.0
    assert match_score == pytest.approx(50.0)
    assert match_score < MatchOptions().min_match_score


def test_score_amount_linear_within_tolerance() -> None:
    # 1 % d'écart pour une tolérance de 2 %
    assert score_amount(make_transaction(1, amount=990.0), make_invoice(1)) == pytest.approx(50.0)
    assert score_amount(make_transaction(1, amount=1020.0), make_invoice(1)) == 0.0


def test_score_amount_zero_tolerance_exact_only() -> None:
    options = MatchOptions(amount_tolerance_percentage=0)
    assert score_amount(make_transaction(1), make_invoice(1), options) == 100.0
    assert score_amount(make_transaction(1, amount=1000.01), make_invoice(1), options) == 0.0


def test_score_amount_missing_data_is_zero() -> None:
    assert score_amount(make_transaction(1, amount=None), make_invoice(1)) == 0.0
    assert score_amount(make_transaction(1), make_invoice(1, total=None)) == 0.0
    assert score_amount(make_transaction(1), make_invoice(1, total=0.0)) == 0.0


def test_score_amount_converts_currency() -> None:
    tx = make_transaction(1, amount=250.0, currency="USD")
    inv = make_invoice(1, total=1000.0, currency="MYR")
    assert score_amount(tx, inv, MatchOptions(exchange_rates={"USD/MYR": 4.0})) == 100.0
    # Sans taux connu : 250 contre 1000
    assert score_amount(tx, inv, MatchOptions()) == 0.0


def test_score_amount_uses_currency_tolerance() -> None:
    tx = make_transaction(1, amount=246.0, currency="USD")
    inv = make_invoice(1, total=1000.0, currency="MYR")
    options = MatchOptions(exchange_rates={"USD/MYR": 4.0}, currency_tolerance_percentage=5.0)
    # 984 contre 1000 : 1,6 % d'écart, hors tolérance montant (2 %) mais pas devise (5 %)
    assert score_amount(tx, inv, options) == pytest.approx(100.0 * (1 - 1.6 / 5.0))


def test_score_amount_missing_invoice_currency_means_same() -> None:
    tx = make_transaction(1, currency="USD")
    inv = make_invoice(1, currency=None)
    assert score_amount(tx, inv, MatchOptions(exchange_rates={"USD/MYR": 4.0})) == 100.0


def test_score_date_linear_decay() -> None:
    tx = make_transaction(1, tx_date=date(2024, 1, 18))
    assert score_date(tx, make_invoice(1)) == pytest.approx(100.0 * (1 - 3 / 7))
    assert score_date(make_transaction(1, tx_date=date(2024, 1, 22)), make_invoice(1)) == 0.0


def test_score_date_before_invoice_is_symmetric() -> None:
    early = make_transaction(1, tx_date=date(2024, 1, 12))
    late = make_transaction(1, tx_date=date(2024, 1, 18))
    assert score_date(early, make_invoice(1)) == score_date(late, make_invoice(1))


def test_score_date_missing_is_zero() -> None:
    assert score_date(make_transaction(1, tx_date=None), make_invoice(1)) == 0.0
    assert score_date(make_transaction(1), make_invoice(1, invoice_date=None)) == 0.0


def test_score_text_invoice_number_contained() -> None:
    assert score_text("IBG TRF REF inv 001 ACME", make_invoice(1)) == 100.0


def test_score_text_invoice_number_glued() -> None:
    assert score_text("TRF INV2024001", make_invoice(1, "INV-2024-001")) == 100.0


@pytest.mark.parametrize(
    ("description", "invoice_no"),
    [
        ("ATM WITHDRAWAL 1500.00", "500"),
        ("PYMT INV-2024-0015 ACME", "INV-2024-001"),
        ("PAYMENT REF 12 345 GLOBEX", "2345"),
    ],
)
def test_invoice_number_must_be_whole_words(description: str, invoice_no: str) -> None:
    assert not contains_invoice_no(description, invoice_no)
    assert score_text(description, make_invoice(1, invoice_no, "Initech")) < 100.0


def test_contains_invoice_no_too_short() -> None:
    assert not contains_invoice_no("PAYMENT 12 ACME", "12")
    assert contains_invoice_no("PAYMENT 123 ACME", "123")


def test_score_text_vendor_only() -> None:
    s = score_text("PAYMENT TO ACME SDN BHD", make_invoice(1))
    assert 50 < s < 100


def test_score_text_unrelated() -> None:
    assert score_text("ATM WITHDRAWAL", make_invoice(1)) < 50
    assert score_text("", make_invoice(1)) == 0.0


def test_reference_bonus() -> None:
    assert reference_bonus("inv 001", "INV-001") == 10.0
    assert reference_bonus("INV-002", "INV-001") == 0.0
    assert reference_bonus(None, "INV-001") == 0.0
    assert reference_bonus("X", "X", ScoringPolicy(reference_bonus=5.0)) == 5.0


def test_score_is_deterministic() -> None:
    tx = make_transaction(1, amount=995.0, tx_date=date(2024, 1, 17), description="ACME PMT")
    inv = make_invoice(1)
    assert score(tx, inv) == score(tx, inv)


def test_aggregate_score_clamped() -> None:
    policy = ScoringPolicy(amount_weight=1.0, date_weight=1.0, text_weight=1.0, reference_bonus=10.0)
    assert aggregate_score(MatchScoreBreakdown(100.0, 100.0, 100.0, 10.0), policy) == 100.0
    assert aggregate_score(MatchScoreBreakdown()) == 0.0
