"""Tests du module report."""

import pytest

from conftest import make_invoice, make_transaction
from lettrage.config import MatchOptions, ScoringPolicy
from lettrage.matching import MatchEngine, TransactionMatchResult
from lettrage.report import MATCHES_COLUMNS, build_matches_df, build_report_df, print_report_console


@pytest.fixture
def sample_results() -> list[TransactionMatchResult]:
    txs = [
        make_transaction(1),
        make_transaction(2, amount=990.0, description="TRANSFER", reference=None),
        make_transaction(3, amount=42.0, description="ATM", reference=None),
    ]
    invoices = [make_invoice(1), make_invoice(2, "INV-002", total=1000.0)]
    return MatchEngine().match_all(txs, invoices, MatchOptions())


def test_build_report_df(sample_results: list[TransactionMatchResult]) -> None:
    df = build_report_df(sample_results, MatchOptions(), ScoringPolicy())
    assert list(df.columns) == ["Key", "Value"]
    values = dict(zip(df["Key"], df["Value"]))
    assert values["nb_transactions"] == 3
    assert values["nb_matched"] == 1
    assert values["nb_unmatched"] == 2
    assert values["nb_best_high"] == 1
    assert values["date_tolerance_days"] == 7
    assert values["amount_weight"] == 0.5
    assert "version" in values


def test_build_matches_df(sample_results: list[TransactionMatchResult]) -> None:
    df = build_matches_df(sample_results)
    assert list(df.columns) == MATCHES_COLUMNS
    # Transaction 1 : deux candidats ; transactions 2 et 3 : une ligne sans candidat chacune
    assert df["transaction_id"].tolist() == [1, 1, 2, 3]
    assert df["rank"].tolist()[:2] == [1, 2]
    assert df["invoice_id"].tolist()[:2] == [1, 2]
    assert df.loc[0, "confidence"] == "high"


def test_print_report_console(capsys: pytest.CaptureFixture[str], sample_results: list[TransactionMatchResult]) -> None:
    print_report_console(sample_results)
    out = capsys.readouterr().out
    assert "=== Lettrage Report ===" in out
    assert "Transactions:     3" in out
