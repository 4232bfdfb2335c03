"""Test d'intégration de la ligne de commande Lettrage."""

import argparse
import json
from pathlib import Path

import pandas as pd
import pytest

from lettrage.cli import _match_payload, main
from lettrage.io_excel import list_sheets, save_xlsx


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Classeur de référence + config JSON (chemins relatifs au dossier de la config)."""
    save_xlsx(
        tmp_path / "referentiel.xlsx",
        {
            "statements": pd.DataFrame(
                {
                    "id": [1],
                    "kind": ["bank"],
                    "account_number": ["1234-5678"],
                    "statement_date_from": ["2024-01-01"],
                    "statement_date_to": ["2024-01-31"],
                }
            ),
            "transactions": pd.DataFrame(
                {
                    "id": [10, 11],
                    "kind": ["bank", "bank"],
                    "bank_statement_id": [1, 1],
                    "transaction_date": ["2024-01-15", "2024-01-20"],
                    "debit_amount": [1000.0, 300.0],
                    "description": ["PAYMENT ACME SDN BHD INV-001", "GLOBEX INV-002"],
                    "reference_number": ["INV-001", "INV-002"],
                }
            ),
            "invoices": pd.DataFrame(
                {
                    "id": [1, 2],
                    "invoice_no": ["INV-001", "INV-002"],
                    "vendor_name": ["Acme Sdn Bhd", "Globex"],
                    "invoice_date": ["2024-01-15", "2024-01-19"],
                    "total": [1000.0, 300.0],
                }
            ),
        },
    )
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"database": "liens.db", "workbook": "referentiel.xlsx"}),
        encoding="utf-8",
    )
    return path


def test_match_writes_output(config_path: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    out = tmp_path / "resultats.xlsx"
    code = main(["-c", str(config_path), "match", "--statement", "1", "--invoices", "1,2", "--output", str(out)])
    assert code == 0
    assert out.exists()
    assert list_sheets(out) == ["Matches", "REPORT"]
    assert "=== Lettrage Report ===" in capsys.readouterr().out


def test_match_json(config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["-c", str(config_path), "--json", "match", "--statement", "1", "--invoices", "1,2"])
    assert code == 0
    data = json.loads(capsys.readouterr().out)
    assert data["statement_id"] == 1
    assert [t["matches"][0]["invoice_id"] for t in data["transactions"]] == [1, 2]


def test_accept_then_links_then_unlink(config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["-c", str(config_path), "--json", "accept", "--statement", "1", "--invoices", "1,2"]) == 0
    bulk = json.loads(capsys.readouterr().out)
    assert bulk["created_count"] == 2

    # Les factures liées ne sont plus proposées
    assert main(["-c", str(config_path), "--json", "match", "--statement", "1", "--invoices", "1,2"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert all(t["matches"] == [] for t in data["transactions"])

    assert main(["-c", str(config_path), "--json", "links", "--statement", "1"]) == 0
    links = json.loads(capsys.readouterr().out)
    assert [link["invoice"]["invoice_no"] for link in links] == ["INV-001", "INV-002"]

    assert main(["-c", str(config_path), "unlink", str(links[0]["id"])]) == 0
    assert main(["-c", str(config_path), "unlink", str(links[0]["id"])]) == 1
    assert main(["-c", str(config_path), "unlink", str(links[0]["id"]), "--missing-ok"]) == 0


def test_link_conflict_exit_code(config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["-c", str(config_path), "link", "--transaction", "10", "--invoice", "1"]) == 0
    assert main(["-c", str(config_path), "link", "--transaction", "10", "--invoice", "1"]) == 1
    assert "déjà existant" in capsys.readouterr().err


def test_match_all(config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["-c", str(config_path), "--json", "match-all", "--invoices", "1,2"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["matched_invoices"] == 2
    assert data["statements_searched"] == 1


def test_unknown_invoice_exit_code(config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["-c", str(config_path), "match", "--statement", "1", "--invoices", "1,99"]) == 1
    assert "Factures introuvables: 99" in capsys.readouterr().err


def test_missing_config_exit_code(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["-c", str(tmp_path / "absent.json"), "links", "--invoice", "1"]) == 1
    assert "introuvable" in capsys.readouterr().err


def test_match_payload_maps_tolerances() -> None:
    args = argparse.Namespace(
        invoices="1,2",
        statement=1,
        date_tolerance=None,
        amount_tolerance=1.5,
        currency_tolerance=3.0,
        min_score=None,
        include_linked=False,
    )
    assert _match_payload(args) == {
        "invoice_ids": [1, 2],
        "statement_id": 1,
        "amount_tolerance_percentage": 1.5,
        "currency_tolerance_percentage": 3.0,
    }


def test_invalid_currency_tolerance_exit_code(config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    argv = ["-c", str(config_path), "match", "--statement", "1", "--invoices", "1", "--currency-tolerance", "150"]
    assert main(argv) == 1
    assert "currency_tolerance_percentage" in capsys.readouterr().err
