"""I/O tableurs : chargement du référentiel (xlsx, csv) et export des résultats."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from lettrage.catalog import Catalog
from lettrage.config import LettrageError, ValidationError
from lettrage.models import Invoice, Statement, Transaction, check_kind
from lettrage.normalize import is_missing, optional_str

logger = logging.getLogger(__name__)

SUPPORTED_INPUT_EXTENSIONS = (".xlsx", ".csv")

# Une feuille (ou un fichier CSV) par entité
SHEET_STATEMENTS = "statements"
SHEET_TRANSACTIONS = "transactions"
SHEET_INVOICES = "invoices"
REQUIRED_SHEETS = (SHEET_STATEMENTS, SHEET_TRANSACTIONS, SHEET_INVOICES)

_STATEMENT_ID_KEYS = {"bank": "bank_statement_id", "supplier": "supplier_statement_id"}


class SpreadsheetError(LettrageError):
    """Erreur de chargement d'un fichier (fichier absent, feuille inexistante, ligne invalide)."""


def _is_csv(path: Path) -> bool:
    return path.suffix.lower() == ".csv"


def _detect_csv_delimiter(path: Path, encoding: str) -> str:
    with path.open("r", encoding=encoding, errors="replace") as f:
        sample_lines = [line for line in f if line.strip()][:5]
    if not sample_lines:
        return ","
    try:
        return csv.Sniffer().sniff("".join(sample_lines), delimiters=[",", ";", "\t", "|"]).delimiter
    except csv.Error:
        first = sample_lines[0]
        counts = {d: first.count(d) for d in [",", ";", "\t", "|"]}
        best = max(counts, key=counts.get)  # type: ignore[arg-type]
        return best if counts[best] > 0 else ","


def list_sheets(filepath: str | Path) -> list[str]:
    """
    Liste les noms des feuilles d'un classeur.

    Raises:
        SpreadsheetError: Si le fichier est absent ou illisible.
    """
    path = Path(filepath)
    if not path.exists():
        raise SpreadsheetError(f"Fichier introuvable: {path}")
    if _is_csv(path):
        return [path.stem]
    try:
        xl = pd.ExcelFile(path, engine="openpyxl")
    except Exception as e:
        raise SpreadsheetError(f"Impossible de lire le fichier {path}: {e}") from e
    return [str(s) for s in xl.sheet_names]


def load_sheet(filepath: str | Path, sheet_name: str | None = None) -> pd.DataFrame:
    """
    Charge une feuille (ou un CSV) en texte brut ; la conversion des dates et
    montants est faite par les constructeurs du modèle.

    Raises:
        SpreadsheetError: Fichier absent ou illisible, feuille inexistante.
    """
    path = Path(filepath)
    if not path.exists():
        raise SpreadsheetError(f"Fichier introuvable: {path}")

    if _is_csv(path):
        for encoding in ("utf-8", "latin-1"):
            try:
                sep = _detect_csv_delimiter(path, encoding)
                return pd.read_csv(path, dtype=str, encoding=encoding, sep=sep)
            except UnicodeDecodeError:
                continue
            except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
                raise SpreadsheetError(f"Erreur CSV {path}: {e}. Vérifiez l'en-tête et le séparateur.") from e
        raise SpreadsheetError(f"Encodage non reconnu: {path}")

    try:
        xl = pd.ExcelFile(path, engine="openpyxl")
    except Exception as e:
        raise SpreadsheetError(f"Impossible de lire le fichier {path}: {e}") from e

    if sheet_name is None:
        sheet_name = str(xl.sheet_names[0])
    elif sheet_name not in xl.sheet_names:
        sheets = [str(s) for s in xl.sheet_names]
        raise SpreadsheetError(f"Feuille '{sheet_name}' introuvable dans {path}. Feuilles: {', '.join(sheets)}")

    try:
        return pd.read_excel(xl, sheet_name=sheet_name, dtype=str)
    except Exception as e:
        raise SpreadsheetError(f"Erreur feuille '{sheet_name}' dans {path}: {e}") from e


def _records(df: pd.DataFrame) -> list[dict[str, Any]]:
    """Lignes d'un DataFrame en dicts, cellules vides → None, en-têtes nettoyés."""
    df = df.rename(columns=lambda c: str(c).strip())
    return [
        {k: (None if is_missing(v) else v) for k, v in row.items()}
        for row in df.to_dict(orient="records")
    ]


def _row_kind(row: dict[str, Any]) -> str:
    kind = (optional_str(row.get("kind")) or "bank").lower()
    return check_kind(kind)


def _transaction_from_row(row: dict[str, Any]) -> Transaction:
    kind = _row_kind(row)
    key = _STATEMENT_ID_KEYS[kind]
    if row.get(key) is None and row.get("statement_id") is not None:
        row = {**row, key: row["statement_id"]}
    if kind == "bank":
        return Transaction.from_bank_dict(row)
    return Transaction.from_supplier_dict(row)


def catalog_from_frames(
    statements: pd.DataFrame,
    transactions: pd.DataFrame,
    invoices: pd.DataFrame,
) -> Catalog:
    """
    Construit un Catalog depuis trois DataFrames.

    La colonne `kind` (bank / supplier, défaut bank) distingue relevés bancaires
    et relevés fournisseurs ; `statement_id` est accepté à la place de
    bank_statement_id / supplier_statement_id.

    Raises:
        SpreadsheetError: Ligne invalide (numéro de ligne tableur dans le message).
    """
    catalog = Catalog()
    sources = (
        (SHEET_STATEMENTS, statements, lambda r: catalog.add_statement(Statement.from_dict(r, _row_kind(r)))),
        (SHEET_TRANSACTIONS, transactions, lambda r: catalog.add_transaction(_transaction_from_row(r))),
        (SHEET_INVOICES, invoices, lambda r: catalog.add_invoice(Invoice.from_dict(r))),
    )
    for sheet, df, add in sources:
        for i, row in enumerate(_records(df)):
            try:
                add(row)
            except ValidationError as e:
                # +2 : ligne d'en-tête et numérotation 1-based du tableur
                raise SpreadsheetError(f"Feuille '{sheet}' ligne {i + 2}: {e}") from e

    for tx in catalog.orphan_transactions():
        logger.warning("Transaction %s #%s: relevé #%s absent de la feuille statements", tx.kind, tx.id, tx.statement_id)
    return catalog


def load_catalog(source: str | Path) -> Catalog:
    """
    Charge le référentiel depuis un classeur xlsx (feuilles statements,
    transactions, invoices) ou un dossier de CSV (statements.csv, ...).

    Raises:
        SpreadsheetError: Fichier / feuille absent ou ligne invalide.
    """
    path = Path(source)
    if not path.exists():
        raise SpreadsheetError(f"Fichier introuvable: {path}")

    if path.is_dir():
        frames = []
        for name in REQUIRED_SHEETS:
            csv_path = path / f"{name}.csv"
            if not csv_path.exists():
                raise SpreadsheetError(f"Fichier introuvable: {csv_path}")
            frames.append(load_sheet(csv_path))
    else:
        if path.suffix.lower() not in SUPPORTED_INPUT_EXTENSIONS or _is_csv(path):
            raise SpreadsheetError(f"Format non supporté: {path.suffix} (classeur .xlsx ou dossier de CSV attendu)")
        frames = [load_sheet(path, name) for name in REQUIRED_SHEETS]

    catalog = catalog_from_frames(*frames)
    logger.info(
        "Référentiel chargé depuis %s: %d facture(s)", path, len(catalog.all_invoices())
    )
    return catalog


def save_xlsx(
    filepath: str | Path,
    dataframes: dict[str, pd.DataFrame],
    *,
    index: bool = False,
) -> None:
    """Sauvegarde plusieurs DataFrames dans un fichier xlsx (une feuille par DataFrame)."""
    with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
        for sheet_name, df in dataframes.items():
            # Excel limite les noms de feuille à 31 caractères
            df.to_excel(writer, sheet_name=str(sheet_name)[:31], index=index)
