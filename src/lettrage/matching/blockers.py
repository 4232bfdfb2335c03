"""Réduction de l'espace de recherche : factures déjà lettrées, relevés hors période."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta

from lettrage.models import Invoice, Statement, Transaction


def filter_unlinked(
    invoices: list[Invoice],
    already_linked_invoice_ids: Iterable[int],
    *,
    exclude_linked: bool = True,
) -> list[Invoice]:
    """
    Retire les factures déjà liées (différence ensembliste par id).

    Sans exclude_linked, la liste est renvoyée telle quelle. L'ordre est conservé.
    """
    if not exclude_linked:
        return list(invoices)
    linked = set(already_linked_invoice_ids)
    if not linked:
        return list(invoices)
    return [inv for inv in invoices if inv.id not in linked]


def statement_date_range(
    statement: Statement,
    transactions: list[Transaction],
) -> tuple[date, date] | None:
    """
    Période couverte par un relevé.

    Utilise statement_date_from/to ; une borne absente est déduite des dates des
    transactions. None si aucune date n'est connue.
    """
    tx_dates = [t.date for t in transactions if t.date is not None]
    start = statement.date_from or (min(tx_dates) if tx_dates else None)
    end = statement.date_to or (max(tx_dates) if tx_dates else None)
    if start is None and end is None:
        return None
    if start is None:
        start = end
    if end is None:
        end = start
    if start > end:  # type: ignore[operator]
        start, end = end, start
    return start, end  # type: ignore[return-value]


def is_statement_relevant(
    date_range: tuple[date, date] | None,
    invoice_dates: list[date],
    tolerance_days: int,
) -> bool:
    """
    Un relevé est pertinent si une date de facture tombe dans sa période élargie
    de la tolérance. Un relevé sans date ne peut pas être écarté.
    """
    if date_range is None:
        return True
    if not invoice_dates:
        return True
    margin = timedelta(days=tolerance_days)
    start = date_range[0] - margin
    end = date_range[1] + margin
    return any(start <= d <= end for d in invoice_dates)


def select_relevant_statements(
    statements: list[tuple[Statement, list[Transaction]]],
    invoices: list[Invoice],
    tolerance_days: int,
) -> list[tuple[Statement, list[Transaction]]]:
    """
    Garde les relevés dont la période peut contenir le paiement d'une des factures.

    Args:
        statements: Couples (relevé, transactions du relevé).
        invoices: Factures à rapprocher.
        tolerance_days: date_tolerance_days de la requête.

    Returns:
        Sous-liste dans le même ordre.
    """
    invoice_dates = [inv.invoice_date for inv in invoices if inv.invoice_date is not None]
    return [
        (stmt, txs)
        for stmt, txs in statements
        if is_statement_relevant(statement_date_range(stmt, txs), invoice_dates, tolerance_days)
    ]
