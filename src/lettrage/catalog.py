"""Référentiel en mémoire des relevés, transactions et factures."""

from __future__ import annotations

from collections.abc import Iterable

from lettrage.config import NotFoundError, ValidationError
from lettrage.models import Invoice, Statement, Transaction, check_kind


class Catalog:
    """
    Relevés, transactions et factures déjà ingérés (lecture seule pour le matching).

    Les transactions sont indexées par (type de relevé, id) : un id de transaction
    bancaire et un id de ligne fournisseur vivent dans des espaces distincts.
    """

    def __init__(
        self,
        statements: Iterable[Statement] = (),
        transactions: Iterable[Transaction] = (),
        invoices: Iterable[Invoice] = (),
    ) -> None:
        self._statements: dict[tuple[str, int], Statement] = {}
        self._transactions: dict[tuple[str, int], Transaction] = {}
        self._by_statement: dict[tuple[str, int], list[Transaction]] = {}
        self._invoices: dict[int, Invoice] = {}
        for s in statements:
            self.add_statement(s)
        for t in transactions:
            self.add_transaction(t)
        for inv in invoices:
            self.add_invoice(inv)

    def add_statement(self, statement: Statement) -> None:
        if (statement.kind, statement.id) in self._statements:
            raise ValidationError(f"Relevé {statement.kind} #{statement.id} en double", field="id")
        self._statements[(statement.kind, statement.id)] = statement
        self._by_statement.setdefault((statement.kind, statement.id), [])

    def add_transaction(self, transaction: Transaction) -> None:
        key = (transaction.kind, transaction.id)
        if key in self._transactions:
            raise ValidationError(f"Transaction {transaction.kind} #{transaction.id} en double", field="id")
        self._transactions[key] = transaction
        self._by_statement.setdefault((transaction.kind, transaction.statement_id), []).append(transaction)

    def add_invoice(self, invoice: Invoice) -> None:
        if invoice.id in self._invoices:
            raise ValidationError(f"Facture #{invoice.id} en double", field="id")
        self._invoices[invoice.id] = invoice

    def statement(self, kind: str, statement_id: int) -> Statement:
        check_kind(kind)
        try:
            return self._statements[(kind, statement_id)]
        except KeyError:
            raise NotFoundError(f"Relevé {kind} #{statement_id} introuvable") from None

    def statements(self, kind: str) -> list[Statement]:
        """Relevés d'un type, triés par id."""
        check_kind(kind)
        return sorted((s for (k, _), s in self._statements.items() if k == kind), key=lambda s: s.id)

    def transaction(self, kind: str, transaction_id: int) -> Transaction:
        check_kind(kind)
        try:
            return self._transactions[(kind, transaction_id)]
        except KeyError:
            raise NotFoundError(f"Transaction {kind} #{transaction_id} introuvable") from None

    def transactions_for(self, kind: str, statement_id: int) -> list[Transaction]:
        """Transactions d'un relevé, dans l'ordre d'ingestion."""
        self.statement(kind, statement_id)
        return list(self._by_statement.get((kind, statement_id), []))

    def invoice(self, invoice_id: int) -> Invoice:
        try:
            return self._invoices[invoice_id]
        except KeyError:
            raise NotFoundError(f"Facture #{invoice_id} introuvable") from None

    def invoices(self, invoice_ids: Iterable[int]) -> list[Invoice]:
        """
        Résout une liste d'ids de factures (ordre conservé, doublons retirés).

        Raises:
            NotFoundError: Si un id ne correspond à aucune facture.
        """
        seen: set[int] = set()
        result: list[Invoice] = []
        missing: list[int] = []
        for inv_id in invoice_ids:
            if inv_id in seen:
                continue
            seen.add(inv_id)
            inv = self._invoices.get(inv_id)
            if inv is None:
                missing.append(inv_id)
            else:
                result.append(inv)
        if missing:
            raise NotFoundError(f"Factures introuvables: {', '.join(str(i) for i in missing)}")
        return result

    def all_invoices(self) -> list[Invoice]:
        return sorted(self._invoices.values(), key=lambda inv: inv.id)

    def orphan_transactions(self) -> list[Transaction]:
        """Transactions dont le relevé n'a pas été ingéré."""
        return [t for (kind, _), t in self._transactions.items() if (kind, t.statement_id) not in self._statements]
