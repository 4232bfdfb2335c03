"""Moteur de matching : scoring croisé, seuil, tri, paliers de confiance."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor

from lettrage.config import LettrageError, MatchOptions, ScoringPolicy, ValidationError
from lettrage.matching.blockers import filter_unlinked, select_relevant_statements
from lettrage.matching.schema import (
    CrossStatementResult,
    MatchCandidate,
    StatementMatchSummary,
    TransactionMatchResult,
)
from lettrage.matching.scorers import convert_amount, score_pair
from lettrage.models import Invoice, Statement, Transaction

logger = logging.getLogger(__name__)


class MatchCancelled(LettrageError):
    """Matching abandonné à la demande de l'appelant (aucune écriture effectuée)."""


class MatchEngine:
    """
    Moteur de matching transactions → factures.

    Sans état mutable partagé : les résultats ne dépendent que des entrées et des
    options, et sont identiques d'un appel à l'autre.
    """

    def __init__(
        self,
        policy: ScoringPolicy | None = None,
        *,
        max_workers: int | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> None:
        self.policy = policy or ScoringPolicy()
        self.max_workers = max_workers
        self.should_cancel = should_cancel

    def _check_cancel(self) -> None:
        if self.should_cancel is not None and self.should_cancel():
            raise MatchCancelled("Annulation demandée")

    def match_transaction(
        self,
        transaction: Transaction,
        invoices: list[Invoice],
        options: MatchOptions,
    ) -> TransactionMatchResult:
        """Classe les factures candidates d'une transaction."""
        self._check_cancel()
        candidates: list[MatchCandidate] = []
        for invoice in invoices:
            match_score, breakdown = score_pair(transaction, invoice, options, self.policy)
            if match_score < options.min_match_score:
                continue
            candidates.append(
                MatchCandidate(
                    transaction_id=transaction.id,
                    invoice=invoice,
                    match_score=match_score,
                    confidence=self.policy.confidence(match_score),
                    score_breakdown=breakdown,
                    converted_amount=convert_amount(transaction, invoice, options),
                )
            )

        # Score décroissant, puis id facture croissant pour un ordre stable
        candidates.sort(key=lambda c: (-c.match_score, c.invoice.id))
        return TransactionMatchResult(transaction=transaction, matches=candidates)

    def match_all(
        self,
        transactions: list[Transaction],
        invoices: list[Invoice],
        options: MatchOptions | None = None,
        linked_invoice_ids: Iterable[int] = (),
    ) -> list[TransactionMatchResult]:
        """
        Exécute le matching pour toutes les transactions.

        Args:
            transactions: Transactions du (des) relevé(s).
            invoices: Factures candidates.
            options: Tolérances et seuil (défauts si None).
            linked_invoice_ids: Factures déjà liées, retirées si exclude_linked.

        Returns:
            Un TransactionMatchResult par transaction, dans l'ordre d'entrée.

        Raises:
            ValidationError: Listes d'entrée absentes.
            MatchCancelled: Si should_cancel renvoie True en cours de route.
        """
        if transactions is None:
            raise ValidationError("transactions requis", field="transactions")
        if invoices is None:
            raise ValidationError("invoices requis", field="invoices")
        options = options or MatchOptions()

        pool = filter_unlinked(invoices, linked_invoice_ids, exclude_linked=options.exclude_linked)
        if len(pool) != len(invoices):
            logger.info("%d facture(s) déjà liée(s) exclue(s) du matching", len(invoices) - len(pool))

        if self.max_workers and self.max_workers > 1 and len(transactions) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(lambda t: self.match_transaction(t, pool, options), transactions))
        else:
            results = [self.match_transaction(t, pool, options) for t in transactions]

        logger.debug(
            "Matching: %d transaction(s) x %d facture(s), %d avec au moins un candidat",
            len(transactions),
            len(pool),
            sum(1 for r in results if r.matches),
        )
        return results

    def match_across_statements(
        self,
        statements: list[tuple[Statement, list[Transaction]]],
        invoices: list[Invoice],
        options: MatchOptions | None = None,
        linked_invoice_ids: Iterable[int] = (),
    ) -> CrossStatementResult:
        """
        Matching multi-relevés : ne score que les relevés dont la période est
        compatible avec les dates de facture, puis agrège par relevé.

        Returns:
            CrossStatementResult (factures trouvées / non trouvées, relevés parcourus).
        """
        options = options or MatchOptions()
        linked = set(linked_invoice_ids)
        relevant = select_relevant_statements(statements, invoices, options.date_tolerance_days)
        logger.info("Matching multi-relevés: %d relevé(s) pertinent(s) sur %d", len(relevant), len(statements))

        matched_ids: set[int] = set()
        summaries: list[StatementMatchSummary] = []
        for statement, transactions in relevant:
            results = self.match_all(transactions, invoices, options, linked)
            summary = StatementMatchSummary(statement=statement, results=results)
            for r in results:
                matched_ids.update(c.invoice.id for c in r.matches)
            if summary.matched_transactions:
                summaries.append(summary)

        return CrossStatementResult(
            total_invoices=len(invoices),
            matched_invoice_ids=matched_ids,
            statements_searched=len(relevant),
            statement_matches=summaries,
        )
