"""Schémas et types pour le matching."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from lettrage.models import Invoice, Statement, Transaction


def _iso(d: Any) -> str | None:
    return d.isoformat() if d else None


def _money(val: float | None) -> str | None:
    return f"{val:.2f}" if val is not None else None


@dataclass(frozen=True)
class MatchScoreBreakdown:
    """Sous-scores d'un couple (transaction, facture)."""

    amount_score: float = 0.0
    date_score: float = 0.0
    text_score: float = 0.0
    reference_bonus: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "amount_score": round(self.amount_score, 2),
            "date_score": round(self.date_score, 2),
            "text_score": round(self.text_score, 2),
            "reference_bonus": round(self.reference_bonus, 2),
        }


@dataclass(frozen=True)
class MatchCandidate:
    """Une facture candidate pour une transaction (éphémère, jamais persistée)."""

    transaction_id: int
    invoice: Invoice
    match_score: float
    confidence: str
    score_breakdown: MatchScoreBreakdown
    converted_amount: float | None = None  # montant de la transaction en devise facture

    @property
    def invoice_id(self) -> int:
        return self.invoice.id

    def __repr__(self) -> str:
        return f"MatchCandidate(invoice={self.invoice.id}, score={self.match_score:.1f}, {self.confidence})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "invoice_id": self.invoice.id,
            "invoice_no": self.invoice.invoice_no,
            "vendor_name": self.invoice.vendor_name,
            "invoice_date": _iso(self.invoice.invoice_date),
            "invoice_total": self.invoice.total,
            "match_score": round(self.match_score, 2),
            "confidence": self.confidence,
            "score_breakdown": self.score_breakdown.to_dict(),
        }

    def to_detail_dict(self) -> dict[str, Any]:
        """Forme MatchedInvoiceDetail du matching multi-relevés (montants en chaînes)."""
        return {
            "invoice_id": self.invoice.id,
            "invoice_no": self.invoice.invoice_no,
            "invoice_date": _iso(self.invoice.invoice_date),
            "invoice_total": _money(self.invoice.total),
            "invoice_currency": self.invoice.currency,
            "converted_total": _money(self.converted_amount),
            "vendor_name": self.invoice.vendor_name,
            "match_score": f"{self.match_score:.2f}",
            "score_breakdown": {k: f"{v:.2f}" for k, v in self.score_breakdown.to_dict().items()},
            "match_confidence": self.confidence,
        }


@dataclass
class TransactionMatchResult:
    """Résultat de matching pour une transaction (liste éventuellement vide)."""

    transaction: Transaction
    matches: list[MatchCandidate] = field(default_factory=list)

    @property
    def transaction_id(self) -> int:
        return self.transaction.id

    @property
    def best(self) -> MatchCandidate | None:
        return self.matches[0] if self.matches else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction.id,
            "transaction_date": _iso(self.transaction.date),
            "amount": self.transaction.amount,
            "description": self.transaction.description,
            "matches": [m.to_dict() for m in self.matches],
        }

    def to_statement_match_dict(self) -> dict[str, Any]:
        """Forme StatementTransactionMatch du matching multi-relevés."""
        return {
            "transaction_id": self.transaction.id,
            "transaction_date": _iso(self.transaction.date),
            "transaction_amount": _money(self.transaction.amount),
            "description": self.transaction.description,
            "matched": bool(self.matches),
            "matched_invoices": [m.to_detail_dict() for m in self.matches],
        }


@dataclass
class StatementMatchSummary:
    """Résultats d'un relevé dans le matching multi-relevés."""

    statement: Statement
    results: list[TransactionMatchResult]

    @property
    def matched_transactions(self) -> int:
        return sum(1 for r in self.results if r.matches)

    def to_dict(self) -> dict[str, Any]:
        info = self.statement.to_dict()
        d: dict[str, Any] = {"statement_id": info.pop("id"), **info}
        d.update(
            {
                "total_transactions": len(self.results),
                "matched_transactions": self.matched_transactions,
                "matches": [r.to_statement_match_dict() for r in self.results],
            }
        )
        return d


@dataclass
class CrossStatementResult:
    """Agrégat du matching multi-relevés."""

    total_invoices: int
    matched_invoice_ids: set[int]
    statements_searched: int
    statement_matches: list[StatementMatchSummary]

    @property
    def matched_invoices(self) -> int:
        return len(self.matched_invoice_ids)

    @property
    def unmatched_invoices(self) -> int:
        return self.total_invoices - self.matched_invoices

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_invoices": self.total_invoices,
            "matched_invoices": self.matched_invoices,
            "unmatched_invoices": self.unmatched_invoices,
            "statements_searched": self.statements_searched,
            "statement_matches": [s.to_dict() for s in self.statement_matches],
        }
