"""Calcul des scores de similarité transaction ↔ facture."""

from __future__ import annotations

import logging

from rapidfuzz import fuzz

from lettrage.config import MatchOptions, ScoringPolicy
from lettrage.matching.schema import MatchScoreBreakdown
from lettrage.models import Invoice, Transaction
from lettrage.normalize import norm_reference, norm_words

logger = logging.getLogger(__name__)

DEFAULT_POLICY = ScoringPolicy()
DEFAULT_OPTIONS = MatchOptions()

# En dessous, un numéro de facture est trop court pour valoir une inclusion
MIN_CONTAINED_REFERENCE_LEN = 3


def _linear_decay(deviation: float, tolerance: float) -> float:
    """100 à écart nul, 0 à la borne de tolérance et au-delà."""
    if deviation < 0:
        deviation = -deviation
    if tolerance <= 0:
        return 100.0 if deviation == 0 else 0.0
    if deviation >= tolerance:
        return 0.0
    return 100.0 * (1.0 - deviation / tolerance)


def currencies_differ(transaction: Transaction, invoice: Invoice) -> bool:
    """Devises renseignées des deux côtés et différentes."""
    return bool(transaction.currency and invoice.currency and transaction.currency != invoice.currency)


def convert_amount(transaction: Transaction, invoice: Invoice, options: MatchOptions) -> float | None:
    """Montant de la transaction exprimé dans la devise de la facture."""
    if transaction.amount is None:
        return None
    rate = options.exchange_rate(transaction.currency, invoice.currency)
    return abs(transaction.amount) * rate


def score_amount(
    transaction: Transaction,
    invoice: Invoice,
    options: MatchOptions = DEFAULT_OPTIONS,
) -> float:
    """
    Score montant (0-100).

    Écart en pourcentage du total facture, comparé à amount_tolerance_percentage
    (ou currency_tolerance_percentage si les devises diffèrent). Décroissance
    linéaire de 100 (écart nul) à 0 (borne de tolérance).
    """
    converted = convert_amount(transaction, invoice, options)
    if converted is None or not invoice.total:
        logger.debug(
            "Score montant dégradé (transaction=%s, facture=%s): montant ou total absent",
            transaction.id,
            invoice.id,
        )
        return 0.0
    total = abs(invoice.total)
    deviation = abs(converted - total) / total * 100.0
    if currencies_differ(transaction, invoice):
        tolerance = options.currency_tolerance_percentage
    else:
        tolerance = options.amount_tolerance_percentage
    return _linear_decay(deviation, tolerance)


def score_date(
    transaction: Transaction,
    invoice: Invoice,
    options: MatchOptions = DEFAULT_OPTIONS,
) -> float:
    """Score date (0-100) : décroissance linéaire sur date_tolerance_days."""
    if transaction.date is None or invoice.invoice_date is None:
        logger.debug(
            "Score date dégradé (transaction=%s, facture=%s): date absente",
            transaction.id,
            invoice.id,
        )
        return 0.0
    diff_days = abs((transaction.date - invoice.invoice_date).days)
    return _linear_decay(float(diff_days), float(options.date_tolerance_days))


def contains_invoice_no(description: str | None, invoice_no: str | None) -> bool:
    """
    Le numéro de facture figure-t-il dans la description comme suite de mots entiers ?

    "REF inv 001 ACME" contient "INV-001", "INV2024001" contient "INV-2024-001",
    mais "INV-2024-0015" ne contient pas "INV-2024-001" ni "1500.00" la facture "500".
    """
    joined = norm_reference(invoice_no)
    if len(joined) < MIN_CONTAINED_REFERENCE_LEN:
        return False
    ref_tokens = norm_words(invoice_no).split()
    desc_tokens = norm_words(description).split()
    n = len(ref_tokens)
    if any(desc_tokens[i : i + n] == ref_tokens for i in range(len(desc_tokens) - n + 1)):
        return True
    # Numéro collé dans la description ("INV2024001")
    return any(norm_reference(tok) == joined for tok in desc_tokens)


def score_text(description: str, invoice: Invoice) -> float:
    """
    Similarité lexicale (0-100) entre la description et "fournisseur + numéro de facture".

    Le numéro de facture présent en mots entiers dans la description (casse et
    ponctuation ignorées) vaut 100, quels que soient les autres mots.
    """
    desc = norm_words(description)
    label = norm_words(invoice.label)
    if not desc or not label:
        return 0.0

    if contains_invoice_no(description, invoice.invoice_no):
        return 100.0

    return float(fuzz.token_set_ratio(desc, label))


def reference_bonus(
    reference: str | None,
    invoice_no: str | None,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> float:
    """Bonus fixe si la référence égale le numéro de facture (casse et ponctuation ignorées)."""
    ref = norm_reference(reference)
    inv = norm_reference(invoice_no)
    if ref and inv and ref == inv:
        return policy.reference_bonus
    return 0.0


def score(
    transaction: Transaction,
    invoice: Invoice,
    options: MatchOptions = DEFAULT_OPTIONS,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> MatchScoreBreakdown:
    """
    Décompose le score d'un couple (transaction, facture).

    Ne lève jamais pour une donnée absente : le sous-score concerné vaut 0.
    """
    return MatchScoreBreakdown(
        amount_score=score_amount(transaction, invoice, options),
        date_score=score_date(transaction, invoice, options),
        text_score=score_text(transaction.description, invoice),
        reference_bonus=reference_bonus(transaction.reference, invoice.invoice_no, policy),
    )


def aggregate_score(breakdown: MatchScoreBreakdown, policy: ScoringPolicy = DEFAULT_POLICY) -> float:
    """Somme pondérée des sous-scores + bonus de référence, bornée à [0, 100]."""
    total = (
        policy.amount_weight * breakdown.amount_score
        + policy.date_weight * breakdown.date_score
        + policy.text_weight * breakdown.text_score
        + breakdown.reference_bonus
    )
    return max(0.0, min(100.0, total))


def score_pair(
    transaction: Transaction,
    invoice: Invoice,
    options: MatchOptions = DEFAULT_OPTIONS,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> tuple[float, MatchScoreBreakdown]:
    """
    Calcule le score global (pondéré) entre une transaction et une facture.

    Returns:
        (match_score, sous-scores)
    """
    breakdown = score(transaction, invoice, options, policy)
    return aggregate_score(breakdown, policy), breakdown
