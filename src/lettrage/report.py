"""Génération du rapport de lettrage, de l'onglet REPORT et de l'onglet Matches."""

from __future__ import annotations

from collections import Counter
from datetime import datetime

import pandas as pd

from lettrage import __version__
from lettrage.config import CONFIDENCE_TIERS, MatchOptions, ScoringPolicy
from lettrage.matching.schema import TransactionMatchResult

MATCHES_COLUMNS = [
    "transaction_id",
    "transaction_date",
    "amount",
    "description",
    "rank",
    "invoice_id",
    "invoice_no",
    "vendor_name",
    "invoice_date",
    "total",
    "match_score",
    "confidence",
    "amount_score",
    "date_score",
    "text_score",
    "reference_bonus",
]


def _tier_counts(results: list[TransactionMatchResult]) -> Counter[str]:
    """Palier du meilleur candidat de chaque transaction."""
    return Counter(r.best.confidence for r in results if r.best is not None)


def build_matches_df(results: list[TransactionMatchResult]) -> pd.DataFrame:
    """
    Une ligne par candidat (rang 1 = meilleur), une ligne vide de candidat pour
    les transactions sans correspondance.
    """
    rows: list[dict[str, object]] = []
    for r in results:
        tx = r.transaction
        base = {
            "transaction_id": tx.id,
            "transaction_date": tx.date.isoformat() if tx.date else None,
            "amount": tx.amount,
            "description": tx.description,
        }
        if not r.matches:
            rows.append(base)
            continue
        for rank, c in enumerate(r.matches, start=1):
            b = c.score_breakdown
            rows.append(
                {
                    **base,
                    "rank": rank,
                    "invoice_id": c.invoice.id,
                    "invoice_no": c.invoice.invoice_no,
                    "vendor_name": c.invoice.vendor_name,
                    "invoice_date": c.invoice.invoice_date.isoformat() if c.invoice.invoice_date else None,
                    "total": c.invoice.total,
                    "match_score": round(c.match_score, 2),
                    "confidence": c.confidence,
                    "amount_score": round(b.amount_score, 2),
                    "date_score": round(b.date_score, 2),
                    "text_score": round(b.text_score, 2),
                    "reference_bonus": round(b.reference_bonus, 2),
                }
            )
    return pd.DataFrame(rows, columns=MATCHES_COLUMNS)


def build_report_df(
    results: list[TransactionMatchResult],
    options: MatchOptions,
    policy: ScoringPolicy,
) -> pd.DataFrame:
    """
    Construit le DataFrame pour l'onglet REPORT.

    Contient : nb transactions, nb avec candidat, répartition par palier du
    meilleur candidat, tolérances, politique de score, horodatage, version.
    """
    n_total = len(results)
    n_matched = sum(1 for r in results if r.matches)
    tiers = _tier_counts(results)

    rows: list[tuple[str, object]] = [
        ("nb_transactions", n_total),
        ("nb_matched", n_matched),
        ("nb_unmatched", n_total - n_matched),
    ]
    rows.extend((f"nb_best_{tier}", tiers.get(tier, 0)) for tier in CONFIDENCE_TIERS)
    rows.extend([("", ""), ("Parameters", "")])
    rows.extend((k, str(v) if isinstance(v, dict) else v) for k, v in options.to_dict().items())
    rows.extend([("", ""), ("Scoring", "")])
    rows.extend(policy.to_dict().items())
    rows.extend(
        [
            ("", ""),
            ("timestamp", datetime.now().isoformat()),
            ("version", __version__),
        ]
    )
    return pd.DataFrame(rows, columns=["Key", "Value"])


def print_report_console(results: list[TransactionMatchResult]) -> None:
    """Affiche un résumé du rapport en console."""
    n_total = len(results)
    n_matched = sum(1 for r in results if r.matches)
    tiers = _tier_counts(results)

    print("\n=== Lettrage Report ===")
    print(f"  Transactions:     {n_total}")
    print(f"  Avec candidat:    {n_matched}")
    print(f"  Sans candidat:    {n_total - n_matched}")
    print(f"  Confiance haute:  {tiers.get('high', 0)}")
    print(f"  Confiance moy.:   {tiers.get('medium', 0)}")
    print(f"  Confiance basse:  {tiers.get('low', 0)}")
    print(f"  Version:          {__version__}")
    print(f"  Timestamp:        {datetime.now().isoformat()}")
    print("=======================\n")
