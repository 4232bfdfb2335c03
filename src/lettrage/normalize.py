"""Normalisation de texte, références, dates et montants."""

from __future__ import annotations

import math
import re
import unicodedata
from datetime import date, datetime
from typing import Any

import pandas as pd

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d", "%d-%m-%Y", "%d.%m.%Y")


def is_missing(val: Any) -> bool:
    """None, NaN, inf, NaT ou pd.NA (cellule vide d'un tableur)."""
    if isinstance(val, float) and math.isinf(val):
        return True
    return val is None or (pd.api.types.is_scalar(val) and bool(pd.isna(val)))


def _remove_diacritics(s: str) -> str:
    """Retire les diacritiques (accents) d'une chaîne."""
    nfd = unicodedata.normalize("NFD", s)
    return "".join(c for c in nfd if unicodedata.category(c) != "Mn")


def norm_text(
    s: str | float | int | None,
    *,
    lower: bool = True,
    strip: bool = True,
    remove_diacritics: bool = False,
) -> str:
    """
    Normalise un texte : NFKC, espaces multiples → espace simple, lower, strip.

    Args:
        s: Valeur à normaliser (convertie en str si numérique).
        lower: Mettre en minuscules.
        strip: Supprimer espaces en début/fin.
        remove_diacritics: Supprimer les accents.

    Returns:
        Chaîne normalisée.
    """
    if is_missing(s):
        return ""
    text = str(s).strip() if strip else str(s)
    text = unicodedata.normalize("NFKC", text)
    text = re.sub(r"\s+", " ", text)
    if strip:
        text = text.strip()
    if lower:
        text = text.lower()
    if remove_diacritics:
        text = _remove_diacritics(text)
    return text


def norm_words(s: str | float | int | None) -> str:
    """
    Texte réduit à ses mots : ponctuation → espace, sans accents, minuscules.

    "PYMT INV-2024-001 / Vendor Ltd." → "pymt inv 2024 001 vendor ltd"
    """
    text = norm_text(s, remove_diacritics=True)
    text = re.sub(r"[^\w]+", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def norm_reference(s: str | float | int | None) -> str:
    """
    Normalise un numéro de référence / facture pour comparaison exacte.

    Insensible à la casse et à la ponctuation : "inv-2024/001" == "INV 2024 001".
    """
    text = norm_text(s, remove_diacritics=True)
    return re.sub(r"[\W_]+", "", text).upper()


def parse_date(val: Any) -> date | None:
    """
    Convertit une valeur (date, datetime, Timestamp pandas, chaîne) en date.

    Retourne None si la valeur est absente ou illisible.
    """
    if is_missing(val):
        return None
    # pandas.Timestamp et datetime ont to_pydatetime / date()
    if hasattr(val, "to_pydatetime"):
        try:
            val = val.to_pydatetime()
        except (ValueError, TypeError):
            return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    text = str(val).strip()
    if not text or text.lower() in ("nat", "nan", "none"):
        return None
    # "2024-01-15T00:00:00" / "2024-01-15 00:00:00"
    head = re.split(r"[T ]", text, maxsplit=1)[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(head, fmt).date()
        except ValueError:
            continue
    return None


def parse_amount(val: Any) -> float | None:
    """
    Convertit une valeur monétaire en float.

    Gère les séparateurs de milliers, les symboles monétaires et les montants
    négatifs entre parenthèses. Retourne None si absent ou illisible.
    """
    if is_missing(val):
        return None
    if isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return float(val)
    text = str(val).strip()
    if not text or text.lower() in ("nan", "none"):
        return None
    negative = text.startswith("(") and text.endswith(")")
    text = re.sub(r"[^\d.,\-]", "", text)
    text = text.replace(",", "")
    if not text or text in ("-", "."):
        return None
    try:
        amount = float(text)
    except ValueError:
        return None
    return -abs(amount) if negative else amount


def safe_str(val: Any) -> str:
    """Convertit une valeur en chaîne pour affichage/stockage."""
    if is_missing(val):
        return ""
    return str(val)


def optional_str(val: Any) -> str | None:
    """Comme safe_str, mais None pour une valeur vide."""
    text = safe_str(val).strip()
    if not text or text.lower() in ("nan", "none"):
        return None
    return text
