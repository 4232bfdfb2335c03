"""Configuration, options de matching et hiérarchie d'exceptions."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIDENCE_TIERS = ("high", "medium", "low")
VALID_MATCH_TYPES = frozenset({"auto", "manual"})
VALID_STATEMENT_KINDS = frozenset({"bank", "supplier"})

# Bornes raisonnables pour les tolérances reçues d'une requête
MAX_DATE_TOLERANCE_DAYS = 366
MAX_TOLERANCE_PERCENTAGE = 100.0


class LettrageError(Exception):
    """Exception de base pour Lettrage."""


class ValidationError(LettrageError, ValueError):
    """Requête ou configuration mal formée (nomme le champ invalide)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(LettrageError, LookupError):
    """Relevé, transaction, facture ou lien introuvable."""


class ConflictError(LettrageError):
    """Lien déjà existant pour ce couple (transaction, facture)."""


class ConfigFileError(LettrageError):
    """Erreur de chargement du fichier de configuration (fichier absent, JSON invalide)."""


def _as_float(d: dict[str, Any], key: str, default: float) -> float:
    val = d.get(key)
    if val is None:
        return default
    if isinstance(val, bool):
        raise ValidationError(f"{key} doit être numérique (got {val!r})", field=key)
    try:
        return float(val)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{key} doit être numérique (got {val!r})", field=key) from e


def _as_bool(d: dict[str, Any], key: str, default: bool) -> bool:
    val = d.get(key)
    if val is None:
        return default
    if not isinstance(val, bool):
        raise ValidationError(f"{key} doit être un booléen (got {val!r})", field=key)
    return val


@dataclass(frozen=True)
class ScoringPolicy:
    """
    Politique de score : poids des sous-scores, bonus de référence et seuils de confiance.

    Les seuils sont calibrés sur les poids : un match parfait vaut
    50 + 20 + 20 + 10 = 100, un écart de montant hors tolérance plafonne à 50.
    """

    amount_weight: float = 0.50
    date_weight: float = 0.20
    text_weight: float = 0.20
    reference_bonus: float = 10.0
    high_threshold: float = 80.0
    medium_threshold: float = 60.0

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ScoringPolicy:
        amount_weight = _as_float(d, "amount_weight", 0.50)
        date_weight = _as_float(d, "date_weight", 0.20)
        text_weight = _as_float(d, "text_weight", 0.20)
        reference_bonus = _as_float(d, "reference_bonus", 10.0)
        high_threshold = _as_float(d, "high_threshold", 80.0)
        medium_threshold = _as_float(d, "medium_threshold", 60.0)

        for name, w in (("amount_weight", amount_weight), ("date_weight", date_weight), ("text_weight", text_weight)):
            if w < 0:
                raise ValidationError(f"{name} doit être >= 0 (got {w})", field=name)
        if amount_weight + date_weight + text_weight <= 0:
            raise ValidationError("La somme des poids doit être > 0", field="amount_weight")
        if not 0 <= reference_bonus <= 100:
            raise ValidationError(
                f"reference_bonus doit être entre 0 et 100 (got {reference_bonus})", field="reference_bonus"
            )
        if not 0 <= medium_threshold <= high_threshold <= 100:
            raise ValidationError(
                f"Seuils incohérents: 0 <= medium ({medium_threshold}) <= high ({high_threshold}) <= 100",
                field="high_threshold",
            )

        return cls(
            amount_weight=amount_weight,
            date_weight=date_weight,
            text_weight=text_weight,
            reference_bonus=reference_bonus,
            high_threshold=high_threshold,
            medium_threshold=medium_threshold,
        )

    def confidence(self, score: float) -> str:
        """Palier de confiance (high / medium / low) d'un score."""
        if score >= self.high_threshold:
            return "high"
        if score >= self.medium_threshold:
            return "medium"
        return "low"

    def to_dict(self) -> dict[str, float]:
        return {
            "amount_weight": self.amount_weight,
            "date_weight": self.date_weight,
            "text_weight": self.text_weight,
            "reference_bonus": self.reference_bonus,
            "high_threshold": self.high_threshold,
            "medium_threshold": self.medium_threshold,
        }


@dataclass(frozen=True)
class MatchOptions:
    """Options d'une requête de matching (toutes optionnelles, avec valeurs par défaut)."""

    date_tolerance_days: int = 7
    amount_tolerance_percentage: float = 2.0
    currency_tolerance_percentage: float = 5.0
    min_match_score: float = 60.0
    exclude_linked: bool = True
    # "USD/MYR" -> 4.7 : 1 USD vaut 4.7 MYR
    exchange_rates: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict[str, Any], defaults: MatchOptions | None = None) -> MatchOptions:
        """
        Construit les options depuis un payload de requête.

        Les clés absentes ou nulles prennent la valeur de `defaults`.

        Raises:
            ValidationError: Valeur hors bornes ou de mauvais type.
        """
        base = defaults or cls()
        raw_days = d.get("date_tolerance_days")
        if raw_days is None:
            days = base.date_tolerance_days
        else:
            value = _as_float(d, "date_tolerance_days", 0.0)
            if not value.is_integer():
                raise ValidationError(
                    f"date_tolerance_days doit être un entier (got {raw_days!r})", field="date_tolerance_days"
                )
            days = int(value)
        amount_pct = _as_float(d, "amount_tolerance_percentage", base.amount_tolerance_percentage)
        currency_pct = _as_float(d, "currency_tolerance_percentage", base.currency_tolerance_percentage)
        min_score = _as_float(d, "min_match_score", base.min_match_score)
        exclude_linked = _as_bool(d, "exclude_linked", base.exclude_linked)

        if not 0 <= days <= MAX_DATE_TOLERANCE_DAYS:
            raise ValidationError(
                f"date_tolerance_days doit être entre 0 et {MAX_DATE_TOLERANCE_DAYS} (got {days})",
                field="date_tolerance_days",
            )
        if not 0 <= amount_pct <= MAX_TOLERANCE_PERCENTAGE:
            raise ValidationError(
                f"amount_tolerance_percentage doit être entre 0 et 100 (got {amount_pct})",
                field="amount_tolerance_percentage",
            )
        if not 0 <= currency_pct <= MAX_TOLERANCE_PERCENTAGE:
            raise ValidationError(
                f"currency_tolerance_percentage doit être entre 0 et 100 (got {currency_pct})",
                field="currency_tolerance_percentage",
            )
        if not 0 <= min_score <= 100:
            raise ValidationError(
                f"min_match_score doit être entre 0 et 100 (got {min_score})", field="min_match_score"
            )

        rates_raw = d.get("exchange_rates")
        if rates_raw is None:
            rates = dict(base.exchange_rates)
        else:
            if not isinstance(rates_raw, dict):
                raise ValidationError("exchange_rates doit être un objet {'USD/MYR': taux}", field="exchange_rates")
            rates = {}
            for pair, rate in rates_raw.items():
                parts = str(pair).split("/")
                if len(parts) != 2 or not all(p.strip() for p in parts):
                    raise ValidationError(f"Paire de devises invalide: {pair!r}", field="exchange_rates")
                value = _as_float(rates_raw, pair, 0.0)
                if value <= 0:
                    raise ValidationError(f"Taux de change doit être > 0 pour {pair} (got {value})", field="exchange_rates")
                rates[f"{parts[0].strip().upper()}/{parts[1].strip().upper()}"] = value

        return cls(
            date_tolerance_days=days,
            amount_tolerance_percentage=amount_pct,
            currency_tolerance_percentage=currency_pct,
            min_match_score=min_score,
            exclude_linked=exclude_linked,
            exchange_rates=rates,
        )

    def exchange_rate(self, from_currency: str | None, to_currency: str | None) -> float:
        """Taux pour convertir un montant de `from_currency` vers `to_currency` (1.0 par défaut)."""
        if not from_currency or not to_currency:
            return 1.0
        src = from_currency.upper()
        dst = to_currency.upper()
        if src == dst:
            return 1.0
        direct = self.exchange_rates.get(f"{src}/{dst}")
        if direct:
            return direct
        inverse = self.exchange_rates.get(f"{dst}/{src}")
        if inverse:
            return 1.0 / inverse
        return 1.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "date_tolerance_days": self.date_tolerance_days,
            "amount_tolerance_percentage": self.amount_tolerance_percentage,
            "currency_tolerance_percentage": self.currency_tolerance_percentage,
            "min_match_score": self.min_match_score,
            "exclude_linked": self.exclude_linked,
            "exchange_rates": dict(self.exchange_rates),
        }


@dataclass
class Config:
    """Configuration principale de Lettrage."""

    database: str = "lettrage.db"
    workbook: str = ""
    scoring: ScoringPolicy = field(default_factory=ScoringPolicy)
    matching: MatchOptions = field(default_factory=MatchOptions)
    max_workers: int | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Config:
        database = d.get("database", "lettrage.db")
        workbook = d.get("workbook", "")
        if not isinstance(database, str) or not database:
            raise ValidationError("database doit être un chemin non vide", field="database")
        if not isinstance(workbook, str):
            raise ValidationError("workbook doit être un chemin", field="workbook")

        scoring_raw = d.get("scoring", {})
        matching_raw = d.get("matching", {})
        if not isinstance(scoring_raw, dict):
            raise ValidationError("scoring doit être un objet JSON", field="scoring")
        if not isinstance(matching_raw, dict):
            raise ValidationError("matching doit être un objet JSON", field="matching")

        max_workers = d.get("max_workers")
        if max_workers is not None:
            if isinstance(max_workers, bool) or not isinstance(max_workers, int) or max_workers < 1:
                raise ValidationError(f"max_workers doit être un entier >= 1 (got {max_workers!r})", field="max_workers")

        return cls(
            database=database,
            workbook=workbook,
            scoring=ScoringPolicy.from_dict(scoring_raw),
            matching=MatchOptions.from_dict(matching_raw),
            max_workers=max_workers,
        )

    @classmethod
    def load(cls, path: str | Path) -> Config:
        """
        Charge la configuration depuis un fichier JSON.

        Raises:
            ConfigFileError: Si le fichier est absent ou le JSON invalide.
            ValidationError: Si la configuration est invalide.
        """
        path = Path(path).resolve()
        if not path.exists():
            raise ConfigFileError(f"Fichier de configuration introuvable: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                d = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigFileError(f"JSON invalide dans {path}: {e}") from e
        except OSError as e:
            raise ConfigFileError(f"Impossible de lire {path}: {e}") from e

        if not isinstance(d, dict):
            raise ConfigFileError(f"Fichier de configuration invalide: {path} doit contenir un objet JSON")

        config = cls.from_dict(d)
        config.resolve_paths(path.parent)
        return config

    def resolve_paths(self, base_dir: Path) -> None:
        """
        Résout les chemins relatifs par rapport au répertoire de base (ex. dossier du fichier config).

        Modifie database et workbook en place.
        """
        base = Path(base_dir)
        if self.database and not Path(self.database).is_absolute():
            self.database = str((base / self.database).resolve())
        if self.workbook and not Path(self.workbook).is_absolute():
            self.workbook = str((base / self.workbook).resolve())
