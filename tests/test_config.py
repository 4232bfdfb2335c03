"""Tests du module config."""

import json
from pathlib import Path

import pytest

from lettrage.config import Config, MatchOptions, ScoringPolicy, ValidationError


def test_config_resolve_paths(tmp_path: Path) -> None:
    """Les chemins relatifs sont résolus par rapport au dossier du fichier config."""
    config_dir = tmp_path / "mon_projet"
    config_dir.mkdir()

    config = Config(database="data/liens.db", workbook="data/referentiel.xlsx")
    config.resolve_paths(config_dir)

    assert Path(config.database).name == "liens.db"
    assert Path(config.workbook).parent.parent == config_dir.resolve()


def test_config_load(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "database": "liens.db",
                "workbook": "referentiel.xlsx",
                "scoring": {"high_threshold": 85},
                "matching": {"date_tolerance_days": 10, "exchange_rates": {"usd/myr": 4.7}},
                "max_workers": 4,
            }
        ),
        encoding="utf-8",
    )

    config = Config.load(config_path)
    assert Path(config.database).is_absolute()
    assert config.scoring.high_threshold == 85
    assert config.scoring.amount_weight == 0.5
    assert config.matching.date_tolerance_days == 10
    assert config.matching.exchange_rates == {"USD/MYR": 4.7}
    assert config.max_workers == 4


def test_config_defaults() -> None:
    config = Config.from_dict({})
    assert config.database == "lettrage.db"
    assert config.matching == MatchOptions()
    assert config.scoring == ScoringPolicy()


def test_config_invalid_max_workers() -> None:
    with pytest.raises(ValidationError, match="max_workers"):
        Config.from_dict({"max_workers": 0})


def test_scoring_policy_confidence_tiers() -> None:
    policy = ScoringPolicy()
    assert policy.confidence(100) == "high"
    assert policy.confidence(80) == "high"
    assert policy.confidence(79.99) == "medium"
    assert policy.confidence(60) == "medium"
    assert policy.confidence(59.9) == "low"


def test_scoring_policy_perfect_match_reaches_100() -> None:
    policy = ScoringPolicy()
    assert 100 * (policy.amount_weight + policy.date_weight + policy.text_weight) + policy.reference_bonus == 100


def test_scoring_policy_inconsistent_thresholds() -> None:
    with pytest.raises(ValidationError, match="Seuils incohérents"):
        ScoringPolicy.from_dict({"high_threshold": 50, "medium_threshold": 70})


def test_scoring_policy_negative_weight() -> None:
    with pytest.raises(ValidationError) as exc:
        ScoringPolicy.from_dict({"text_weight": -1})
    assert exc.value.field == "text_weight"


def test_match_options_defaults_and_override() -> None:
    defaults = MatchOptions(date_tolerance_days=3)
    options = MatchOptions.from_dict({"amount_tolerance_percentage": 1.5}, defaults)
    assert options.date_tolerance_days == 3
    assert options.amount_tolerance_percentage == 1.5
    assert options.exclude_linked is True
    assert options.min_match_score == 60


@pytest.mark.parametrize(
    ("payload", "field"),
    [
        ({"date_tolerance_days": -1}, "date_tolerance_days"),
        ({"date_tolerance_days": 2.5}, "date_tolerance_days"),
        ({"amount_tolerance_percentage": 150}, "amount_tolerance_percentage"),
        ({"min_match_score": 101}, "min_match_score"),
        ({"min_match_score": "haut"}, "min_match_score"),
        ({"exclude_linked": "oui"}, "exclude_linked"),
        ({"exchange_rates": {"USDMYR": 4.7}}, "exchange_rates"),
        ({"exchange_rates": {"USD/MYR": 0}}, "exchange_rates"),
    ],
)
def test_match_options_invalid(payload: dict, field: str) -> None:
    with pytest.raises(ValidationError) as exc:
        MatchOptions.from_dict(payload)
    assert exc.value.field == field


def test_exchange_rate_direct_inverse_default() -> None:
    options = MatchOptions(exchange_rates={"USD/MYR": 4.0})
    assert options.exchange_rate("USD", "MYR") == 4.0
    assert options.exchange_rate("myr", "usd") == 0.25
    assert options.exchange_rate("EUR", "MYR") == 1.0
    assert options.exchange_rate(None, "MYR") == 1.0
