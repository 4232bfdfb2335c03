"""Module de matching et lettrage."""

from lettrage.matching.engine import MatchCancelled, MatchEngine
from lettrage.matching.schema import MatchCandidate, MatchScoreBreakdown, TransactionMatchResult

__all__ = ["MatchCancelled", "MatchEngine", "MatchCandidate", "MatchScoreBreakdown", "TransactionMatchResult"]
