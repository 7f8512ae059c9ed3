"""
Match score terms for the Dispatch Recommender.

Each term is a factor in [0, 1]; ``combine`` turns them into the
weighted 0-100 match score.
"""

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from dispatch_engine.config.settings import ScoringWeights
from dispatch_engine.models.domain import TechnicianLevel


@dataclass(frozen=True)
class ScoreTerms:
    """Raw factors that make up one candidate's score"""
    skills: float
    availability: float
    level: float
    rating: float


def skill_overlap(required: Sequence[str], skills: Iterable[str]) -> Tuple[float, List[str], List[str]]:
    """
    Fraction of required skills covered.

    Returns:
        (ratio, matching, missing); ratio is 1.0 when nothing is required
    """
    have = set(skills)
    wanted = list(dict.fromkeys(required))
    matching = [skill for skill in wanted if skill in have]
    missing = [skill for skill in wanted if skill not in have]
    if not wanted:
        return 1.0, matching, missing
    return len(matching) / len(wanted), matching, missing


def workload_factor(current_jobs: int, max_jobs: int) -> float:
    """``max(0, 1 - jobs/max)``; a zero capacity counts as fully loaded."""
    if max_jobs <= 0:
        return 0.0
    return max(0.0, 1.0 - current_jobs / max_jobs)


def level_factor(level: TechnicianLevel, minimum: TechnicianLevel, cap: int) -> float:
    """Bonus for levels above the minimum, saturating at ``cap`` levels."""
    surplus = max(0, level.rank - minimum.rank)
    return min(surplus, cap) / cap


def effective_rating(average_rating: float, unrated_rating: float) -> float:
    """Average rating, or the configured prior when the technician is unrated."""
    return average_rating if average_rating > 0 else unrated_rating


def rating_factor(average_rating: float, unrated_rating: float) -> float:
    return min(effective_rating(average_rating, unrated_rating), 5.0) / 5.0


def combine(terms: ScoreTerms, weights: ScoringWeights) -> float:
    """Weighted mean of the terms scaled to 0-100, one decimal."""
    weighted = (
        weights.skills * terms.skills
        + weights.availability * terms.availability
        + weights.level * terms.level
        + weights.rating * terms.rating
    )
    return round(100.0 * weighted / weights.total, 1)
