"""
Dispatch Recommender

Ranks technicians and teams for a booking. Pure over the snapshot it is
given: it reads technician and team records and never writes.

Pipeline:
1. Hard filters (availability, service area, minimum level)
2. Team candidates for complex/expert jobs and registered teams
3. Weighted match score per candidate
4. Deterministic ordering and truncation
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from dispatch_engine.config.constants import TEAM_SIZE_FOR_COMPLEXITY
from dispatch_engine.config.settings import ScoringWeights, settings
from dispatch_engine.dispatch.filters import lead_rejections, minimum_level, support_rejections
from dispatch_engine.dispatch.scoring import (
    ScoreTerms,
    combine,
    level_factor,
    rating_factor,
    skill_overlap,
    workload_factor,
)
from dispatch_engine.dispatch.teams import (
    TeamCandidate,
    compose_teams,
    evaluate_team,
    members_by_id,
    registered_team_candidate,
)
from dispatch_engine.models.domain import Booking, PriorityLevel, Team, Technician
from dispatch_engine.models.results import (
    CandidateKind,
    Recommendation,
    RecommendationResult,
    Rejection,
)


class DispatchRecommender:
    """
    Produces ranked dispatch candidates for a booking.

    Usage:
        recommender = DispatchRecommender()
        result = recommender.recommend(booking, technicians, teams)
        if result.has_candidates:
            lifecycle.assign_technician(booking.id, result.best, actor="admin")
    """

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        limit: Optional[int] = None,
        max_supporting_pool: Optional[int] = None,
    ):
        self.weights = weights or ScoringWeights.from_settings(settings)
        self.limit = limit if limit is not None else settings.recommendation_limit
        self.max_supporting_pool = (
            max_supporting_pool if max_supporting_pool is not None else settings.max_supporting_pool
        )

    def recommend(
        self,
        booking: Booking,
        technicians: Sequence[Technician],
        teams: Iterable[Team] = (),
    ) -> RecommendationResult:
        """
        Rank candidates for a booking.

        Args:
            booking: Booking to dispatch (city, skills, complexity, priority)
            technicians: Technician snapshot
            teams: Registered teams to consider

        Returns:
            RecommendationResult; an empty candidate list means nobody
            passed the hard filters and ``rejections`` says why
        """
        result = RecommendationResult(booking_id=booking.id)
        candidates: List[Recommendation] = []

        qualified: List[Technician] = []
        supporters: List[Technician] = []
        for technician in sorted(technicians, key=lambda t: t.id):
            reasons = lead_rejections(technician, booking)
            if not reasons:
                qualified.append(technician)
                candidates.append(self._technician_recommendation(technician, booking))
            else:
                result.rejections.append(Rejection(candidate_id=technician.id, reasons=reasons))
            if not support_rejections(technician, booking):
                supporters.append(technician)

        team_size = TEAM_SIZE_FOR_COMPLEXITY[booking.complexity]
        if team_size > 1:
            for lead in qualified:
                compositions = compose_teams(
                    lead, supporters, booking.required_skills, team_size, self.max_supporting_pool
                )
                if not compositions:
                    result.rejections.append(
                        Rejection(
                            candidate_id=f"{lead.id}+team",
                            reasons=[f"No {team_size - 1} supporting member(s) complete the required skills"],
                        )
                    )
                    continue
                best = max(
                    (self._team_recommendation(c, booking) for c in compositions),
                    key=lambda r: (r.match_score, -r.current_workload),
                )
                candidates.append(best)

        by_id = members_by_id(technicians)
        for team in sorted(teams, key=lambda t: t.id):
            candidate, reasons = registered_team_candidate(team, by_id, booking, team_size)
            if candidate is None:
                result.rejections.append(Rejection(candidate_id=team.id, reasons=reasons))
                continue
            candidates.append(self._team_recommendation(candidate, booking))

        candidates.sort(key=_ranking_key)
        result.candidates = candidates[: self.limit]

        if result.has_candidates:
            best = result.best
            logger.info(
                f"Booking {booking.id}: {len(candidates)} candidate(s), best {best.name} ({best.match_score})"
            )
        else:
            logger.warning(
                f"Booking {booking.id}: no eligible candidates ({len(result.rejections)} rejected)"
            )
        return result

    def recommend_from_directory(self, directory, booking: Booking) -> RecommendationResult:
        """Rank candidates from a TechnicianDirectory snapshot."""
        snapshot = directory.snapshot()
        return self.recommend(booking, snapshot.technicians, snapshot.teams)

    def score_technician(self, technician: Technician, booking: Booking) -> float:
        """Match score ignoring the hard filters."""
        return combine(self._technician_terms(technician, booking)[0], self.weights)

    # ------------------------------------------------------------------

    def _technician_terms(self, technician: Technician, booking: Booking) -> Tuple[ScoreTerms, List[str], List[str]]:
        ratio, matching, missing = skill_overlap(booking.required_skills, technician.skills)
        terms = ScoreTerms(
            skills=ratio,
            availability=workload_factor(technician.workload, technician.max_jobs_per_day),
            level=level_factor(technician.level, minimum_level(booking), self.weights.level_surplus_cap),
            rating=rating_factor(technician.average_rating, self.weights.unrated_rating),
        )
        return terms, matching, missing

    def _technician_recommendation(self, technician: Technician, booking: Booking) -> Recommendation:
        terms, matching, missing = self._technician_terms(technician, booking)

        reasons = []
        if booking.required_skills:
            reasons.append(f"Has {len(matching)}/{len(matching) + len(missing)} required skills")
        reasons.append(f"Covers {booking.city}")
        reasons.append(f"Level {technician.level.value}")
        reasons.append(f"Capacity: {technician.workload}/{technician.max_jobs_per_day} jobs")
        if booking.priority == PriorityLevel.EMERGENCY and technician.is_emergency_technician:
            reasons.append("On the emergency roster")
        if technician.average_rating > 0:
            reasons.append(f"Rated {technician.average_rating:.1f}/5")

        return Recommendation(
            kind=CandidateKind.TECHNICIAN,
            technician_id=technician.id,
            name=technician.name,
            level=technician.level,
            match_score=combine(terms, self.weights),
            reasons=reasons,
            matching_skills=matching,
            missing_skills=missing,
            current_workload=technician.workload,
            average_rating=technician.average_rating,
            member_ids=[technician.id],
        )

    def _team_recommendation(self, candidate: TeamCandidate, booking: Booking) -> Recommendation:
        evaluation = evaluate_team(candidate, booking, self.weights)

        reasons = [f"Team of {len(candidate.members)} led by {candidate.lead.name or candidate.lead.id}"]
        if booking.required_skills:
            total = len(evaluation.matching_skills) + len(evaluation.missing_skills)
            reasons.append(f"Covers {len(evaluation.matching_skills)}/{total} required skills combined")
        reasons.append(f"Combined capacity: {len(candidate.job_ids)}/{candidate.capacity} jobs")

        return Recommendation(
            kind=CandidateKind.TEAM,
            technician_id=candidate.lead.id,
            name=candidate.name,
            level=candidate.lead.level,
            match_score=combine(evaluation.terms, self.weights),
            reasons=reasons,
            matching_skills=evaluation.matching_skills,
            missing_skills=evaluation.missing_skills,
            current_workload=len(candidate.job_ids),
            average_rating=round(candidate.average_rating, 2),
            team_id=candidate.team.id if candidate.team is not None else None,
            member_ids=candidate.member_ids,
        )


def candidate_id(recommendation: Recommendation) -> str:
    if recommendation.team_id is not None:
        return recommendation.team_id
    return "+".join(recommendation.member_ids) or recommendation.technician_id


def _ranking_key(recommendation: Recommendation):
    # Score desc, then lower workload, higher rating, id
    return (
        -recommendation.match_score,
        recommendation.current_workload,
        -recommendation.average_rating,
        candidate_id(recommendation),
    )
