"""
Team candidates for complex and expert jobs.

Two sources:
1. Ad-hoc compositions: a qualifying lead plus supporting members whose
   combined skills cover the job.
2. Registered teams from the Technician Directory.
"""

from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from dispatch_engine.config.settings import ScoringWeights
from dispatch_engine.dispatch.filters import is_dispatchable, minimum_level
from dispatch_engine.dispatch.scoring import ScoreTerms, effective_rating, level_factor, skill_overlap
from dispatch_engine.models.domain import Booking, Team, Technician
from dispatch_engine.technicians.directory import team_service_areas


@dataclass
class TeamCandidate:
    """A lead and the members working the job with them (lead first)"""
    lead: Technician
    members: List[Technician]
    team: Optional[Team] = None

    @property
    def member_ids(self) -> List[str]:
        return [member.id for member in self.members]

    @property
    def candidate_id(self) -> str:
        if self.team is not None:
            return self.team.id
        return "+".join(self.member_ids)

    @property
    def skills(self) -> Set[str]:
        combined: Set[str] = set()
        for member in self.members:
            combined.update(member.skills)
        return combined

    @property
    def job_ids(self) -> Set[str]:
        jobs: Set[str] = set()
        for member in self.members:
            jobs.update(member.current_job_ids)
        return jobs

    @property
    def capacity(self) -> int:
        return sum(member.max_jobs_per_day for member in self.members)

    @property
    def average_rating(self) -> float:
        return sum(member.average_rating for member in self.members) / len(self.members)

    @property
    def name(self) -> str:
        if self.team is not None:
            return self.team.name or self.team.id
        supporting = len(self.members) - 1
        return f"{self.lead.name or self.lead.id} + {supporting} supporting"


@dataclass
class TeamEvaluation:
    terms: ScoreTerms
    matching_skills: List[str] = field(default_factory=list)
    missing_skills: List[str] = field(default_factory=list)


def compose_teams(
    lead: Technician,
    supporters: Sequence[Technician],
    required_skills: Sequence[str],
    team_size: int,
    pool_limit: int,
) -> List[TeamCandidate]:
    """
    Enumerate lead + supporter combinations of ``team_size`` members.

    Supporters are ranked by how many of the lead's missing skills they
    bring, then by workload and id; only the first ``pool_limit`` are
    combined. Only compositions whose union of skills covers
    ``required_skills`` are returned.

    Args:
        lead: Technician passing every hard filter
        supporters: Technicians passing the availability and area filters
        required_skills: Skills the composition must cover
        team_size: Total members including the lead
        pool_limit: Maximum supporters considered

    Returns:
        Covering compositions in enumeration order
    """
    if team_size <= 1:
        return []

    required = set(required_skills)
    gap = required - set(lead.skills)
    pool = sorted(
        (s for s in supporters if s.id != lead.id),
        key=lambda s: (-len(gap & set(s.skills)), s.workload, s.id),
    )[:pool_limit]

    compositions = []
    for group in combinations(pool, team_size - 1):
        covered = set(lead.skills)
        for member in group:
            covered.update(member.skills)
        if required.issubset(covered):
            compositions.append(TeamCandidate(lead=lead, members=[lead, *group]))
    return compositions


def registered_team_candidate(
    team: Team,
    technicians: Mapping[str, Technician],
    booking: Booking,
    team_size: int,
) -> Tuple[Optional[TeamCandidate], List[str]]:
    """
    Check a registered team against the hard filters.

    Returns:
        (candidate, []) when the team qualifies, otherwise (None, reasons)
    """
    reasons = []
    if not team.is_active:
        reasons.append("Team is inactive")

    missing = [member_id for member_id in team.member_ids if member_id not in technicians]
    if missing:
        reasons.append(f"Unknown members: {', '.join(missing)}")
        return None, reasons

    lead = technicians[team.lead_technician_id]
    if not is_dispatchable(lead, booking):
        reasons.append(f"Lead {lead.id} not available ({lead.availability.value})")
    required_level = minimum_level(booking)
    if not lead.level.at_least(required_level):
        reasons.append(f"Lead {lead.id} level {lead.level.value} below required {required_level.value}")

    # Area is checked for the team as a whole, not per member
    for member_id in team.member_ids:
        member = technicians[member_id]
        if member_id != lead.id and not is_dispatchable(member, booking):
            reasons.append(f"Member {member_id} not available ({member.availability.value})")

    city = booking.city.strip().casefold()
    if city not in {area.strip().casefold() for area in team_service_areas(team, technicians)}:
        reasons.append(f"Team does not cover {booking.city}")

    if team.size < team_size:
        reasons.append(f"Team of {team.size} smaller than required {team_size}")

    if reasons:
        return None, reasons

    members = [lead] + [technicians[m] for m in team.member_ids if m != lead.id]
    return TeamCandidate(lead=lead, members=members, team=team), []


def evaluate_team(
    candidate: TeamCandidate,
    booking: Booking,
    weights: ScoringWeights,
) -> TeamEvaluation:
    """
    Score terms for a team.

    Skills use the members' union, workload the union of active jobs over
    the summed capacity, rating the members' mean and level the lead.
    """
    ratio, matching, missing = skill_overlap(booking.required_skills, candidate.skills)

    capacity = candidate.capacity
    availability = max(0.0, 1.0 - len(candidate.job_ids) / capacity) if capacity else 0.0

    ratings = [effective_rating(m.average_rating, weights.unrated_rating) for m in candidate.members]
    rating = min(sum(ratings) / len(ratings), 5.0) / 5.0

    level = level_factor(candidate.lead.level, minimum_level(booking), weights.level_surplus_cap)

    return TeamEvaluation(
        terms=ScoreTerms(skills=ratio, availability=availability, level=level, rating=rating),
        matching_skills=matching,
        missing_skills=missing,
    )


def members_by_id(technicians: Sequence[Technician]) -> Dict[str, Technician]:
    return {technician.id: technician for technician in technicians}
