"""
Technician Directory

Technician and team records with simple filtered reads. Workload is
changed only through the lifecycle hooks at the bottom of this module,
which the Booking Lifecycle Manager calls inside its own transaction.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Set

from loguru import logger

from dispatch_engine.infra.ports import DispatchRepository, RepositorySession
from dispatch_engine.models.domain import (
    Assignee,
    AvailabilityStatus,
    Team,
    Technician,
)


class TechnicianDirectory:
    """
    Read side of technician/team data plus availability flips.

    Responsibilities:
    - Filter technicians by availability, service area and skill superset
    - Aggregate team skills, areas and workload over members
    - Register technicians and teams
    """

    def __init__(self, repository: DispatchRepository):
        self.repository = repository

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_technician(self, technician_id: str) -> Technician:
        with self.repository.transaction() as session:
            return session.get_technician(technician_id)

    def get_team(self, team_id: str) -> Team:
        with self.repository.transaction() as session:
            return session.get_team(team_id)

    def list_technicians(
        self,
        availability: Optional[AvailabilityStatus] = None,
        service_area: Optional[str] = None,
        skills: Optional[Iterable[str]] = None,
        emergency_roster: Optional[bool] = None,
    ) -> List[Technician]:
        """
        List technicians matching every given filter.

        Args:
            availability: Required availability status
            service_area: City/zone the technician must cover
            skills: Skills the technician must all have (superset match)
            emergency_roster: Match on ``is_emergency_technician``

        Returns:
            Technicians sorted by id
        """
        with self.repository.transaction() as session:
            technicians = session.list_technicians()

        required = set(skills or ())
        matches = [
            technician
            for technician in technicians
            if (availability is None or technician.availability == availability)
            and (service_area is None or technician.covers(service_area))
            and required.issubset(technician.skills)
            and (emergency_roster is None or technician.is_emergency_technician == emergency_roster)
        ]
        return sorted(matches, key=lambda t: t.id)

    def list_teams(
        self,
        service_area: Optional[str] = None,
        skills: Optional[Iterable[str]] = None,
        active_only: bool = True,
    ) -> List[Team]:
        """List teams whose aggregate areas/skills satisfy the filters."""
        with self.repository.transaction() as session:
            teams = session.list_teams()
            by_id = {t.id: t for t in session.list_technicians()}

        required = set(skills or ())
        matches = []
        for team in teams:
            if active_only and not team.is_active:
                continue
            if service_area is not None and not _area_in(service_area, team_service_areas(team, by_id)):
                continue
            if not required.issubset(team_skills(team, by_id)):
                continue
            matches.append(team)
        return sorted(matches, key=lambda t: t.id)

    def snapshot(self) -> "DirectorySnapshot":
        """Consistent copy of all technicians and teams for the recommender."""
        with self.repository.transaction() as session:
            return DirectorySnapshot(
                technicians=session.list_technicians(),
                teams=session.list_teams(),
            )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def register_technician(self, technician: Technician) -> Technician:
        with self.repository.transaction() as session:
            session.save_technician(technician)
        logger.info(f"Registered technician {technician.id} ({technician.level.value})")
        return technician

    def register_team(self, team: Team) -> Team:
        """Store a team; every member must already be a registered technician."""
        with self.repository.transaction() as session:
            for member_id in team.member_ids:
                session.get_technician(member_id)
            session.save_team(team)
        logger.info(f"Registered team {team.id} with {team.size} members")
        return team

    def set_availability(self, technician_id: str, status: AvailabilityStatus) -> Technician:
        with self.repository.transaction() as session:
            technician = session.get_technician(technician_id)
            technician.availability = status
            session.save_technician(technician)
        logger.info(f"Technician {technician_id} availability updated to {status.value}")
        return technician


class DirectorySnapshot:
    """Immutable-by-convention view handed to pure consumers"""

    def __init__(self, technicians: List[Technician], teams: List[Team]):
        self.technicians = technicians
        self.teams = teams

    @property
    def technicians_by_id(self) -> Dict[str, Technician]:
        return {t.id: t for t in self.technicians}


# ----------------------------------------------------------------------
# Team aggregates
# ----------------------------------------------------------------------

def team_skills(team: Team, technicians: Mapping[str, Technician]) -> Set[str]:
    """Union of the members' skills."""
    skills: Set[str] = set()
    for member_id in team.member_ids:
        technician = technicians.get(member_id)
        if technician is not None:
            skills.update(technician.skills)
    return skills


def team_service_areas(team: Team, technicians: Mapping[str, Technician]) -> Set[str]:
    """Team-level areas plus every member's areas."""
    areas = set(team.service_areas)
    for member_id in team.member_ids:
        technician = technicians.get(member_id)
        if technician is not None:
            areas.update(technician.service_areas)
    return areas


def team_workload(team: Team, technicians: Mapping[str, Technician]) -> Set[str]:
    """Union of the members' active job ids."""
    jobs: Set[str] = set()
    for member_id in team.member_ids:
        technician = technicians.get(member_id)
        if technician is not None:
            jobs.update(technician.current_job_ids)
    return jobs


def _area_in(area: str, areas: Iterable[str]) -> bool:
    wanted = area.strip().casefold()
    return any(wanted == a.strip().casefold() for a in areas)


# ----------------------------------------------------------------------
# Lifecycle hooks (called only by the Booking Lifecycle Manager)
# ----------------------------------------------------------------------

def attach_job(session: RepositorySession, assignee: Assignee, booking_id: str) -> List[Technician]:
    """
    Add a booking to every assignee member's current jobs.

    Capacity is a soft limit: exceeding it is logged, not refused.
    A technician reaching capacity flips from available to busy.
    """
    updated = []
    for member_id in assignee.member_ids:
        technician = session.get_technician(member_id)
        if booking_id in technician.current_job_ids:
            logger.debug(f"Job {booking_id} already attached to technician {member_id}")
            updated.append(technician)
            continue

        technician.current_job_ids.append(booking_id)
        technician.total_jobs_assigned += 1

        if technician.workload > technician.max_jobs_per_day:
            logger.warning(
                f"Technician {member_id} over capacity: {technician.workload}/{technician.max_jobs_per_day} jobs"
            )
        if technician.at_capacity and technician.availability == AvailabilityStatus.AVAILABLE:
            technician.availability = AvailabilityStatus.BUSY

        session.save_technician(technician)
        updated.append(technician)
    return updated


def release_job(session: RepositorySession, member_ids: Iterable[str], booking_id: str) -> List[Technician]:
    """
    Remove a booking from each member's current jobs.

    Releasing a job the technician does not hold is a no-op, so the
    workload count can never go negative. A busy technician dropping
    below capacity flips back to available.
    """
    updated = []
    for member_id in member_ids:
        technician = session.get_technician(member_id)
        if booking_id not in technician.current_job_ids:
            logger.warning(f"Job {booking_id} not held by technician {member_id}; nothing to release")
            continue

        technician.current_job_ids = [job for job in technician.current_job_ids if job != booking_id]
        if not technician.at_capacity and technician.availability == AvailabilityStatus.BUSY:
            technician.availability = AvailabilityStatus.AVAILABLE

        session.save_technician(technician)
        updated.append(technician)
    return updated


def record_completion(
    session: RepositorySession,
    member_ids: Iterable[str],
    rating: Optional[int] = None,
) -> None:
    """Bump completed-job counts and fold a rating into running averages."""
    for member_id in member_ids:
        technician = session.get_technician(member_id)
        technician.total_jobs_completed += 1
        if rating is not None:
            _fold_rating(technician, rating)
        session.save_technician(technician)


def record_rating(session: RepositorySession, member_ids: Iterable[str], rating: int) -> None:
    for member_id in member_ids:
        technician = session.get_technician(member_id)
        _fold_rating(technician, rating)
        session.save_technician(technician)


def _fold_rating(technician: Technician, rating: int) -> None:
    total = technician.average_rating * technician.rating_count + rating
    technician.rating_count += 1
    technician.average_rating = round(total / technician.rating_count, 2)
