"""
Technician Directory - technician and team records
"""

from dispatch_engine.technicians.directory import (
    TechnicianDirectory,
    DirectorySnapshot,
    team_skills,
    team_service_areas,
    team_workload,
)

__all__ = [
    "TechnicianDirectory",
    "DirectorySnapshot",
    "team_skills",
    "team_service_areas",
    "team_workload",
]
