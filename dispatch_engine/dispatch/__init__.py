"""
Dispatch Recommender - technician and team matching
"""

from dispatch_engine.dispatch.recommender import DispatchRecommender, candidate_id
from dispatch_engine.dispatch.filters import is_dispatchable, lead_rejections, minimum_level
from dispatch_engine.dispatch.teams import TeamCandidate, compose_teams

__all__ = [
    "DispatchRecommender",
    "candidate_id",
    "is_dispatchable",
    "lead_rejections",
    "minimum_level",
    "TeamCandidate",
    "compose_teams",
]
