from .user import User
from .match import Match
from .fantasy_entry import FantasyEntry
from .prediction import Prediction
from .permanent_team import PermanentTeam, TeamMember
from .formation_queue import FormationQueueEntry
from .team_match_performance import TeamMatchPerformance, MemberPerformance

__all__ = [
    "User",
    "Match",
    "FantasyEntry",
    "Prediction",
    "PermanentTeam",
    "TeamMember",
    "FormationQueueEntry",
    "TeamMatchPerformance",
    "MemberPerformance",
]
