import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR}/squads.db")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Team formation
TEAM_SIZE = 4
TEAM_NAME_MIN_LENGTH = 2
TEAM_NAME_MAX_LENGTH = 30
TEAM_NAME_ATTEMPTS = 20

# Fixed team fixtures (team name vs team name), independent of the match
TEAM_FIXTURES = [
    ("Team 1", "Team 14"),
    ("Team 2", "Team 13"),
    ("Team 3", "Team 12"),
    ("Team 4", "Team 11"),
    ("Team 5", "Team 10"),
    ("Team 6", "Team 9"),
    ("Team 7", "Team 8"),
]

# Fixture scoring: full bonus for a win, half each on a tie
FIXTURE_WIN_BONUS = 50

# Rank scoring: 1st, 2nd, 3rd, then a flat bonus for 4th-5th in larger fields
RANK_TIER_BONUSES = (100, 75, 50)
TOP_FIVE_BONUS = 25
TOP_FIVE_MIN_TEAMS = 5

# Team lifetime points gain bonus_awarded * multiplier on top of the match total
TEAM_POINTS_BONUS_MULTIPLIER = 4

# "fixture" or "rank"
SCORING_POLICY = os.getenv("SCORING_POLICY", "fixture").lower()

# Pagination
DEFAULT_PAGE_LIMIT = 20
HISTORY_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100
