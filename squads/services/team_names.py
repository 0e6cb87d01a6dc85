import random
import time
from sqlmodel import Session, select
from ..config import TEAM_NAME_ATTEMPTS
from ..models.permanent_team import PermanentTeam

TEAM_NAME_ADJECTIVES = [
    "Mighty", "Swift", "Royal", "Thunder", "Golden", "Storm", "Brave", "Fierce",
    "Shadow", "Phoenix", "Crimson", "Silver", "Iron", "Electric", "Blazing", "Mystic",
]

TEAM_NAME_NOUNS = [
    "Warriors", "Strikers", "Challengers", "Titans", "Lions", "Eagles", "Panthers", "Kings",
    "Dragons", "Legends", "Falcons", "Wolves", "Hawks", "Knights", "Spartans", "Gladiators",
]


def team_name_taken(db: Session, name: str) -> bool:
    return db.exec(
        select(PermanentTeam.id).where(PermanentTeam.team_name == name)
    ).first() is not None


def generate_team_name(db: Session, rng: random.Random = random) -> str:
    """
    Pick an unused "<Adjective> <Noun>" name.

    After TEAM_NAME_ATTEMPTS collisions, fall back to a name with a
    time-derived suffix, e.g. "Team 17F3A9C2B1D04E00".
    """
    for _ in range(TEAM_NAME_ATTEMPTS):
        name = f"{rng.choice(TEAM_NAME_ADJECTIVES)} {rng.choice(TEAM_NAME_NOUNS)}"
        if not team_name_taken(db, name):
            return name

    return f"Team {time.time_ns():X}"
