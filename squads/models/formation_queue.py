from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field

WAITING = "waiting"
MATCHED = "matched"


class FormationQueueEntry(SQLModel, table=True):
    """A user waiting to be grouped into a permanent team."""
    __tablename__ = "formation_queue"

    id: Optional[int] = Field(default=None, primary_key=True)
    # One entry per user globally
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    joined_at: datetime = Field(default_factory=lambda: datetime.now(UTC), index=True)
    status: str = Field(default=WAITING, index=True)  # waiting, matched
    assigned_team_id: Optional[int] = Field(default=None, foreign_key="permanent_teams.id")
