from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint


class FantasyEntry(SQLModel, table=True):
    """A user's fantasy squad for one match, scored by the external points engine."""
    __tablename__ = "fantasy_entries"
    __table_args__ = (UniqueConstraint("user_id", "match_id", name="unique_user_match_entry"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    match_id: int = Field(foreign_key="matches.id", index=True)

    # Filled in by the player scoring engine once the match is played
    fantasy_points: float = Field(default=0)

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
