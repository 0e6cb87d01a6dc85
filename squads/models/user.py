from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    display_name: str = Field(max_length=50)
    is_admin: bool = Field(default=False)

    # At most one permanent team per user, ever
    permanent_team_id: Optional[int] = Field(
        default=None, foreign_key="permanent_teams.id", index=True
    )

    # Running totals updated when team bonuses are awarded
    total_fantasy_points: float = Field(default=0)
    team_bonus_points_earned: float = Field(default=0)
    team_matches_played: int = Field(default=0)

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
