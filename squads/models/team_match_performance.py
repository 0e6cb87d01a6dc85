from datetime import datetime, UTC
from typing import Optional, List
from sqlmodel import SQLModel, Field, Relationship, UniqueConstraint

PENDING = "pending"
ACTIVE = "active"
COMPLETED = "completed"


class TeamMatchPerformance(SQLModel, table=True):
    """Per-team, per-match ledger of points and bonus state.

    Status only moves forward: pending (registered) -> active (points
    aggregated) -> completed (bonus awarded). Bonuses are only awarded to
    records found in ``active``, so re-running scoring never pays twice.
    """
    __tablename__ = "team_match_performances"
    __table_args__ = (UniqueConstraint("team_id", "match_id", name="unique_team_match"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="permanent_teams.id", index=True)
    match_id: int = Field(foreign_key="matches.id", index=True)

    team_total_points: float = Field(default=0)
    rank: Optional[int] = Field(default=None)  # Only set by rank-based scoring
    bonus_awarded: float = Field(default=0)
    status: str = Field(default=PENDING, index=True)  # pending, active, completed

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationships
    member_performances: List["MemberPerformance"] = Relationship(
        back_populates="performance",
        sa_relationship_kwargs={
            "order_by": "MemberPerformance.position",
            "cascade": "all, delete-orphan",
        },
    )


class MemberPerformance(SQLModel, table=True):
    """Snapshot of one team member's contribution to a team match performance."""
    __tablename__ = "member_performances"

    id: Optional[int] = Field(default=None, primary_key=True)
    performance_id: int = Field(foreign_key="team_match_performances.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    position: int
    fantasy_team_id: Optional[int] = Field(default=None, foreign_key="fantasy_entries.id")

    fantasy_points: float = Field(default=0)
    prediction_points: float = Field(default=0)
    total_points: float = Field(default=0)
    bonus_points: float = Field(default=0)

    performance: Optional[TeamMatchPerformance] = Relationship(back_populates="member_performances")
