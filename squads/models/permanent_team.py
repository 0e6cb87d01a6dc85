from datetime import datetime, UTC
from typing import Optional, List
from sqlmodel import SQLModel, Field, Relationship

LEADER = "leader"
MEMBER = "member"


class PermanentTeam(SQLModel, table=True):
    """A fixed squad formed once from the queue that plays every match together."""
    __tablename__ = "permanent_teams"

    id: Optional[int] = Field(default=None, primary_key=True)
    team_name: str = Field(unique=True, index=True, max_length=30)
    is_active: bool = Field(default=True, index=True)

    # Lifetime stats
    total_points: float = Field(default=0, index=True)
    matches_played: int = Field(default=0)
    wins: int = Field(default=0)        # Fixture wins, or times ranked #1
    podiums: int = Field(default=0)     # Times in top 3
    top_fives: int = Field(default=0)   # Times in top 5
    best_rank: Optional[int] = Field(default=None)
    average_rank: Optional[float] = Field(default=None)

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Relationships
    members: List["TeamMember"] = Relationship(
        back_populates="team",
        sa_relationship_kwargs={
            "order_by": "TeamMember.position",
            "cascade": "all, delete-orphan",
        },
    )

    @property
    def leader(self) -> Optional["TeamMember"]:
        return next((m for m in self.members if m.role == LEADER), None)

    @property
    def member_user_ids(self) -> List[int]:
        return [m.user_id for m in self.members]


class TeamMember(SQLModel, table=True):
    __tablename__ = "permanent_team_members"

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="permanent_teams.id", index=True)
    # A user can belong to a single permanent team
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    position: int  # 0-based queue join order
    role: str = Field(default=MEMBER)  # leader, member
    joined_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    team: Optional[PermanentTeam] = Relationship(back_populates="members")
