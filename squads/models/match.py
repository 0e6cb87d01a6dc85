from datetime import datetime, UTC
from typing import Optional
from sqlmodel import SQLModel, Field


class Match(SQLModel, table=True):
    __tablename__ = "matches"

    id: Optional[int] = Field(default=None, primary_key=True)
    match_number: int = Field(unique=True, index=True)

    # Real-world sides, e.g. "CSK" vs "MI"
    team1: str = Field(max_length=50)
    team2: str = Field(max_length=50)

    scheduled_datetime: datetime = Field(default_factory=lambda: datetime.now(UTC))

    # Status
    status: str = Field(default="upcoming")  # upcoming, live, completed

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
