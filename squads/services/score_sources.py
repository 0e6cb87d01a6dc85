"""Per-user, per-match score lookups consumed by team scoring.

Fantasy and prediction points are produced elsewhere; team scoring only
reads them, and a missing entry counts as zero.
"""
from typing import Optional, Protocol, Set
from sqlmodel import Session, select
from ..models.fantasy_entry import FantasyEntry
from ..models.prediction import Prediction


class ScoreSource(Protocol):
    def fantasy_points(self, user_id: int, match_id: int) -> float: ...

    def prediction_points(self, user_id: int, match_id: int) -> float: ...

    def fantasy_team_id(self, user_id: int, match_id: int) -> Optional[int]: ...

    def users_with_fantasy_entry(self, match_id: int) -> Set[int]: ...


class DatabaseScoreSource:
    """Reads scores from the fantasy entry and prediction tables."""

    def __init__(self, db: Session):
        self.db = db

    def _fantasy_entry(self, user_id: int, match_id: int) -> Optional[FantasyEntry]:
        return self.db.exec(
            select(FantasyEntry).where(
                FantasyEntry.user_id == user_id,
                FantasyEntry.match_id == match_id
            )
        ).first()

    def fantasy_points(self, user_id: int, match_id: int) -> float:
        entry = self._fantasy_entry(user_id, match_id)
        return (entry.fantasy_points or 0) if entry else 0

    def prediction_points(self, user_id: int, match_id: int) -> float:
        prediction = self.db.exec(
            select(Prediction).where(
                Prediction.user_id == user_id,
                Prediction.match_id == match_id
            )
        ).first()
        return (prediction.total_prediction_points or 0) if prediction else 0

    def fantasy_team_id(self, user_id: int, match_id: int) -> Optional[int]:
        entry = self._fantasy_entry(user_id, match_id)
        return entry.id if entry else None

    def users_with_fantasy_entry(self, match_id: int) -> Set[int]:
        user_ids = self.db.exec(
            select(FantasyEntry.user_id).where(FantasyEntry.match_id == match_id)
        ).all()
        return set(user_ids)
