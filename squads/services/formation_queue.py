"""
FIFO waitlist that turns individual join requests into permanent teams.

Every join inserts a ``waiting`` entry and immediately runs a matching pass:
the oldest TEAM_SIZE waiting entries (by join time, then insertion order)
form a team, repeated until fewer than TEAM_SIZE remain. Queue mutations are
serialized through a process-wide lock; across processes, the unique entry
per user and the compare-and-swap in ``create_team`` keep a user out of two
teams.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, func

from ..config import TEAM_SIZE
from ..errors import ConflictError, NotInQueueError, UserNotFoundError
from ..models.formation_queue import FormationQueueEntry, WAITING, MATCHED
from ..models.permanent_team import PermanentTeam
from ..models.user import User
from .permanent_teams import create_team

logger = logging.getLogger(__name__)

_queue_lock = threading.RLock()

# Join outcomes
JOIN_MATCHED = "matched"
JOIN_IN_QUEUE = "in_queue"
JOIN_ALREADY_IN_TEAM = "already_in_team"
JOIN_ALREADY_IN_QUEUE = "already_in_queue"


@dataclass
class JoinResult:
    status: str
    team: Optional[PermanentTeam] = None
    position: Optional[int] = None


def _waiting_entries(db: Session) -> List[FormationQueueEntry]:
    return list(db.exec(
        select(FormationQueueEntry)
        .where(FormationQueueEntry.status == WAITING)
        .order_by(FormationQueueEntry.joined_at, FormationQueueEntry.id)
    ).all())


def _get_entry(db: Session, user_id: int) -> Optional[FormationQueueEntry]:
    return db.exec(
        select(FormationQueueEntry).where(FormationQueueEntry.user_id == user_id)
    ).first()


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise UserNotFoundError()
    return user


def queue_position(db: Session, user_id: int) -> Optional[int]:
    """1-based rank among waiting entries, or None when the user isn't waiting."""
    for index, entry in enumerate(_waiting_entries(db)):
        if entry.user_id == user_id:
            return index + 1
    return None


def join_queue(db: Session, user_id: int, notifier=None) -> JoinResult:
    with _queue_lock:
        user = _get_user(db, user_id)

        # Already in a team
        if user.permanent_team_id:
            team = db.get(PermanentTeam, user.permanent_team_id)
            return JoinResult(JOIN_ALREADY_IN_TEAM, team=team)

        entry = _get_entry(db, user_id)
        if entry and entry.status == WAITING:
            return JoinResult(JOIN_ALREADY_IN_QUEUE, position=queue_position(db, user_id))

        if entry and entry.status == MATCHED:
            team = db.get(PermanentTeam, entry.assigned_team_id) if entry.assigned_team_id else None
            if team:
                # Matched entry whose user was never stamped
                user.permanent_team_id = team.id
                db.add(user)
                db.commit()
                db.refresh(team)
                logger.warning("Restored team %s on user %s from matched queue entry", team.id, user_id)
                return JoinResult(JOIN_ALREADY_IN_TEAM, team=team)

            # Matched to a team that no longer exists, start over
            db.delete(entry)
            db.commit()

        entry = FormationQueueEntry(user_id=user_id)
        db.add(entry)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return JoinResult(JOIN_ALREADY_IN_QUEUE, position=queue_position(db, user_id))
        db.refresh(entry)
        logger.info("User %s joined the formation queue", user_id)

        # Try to match immediately
        process_queue(db, notifier)

        db.refresh(entry)
        if entry.status == MATCHED:
            return JoinResult(JOIN_MATCHED, team=db.get(PermanentTeam, entry.assigned_team_id))

        return JoinResult(JOIN_IN_QUEUE, position=queue_position(db, user_id))


def leave_queue(db: Session, user_id: int) -> None:
    with _queue_lock:
        entry = _get_entry(db, user_id)
        if not entry or entry.status != WAITING:
            raise NotInQueueError()

        db.delete(entry)
        db.commit()
        logger.info("User %s left the formation queue", user_id)


def queue_status(db: Session, user_id: int) -> Dict[str, Any]:
    user = _get_user(db, user_id)
    if user.permanent_team_id:
        return {"status": "in_team", "team": db.get(PermanentTeam, user.permanent_team_id)}

    entry = _get_entry(db, user_id)
    if not entry:
        return {"status": "not_joined"}

    if entry.status == MATCHED:
        return {"status": "matched", "team": db.get(PermanentTeam, entry.assigned_team_id)}

    total_waiting = db.exec(
        select(func.count(FormationQueueEntry.id)).where(FormationQueueEntry.status == WAITING)
    ).one()
    return {
        "status": "waiting",
        "position": queue_position(db, user_id),
        "total_waiting": total_waiting,
        "need_more": max(TEAM_SIZE - total_waiting, 0),
    }


def _reconcile_stale_entries(db: Session, entries: List[FormationQueueEntry]) -> int:
    """Mark waiting entries of users who already have a team as matched."""
    fixed = 0
    for entry in entries:
        user = db.get(User, entry.user_id)
        if user and user.permanent_team_id:
            entry.status = MATCHED
            entry.assigned_team_id = user.permanent_team_id
            db.add(entry)
            fixed += 1
    if fixed:
        db.commit()
        logger.warning("Reconciled %d stale queue entries", fixed)
    return fixed


def process_queue(db: Session, notifier=None) -> List[PermanentTeam]:
    """Form teams from the oldest waiting entries until fewer than TEAM_SIZE remain."""
    teams = []
    with _queue_lock:
        waiting = _waiting_entries(db)
        while len(waiting) >= TEAM_SIZE:
            batch = waiting[:TEAM_SIZE]
            try:
                teams.append(create_team(db, [entry.user_id for entry in batch], notifier))
            except ConflictError:
                if not _reconcile_stale_entries(db, batch):
                    raise
            waiting = _waiting_entries(db)

    if teams:
        logger.info("Formation pass created %d team(s)", len(teams))
    return teams
