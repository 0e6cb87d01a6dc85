"""
Permanent team registry: formation, renaming and the read paths.

A permanent team is created for exactly TEAM_SIZE users in queue order; the
first user becomes the leader. Creating the team, stamping every member's
``permanent_team_id`` and marking their queue entries ``matched`` happen in
one transaction. The member stamp is a compare-and-swap on
``permanent_team_id IS NULL`` so a user can never end up in two teams.
"""
import logging
import math
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, func

from ..config import TEAM_SIZE, TEAM_NAME_MIN_LENGTH, TEAM_NAME_MAX_LENGTH
from ..errors import (
    ConflictError,
    ForbiddenError,
    NameTakenError,
    TeamNotFoundError,
    ValidationError,
)
from ..models.formation_queue import FormationQueueEntry, WAITING, MATCHED
from ..models.match import Match
from ..models.permanent_team import PermanentTeam, TeamMember, LEADER, MEMBER
from ..models.team_match_performance import TeamMatchPerformance, COMPLETED
from ..models.user import User
from .notifications import PERMANENT_TEAM_FORMED, notify_safely
from .team_names import generate_team_name

logger = logging.getLogger(__name__)


def paginate(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def _display_names(db: Session, user_ids: Sequence[int]) -> Dict[int, str]:
    if not user_ids:
        return {}
    users = db.exec(select(User).where(User.id.in_(user_ids))).all()
    return {user.id: user.display_name for user in users}


def serialize_team(db: Session, team: PermanentTeam, rank: Optional[int] = None) -> Dict[str, Any]:
    names = _display_names(db, team.member_user_ids)
    data = {
        "id": team.id,
        "team_name": team.team_name,
        "is_active": team.is_active,
        "members": [
            {
                "user_id": member.user_id,
                "display_name": names.get(member.user_id),
                "role": member.role,
                "joined_at": member.joined_at,
            }
            for member in team.members
        ],
        "stats": {
            "total_points": team.total_points,
            "matches_played": team.matches_played,
            "wins": team.wins,
            "podiums": team.podiums,
            "top_fives": team.top_fives,
            "best_rank": team.best_rank,
            "average_rank": team.average_rank,
        },
        "created_at": team.created_at,
    }
    if rank is not None:
        data["rank"] = rank
    return data


def create_team(db: Session, member_user_ids: List[int], notifier=None) -> PermanentTeam:
    """Form a team from TEAM_SIZE users given in queue join order."""
    if len(member_user_ids) != TEAM_SIZE or len(set(member_user_ids)) != TEAM_SIZE:
        raise ValidationError(f"A team needs exactly {TEAM_SIZE} distinct members")

    team_name = generate_team_name(db)
    team = PermanentTeam(
        team_name=team_name,
        members=[
            TeamMember(
                user_id=user_id,
                position=index,
                role=LEADER if index == 0 else MEMBER,  # First user is leader
            )
            for index, user_id in enumerate(member_user_ids)
        ],
    )

    try:
        db.add(team)
        db.flush()

        conn = db.connection()
        stamped = conn.execute(
            update(User)
            .where(User.id.in_(member_user_ids), User.permanent_team_id.is_(None))
            .values(permanent_team_id=team.id)
        )
        if stamped.rowcount != TEAM_SIZE:
            raise ConflictError("A member already belongs to a permanent team")

        conn.execute(
            update(FormationQueueEntry)
            .where(
                FormationQueueEntry.user_id.in_(member_user_ids),
                FormationQueueEntry.status == WAITING
            )
            .values(status=MATCHED, assigned_team_id=team.id)
        )
        db.commit()
    except ConflictError:
        db.rollback()
        logger.warning("Team formation for users %s rolled back", member_user_ids)
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Team formation for users %s rolled back: %s", member_user_ids, exc.orig)
        raise ConflictError("Team formation conflicted with an existing team")
    db.refresh(team)

    logger.info("Formed permanent team %s '%s' with members %s", team.id, team_name, member_user_ids)

    if notifier is not None:
        team_data = serialize_team(db, team)
        notify_safely(notifier, member_user_ids, PERMANENT_TEAM_FORMED, {
            "team_id": team.id,
            "team_name": team.team_name,
            "members": [
                {"user_id": m["user_id"], "display_name": m["display_name"], "role": m["role"]}
                for m in team_data["members"]
            ],
        })

    return team


def get_team(db: Session, team_id: int) -> Optional[PermanentTeam]:
    return db.get(PermanentTeam, team_id)


def get_user_team(db: Session, user_id: int) -> Optional[PermanentTeam]:
    user = db.get(User, user_id)
    if not user or not user.permanent_team_id:
        return None
    return db.get(PermanentTeam, user.permanent_team_id)


def validate_team_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if len(name) < TEAM_NAME_MIN_LENGTH:
        raise ValidationError(f"Team name must be at least {TEAM_NAME_MIN_LENGTH} characters")
    if len(name) > TEAM_NAME_MAX_LENGTH:
        raise ValidationError(f"Team name must be {TEAM_NAME_MAX_LENGTH} characters or less")
    return name


def rename_team(db: Session, team_id: int, requester_id: int, new_name: str) -> PermanentTeam:
    """Rename a team. Only its leader may do this."""
    team = db.get(PermanentTeam, team_id)
    if not team:
        raise TeamNotFoundError()

    leader = team.leader
    if leader is None or leader.user_id != requester_id:
        raise ForbiddenError()

    name = validate_team_name(new_name)

    existing = db.exec(
        select(PermanentTeam).where(
            PermanentTeam.team_name == name,
            PermanentTeam.is_active == True,  # noqa: E712
            PermanentTeam.id != team_id
        )
    ).first()
    if existing:
        raise NameTakenError()

    team.team_name = name
    team.updated_at = datetime.now(UTC)
    db.add(team)
    try:
        db.commit()
    except IntegrityError:
        # Held by an inactive team
        db.rollback()
        raise NameTakenError()
    db.refresh(team)

    logger.info("Team %s renamed to '%s' by user %s", team_id, name, requester_id)
    return team


def _ranked_teams(db: Session, page: int, limit: int, search: str = "") -> Dict[str, Any]:
    skip = (page - 1) * limit

    query = select(PermanentTeam).where(PermanentTeam.is_active == True)  # noqa: E712
    count_query = select(func.count(PermanentTeam.id)).where(PermanentTeam.is_active == True)  # noqa: E712
    if search:
        # Match the search text literally
        escaped = search.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        matches_search = func.lower(PermanentTeam.team_name).like(f"%{escaped}%", escape="\\")
        query = query.where(matches_search)
        count_query = count_query.where(matches_search)

    teams = db.exec(
        query.order_by(PermanentTeam.total_points.desc(), PermanentTeam.id)
        .offset(skip)
        .limit(limit)
    ).all()
    total = db.exec(count_query).one()

    return {
        "items": [serialize_team(db, team, rank=skip + index + 1) for index, team in enumerate(teams)],
        "pagination": paginate(page, limit, total),
    }


def list_teams(db: Session, page: int = 1, limit: int = 20, search: str = "") -> Dict[str, Any]:
    """Browse active teams, optionally filtered by a case-insensitive name search."""
    return _ranked_teams(db, page, limit, search.strip())


def team_leaderboard(db: Session, page: int = 1, limit: int = 20) -> Dict[str, Any]:
    return _ranked_teams(db, page, limit)


def serialize_performance(db: Session, performance: TeamMatchPerformance) -> Dict[str, Any]:
    match = db.get(Match, performance.match_id)
    names = _display_names(db, [m.user_id for m in performance.member_performances])
    return {
        "id": performance.id,
        "team_id": performance.team_id,
        "match": {
            "id": match.id,
            "match_number": match.match_number,
            "team1": match.team1,
            "team2": match.team2,
            "scheduled_datetime": match.scheduled_datetime,
            "status": match.status,
        } if match else None,
        "member_performances": [
            {
                "user_id": member.user_id,
                "display_name": names.get(member.user_id),
                "fantasy_team_id": member.fantasy_team_id,
                "fantasy_points": member.fantasy_points,
                "prediction_points": member.prediction_points,
                "total_points": member.total_points,
                "bonus_points": member.bonus_points,
            }
            for member in performance.member_performances
        ],
        "team_total_points": performance.team_total_points,
        "rank": performance.rank,
        "bonus_awarded": performance.bonus_awarded,
        "status": performance.status,
        "created_at": performance.created_at,
    }


def team_match_history(db: Session, team_id: int, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    """Completed match performances for a team, newest first."""
    if not db.get(PermanentTeam, team_id):
        raise TeamNotFoundError()

    skip = (page - 1) * limit
    conditions = (
        TeamMatchPerformance.team_id == team_id,
        TeamMatchPerformance.status == COMPLETED,
    )

    performances = db.exec(
        select(TeamMatchPerformance)
        .where(*conditions)
        .order_by(TeamMatchPerformance.created_at.desc(), TeamMatchPerformance.id.desc())
        .offset(skip)
        .limit(limit)
    ).all()
    total = db.exec(select(func.count(TeamMatchPerformance.id)).where(*conditions)).one()

    return {
        "items": [serialize_performance(db, perf) for perf in performances],
        "pagination": paginate(page, limit, total),
    }
