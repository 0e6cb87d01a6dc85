"""
Linking permanent teams to matches.

A team is registered for a match as soon as any member has a fantasy entry
for it. Registration snapshots the current membership into a ``pending``
performance record and is idempotent per (team, match).
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..errors import MatchNotFoundError, NoPermanentTeamError, TeamNotFoundError, UserNotFoundError
from ..models.match import Match
from ..models.permanent_team import PermanentTeam, TeamMember
from ..models.team_match_performance import TeamMatchPerformance, MemberPerformance, PENDING
from ..models.user import User
from .score_sources import DatabaseScoreSource, ScoreSource

logger = logging.getLogger(__name__)


def get_performance(db: Session, team_id: int, match_id: int) -> Optional[TeamMatchPerformance]:
    return db.exec(
        select(TeamMatchPerformance).where(
            TeamMatchPerformance.team_id == team_id,
            TeamMatchPerformance.match_id == match_id
        )
    ).first()


def register_team_for_match(db: Session, team_id: int, match_id: int) -> TeamMatchPerformance:
    """Return the team's performance record for the match, creating it if needed."""
    performance = get_performance(db, team_id, match_id)
    if performance:
        return performance

    team = db.get(PermanentTeam, team_id)
    if not team:
        raise TeamNotFoundError()
    if not db.get(Match, match_id):
        raise MatchNotFoundError()

    performance = TeamMatchPerformance(
        team_id=team_id,
        match_id=match_id,
        status=PENDING,
        member_performances=[
            MemberPerformance(user_id=member.user_id, position=member.position)
            for member in team.members
        ],
    )
    db.add(performance)
    try:
        db.commit()
    except IntegrityError:
        # Registered concurrently
        db.rollback()
        return get_performance(db, team_id, match_id)
    db.refresh(performance)

    logger.info("Registered team %s for match %s", team_id, match_id)
    return performance


def register_user_team_for_match(db: Session, user_id: int, match_id: int) -> TeamMatchPerformance:
    """Register the user's permanent team, e.g. when they save a fantasy entry."""
    user = db.get(User, user_id)
    if not user:
        raise UserNotFoundError()
    if not user.permanent_team_id:
        raise NoPermanentTeamError()
    return register_team_for_match(db, user.permanent_team_id, match_id)


def auto_register_eligible_teams(
    db: Session,
    match_id: int,
    scores: Optional[ScoreSource] = None
) -> List[TeamMatchPerformance]:
    """
    Register every active team with at least one member holding a fantasy
    entry for the match. Covers teams whose registration was skipped when
    the entry was created. A failure for one team is logged and skipped.

    Returns only the records created by this sweep.
    """
    scores = scores or DatabaseScoreSource(db)
    user_ids = scores.users_with_fantasy_entry(match_id)
    if not user_ids:
        logger.info("No fantasy entries found for match %s", match_id)
        return []

    team_ids = db.exec(
        select(TeamMember.team_id)
        .join(PermanentTeam, PermanentTeam.id == TeamMember.team_id)
        .where(
            TeamMember.user_id.in_(user_ids),
            PermanentTeam.is_active == True  # noqa: E712
        )
        .distinct()
        .order_by(TeamMember.team_id)
    ).all()

    registered = []
    for team_id in team_ids:
        if get_performance(db, team_id, match_id):
            continue
        try:
            registered.append(register_team_for_match(db, team_id, match_id))
        except Exception:
            db.rollback()
            logger.exception("Error auto-registering team %s for match %s", team_id, match_id)

    return registered
