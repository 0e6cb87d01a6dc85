"""
Team scoring for a completed match.

``complete_match_team_scoring`` runs three steps in order:

1. auto-register every eligible team (``pending`` records),
2. recompute member and team totals for ``pending``/``active`` records and
   move them to ``active``,
3. award bonuses to ``active`` records and move them to ``completed``.

Bonuses are decided by a scoring policy:

* ``FixturePolicy``: a fixed bracket of team-name pairings. The higher total
  wins the full bonus, a tie splits it, and a side whose opponent has no
  record wins by default. Teams outside the bracket get nothing.
* ``RankPolicy``: all records ranked by total; tiered bonuses for the top
  three and a flat bonus for 4th-5th when enough teams played.

A record is only ever awarded while ``active`` and every award ends with the
record ``completed``, so running the whole thing again for the same match
changes nothing.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlmodel import Session, select

from ..config import (
    FIXTURE_WIN_BONUS,
    RANK_TIER_BONUSES,
    SCORING_POLICY,
    TEAM_FIXTURES,
    TEAM_POINTS_BONUS_MULTIPLIER,
    TOP_FIVE_BONUS,
    TOP_FIVE_MIN_TEAMS,
)
from ..errors import MatchNotFoundError, ValidationError
from ..models.match import Match
from ..models.permanent_team import PermanentTeam
from ..models.team_match_performance import TeamMatchPerformance, PENDING, ACTIVE, COMPLETED
from ..models.user import User
from .match_registration import auto_register_eligible_teams
from .notifications import TEAM_BONUS_AWARDED, notify_safely
from .score_sources import DatabaseScoreSource, ScoreSource

logger = logging.getLogger(__name__)


@dataclass
class BonusDecision:
    bonus: float = 0
    rank: Optional[int] = None
    fixture_win: bool = False
    fixture_tie: bool = False


class FixturePolicy:
    """Head-to-head bonuses over a fixed bracket of team names."""

    name = "fixture"

    def __init__(
        self,
        fixtures: Sequence[Tuple[str, str]] = TEAM_FIXTURES,
        win_bonus: float = FIXTURE_WIN_BONUS
    ):
        self.fixtures = list(fixtures)
        self.win_bonus = win_bonus

    def decide(self, db: Session, performances: List[TeamMatchPerformance]) -> Dict[int, BonusDecision]:
        by_name = {}
        for perf in performances:
            team = db.get(PermanentTeam, perf.team_id)
            if team:
                by_name[team.team_name] = perf

        decisions: Dict[int, BonusDecision] = {}
        win = BonusDecision(bonus=self.win_bonus, fixture_win=True)
        loss = BonusDecision()

        for name1, name2 in self.fixtures:
            perf1 = by_name.get(name1)
            perf2 = by_name.get(name2)

            if not perf1 and not perf2:
                logger.debug("Fixture %s vs %s: neither team participated", name1, name2)
                continue

            if perf1 and not perf2:
                result1, result2 = win, None
                logger.info("Fixture %s vs %s: %s wins by default (%s pts)",
                            name1, name2, name1, perf1.team_total_points)
            elif perf2 and not perf1:
                result1, result2 = None, win
                logger.info("Fixture %s vs %s: %s wins by default (%s pts)",
                            name1, name2, name2, perf2.team_total_points)
            elif perf1.team_total_points > perf2.team_total_points:
                result1, result2 = win, loss
                logger.info("Fixture %s vs %s: %s wins (%s vs %s)",
                            name1, name2, name1, perf1.team_total_points, perf2.team_total_points)
            elif perf2.team_total_points > perf1.team_total_points:
                result1, result2 = loss, win
                logger.info("Fixture %s vs %s: %s wins (%s vs %s)",
                            name1, name2, name2, perf2.team_total_points, perf1.team_total_points)
            else:
                tie = BonusDecision(bonus=self.win_bonus / 2, fixture_tie=True)
                result1, result2 = tie, tie
                logger.info("Fixture %s vs %s: tie (%s pts each), bonus split",
                            name1, name2, perf1.team_total_points)

            for perf, result in ((perf1, result1), (perf2, result2)):
                if perf is None:
                    continue
                if perf.id in decisions:
                    logger.warning("Team record %s appears in more than one fixture; keeping first result", perf.id)
                    continue
                decisions[perf.id] = result

        for perf in performances:
            if perf.id not in decisions:
                logger.info("Team %s not in fixtures, awarding 0 bonus", perf.team_id)
                decisions[perf.id] = BonusDecision()

        return decisions

    def update_team_stats(self, team: PermanentTeam, decision: BonusDecision) -> None:
        if decision.fixture_win:
            team.wins += 1


class RankPolicy:
    """Bonuses by finishing position among every team that played the match."""

    name = "rank"

    def __init__(
        self,
        tier_bonuses: Sequence[float] = RANK_TIER_BONUSES,
        top_five_bonus: float = TOP_FIVE_BONUS,
        top_five_min_teams: int = TOP_FIVE_MIN_TEAMS
    ):
        self.tier_bonuses = list(tier_bonuses)
        self.top_five_bonus = top_five_bonus
        self.top_five_min_teams = top_five_min_teams

    def bonus_for_rank(self, rank: int, field_size: int) -> float:
        if rank <= len(self.tier_bonuses):
            return self.tier_bonuses[rank - 1]
        if rank <= 5 and field_size >= self.top_five_min_teams:
            return self.top_five_bonus
        return 0

    def decide(self, db: Session, performances: List[TeamMatchPerformance]) -> Dict[int, BonusDecision]:
        # sorted() is stable, so equal totals keep registration order
        ordered = sorted(performances, key=lambda perf: perf.team_total_points, reverse=True)
        field_size = len(ordered)
        return {
            perf.id: BonusDecision(bonus=self.bonus_for_rank(rank, field_size), rank=rank)
            for rank, perf in enumerate(ordered, start=1)
        }

    def update_team_stats(self, team: PermanentTeam, decision: BonusDecision) -> None:
        rank = decision.rank
        if rank == 1:
            team.wins += 1
        if rank <= 3:
            team.podiums += 1
        if rank <= 5:
            team.top_fives += 1

        team.best_rank = rank if team.best_rank is None else min(team.best_rank, rank)

        # Running mean over the matches played before this one
        if team.average_rank is None:
            team.average_rank = float(rank)
        else:
            played = team.matches_played
            team.average_rank = (team.average_rank * played + rank) / (played + 1)


SCORING_POLICIES = {
    FixturePolicy.name: FixturePolicy,
    RankPolicy.name: RankPolicy,
}


def get_scoring_policy(name: Optional[str] = None):
    name = (name or SCORING_POLICY).lower()
    try:
        return SCORING_POLICIES[name]()
    except KeyError:
        raise ValidationError(f"Unknown scoring policy '{name}'")


def recompute_team_points(
    db: Session,
    match_id: int,
    scores: Optional[ScoreSource] = None
) -> List[TeamMatchPerformance]:
    """
    Recalculate member and team totals for every pending or active record of
    the match. Values are overwritten, never accumulated, so this can run any
    number of times before bonuses are awarded. Completed records are left
    alone, and a team that fails is rolled back and skipped.
    """
    scores = scores or DatabaseScoreSource(db)
    performances = db.exec(
        select(TeamMatchPerformance)
        .where(
            TeamMatchPerformance.match_id == match_id,
            TeamMatchPerformance.status.in_([PENDING, ACTIVE])
        )
        .order_by(TeamMatchPerformance.id)
    ).all()

    logger.info("Calculating team points for %d teams in match %s", len(performances), match_id)

    recomputed = []
    for perf in performances:
        try:
            team_total = 0
            for member in perf.member_performances:
                member.fantasy_points = scores.fantasy_points(member.user_id, match_id)
                member.prediction_points = scores.prediction_points(member.user_id, match_id)
                member.total_points = member.fantasy_points + member.prediction_points

                fantasy_team_id = scores.fantasy_team_id(member.user_id, match_id)
                if fantasy_team_id is not None:
                    member.fantasy_team_id = fantasy_team_id

                team_total += member.total_points
                logger.debug("  Member %s: fantasy=%s, prediction=%s, total=%s", member.user_id,
                             member.fantasy_points, member.prediction_points, member.total_points)

            perf.team_total_points = team_total
            perf.status = ACTIVE
            perf.updated_at = datetime.now(UTC)
            db.add(perf)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Error calculating points for team %s in match %s", perf.team_id, match_id)
            continue

        logger.info("  Team %s total points: %s", perf.team_id, perf.team_total_points)
        recomputed.append(perf)

    return recomputed


def _award_bonus(db: Session, perf: TeamMatchPerformance, decision: BonusDecision, policy) -> bool:
    """Apply one team's bonus. Returns False if the record was already awarded."""
    now = datetime.now(UTC)

    # Claim the record; a concurrent run that got here first leaves nothing to claim
    claimed = db.connection().execute(
        update(TeamMatchPerformance)
        .where(TeamMatchPerformance.id == perf.id, TeamMatchPerformance.status == ACTIVE)
        .values(status=COMPLETED, updated_at=now)
    )
    if claimed.rowcount != 1:
        return False

    bonus = decision.bonus
    perf.status = COMPLETED
    perf.updated_at = now
    perf.bonus_awarded = bonus
    perf.rank = decision.rank
    db.add(perf)

    for member in perf.member_performances:
        member.bonus_points = bonus
        user = db.get(User, member.user_id)
        if user is None:
            logger.warning("User %s on team %s no longer exists", member.user_id, perf.team_id)
            continue
        user.team_bonus_points_earned += bonus
        user.total_fantasy_points += bonus
        user.team_matches_played += 1
        db.add(user)

    team = db.get(PermanentTeam, perf.team_id)
    if team is None:
        logger.error("Team not found for performance %s", perf.id)
        return True

    points_delta = perf.team_total_points + bonus * TEAM_POINTS_BONUS_MULTIPLIER
    policy.update_team_stats(team, decision)
    team.total_points += points_delta
    team.matches_played += 1
    team.updated_at = now
    db.add(team)

    logger.info("Updated team %s stats: total_points +%s, bonus %s, rank %s",
                team.team_name, points_delta, bonus, decision.rank)
    return True


def award_team_bonuses(
    db: Session,
    match_id: int,
    policy=None,
    notifier=None
) -> List[TeamMatchPerformance]:
    """
    Award bonuses to every active record of the match and complete them.

    Each record commits on its own; one that fails stays active for a later run.
    """
    policy = policy or get_scoring_policy()
    performances = list(db.exec(
        select(TeamMatchPerformance)
        .where(
            TeamMatchPerformance.match_id == match_id,
            TeamMatchPerformance.status == ACTIVE
        )
        .order_by(TeamMatchPerformance.id)
    ).all())

    if not performances:
        logger.info("No active team performances to award bonuses for match %s", match_id)
        return []

    logger.info("Awarding %s bonuses for %d teams in match %s", policy.name, len(performances), match_id)
    decisions = policy.decide(db, performances)

    awarded = []
    for perf in performances:
        decision = decisions[perf.id]
        try:
            applied = _award_bonus(db, perf, decision, policy)
            if not applied:
                db.rollback()
                logger.warning("Performance %s was already completed, skipping", perf.id)
                continue
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Error awarding bonus to team %s in match %s", perf.team_id, match_id)
            continue

        awarded.append(perf)

        if decision.bonus > 0 and notifier is not None:
            member_ids = [member.user_id for member in perf.member_performances]
            notify_safely(notifier, member_ids, TEAM_BONUS_AWARDED, {
                "match_id": match_id,
                "team_id": perf.team_id,
                "bonus": decision.bonus,
                "rank": decision.rank,
                "fixture_win": decision.fixture_win,
                "fixture_tie": decision.fixture_tie,
            })

    return awarded


def complete_match_team_scoring(
    db: Session,
    match_id: int,
    policy=None,
    scores: Optional[ScoreSource] = None,
    notifier=None
) -> Dict[str, int]:
    """Register, aggregate and award for a match. Safe to call again."""
    if not db.get(Match, match_id):
        raise MatchNotFoundError()

    scores = scores or DatabaseScoreSource(db)

    registered = auto_register_eligible_teams(db, match_id, scores)
    recomputed = recompute_team_points(db, match_id, scores)
    awarded = award_team_bonuses(db, match_id, policy, notifier)

    summary = {
        "match_id": match_id,
        "registered": len(registered),
        "recomputed": len(recomputed),
        "awarded": len(awarded),
    }
    logger.info("Team scoring complete for match %s: %s", match_id, summary)
    return summary
