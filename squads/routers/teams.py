from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlmodel import Session

from ..config import DEFAULT_PAGE_LIMIT, HISTORY_PAGE_LIMIT, MAX_PAGE_LIMIT
from ..database import get_session
from ..dependencies import get_notifier, require_admin, require_user
from ..models.user import User
from ..services import formation_queue, match_registration, permanent_teams, team_scoring

router = APIRouter(prefix="/api/teams/permanent", tags=["teams"])


class RenameTeamRequest(BaseModel):
    """Schema for renaming a team."""
    team_name: str


def _join_payload(db: Session, result: formation_queue.JoinResult) -> dict:
    data = {"status": result.status}
    if result.team is not None:
        data["team"] = permanent_teams.serialize_team(db, result.team)
    if result.position is not None:
        data["position"] = result.position
    return data


# ========== FORMATION QUEUE ==========

@router.post("/queue/join")
async def join_queue(
    current_user: User = Depends(require_user),
    notifier=Depends(get_notifier),
    db: Session = Depends(get_session)
):
    result = formation_queue.join_queue(db, current_user.id, notifier)
    return {"success": True, "data": _join_payload(db, result)}


@router.delete("/queue/leave")
async def leave_queue(
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    formation_queue.leave_queue(db, current_user.id)
    return {"success": True, "message": "Left the queue successfully"}


@router.get("/queue/status")
async def queue_status(
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    data = formation_queue.queue_status(db, current_user.id)
    if data.get("team") is not None:
        data["team"] = permanent_teams.serialize_team(db, data["team"])
    return {"success": True, "data": data}


# ========== PERMANENT TEAMS ==========

@router.get("/my-team")
async def my_team(
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    team = permanent_teams.get_user_team(db, current_user.id)
    if not team:
        return {"success": True, "data": None, "message": "Not yet in a permanent team"}
    return {"success": True, "data": permanent_teams.serialize_team(db, team)}


@router.get("/leaderboard")
async def leaderboard(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    return {"success": True, "data": permanent_teams.team_leaderboard(db, page, limit)}


@router.get("")
async def list_teams(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    search: str = "",
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    return {"success": True, "data": permanent_teams.list_teams(db, page, limit, search)}


@router.get("/{team_id}")
async def team_detail(
    team_id: int,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    team = permanent_teams.get_team(db, team_id)
    if not team:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
    return {"success": True, "data": permanent_teams.serialize_team(db, team)}


@router.put("/{team_id}/rename")
async def rename_team(
    team_id: int,
    payload: RenameTeamRequest,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    team = permanent_teams.rename_team(db, team_id, current_user.id, payload.team_name)
    return {"success": True, "data": permanent_teams.serialize_team(db, team)}


@router.get("/{team_id}/history")
async def team_history(
    team_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(HISTORY_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    return {"success": True, "data": permanent_teams.team_match_history(db, team_id, page, limit)}


# ========== MATCH PARTICIPATION ==========

@router.post("/{match_id}/register")
async def register_for_match(
    match_id: int,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    """Register the current user's team for a match."""
    performance = match_registration.register_user_team_for_match(db, current_user.id, match_id)
    return {"success": True, "data": permanent_teams.serialize_performance(db, performance)}


@router.post("/matches/{match_id}/complete")
async def complete_match_scoring(
    match_id: int,
    policy: Optional[str] = None,
    current_user: User = Depends(require_admin),
    notifier=Depends(get_notifier),
    db: Session = Depends(get_session)
):
    """Run team scoring once the match's individual points are final."""
    scoring_policy = team_scoring.get_scoring_policy(policy)
    summary = team_scoring.complete_match_team_scoring(
        db, match_id, policy=scoring_policy, notifier=notifier
    )
    return {"success": True, "data": summary}
