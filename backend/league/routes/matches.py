"""
Match results: score entry, events and finalization.

Setting a match FINISHED (or editing a finished match) runs finalize, which
rebuilds standings and statistics, applies discipline, grades predictions
and advances the knockout stage.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, select

from league.database import get_session
from league.errors import LeagueError, to_http_exception
from league.models import Match, MatchEvent, MatchEventType, MatchLineup, MatchStatus
from league.services import league_views
from league.services.cache import default_cache
from league.services.match_finalization import finalize_match

router = APIRouter()


class MatchUpdate(BaseModel):
    status: Optional[MatchStatus] = None
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    has_penalty_shootout: Optional[bool] = None
    penalty_home_score: Optional[int] = None
    penalty_away_score: Optional[int] = None
    match_datetime: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_scores(self):
        for name in ("home_score", "away_score", "penalty_home_score", "penalty_away_score"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be >= 0")
        return self


class MatchEventCreate(BaseModel):
    player_id: int
    club_id: int
    event_type: MatchEventType
    minute: int = 0
    related_player_id: Optional[int] = None

    @field_validator("minute")
    @classmethod
    def validate_minute(cls, v):
        if v < 0:
            raise ValueError("minute must be >= 0")
        return v


class LineupCreate(BaseModel):
    club_id: int
    person_ids: List[int]


class MatchState(BaseModel):
    id: int
    season_id: int
    match_datetime: datetime
    home_club_id: int
    away_club_id: int
    home_score: int
    away_score: int
    has_penalty_shootout: bool
    penalty_home_score: int
    penalty_away_score: int
    status: MatchStatus
    series_id: Optional[int] = None
    series_match_number: Optional[int] = None

    class Config:
        from_attributes = True


class MatchUpdateResponse(BaseModel):
    match: MatchState
    finalization: Optional[Dict[str, Any]] = None


def _get_match(session: Session, match_id: int) -> Match:
    match = session.get(Match, match_id)
    if not match:
        raise HTTPException(status_code=404, detail="match_not_found")
    return match


def _finalize(session: Session, match_id: int) -> Optional[Dict[str, Any]]:
    try:
        outcome = finalize_match(session, match_id)
    except LeagueError as e:
        raise to_http_exception(e)
    return outcome.to_dict() if outcome else None


@router.patch("/matches/{match_id}", response_model=MatchUpdateResponse)
def update_match(match_id: int, payload: MatchUpdate, session: Session = Depends(get_session)):
    """Update score/status. FINISHED matches are finalized after commit."""
    match = _get_match(session, match_id)
    changes = payload.model_dump(exclude_unset=True)
    if "status" in changes and changes["status"] is not None:
        changes["status"] = changes["status"].value
    for key, value in changes.items():
        if value is not None:
            setattr(match, key, value)
    session.add(match)
    session.commit()
    session.refresh(match)

    finalization = None
    if match.status == MatchStatus.FINISHED:
        finalization = _finalize(session, match_id)
        session.refresh(match)
    else:
        league_views.invalidate_season_views(default_cache, match.season_id)
    return MatchUpdateResponse(match=MatchState.model_validate(match), finalization=finalization)


@router.post("/matches/{match_id}/events", status_code=201)
def add_match_event(match_id: int, payload: MatchEventCreate, session: Session = Depends(get_session)):
    """Record a goal, card or substitution. Re-finalizes a match that is already FINISHED."""
    match = _get_match(session, match_id)
    if payload.club_id not in (match.home_club_id, match.away_club_id):
        raise HTTPException(status_code=422, detail="club_not_in_match")
    event = MatchEvent(
        match_id=match.id,
        player_id=payload.player_id,
        related_player_id=payload.related_player_id,
        club_id=payload.club_id,
        minute=payload.minute,
        event_type=payload.event_type.value,
    )
    session.add(event)
    session.commit()
    session.refresh(event)

    finalization = None
    if match.status == MatchStatus.FINISHED:
        finalization = _finalize(session, match_id)
    return {"event_id": event.id, "finalization": finalization}


@router.put("/matches/{match_id}/lineup")
def set_match_lineup(match_id: int, payload: LineupCreate, session: Session = Depends(get_session)):
    """Replace one club's lineup for a match."""
    match = _get_match(session, match_id)
    if payload.club_id not in (match.home_club_id, match.away_club_id):
        raise HTTPException(status_code=422, detail="club_not_in_match")
    existing = session.exec(
        select(MatchLineup).where(MatchLineup.match_id == match_id, MatchLineup.club_id == payload.club_id)
    ).all()
    for row in existing:
        session.delete(row)
    session.flush()
    for person_id in dict.fromkeys(payload.person_ids):
        session.add(MatchLineup(match_id=match_id, person_id=person_id, club_id=payload.club_id))
    session.commit()
    return {"match_id": match_id, "club_id": payload.club_id, "count": len(set(payload.person_ids))}


@router.post("/matches/{match_id}/finalize")
def refinalize_match(match_id: int, session: Session = Depends(get_session)):
    """Manually re-run finalize for a FINISHED match (repair/retry). Safe to repeat."""
    match = _get_match(session, match_id)
    if match.status != MatchStatus.FINISHED:
        raise HTTPException(status_code=422, detail="match_not_finished")
    return _finalize(session, match_id)
