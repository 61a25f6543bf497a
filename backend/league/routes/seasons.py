from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session

from league.database import get_session
from league.errors import LeagueError, to_http_exception
from league.models import Season, SeriesFormat
from league.services import league_views
from league.services.cache import default_cache
from league.services.season_scheduler import (
    GroupInput,
    GroupSlotInput,
    GroupStageConfig,
    SeasonAutomationInput,
    create_season_playoffs,
    run_season_automation,
)
from league.utils.dates import parse_match_time

router = APIRouter()


class GroupSlotPayload(BaseModel):
    position: int
    club_id: Optional[int] = None


class GroupPayload(BaseModel):
    group_index: int
    label: str
    qualify_count: Optional[int] = None  # falls back to the stage-wide value
    slots: List[GroupSlotPayload] = []


class GroupStagePayload(BaseModel):
    group_count: int
    group_size: int
    qualify_count: Optional[int] = None
    groups: List[GroupPayload] = []

    def to_config(self) -> GroupStageConfig:
        return GroupStageConfig(
            group_count=self.group_count,
            group_size=self.group_size,
            groups=[
                GroupInput(
                    group_index=g.group_index,
                    label=g.label,
                    qualify_count=g.qualify_count if g.qualify_count is not None else self.qualify_count,
                    slots=[GroupSlotInput(position=s.position, club_id=s.club_id) for s in g.slots],
                )
                for g in self.groups
            ],
        )


class SeasonCreate(BaseModel):
    name: str
    start_date: datetime
    club_ids: List[int] = []
    match_day_of_week: Optional[int] = None  # 0 = Monday
    match_time: Optional[str] = None  # "HH:MM"
    series_format: Optional[SeriesFormat] = None
    best_of: int = 1
    random_draw: bool = False
    copy_club_players_to_roster: bool = False
    group_stage: Optional[GroupStagePayload] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("match_day_of_week")
    @classmethod
    def validate_weekday(cls, v):
        if v is not None and not 0 <= v <= 6:
            raise ValueError("match_day_of_week must be 0 (Monday) .. 6 (Sunday)")
        return v

    @field_validator("match_time")
    @classmethod
    def validate_match_time(cls, v):
        if v is None or not v.strip():
            return None
        if parse_match_time(v) is None:
            raise ValueError("match_time must be HH:MM")
        return v.strip()

    @model_validator(mode="after")
    def validate_best_of(self):
        if self.best_of < 1:
            raise ValueError("best_of must be >= 1")
        return self


class PlayoffCreate(BaseModel):
    best_of: Optional[int] = None


def _get_season(session: Session, season_id: int) -> Season:
    season = session.get(Season, season_id)
    if not season:
        raise HTTPException(status_code=404, detail="season_not_found")
    return season


@router.post("/competitions/{competition_id}/seasons", status_code=201)
def create_season(competition_id: int, data: SeasonCreate, session: Session = Depends(get_session)):
    """Create a season and schedule its opening fixtures"""
    request = SeasonAutomationInput(
        competition_id=competition_id,
        club_ids=data.club_ids,
        season_name=data.name,
        start_date=data.start_date,
        match_day_of_week=data.match_day_of_week,
        match_time=data.match_time,
        copy_club_players_to_roster=data.copy_club_players_to_roster,
        series_format=data.series_format,
        best_of=data.best_of,
        random_draw=data.random_draw,
        group_stage=data.group_stage.to_config() if data.group_stage else None,
    )
    try:
        result = run_season_automation(session, request)
    except LeagueError as e:
        raise to_http_exception(e)
    return result.to_dict()


@router.post("/seasons/{season_id}/playoffs", status_code=201)
def create_playoffs(season_id: int, data: Optional[PlayoffCreate] = None, session: Session = Depends(get_session)):
    """Create the opening playoff stage after the regular season or group stage"""
    try:
        created = create_season_playoffs(session, season_id, data.best_of if data else None)
    except LeagueError as e:
        raise to_http_exception(e)
    league_views.invalidate_season_views(default_cache, season_id)
    return created.to_dict()


@router.get("/seasons/{season_id}/table")
def get_league_table(season_id: int, session: Session = Depends(get_session)):
    season = _get_season(session, season_id)
    return league_views.cached_league_table(session, season, default_cache)


@router.get("/seasons/{season_id}/schedule")
def get_league_schedule(
    season_id: int,
    limit_rounds: int = Query(league_views.DEFAULT_ROUND_LIMIT, ge=1),
    session: Session = Depends(get_session),
):
    season = _get_season(session, season_id)
    return league_views.cached_league_schedule(session, season, default_cache, limit_rounds)


@router.get("/seasons/{season_id}/results")
def get_league_results(
    season_id: int,
    limit_rounds: int = Query(league_views.DEFAULT_ROUND_LIMIT, ge=1),
    session: Session = Depends(get_session),
):
    season = _get_season(session, season_id)
    return league_views.cached_league_results(session, season, default_cache, limit_rounds)


@router.get("/seasons/{season_id}/bracket")
def get_bracket(season_id: int, session: Session = Depends(get_session)):
    season = _get_season(session, season_id)
    return league_views.cached_bracket_view(session, season, default_cache)
