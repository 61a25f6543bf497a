from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from league.database import get_session
from league.models import Club, Competition, SeriesFormat

router = APIRouter()


class CompetitionCreate(BaseModel):
    name: str
    type: str = "LEAGUE"
    series_format: SeriesFormat = SeriesFormat.SINGLE_MATCH

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        v = (v or "").strip().upper()
        if v not in ("LEAGUE", "CUP"):
            raise ValueError("type must be LEAGUE or CUP")
        return v


class CompetitionResponse(BaseModel):
    id: int
    name: str
    type: str
    series_format: SeriesFormat
    created_at: datetime

    class Config:
        from_attributes = True


class ClubCreate(BaseModel):
    name: str
    short_name: Optional[str] = None
    logo_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class ClubResponse(BaseModel):
    id: int
    name: str
    short_name: Optional[str]
    logo_url: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


@router.get("/competitions", response_model=List[CompetitionResponse])
def list_competitions(session: Session = Depends(get_session)):
    """List all competitions"""
    return session.exec(select(Competition).order_by(Competition.id)).all()


@router.post("/competitions", response_model=CompetitionResponse, status_code=201)
def create_competition(data: CompetitionCreate, session: Session = Depends(get_session)):
    competition = Competition(name=data.name, type=data.type, series_format=data.series_format.value)
    session.add(competition)
    session.commit()
    session.refresh(competition)
    return competition


@router.get("/clubs", response_model=List[ClubResponse])
def list_clubs(session: Session = Depends(get_session)):
    """List all clubs"""
    return session.exec(select(Club).order_by(Club.name)).all()


@router.post("/clubs", response_model=ClubResponse, status_code=201)
def create_club(data: ClubCreate, session: Session = Depends(get_session)):
    existing = session.exec(select(Club).where(Club.name == data.name)).first()
    if existing:
        raise HTTPException(status_code=409, detail="club_name_taken")
    club = Club(**data.model_dump())
    session.add(club)
    session.commit()
    session.refresh(club)
    return club
