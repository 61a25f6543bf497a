from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel


class DisqualificationReason(str, Enum):
    ACCUMULATED_CARDS = "ACCUMULATED_CARDS"
    RED_CARD = "RED_CARD"
    SECOND_YELLOW = "SECOND_YELLOW"


class Disqualification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    person_id: int = Field(foreign_key="person.id", index=True)
    club_id: Optional[int] = Field(default=None, foreign_key="club.id", index=True)
    season_id: Optional[int] = Field(default=None, foreign_key="season.id")
    # Match whose events produced the ban; never counted as a served match
    match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    reason: DisqualificationReason = Field(sa_column=Column(String, nullable=False))
    sanction_date: datetime
    ban_duration_matches: int
    matches_missed: int = Field(default=0)
    is_active: bool = Field(default=True, index=True)


class DisqualificationServedMatch(SQLModel, table=True):
    """One row per finished match already counted against a ban."""

    __table_args__ = (
        SAUniqueConstraint("disqualification_id", "match_id", name="uq_disqualification_served_match"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    disqualification_id: int = Field(foreign_key="disqualification.id", index=True)
    match_id: int = Field(foreign_key="match.id")
