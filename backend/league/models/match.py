from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel


class MatchStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    LIVE = "LIVE"
    FINISHED = "FINISHED"
    POSTPONED = "POSTPONED"


# Statuses of matches that have not been played yet (moot once their series is decided)
PENDING_MATCH_STATUSES = (MatchStatus.SCHEDULED, MatchStatus.LIVE, MatchStatus.POSTPONED)


class SeriesStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"


class MatchEventType(str, Enum):
    GOAL = "GOAL"
    PENALTY_GOAL = "PENALTY_GOAL"
    OWN_GOAL = "OWN_GOAL"
    PENALTY_MISSED = "PENALTY_MISSED"
    YELLOW_CARD = "YELLOW_CARD"
    SECOND_YELLOW_CARD = "SECOND_YELLOW_CARD"
    RED_CARD = "RED_CARD"
    SUB_IN = "SUB_IN"
    SUB_OUT = "SUB_OUT"


class MatchSeries(SQLModel, table=True):
    """1..N matches between the same two clubs in one knockout stage.

    home_club_id == away_club_id marks an automatic bye (created FINISHED).
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="season.id", index=True)
    stage_name: str = Field(index=True)
    home_club_id: int = Field(foreign_key="club.id")
    away_club_id: int = Field(foreign_key="club.id")
    home_seed: Optional[int] = Field(default=None)
    away_seed: Optional[int] = Field(default=None)
    bracket_slot: Optional[int] = Field(default=None)  # None for the third-place series
    best_of: int = Field(default=1)
    series_status: SeriesStatus = Field(
        default=SeriesStatus.IN_PROGRESS, sa_column=Column(String, nullable=False)
    )
    winner_club_id: Optional[int] = Field(default=None, foreign_key="club.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_bye(self) -> bool:
        return self.home_club_id == self.away_club_id


class Match(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("series_id", "series_match_number", name="uq_series_match_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="season.id", index=True)
    match_datetime: datetime = Field(index=True)
    home_club_id: int = Field(foreign_key="club.id")
    away_club_id: int = Field(foreign_key="club.id")
    home_score: int = Field(default=0)
    away_score: int = Field(default=0)

    has_penalty_shootout: bool = Field(default=False)
    penalty_home_score: int = Field(default=0)
    penalty_away_score: int = Field(default=0)

    status: MatchStatus = Field(default=MatchStatus.SCHEDULED, sa_column=Column(String, nullable=False))

    series_id: Optional[int] = Field(default=None, foreign_key="matchseries.id", index=True)
    series_match_number: Optional[int] = Field(default=None)  # 1..best_of within the series
    round_id: Optional[int] = Field(default=None, foreign_key="seasonround.id")
    group_id: Optional[int] = Field(default=None, foreign_key="seasongroup.id")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})


class MatchEvent(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: int = Field(foreign_key="match.id", index=True)
    player_id: int = Field(foreign_key="person.id")
    related_player_id: Optional[int] = Field(default=None, foreign_key="person.id")  # assist on goals
    club_id: int = Field(foreign_key="club.id")
    minute: int = Field(default=0)
    event_type: MatchEventType = Field(sa_column=Column(String, nullable=False))


class MatchLineup(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("match_id", "person_id", name="uq_match_lineup_person"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: int = Field(foreign_key="match.id", index=True)
    person_id: int = Field(foreign_key="person.id")
    club_id: int = Field(foreign_key="club.id")
