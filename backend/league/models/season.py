from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

from league.models.competition import SeriesFormat

if TYPE_CHECKING:
    from league.models.competition import Competition


class RoundType(str, Enum):
    REGULAR = "REGULAR"
    PLAYOFF = "PLAYOFF"


class Season(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    competition_id: int = Field(foreign_key="competition.id", index=True)
    name: str
    # Overrides Competition.series_format when set
    series_format: Optional[SeriesFormat] = Field(default=None, sa_column=Column(String, nullable=True))
    start_date: datetime
    end_date: datetime
    is_active: bool = Field(default=False)

    # Set by stage progression once the Final is decided
    champion_club_id: Optional[int] = Field(default=None, foreign_key="club.id")
    completed_at: Optional[datetime] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    competition: "Competition" = Relationship(back_populates="seasons")


class SeasonParticipant(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("season_id", "club_id", name="uq_season_participant"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="season.id", index=True)
    club_id: int = Field(foreign_key="club.id", index=True)


class SeasonRosterEntry(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("season_id", "club_id", "person_id", name="uq_season_roster_person"),
        SAUniqueConstraint("season_id", "club_id", "shirt_number", name="uq_season_roster_shirt"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="season.id", index=True)
    club_id: int = Field(foreign_key="club.id")
    person_id: int = Field(foreign_key="person.id")
    shirt_number: int
    registration_date: datetime = Field(default_factory=datetime.utcnow)


class SeasonGroup(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("season_id", "group_index", name="uq_season_group_index"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="season.id", index=True)
    group_index: int  # 1..group_count, contiguous
    label: str
    qualify_count: int


class SeasonGroupSlot(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("group_id", "position", name="uq_group_slot_position"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="seasongroup.id", index=True)
    position: int  # 1..group_size
    club_id: Optional[int] = Field(default=None, foreign_key="club.id")


class SeasonRound(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("season_id", "label", name="uq_season_round_label"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="season.id", index=True)
    round_type: RoundType = Field(sa_column=Column(String, nullable=False))
    round_number: Optional[int] = Field(default=None)  # None for playoff stages
    label: str
    group_id: Optional[int] = Field(default=None, foreign_key="seasongroup.id")
