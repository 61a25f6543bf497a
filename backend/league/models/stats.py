"""
Derived aggregate tables.

Rows here are rebuilt wholesale by match finalization; nothing else writes them.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class ClubSeasonStats(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("season_id", "club_id", name="uq_club_season_stats"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="season.id", index=True)
    club_id: int = Field(foreign_key="club.id")
    points: int = Field(default=0)
    wins: int = Field(default=0)
    draws: int = Field(default=0)
    losses: int = Field(default=0)
    goals_for: int = Field(default=0)
    goals_against: int = Field(default=0)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def matches_played(self) -> int:
        return self.wins + self.draws + self.losses

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against


class PlayerSeasonStats(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("season_id", "person_id", name="uq_player_season_stats"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="season.id", index=True)
    person_id: int = Field(foreign_key="person.id")
    club_id: int = Field(foreign_key="club.id")
    goals: int = Field(default=0)
    penalty_goals: int = Field(default=0)
    assists: int = Field(default=0)
    yellow_cards: int = Field(default=0)
    red_cards: int = Field(default=0)
    matches_played: int = Field(default=0)


class PlayerClubCareerStats(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("person_id", "club_id", name="uq_player_club_career"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    person_id: int = Field(foreign_key="person.id")
    club_id: int = Field(foreign_key="club.id", index=True)
    total_goals: int = Field(default=0)
    penalty_goals: int = Field(default=0)
    total_assists: int = Field(default=0)
    yellow_cards: int = Field(default=0)
    red_cards: int = Field(default=0)
    total_matches: int = Field(default=0)
