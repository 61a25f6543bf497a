from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from league.models.season import Season


class SeriesFormat(str, Enum):
    SINGLE_MATCH = "SINGLE_MATCH"  # single round-robin
    TWO_LEGGED = "TWO_LEGGED"  # double round-robin, home and away
    BEST_OF_N = "BEST_OF_N"  # single round-robin, then best-of-N playoff series
    DOUBLE_ROUND_PLAYOFF = "DOUBLE_ROUND_PLAYOFF"  # double round-robin, then best-of-N playoff series
    PLAYOFF_BRACKET = "PLAYOFF_BRACKET"  # single-elimination bracket from the first match
    GROUP_SINGLE_ROUND_PLAYOFF = "GROUP_SINGLE_ROUND_PLAYOFF"  # groups, then single-elimination bracket


class Competition(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    type: str = Field(default="LEAGUE")  # "LEAGUE" | "CUP"
    series_format: SeriesFormat = Field(sa_column=Column(String, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)

    seasons: List["Season"] = Relationship(back_populates="competition")
