from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class Club(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    short_name: Optional[str] = None
    logo_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Person(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    is_player: bool = Field(default=True)


class ClubPlayer(SQLModel, table=True):
    """Permanent club roster link. Seasonal registrations live in SeasonRosterEntry."""

    __table_args__ = (SAUniqueConstraint("club_id", "person_id", name="uq_club_player"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    club_id: int = Field(foreign_key="club.id", index=True)
    person_id: int = Field(foreign_key="person.id", index=True)
    default_shirt_number: Optional[int] = Field(default=None)
