from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel


class PredictionResult(str, Enum):
    ONE = "ONE"  # home win
    DRAW = "DRAW"
    TWO = "TWO"  # away win


class AchievementMetric(str, Enum):
    TOTAL_PREDICTIONS = "TOTAL_PREDICTIONS"
    CORRECT_PREDICTIONS = "CORRECT_PREDICTIONS"


class AppUser(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Prediction(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("user_id", "match_id", name="uq_prediction_user_match"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="appuser.id", index=True)
    match_id: int = Field(foreign_key="match.id", index=True)
    result_1x2: Optional[PredictionResult] = Field(default=None, sa_column=Column(String, nullable=True))
    is_correct: Optional[bool] = Field(default=None)  # None until the match is graded
    points_awarded: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class AchievementType(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    metric: AchievementMetric = Field(sa_column=Column(String, nullable=False))
    required_value: int


class UserAchievement(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("user_id", "achievement_type_id", name="uq_user_achievement"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="appuser.id", index=True)
    achievement_type_id: int = Field(foreign_key="achievementtype.id")
    achieved_date: datetime = Field(default_factory=datetime.utcnow)
