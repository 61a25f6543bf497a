from league.models.club import Club, ClubPlayer, Person
from league.models.competition import Competition, SeriesFormat
from league.models.discipline import Disqualification, DisqualificationReason, DisqualificationServedMatch
from league.models.match import (
    PENDING_MATCH_STATUSES,
    Match,
    MatchEvent,
    MatchEventType,
    MatchLineup,
    MatchSeries,
    MatchStatus,
    SeriesStatus,
)
from league.models.prediction import (
    AchievementMetric,
    AchievementType,
    AppUser,
    Prediction,
    PredictionResult,
    UserAchievement,
)
from league.models.season import (
    RoundType,
    Season,
    SeasonGroup,
    SeasonGroupSlot,
    SeasonParticipant,
    SeasonRosterEntry,
    SeasonRound,
)
from league.models.stats import ClubSeasonStats, PlayerClubCareerStats, PlayerSeasonStats

__all__ = [
    "Club",
    "ClubPlayer",
    "Person",
    "Competition",
    "SeriesFormat",
    "Season",
    "SeasonParticipant",
    "SeasonRosterEntry",
    "SeasonGroup",
    "SeasonGroupSlot",
    "SeasonRound",
    "RoundType",
    "Match",
    "MatchEvent",
    "MatchEventType",
    "MatchLineup",
    "MatchSeries",
    "MatchStatus",
    "SeriesStatus",
    "PENDING_MATCH_STATUSES",
    "ClubSeasonStats",
    "PlayerSeasonStats",
    "PlayerClubCareerStats",
    "Disqualification",
    "DisqualificationReason",
    "DisqualificationServedMatch",
    "AppUser",
    "Prediction",
    "PredictionResult",
    "AchievementType",
    "AchievementMetric",
    "UserAchievement",
]
