"""
League Rules (Single Source of Truth)

Points, disciplinary thresholds, date spacing, stage labels and the
per-format behaviour profile. All other modules must import from here.
Do NOT duplicate these rules elsewhere.
"""

from dataclasses import dataclass
from typing import Dict, Literal, Optional, Union

from league.models.competition import SeriesFormat

# =============================================================================
# Points
# =============================================================================

POINTS_WIN = 3
POINTS_DRAW = 1
POINTS_LOSS = 0

PREDICTION_CORRECT_POINTS = 3

# =============================================================================
# Discipline
# =============================================================================

YELLOW_CARD_LIMIT = 4
RED_CARD_BAN_MATCHES = 2
SECOND_YELLOW_BAN_MATCHES = 1
ACCUMULATED_CARDS_BAN_MATCHES = 1

# =============================================================================
# Date spacing (days)
# =============================================================================

ROUND_SPACING_DAYS = 7
SERIES_PAIR_SPACING_DAYS = 2
SERIES_GAME_SPACING_DAYS = 3
STAGE_GAP_DAYS = 7
THIRD_PLACE_OFFSET_DAYS = 1

DEFAULT_PLAYOFF_BEST_OF = 3

# =============================================================================
# Stage labels
# =============================================================================

FINAL_STAGE = "Final"
THIRD_PLACE_STAGE = "Match for 3rd place"

_STAGE_NAMES: Dict[int, str] = {
    2: FINAL_STAGE,
    4: "Semifinal",
    8: "Quarterfinal",
    16: "1/8-final",
    32: "1/16-final",
}


def stage_name_for_teams(team_count: int) -> str:
    """Label a knockout stage by the number of clubs still alive in it (byes included)."""
    return _STAGE_NAMES.get(team_count, f"Playoff ({team_count} teams)")


def regular_round_label(round_number: int, group_label: Optional[str] = None) -> str:
    if group_label:
        return f"{group_label} - Round {round_number}"
    return f"Round {round_number}"


def to_odd(value: Union[int, float, str, None], minimum: int = 1) -> int:
    """Coerce a best-of value to an odd integer >= minimum (even values round up)."""
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = minimum
    n = max(n, minimum)
    if n % 2 == 0:
        n += 1
    return n


def wins_needed(best_of: int) -> int:
    return best_of // 2 + 1


# =============================================================================
# Format profiles
# =============================================================================

ScheduleKind = Literal["round_robin", "bracket", "groups"]
PlayoffKind = Literal["none", "seeded", "bracket_slot"]


@dataclass(frozen=True)
class FormatProfile:
    """How one SeriesFormat behaves across scheduling, standings and progression."""

    schedule_kind: ScheduleKind
    round_robin_passes: int = 1
    playoffs: PlayoffKind = "none"
    standings_include_playoffs: bool = False


FORMAT_PROFILES: Dict[SeriesFormat, FormatProfile] = {
    SeriesFormat.SINGLE_MATCH: FormatProfile("round_robin", 1),
    SeriesFormat.TWO_LEGGED: FormatProfile("round_robin", 2),
    SeriesFormat.BEST_OF_N: FormatProfile("round_robin", 1, playoffs="seeded"),
    SeriesFormat.DOUBLE_ROUND_PLAYOFF: FormatProfile("round_robin", 2, playoffs="seeded"),
    SeriesFormat.PLAYOFF_BRACKET: FormatProfile(
        "bracket", 0, playoffs="bracket_slot", standings_include_playoffs=True
    ),
    SeriesFormat.GROUP_SINGLE_ROUND_PLAYOFF: FormatProfile(
        "groups", 1, playoffs="bracket_slot", standings_include_playoffs=True
    ),
}


def format_profile(series_format: Union[SeriesFormat, str, None]) -> FormatProfile:
    """Profile for a format; unknown or missing formats behave as a single round-robin."""
    try:
        return FORMAT_PROFILES[SeriesFormat(series_format)]
    except ValueError:
        return FORMAT_PROFILES[SeriesFormat.SINGLE_MATCH]


def resolve_season_format(season, competition=None) -> SeriesFormat:
    """The season's own format wins over the competition default."""
    raw = season.series_format or (competition.series_format if competition is not None else None)
    try:
        return SeriesFormat(raw)
    except ValueError:
        return SeriesFormat.SINGLE_MATCH
