"""
Season Scheduler - Season Automation V1

Creates a season and its whole opening schedule in one unit of work:
1. Validate (group config for the group format, >= 2 distinct clubs)
2. Align kickoff to the requested weekday and apply the kickoff time
3. Persist Season, participants and zeroed standings rows
4. Copy club rosters (optional)
5. Schedule fixtures for the format (round-robin, knockout bracket or groups)
6. Push the season end date to the last scheduled kickoff

Also creates the playoff bracket once a regular season or group stage is over.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlmodel import Session, select

from league.errors import LeagueNotFoundError, LeagueValidationError, StateConflictError
from league.models import (
    Club,
    ClubPlayer,
    ClubSeasonStats,
    Competition,
    Match,
    MatchSeries,
    MatchStatus,
    RoundType,
    Season,
    SeasonGroup,
    SeasonGroupSlot,
    SeasonParticipant,
    SeasonRosterEntry,
    SeasonRound,
    SeriesFormat,
    SeriesStatus,
)
from league.services.bracket_planner import BracketPlan, plan_bracket
from league.services.league_rules import (
    DEFAULT_PLAYOFF_BEST_OF,
    ROUND_SPACING_DAYS,
    STAGE_GAP_DAYS,
    format_profile,
    regular_round_label,
    resolve_season_format,
    to_odd,
)
from league.services.round_robin import generate_round_robin_pairs, unique_ids
from league.services.standings import compute_group_playoff_seeds, load_stats_by_club, rank_clubs_by_stats
from league.utils.dates import add_days, align_to_weekday, apply_time, time_of
from league.utils.sql import count_where

logger = logging.getLogger(__name__)


# ============================================================================
# Input / Result Models
# ============================================================================


@dataclass
class GroupSlotInput:
    position: int
    club_id: Optional[int]


@dataclass
class GroupInput:
    group_index: int
    label: str
    qualify_count: Optional[int]
    slots: List[GroupSlotInput] = field(default_factory=list)


@dataclass
class GroupStageConfig:
    group_count: int
    group_size: int
    groups: List[GroupInput] = field(default_factory=list)


@dataclass
class ValidatedGroupStage:
    group_size: int
    groups: List[GroupInput]
    club_ids: List[int]


@dataclass
class SeasonAutomationInput:
    competition_id: int
    club_ids: List[int]
    season_name: str
    start_date: datetime
    match_day_of_week: Optional[int] = None  # 0 = Monday
    match_time: Optional[str] = None  # "HH:MM"
    copy_club_players_to_roster: bool = False
    series_format: Optional[SeriesFormat] = None  # falls back to the competition's
    best_of: int = 1  # knockout format only
    random_draw: bool = False  # knockout format only
    group_stage: Optional[GroupStageConfig] = None


@dataclass
class SeasonAutomationResult:
    season_id: int
    participants_created: int = 0
    matches_created: int = 0
    roster_entries_created: int = 0
    series_created: int = 0
    groups_created: int = 0
    group_slots_created: int = 0
    bye_club_ids: List[int] = field(default_factory=list)

    def to_dict(self):
        return {
            "season_id": self.season_id,
            "participants_created": self.participants_created,
            "matches_created": self.matches_created,
            "roster_entries_created": self.roster_entries_created,
            "series_created": self.series_created,
            "groups_created": self.groups_created,
            "group_slots_created": self.group_slots_created,
            "bye_club_ids": self.bye_club_ids,
        }


@dataclass
class StageCreation:
    """What persisting one bracket stage wrote."""

    series_created: int = 0
    matches_created: int = 0
    latest_match_datetime: Optional[datetime] = None
    bye_club_id: Optional[int] = None

    def to_dict(self):
        return {
            "series_created": self.series_created,
            "matches_created": self.matches_created,
            "bye_club_id": self.bye_club_id,
        }


# ============================================================================
# Validation
# ============================================================================


def validate_group_stage_config(config: Optional[GroupStageConfig]) -> ValidatedGroupStage:
    """Check a group-stage layout. Raises LeagueValidationError with the first failing code."""
    if config is None:
        raise LeagueValidationError("group_stage_missing")
    if config.group_count is None or config.group_count <= 0:
        raise LeagueValidationError("group_stage_invalid_count")
    if config.group_size is None or config.group_size < 2:
        raise LeagueValidationError("group_stage_invalid_size")
    if config.groups is None or len(config.groups) != config.group_count:
        raise LeagueValidationError("group_stage_count_mismatch")

    group_size = config.group_size
    groups = sorted(config.groups, key=lambda g: g.group_index if g.group_index is not None else 0)
    seen_indexes = set()
    seen_clubs = set()
    club_ids: List[int] = []

    for index, group in enumerate(groups):
        if group.group_index is None or group.group_index < 1:
            raise LeagueValidationError("group_stage_invalid_index")
        if group.group_index in seen_indexes:
            raise LeagueValidationError("group_stage_duplicate_index")
        seen_indexes.add(group.group_index)

        if not group.label or not group.label.strip():
            raise LeagueValidationError("group_stage_label_required")
        if len(group.slots) != group_size:
            raise LeagueValidationError("group_stage_slot_count")
        if group.qualify_count is None or not 1 <= group.qualify_count <= group_size:
            raise LeagueValidationError("group_stage_invalid_qualify")

        seen_positions = set()
        for slot in group.slots:
            if slot.position is None or not 1 <= slot.position <= group_size:
                raise LeagueValidationError("group_stage_invalid_slot_position")
            if slot.position in seen_positions:
                raise LeagueValidationError("group_stage_duplicate_slot_position")
            seen_positions.add(slot.position)

            if not slot.club_id or slot.club_id <= 0:
                raise LeagueValidationError("group_stage_slot_club_required")
            if slot.club_id in seen_clubs:
                raise LeagueValidationError("group_stage_duplicate_club")
            seen_clubs.add(slot.club_id)
            club_ids.append(slot.club_id)

        # Group indexes must run 1..group_count without gaps
        expected = 1 if index == 0 else groups[index - 1].group_index + 1
        if group.group_index != expected:
            raise LeagueValidationError("group_stage_index_range")

    if len(seen_clubs) != config.group_count * group_size:
        raise LeagueValidationError("group_stage_incomplete")

    return ValidatedGroupStage(group_size=group_size, groups=groups, club_ids=club_ids)


# ============================================================================
# Shared persistence helpers
# ============================================================================


def ensure_round(
    session: Session,
    season_id: int,
    label: str,
    round_type: RoundType,
    round_number: Optional[int] = None,
    group_id: Optional[int] = None,
) -> SeasonRound:
    """Get the season round with this label, creating it on first use."""
    existing = session.exec(
        select(SeasonRound).where(SeasonRound.season_id == season_id, SeasonRound.label == label)
    ).first()
    if existing:
        return existing
    season_round = SeasonRound(
        season_id=season_id,
        round_type=round_type.value,
        round_number=round_number,
        label=label,
        group_id=group_id,
    )
    session.add(season_round)
    session.flush()
    return season_round


def create_bye_series(
    session: Session,
    season_id: int,
    stage_name: str,
    club_id: int,
    seed: Optional[int],
    bracket_slot: Optional[int],
    best_of: int = 1,
) -> MatchSeries:
    """An automatic bye: a finished series of the club against itself."""
    series = MatchSeries(
        season_id=season_id,
        stage_name=stage_name,
        home_club_id=club_id,
        away_club_id=club_id,
        home_seed=seed,
        away_seed=seed,
        bracket_slot=bracket_slot,
        best_of=best_of,
        series_status=SeriesStatus.FINISHED.value,
        winner_club_id=club_id,
    )
    session.add(series)
    return series


def persist_bracket_plan(session: Session, season_id: int, plan: BracketPlan, best_of: int) -> StageCreation:
    """Write series, matches and the stage round for one planned stage.

    Games of a series alternate venue, starting at the higher seed.
    """
    created = StageCreation()
    if not plan.stage_name:
        return created

    stage_round = ensure_round(session, season_id, plan.stage_name, RoundType.PLAYOFF)

    for sp in plan.series:
        series = MatchSeries(
            season_id=season_id,
            stage_name=sp.stage_name,
            home_club_id=sp.home_club_id,
            away_club_id=sp.away_club_id,
            home_seed=sp.home_seed,
            away_seed=sp.away_seed,
            bracket_slot=sp.bracket_slot,
            best_of=len(sp.match_datetimes) or best_of,
            series_status=SeriesStatus.IN_PROGRESS.value,
        )
        session.add(series)
        session.flush()
        created.series_created += 1

        for index, kickoff in enumerate(sp.match_datetimes):
            home, away = sp.home_club_id, sp.away_club_id
            if index % 2 == 1:
                home, away = away, home
            session.add(Match(
                season_id=season_id,
                match_datetime=kickoff,
                home_club_id=home,
                away_club_id=away,
                status=MatchStatus.SCHEDULED.value,
                series_id=series.id,
                series_match_number=index + 1,
                round_id=stage_round.id,
            ))
            created.matches_created += 1
            if created.latest_match_datetime is None or kickoff > created.latest_match_datetime:
                created.latest_match_datetime = kickoff

    if plan.bye is not None:
        create_bye_series(
            session,
            season_id,
            plan.stage_name,
            plan.bye.club_id,
            plan.bye.seed,
            plan.bye.bracket_slot,
            best_of,
        )
        created.series_created += 1
        created.bye_club_id = plan.bye.club_id

    session.flush()
    return created


def copy_club_rosters(session: Session, season_id: int, club_ids: Sequence[int]) -> int:
    """Register every ClubPlayer for the season.

    The default shirt number is kept unless already taken in the club;
    otherwise the lowest free positive number is assigned.
    """
    players = session.exec(
        select(ClubPlayer)
        .where(ClubPlayer.club_id.in_(list(club_ids)))
        .order_by(ClubPlayer.club_id, ClubPlayer.default_shirt_number, ClubPlayer.person_id)
    ).all()

    taken: Dict[int, set] = {}
    created = 0
    for player in players:
        numbers = taken.setdefault(player.club_id, set())
        shirt = player.default_shirt_number or 0
        if shirt in numbers:
            shirt = 0
        if shirt <= 0:
            shirt = 1
            while shirt in numbers:
                shirt += 1
        numbers.add(shirt)
        session.add(SeasonRosterEntry(
            season_id=season_id,
            club_id=player.club_id,
            person_id=player.person_id,
            shirt_number=shirt,
        ))
        created += 1
    return created


# ============================================================================
# Format schedulers
# ============================================================================


def _schedule_round_robin(
    session: Session,
    season: Season,
    club_ids: List[int],
    passes: int,
    kickoff: datetime,
    result: SeasonAutomationResult,
) -> Optional[datetime]:
    pairs = generate_round_robin_pairs(club_ids, passes)
    rounds: Dict[int, SeasonRound] = {}
    latest = None
    for pair in pairs:
        if pair.round_index not in rounds:
            number = pair.round_index + 1
            rounds[pair.round_index] = ensure_round(
                session, season.id, regular_round_label(number), RoundType.REGULAR, number
            )
        match_datetime = add_days(kickoff, pair.round_index * ROUND_SPACING_DAYS)
        session.add(Match(
            season_id=season.id,
            match_datetime=match_datetime,
            home_club_id=pair.home_club_id,
            away_club_id=pair.away_club_id,
            status=MatchStatus.SCHEDULED.value,
            round_id=rounds[pair.round_index].id,
        ))
        result.matches_created += 1
        latest = match_datetime if latest is None else max(latest, match_datetime)
    return latest


def _schedule_bracket(
    session: Session,
    season: Season,
    club_ids: List[int],
    request: SeasonAutomationInput,
    kickoff: datetime,
    result: SeasonAutomationResult,
) -> Optional[datetime]:
    best_of = to_odd(request.best_of)
    plan = plan_bracket(club_ids, kickoff, request.match_time, best_of, shuffle=request.random_draw)
    created = persist_bracket_plan(session, season.id, plan, best_of)
    result.series_created += created.series_created
    result.matches_created += created.matches_created
    if created.bye_club_id is not None:
        result.bye_club_ids.append(created.bye_club_id)
    return created.latest_match_datetime


def _schedule_groups(
    session: Session,
    season: Season,
    stage: ValidatedGroupStage,
    kickoff: datetime,
    result: SeasonAutomationResult,
) -> Optional[datetime]:
    latest = None
    for group in stage.groups:
        season_group = SeasonGroup(
            season_id=season.id,
            group_index=group.group_index,
            label=group.label.strip(),
            qualify_count=group.qualify_count,
        )
        session.add(season_group)
        session.flush()
        result.groups_created += 1

        ordered_slots = sorted(group.slots, key=lambda s: s.position)
        for slot in ordered_slots:
            session.add(SeasonGroupSlot(group_id=season_group.id, position=slot.position, club_id=slot.club_id))
            result.group_slots_created += 1

        rounds: Dict[int, SeasonRound] = {}
        for pair in generate_round_robin_pairs([s.club_id for s in ordered_slots], 1):
            if pair.round_index not in rounds:
                number = pair.round_index + 1
                rounds[pair.round_index] = ensure_round(
                    session,
                    season.id,
                    regular_round_label(number, season_group.label),
                    RoundType.REGULAR,
                    number,
                    group_id=season_group.id,
                )
            match_datetime = add_days(kickoff, pair.round_index * ROUND_SPACING_DAYS)
            session.add(Match(
                season_id=season.id,
                match_datetime=match_datetime,
                home_club_id=pair.home_club_id,
                away_club_id=pair.away_club_id,
                status=MatchStatus.SCHEDULED.value,
                round_id=rounds[pair.round_index].id,
                group_id=season_group.id,
            ))
            result.matches_created += 1
            latest = match_datetime if latest is None else max(latest, match_datetime)
    return latest


# ============================================================================
# Main entry points
# ============================================================================


def run_season_automation(session: Session, request: SeasonAutomationInput) -> SeasonAutomationResult:
    """Create a season with participants, standings rows and its opening fixtures.

    All validation happens before the first write; any failure afterwards
    rolls the whole season back.
    """
    competition = session.get(Competition, request.competition_id)
    if not competition:
        raise LeagueNotFoundError("competition_not_found")

    series_format = SeriesFormat(request.series_format or competition.series_format)
    profile = format_profile(series_format)

    stage = validate_group_stage_config(request.group_stage) if profile.schedule_kind == "groups" else None
    club_ids = unique_ids(stage.club_ids if stage else request.club_ids)
    if len(club_ids) < 2:
        raise LeagueValidationError("not_enough_participants")

    known = session.exec(select(Club.id).where(Club.id.in_(club_ids))).all()
    if len(set(known)) != len(club_ids):
        raise LeagueValidationError("unknown_club", {"club_ids": sorted(set(club_ids) - set(known))})

    kickoff = apply_time(align_to_weekday(request.start_date, request.match_day_of_week), request.match_time)

    try:
        season = Season(
            competition_id=competition.id,
            name=request.season_name.strip(),
            series_format=series_format.value,
            start_date=kickoff,
            end_date=kickoff,
        )
        session.add(season)
        session.flush()

        result = SeasonAutomationResult(season_id=season.id)

        for club_id in club_ids:
            session.add(SeasonParticipant(season_id=season.id, club_id=club_id))
            session.add(ClubSeasonStats(season_id=season.id, club_id=club_id))
            result.participants_created += 1

        if request.copy_club_players_to_roster:
            result.roster_entries_created = copy_club_rosters(session, season.id, club_ids)

        if profile.schedule_kind == "round_robin":
            latest = _schedule_round_robin(session, season, club_ids, profile.round_robin_passes, kickoff, result)
        elif profile.schedule_kind == "bracket":
            latest = _schedule_bracket(session, season, club_ids, request, kickoff, result)
        else:
            latest = _schedule_groups(session, season, stage, kickoff, result)

        if latest is not None and latest > season.end_date:
            season.end_date = latest
        session.add(season)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Season automation failed, transaction rolled back")
        raise

    logger.info(
        f"Season {result.season_id} created: format={series_format.value} "
        f"participants={result.participants_created} matches={result.matches_created} "
        f"series={result.series_created} groups={result.groups_created} byes={result.bye_club_ids}"
    )
    return result


def create_season_playoffs(session: Session, season_id: int, best_of: Optional[int] = None) -> StageCreation:
    """Seed and schedule the opening playoff stage once every season match is finished.

    Best-of-N formats seed by season standings with series of at least three
    games; the group format seeds by group placement with single matches.
    """
    season = session.get(Season, season_id)
    if not season:
        raise LeagueNotFoundError("season_not_found")

    series_format = resolve_season_format(season, season.competition)
    profile = format_profile(series_format)
    is_group_format = profile.schedule_kind == "groups"
    if profile.playoffs != "seeded" and not is_group_format:
        raise StateConflictError("playoffs_not_supported")

    if count_where(session, MatchSeries, MatchSeries.season_id == season_id) > 0:
        raise StateConflictError("series_already_exist")
    if count_where(
        session, Match, Match.season_id == season_id, Match.status != MatchStatus.FINISHED.value
    ) > 0:
        raise StateConflictError("matches_not_finished")

    participant_ids = list(session.exec(
        select(SeasonParticipant.club_id).where(SeasonParticipant.season_id == season_id)
    ).all())
    if len(participant_ids) < 2:
        raise StateConflictError("not_enough_participants")

    if is_group_format:
        groups = session.exec(
            select(SeasonGroup).where(SeasonGroup.season_id == season_id).order_by(SeasonGroup.group_index)
        ).all()
        if not groups:
            raise StateConflictError("group_playoffs_not_configured")
        slots = session.exec(
            select(SeasonGroupSlot).where(SeasonGroupSlot.group_id.in_([g.id for g in groups]))
        ).all()
        slots_by_group: Dict[int, List[SeasonGroupSlot]] = {}
        for slot in slots:
            slots_by_group.setdefault(slot.group_id, []).append(slot)
        group_matches = session.exec(select(Match).where(Match.season_id == season_id)).all()
        seeds = compute_group_playoff_seeds(groups, slots_by_group, group_matches)
        series_best_of = 1
    else:
        seeds = rank_clubs_by_stats(participant_ids, load_stats_by_club(session, season_id))
        requested = best_of if best_of and best_of >= DEFAULT_PLAYOFF_BEST_OF else DEFAULT_PLAYOFF_BEST_OF
        series_best_of = to_odd(requested, minimum=DEFAULT_PLAYOFF_BEST_OF)

    last_match = session.exec(
        select(Match).where(Match.season_id == season_id).order_by(Match.match_datetime.desc())
    ).first()
    match_time = time_of(last_match.match_datetime) if last_match else None
    start = add_days(season.end_date, STAGE_GAP_DAYS)

    plan = plan_bracket(seeds, start, match_time, series_best_of)
    if plan.is_empty:
        raise StateConflictError("not_enough_pairs")

    try:
        created = persist_bracket_plan(session, season_id, plan, series_best_of)
        if created.latest_match_datetime and created.latest_match_datetime > season.end_date:
            season.end_date = created.latest_match_datetime
            session.add(season)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception(f"Playoff creation for season {season_id} failed, transaction rolled back")
        raise

    logger.info(
        f"Playoffs created for season {season_id}: stage={plan.stage_name} "
        f"series={created.series_created} matches={created.matches_created} bye={created.bye_club_id}"
    )
    return created
