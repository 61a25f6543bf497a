"""
Stage Progression Engine

Decides series winners and moves a knockout bracket forward:
- series won once a side reaches best_of // 2 + 1 match wins
- stage complete once every series in it is FINISHED
- next stage: bracket-slot pairing (knockout and group formats) or
  re-seeding by standings (best-of-N formats)
- Final complete: season champion recorded
- third-place series scheduled alongside the Final

Progression runs as a worklist rather than recursion and is idempotent:
a stage whose successor already has series is left alone.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from sqlmodel import Session, select

from league.models import (
    PENDING_MATCH_STATUSES,
    Match,
    MatchEvent,
    MatchLineup,
    MatchSeries,
    MatchStatus,
    Prediction,
    Season,
    SeriesFormat,
    SeriesStatus,
)
from league.services.bracket_planner import BracketPlan, ByeEntry, SeriesPlan, plan_bracket, series_dates
from league.services.league_rules import (
    FINAL_STAGE,
    STAGE_GAP_DAYS,
    THIRD_PLACE_OFFSET_DAYS,
    THIRD_PLACE_STAGE,
    format_profile,
    resolve_season_format,
    stage_name_for_teams,
    wins_needed,
)
from league.services.outcome import determine_match_winner
from league.services.season_scheduler import persist_bracket_plan
from league.services.standings import load_stats_by_club, rank_clubs_by_stats
from league.utils.dates import add_days, time_of
from league.utils.sql import count_where

logger = logging.getLogger(__name__)

__all__ = [
    "StageEntry",
    "determine_match_winner",
    "update_series_state",
    "advance_stage",
    "pair_by_bracket_slot",
]

_NO_SEED = 10 ** 6


@dataclass
class StageEntry:
    """A club going through to the next stage."""

    club_id: int
    seed: Optional[int]
    bracket_slot: Optional[int]


def _series_entry(series: MatchSeries) -> Optional[StageEntry]:
    if series.winner_club_id is None:
        return None
    if series.winner_club_id == series.home_club_id:
        seed = series.home_seed
    else:
        seed = series.away_seed
    return StageEntry(series.winner_club_id, seed, series.bracket_slot)


def _series_loser(series: MatchSeries) -> Optional[StageEntry]:
    if series.is_bye or series.winner_club_id is None:
        return None
    if series.winner_club_id == series.home_club_id:
        return StageEntry(series.away_club_id, series.away_seed, series.bracket_slot)
    return StageEntry(series.home_club_id, series.home_seed, series.bracket_slot)


def _seed_key(entry: StageEntry) -> int:
    return entry.seed if entry.seed is not None else _NO_SEED


def _delete_matches(session: Session, matches: Sequence[Match]) -> None:
    """Delete matches together with the rows that reference them."""
    ids = [m.id for m in matches]
    if not ids:
        return
    for model in (MatchEvent, MatchLineup, Prediction):
        for row in session.exec(select(model).where(model.match_id.in_(ids))).all():
            session.delete(row)
    for m in matches:
        session.delete(m)
    session.flush()


def pair_by_bracket_slot(
    entries: Sequence[StageEntry],
    stage_name: str,
    start: datetime,
    match_time: Optional[str],
    best_of: int,
) -> BracketPlan:
    """Pair survivors of adjacent bracket slots: (1,2), (3,4), ...

    The pair lands in slot ceil(min(slot) / 2); the lower recorded seed hosts.
    An unpaired last entry gets a bye.
    """
    ordered = sorted(
        entries,
        key=lambda e: (e.bracket_slot if e.bracket_slot is not None else _NO_SEED, _seed_key(e)),
    )
    series: List[SeriesPlan] = []
    bye: Optional[ByeEntry] = None
    for index in range(0, len(ordered), 2):
        group = ordered[index:index + 2]
        slots = [e.bracket_slot for e in group if e.bracket_slot is not None]
        target = math.ceil(min(slots) / 2) if slots else index // 2 + 1
        if len(group) == 1:
            bye = ByeEntry(club_id=group[0].club_id, seed=group[0].seed, bracket_slot=target)
            continue
        home, away = sorted(group, key=_seed_key)
        series.append(SeriesPlan(
            stage_name=stage_name,
            home_club_id=home.club_id,
            away_club_id=away.club_id,
            home_seed=home.seed,
            away_seed=away.seed,
            bracket_slot=target,
            match_datetimes=series_dates(start, index // 2, best_of, match_time),
        ))
    return BracketPlan(stage_name=stage_name, series=series, bye=bye)


def _latest_season_match(session: Session, season_id: int) -> Optional[Match]:
    return session.exec(
        select(Match).where(Match.season_id == season_id).order_by(Match.match_datetime.desc())
    ).first()


def _extend_season_end(season: Season, latest: Optional[datetime]) -> None:
    if latest is not None and latest > season.end_date:
        season.end_date = latest


def _schedule_third_place(
    session: Session,
    season: Season,
    stage_series: Sequence[MatchSeries],
    final_start: datetime,
    match_time: Optional[str],
    best_of: int,
) -> None:
    if count_where(
        session, MatchSeries, MatchSeries.season_id == season.id, MatchSeries.stage_name == THIRD_PLACE_STAGE
    ) > 0:
        return
    losers = [entry for entry in (_series_loser(s) for s in stage_series) if entry is not None]
    if len(losers) < 2:
        return
    home, away = sorted(losers, key=_seed_key)[:2]
    base = add_days(final_start, THIRD_PLACE_OFFSET_DAYS)
    plan = BracketPlan(
        stage_name=THIRD_PLACE_STAGE,
        series=[SeriesPlan(
            stage_name=THIRD_PLACE_STAGE,
            home_club_id=home.club_id,
            away_club_id=away.club_id,
            home_seed=home.seed,
            away_seed=away.seed,
            bracket_slot=None,
            match_datetimes=series_dates(base, 0, best_of, match_time),
        )],
    )
    created = persist_bracket_plan(session, season.id, plan, best_of)
    _extend_season_end(season, created.latest_match_datetime)
    logger.info(f"Season {season.id}: third-place series scheduled ({home.club_id} vs {away.club_id})")


def advance_stage(
    session: Session,
    season_id: int,
    stage_name: str,
    best_of: int = 1,
    series_format: Optional[SeriesFormat] = None,
) -> List[str]:
    """Create follow-up stages for every completed stage reachable from stage_name.

    Returns the names of stages created. Does not commit.
    """
    season = session.get(Season, season_id)
    if not season:
        logger.warning(f"advance_stage: season {season_id} not found")
        return []

    fmt = series_format or resolve_season_format(season, season.competition)
    profile = format_profile(fmt)
    created_stages: List[str] = []
    worklist = [stage_name]

    while worklist:
        current = worklist.pop()
        if current == THIRD_PLACE_STAGE:
            continue

        stage_series = session.exec(
            select(MatchSeries)
            .where(MatchSeries.season_id == season_id, MatchSeries.stage_name == current)
            .order_by(MatchSeries.bracket_slot, MatchSeries.id)
        ).all()
        if not stage_series:
            continue
        if any(s.series_status != SeriesStatus.FINISHED for s in stage_series):
            continue

        if current == FINAL_STAGE:
            final = stage_series[0]
            if season.champion_club_id is None and final.winner_club_id is not None:
                season.champion_club_id = final.winner_club_id
                season.completed_at = datetime.utcnow()
                session.add(season)
                logger.info(f"Season {season_id} complete: champion club {final.winner_club_id}")
            continue

        entries = [e for e in (_series_entry(s) for s in stage_series) if e is not None]
        if len(entries) < 2:
            logger.warning(f"Season {season_id}: stage '{current}' finished with {len(entries)} winner(s)")
            continue

        next_name = stage_name_for_teams(len(entries))
        if next_name == current:
            logger.warning(f"Season {season_id}: stage '{current}' cannot progress to itself")
            continue
        if count_where(
            session, MatchSeries, MatchSeries.season_id == season_id, MatchSeries.stage_name == next_name
        ) > 0:
            continue

        latest = _latest_season_match(session, season_id)
        if latest is not None:
            start = add_days(latest.match_datetime, STAGE_GAP_DAYS)
            match_time = time_of(latest.match_datetime)
        else:
            start = add_days(season.end_date, STAGE_GAP_DAYS)
            match_time = None

        if profile.playoffs == "seeded":
            ranked = rank_clubs_by_stats([e.club_id for e in entries], load_stats_by_club(session, season_id))
            plan = plan_bracket(ranked, start, match_time, best_of)
        else:
            plan = pair_by_bracket_slot(entries, next_name, start, match_time, best_of)

        created = persist_bracket_plan(session, season_id, plan, best_of)
        _extend_season_end(season, created.latest_match_datetime)

        if next_name == FINAL_STAGE:
            _schedule_third_place(session, season, stage_series, start, match_time, best_of)

        session.add(season)
        session.flush()
        logger.info(
            f"Season {season_id}: '{current}' complete, created '{next_name}' "
            f"with {created.series_created} series"
        )
        created_stages.append(next_name)
        worklist.append(next_name)

    return created_stages


def update_series_state(
    session: Session,
    match: Match,
    series_format: Optional[SeriesFormat] = None,
) -> Optional[MatchSeries]:
    """Re-evaluate the series of a finished match and progress the bracket if it is decided.

    Does not commit.
    """
    if match.series_id is None:
        return None
    series = session.get(MatchSeries, match.series_id)
    if series is None:
        logger.warning(f"Match {match.id} references missing series {match.series_id}")
        return None

    series_matches = session.exec(select(Match).where(Match.series_id == series.id)).all()
    finished = [m for m in series_matches if m.status == MatchStatus.FINISHED]
    wins = Counter(w for w in (determine_match_winner(m) for m in finished) if w is not None)
    needed = wins_needed(series.best_of or 1)
    winner = next((cid for cid in (series.home_club_id, series.away_club_id) if wins[cid] >= needed), None)

    if series.series_status == SeriesStatus.FINISHED:
        # A decided series is never reopened; later stages were built on its winner
        if not series.is_bye and winner != series.winner_club_id:
            logger.warning(
                f"Series {series.id} ({series.stage_name}) is finished with winner {series.winner_club_id} "
                f"but its results now give {winner}; the bracket keeps the recorded winner"
            )
    else:
        if winner is None:
            if len(finished) == len(series_matches):
                logger.warning(
                    f"Series {series.id} ({series.stage_name}) undecided after {len(finished)} match(es); "
                    f"a draw needs a penalty shootout"
                )
            return series

        series.series_status = SeriesStatus.FINISHED.value
        series.winner_club_id = winner
        session.add(series)
        _delete_matches(session, [m for m in series_matches if m.status in PENDING_MATCH_STATUSES])
        logger.info(f"Series {series.id} ({series.stage_name}) won by club {winner}")

    advance_stage(session, series.season_id, series.stage_name, series.best_of or 1, series_format)
    return series
