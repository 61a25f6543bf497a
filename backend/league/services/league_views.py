"""
Public league views: table, upcoming schedule, recent results and bracket.

Views are plain dicts ready for JSON. Routes serve them through the versioned
cache; finalization invalidates a season's keys, then the publish hook
rebuilds, caches and pushes them to topic subscribers.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from league.models import (
    PENDING_MATCH_STATUSES,
    Club,
    Competition,
    Match,
    MatchSeries,
    MatchStatus,
    Season,
    SeasonRound,
)
from league.services.cache import VersionedCache
from league.services.league_rules import THIRD_PLACE_STAGE, format_profile, resolve_season_format
from league.services.realtime import (
    PUBLIC_LEAGUE_RESULTS_TOPIC,
    PUBLIC_LEAGUE_SCHEDULE_TOPIC,
    PUBLIC_LEAGUE_TABLE_TOPIC,
    TopicHub,
    season_topic,
)
from league.services.standings import build_league_table

logger = logging.getLogger(__name__)

DEFAULT_ROUND_LIMIT = 4
TABLE_TTL_SECONDS = 300
SCHEDULE_TTL_SECONDS = 8
RESULTS_TTL_SECONDS = 15
BRACKET_TTL_SECONDS = 300

NO_ROUND_LABEL = "No round"


def season_summary(season: Season, competition: Optional[Competition] = None) -> dict:
    competition = competition or season.competition
    return {
        "id": season.id,
        "name": season.name,
        "start_date": season.start_date.isoformat(),
        "end_date": season.end_date.isoformat(),
        "is_active": season.is_active,
        "series_format": resolve_season_format(season, competition).value,
        "champion_club_id": season.champion_club_id,
        "competition": {
            "id": season.competition_id,
            "name": competition.name if competition else None,
            "type": competition.type if competition else None,
        },
    }


def _club_summary(club: Optional[Club], club_id: int) -> dict:
    if club is None:
        return {"id": club_id, "name": "", "short_name": "", "logo_url": None}
    return {
        "id": club.id,
        "name": club.name,
        "short_name": club.short_name or club.name,
        "logo_url": club.logo_url,
    }


def _clubs_for(session: Session, matches: List[Match]) -> Dict[int, Club]:
    ids = {m.home_club_id for m in matches} | {m.away_club_id for m in matches}
    if not ids:
        return {}
    return {c.id: c for c in session.exec(select(Club).where(Club.id.in_(ids))).all()}


def match_view(match: Match, clubs: Dict[int, Club]) -> dict:
    return {
        "id": match.id,
        "match_datetime": match.match_datetime.isoformat(),
        "status": match.status,
        "home_club": _club_summary(clubs.get(match.home_club_id), match.home_club_id),
        "away_club": _club_summary(clubs.get(match.away_club_id), match.away_club_id),
        "home_score": match.home_score,
        "away_score": match.away_score,
        "has_penalty_shootout": match.has_penalty_shootout,
        "penalty_home_score": match.penalty_home_score if match.has_penalty_shootout else None,
        "penalty_away_score": match.penalty_away_score if match.has_penalty_shootout else None,
        "series_id": match.series_id,
    }


def group_matches_by_round(
    session: Session,
    matches: List[Match],
    limit: Optional[int],
    newest_first: bool,
) -> List[dict]:
    """Bucket matches by round. Upcoming rounds ascend, results descend."""
    round_ids = {m.round_id for m in matches if m.round_id is not None}
    rounds = {
        r.id: r for r in session.exec(select(SeasonRound).where(SeasonRound.id.in_(round_ids))).all()
    } if round_ids else {}
    clubs = _clubs_for(session, matches)

    buckets: Dict[Optional[int], dict] = {}
    for m in matches:
        r = rounds.get(m.round_id)
        bucket = buckets.get(m.round_id)
        if bucket is None:
            bucket = {
                "round_id": r.id if r else None,
                "round_number": r.round_number if r else None,
                "round_label": (r.label.strip() if r and r.label else None) or NO_ROUND_LABEL,
                "round_type": r.round_type if r else None,
                "first": m.match_datetime,
                "last": m.match_datetime,
                "matches": [],
            }
            buckets[m.round_id] = bucket
        bucket["first"] = min(bucket["first"], m.match_datetime)
        bucket["last"] = max(bucket["last"], m.match_datetime)
        bucket["matches"].append(m)

    values = list(buckets.values())
    if newest_first:
        values.sort(key=lambda b: (
            b["round_number"] if b["round_number"] is not None else float("-inf"),
            b["last"],
            b["round_label"],
        ), reverse=True)
    else:
        values.sort(key=lambda b: (
            b["round_number"] if b["round_number"] is not None else float("inf"),
            b["first"],
            b["round_label"],
        ))
    if limit is not None:
        values = values[:limit]

    return [
        {
            "round_id": b["round_id"],
            "round_number": b["round_number"],
            "round_label": b["round_label"],
            "round_type": b["round_type"],
            "matches": [match_view(m, clubs) for m in sorted(b["matches"], key=lambda x: x.match_datetime)],
        }
        for b in values
    ]


def build_league_table_view(session: Session, season: Season) -> dict:
    profile = format_profile(resolve_season_format(season, season.competition))
    rows = build_league_table(session, season.id, include_playoffs=profile.standings_include_playoffs)
    return {
        "season": season_summary(season),
        "standings": [row.to_dict() for row in rows],
    }


def build_league_schedule(session: Session, season: Season, limit_rounds: int = DEFAULT_ROUND_LIMIT) -> dict:
    matches = session.exec(
        select(Match)
        .where(Match.season_id == season.id, Match.status.in_([s.value for s in PENDING_MATCH_STATUSES]))
        .order_by(Match.match_datetime)
    ).all()
    return {
        "season": season_summary(season),
        "rounds": group_matches_by_round(session, list(matches), limit_rounds, newest_first=False),
        "generated_at": datetime.utcnow().isoformat(),
    }


def build_league_results(session: Session, season: Season, limit_rounds: int = DEFAULT_ROUND_LIMIT) -> dict:
    matches = session.exec(
        select(Match)
        .where(Match.season_id == season.id, Match.status == MatchStatus.FINISHED.value)
        .order_by(Match.match_datetime.desc())
    ).all()
    return {
        "season": season_summary(season),
        "rounds": group_matches_by_round(session, list(matches), limit_rounds, newest_first=True),
        "generated_at": datetime.utcnow().isoformat(),
    }


def build_bracket_view(session: Session, season: Season) -> dict:
    """Knockout stages in creation order; the third-place series comes last."""
    series_list = session.exec(
        select(MatchSeries).where(MatchSeries.season_id == season.id).order_by(MatchSeries.id)
    ).all()
    matches = session.exec(
        select(Match).where(Match.season_id == season.id, Match.series_id.is_not(None))
    ).all()
    clubs = _clubs_for(session, list(matches))
    extra_ids = {s.home_club_id for s in series_list} | {s.away_club_id for s in series_list}
    missing = extra_ids - set(clubs)
    if missing:
        clubs.update({c.id: c for c in session.exec(select(Club).where(Club.id.in_(missing))).all()})

    by_series: Dict[int, List[Match]] = {}
    for m in matches:
        by_series.setdefault(m.series_id, []).append(m)

    stages: Dict[str, List[dict]] = {}
    for s in series_list:
        stages.setdefault(s.stage_name, []).append({
            "id": s.id,
            "bracket_slot": s.bracket_slot,
            "home_club": _club_summary(clubs.get(s.home_club_id), s.home_club_id),
            "away_club": _club_summary(clubs.get(s.away_club_id), s.away_club_id),
            "home_seed": s.home_seed,
            "away_seed": s.away_seed,
            "best_of": s.best_of,
            "is_bye": s.is_bye,
            "series_status": s.series_status,
            "winner_club_id": s.winner_club_id,
            "matches": [
                match_view(m, clubs)
                for m in sorted(by_series.get(s.id, []), key=lambda x: x.series_match_number or 0)
            ],
        })

    ordered_names = [n for n in stages if n != THIRD_PLACE_STAGE]
    if THIRD_PLACE_STAGE in stages:
        ordered_names.append(THIRD_PLACE_STAGE)
    summary = season_summary(season)
    return {
        "season": summary,
        "has_playoffs": format_profile(summary["series_format"]).playoffs != "none",
        "stages": [
            {"stage_name": name, "series": sorted(stages[name], key=lambda x: (x["bracket_slot"] or 0, x["id"]))}
            for name in ordered_names
        ],
    }


# ============================================================================
# Cached views
# ============================================================================
# Table, schedule and results are cached under their season topic; only the
# default round limit is cached, other limits are built per request.


def bracket_cache_key(season_id: int) -> str:
    return f"season:{season_id}:bracket"


def season_view_keys(season_id: int) -> List[str]:
    """Every cache key holding a view of the season."""
    keys = [
        season_topic(topic, season_id)
        for topic in (PUBLIC_LEAGUE_TABLE_TOPIC, PUBLIC_LEAGUE_SCHEDULE_TOPIC, PUBLIC_LEAGUE_RESULTS_TOPIC)
    ]
    keys.append(bracket_cache_key(season_id))
    return keys


def invalidate_season_views(cache: VersionedCache, season_id: int) -> None:
    for key in season_view_keys(season_id):
        cache.invalidate(key)


def cached_league_table(session: Session, season: Season, cache: VersionedCache) -> dict:
    return cache.get_or_load(
        season_topic(PUBLIC_LEAGUE_TABLE_TOPIC, season.id),
        lambda: build_league_table_view(session, season),
        TABLE_TTL_SECONDS,
    )


def cached_league_schedule(
    session: Session, season: Season, cache: VersionedCache, limit_rounds: int = DEFAULT_ROUND_LIMIT
) -> dict:
    if limit_rounds != DEFAULT_ROUND_LIMIT:
        return build_league_schedule(session, season, limit_rounds)
    return cache.get_or_load(
        season_topic(PUBLIC_LEAGUE_SCHEDULE_TOPIC, season.id),
        lambda: build_league_schedule(session, season),
        SCHEDULE_TTL_SECONDS,
    )


def cached_league_results(
    session: Session, season: Season, cache: VersionedCache, limit_rounds: int = DEFAULT_ROUND_LIMIT
) -> dict:
    if limit_rounds != DEFAULT_ROUND_LIMIT:
        return build_league_results(session, season, limit_rounds)
    return cache.get_or_load(
        season_topic(PUBLIC_LEAGUE_RESULTS_TOPIC, season.id),
        lambda: build_league_results(session, season),
        RESULTS_TTL_SECONDS,
    )


def cached_bracket_view(session: Session, season: Season, cache: VersionedCache) -> dict:
    return cache.get_or_load(
        bracket_cache_key(season.id),
        lambda: build_bracket_view(session, season),
        BRACKET_TTL_SECONDS,
    )


def refresh_league_views(session: Session, season_id: int, cache: VersionedCache, hub: TopicHub) -> bool:
    """Rebuild table, schedule and results for a season, cache them and publish them.

    Each message goes to the league-wide topic and to the season's own topic.
    """
    season = session.get(Season, season_id)
    if season is None:
        logger.warning(f"refresh_league_views: season {season_id} not found")
        return False

    views = (
        (PUBLIC_LEAGUE_TABLE_TOPIC, build_league_table_view(session, season), TABLE_TTL_SECONDS, "league.table"),
        (PUBLIC_LEAGUE_SCHEDULE_TOPIC, build_league_schedule(session, season), SCHEDULE_TTL_SECONDS, "league.schedule"),
        (PUBLIC_LEAGUE_RESULTS_TOPIC, build_league_results(session, season), RESULTS_TTL_SECONDS, "league.results"),
    )
    for topic, payload, ttl, message_type in views:
        key = season_topic(topic, season_id)
        cache.set(key, payload, ttl)
        message = {"type": message_type, "season_id": season_id, "payload": payload}
        hub.publish(topic, message)
        hub.publish(key, message)
    return True
