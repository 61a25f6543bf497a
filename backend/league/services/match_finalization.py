"""
Match Finalization Aggregator

Runs whenever a match is FINISHED (or a finished match is edited):
1. Rebuild club season standings
2. Rebuild player season statistics
3. Rebuild player career totals for the season's clubs
4. Serve and issue suspensions
5. Grade predictions and award achievements
6. Progress the series / bracket when the match belongs to one

Steps 1-6 run in one transaction with a wall-clock budget, holding the season
row lock so finalizes of one season never interleave. Every aggregate
is rebuilt from source rows, so running finalize again (or retrying after a
transient failure) converges to the same state.

After commit, post-commit hooks run best-effort: cache invalidation, view
publish and the result broadcast. A failing hook is logged, never raised.
"""

import logging
import os
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select, text

from league.errors import TransientFinalizationError
from league.models import (
    AchievementMetric,
    AchievementType,
    Club,
    ClubPlayer,
    ClubSeasonStats,
    Disqualification,
    DisqualificationReason,
    DisqualificationServedMatch,
    Match,
    MatchEvent,
    MatchEventType,
    MatchLineup,
    MatchSeries,
    MatchStatus,
    PlayerClubCareerStats,
    PlayerSeasonStats,
    Prediction,
    Season,
    SeasonParticipant,
    SeriesStatus,
    UserAchievement,
)
from league.services.broadcast import format_result_message, get_result_broadcaster
from league.services.cache import VersionedCache, default_cache
from league.services.league_rules import (
    ACCUMULATED_CARDS_BAN_MATCHES,
    PREDICTION_CORRECT_POINTS,
    RED_CARD_BAN_MATCHES,
    SECOND_YELLOW_BAN_MATCHES,
    YELLOW_CARD_LIMIT,
    format_profile,
    resolve_season_format,
)
from league.services.league_views import refresh_league_views, season_view_keys
from league.services.outcome import prediction_outcome
from league.services.realtime import default_hub
from league.services.stage_progression import update_series_state
from league.services.standings import standings_matches_query, tally_matches
from league.utils.sql import count_where

logger = logging.getLogger(__name__)

FINALIZE_TIMEOUT_SECONDS = float(os.getenv("FINALIZE_TIMEOUT_SECONDS", "20"))

GOAL_EVENTS = (MatchEventType.GOAL, MatchEventType.PENALTY_GOAL)
SENDING_OFF_EVENTS = {
    MatchEventType.RED_CARD: (DisqualificationReason.RED_CARD, RED_CARD_BAN_MATCHES),
    MatchEventType.SECOND_YELLOW_CARD: (DisqualificationReason.SECOND_YELLOW, SECOND_YELLOW_BAN_MATCHES),
}


@dataclass
class FinalizationOutcome:
    match_id: int
    season_id: int
    competition_id: int
    club_ids: List[int] = field(default_factory=list)
    series_id: Optional[int] = None
    series_finished: bool = False
    champion_club_id: Optional[int] = None
    suspensions_created: int = 0
    suspensions_served: int = 0
    predictions_graded: int = 0
    achievements_awarded: int = 0

    def to_dict(self):
        return {
            "match_id": self.match_id,
            "season_id": self.season_id,
            "competition_id": self.competition_id,
            "club_ids": self.club_ids,
            "series_id": self.series_id,
            "series_finished": self.series_finished,
            "champion_club_id": self.champion_club_id,
            "suspensions_created": self.suspensions_created,
            "suspensions_served": self.suspensions_served,
            "predictions_graded": self.predictions_graded,
            "achievements_awarded": self.achievements_awarded,
        }


PostCommitHook = Callable[[Session, FinalizationOutcome], None]


class _Deadline:
    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.expires_at = clock() + seconds

    def check(self, step: str) -> None:
        if self._clock() > self.expires_at:
            raise TransientFinalizationError("finalize_timeout", {"step": step})


# ============================================================================
# Aggregate rebuilds
# ============================================================================


def rebuild_club_season_stats(session: Session, season_id: int, include_playoffs: bool = False) -> int:
    """Recompute ClubSeasonStats for every participant from finished matches.

    Rows of clubs that are neither participants nor in any counted match are deleted.
    """
    participant_ids = session.exec(
        select(SeasonParticipant.club_id).where(SeasonParticipant.season_id == season_id)
    ).all()
    matches = session.exec(standings_matches_query(season_id, include_playoffs)).all()
    tally = tally_matches(matches, participant_ids)

    existing = {
        row.club_id: row
        for row in session.exec(select(ClubSeasonStats).where(ClubSeasonStats.season_id == season_id)).all()
    }
    for club_id, row in existing.items():
        if club_id not in tally.rows:
            session.delete(row)

    now = datetime.utcnow()
    for club_id, computed in tally.rows.items():
        row = existing.get(club_id) or ClubSeasonStats(season_id=season_id, club_id=club_id)
        row.points = computed.points
        row.wins = computed.wins
        row.draws = computed.draws
        row.losses = computed.losses
        row.goals_for = computed.goals_for
        row.goals_against = computed.goals_against
        row.updated_at = now
        session.add(row)

    session.flush()
    return len(tally.rows)


def rebuild_player_season_stats(session: Session, season_id: int) -> int:
    """Delete and rebuild PlayerSeasonStats from events and lineups of finished matches."""
    finished_ids = select(Match.id).where(
        Match.season_id == season_id, Match.status == MatchStatus.FINISHED.value
    )
    events = session.exec(select(MatchEvent).where(MatchEvent.match_id.in_(finished_ids))).all()
    lineups = session.exec(select(MatchLineup).where(MatchLineup.match_id.in_(finished_ids))).all()

    stats: Dict[int, dict] = {}
    event_matches: Dict[int, Set[int]] = defaultdict(set)

    def entry(person_id: int, club_id: int) -> dict:
        row = stats.setdefault(person_id, {
            "club_id": club_id, "goals": 0, "penalty_goals": 0, "assists": 0,
            "yellow_cards": 0, "red_cards": 0, "lineups": 0,
        })
        row["club_id"] = club_id
        return row

    for ev in events:
        event_type = MatchEventType(ev.event_type)
        primary = entry(ev.player_id, ev.club_id)
        if event_type in GOAL_EVENTS:
            primary["goals"] += 1
            if event_type == MatchEventType.PENALTY_GOAL:
                primary["penalty_goals"] += 1
        elif event_type == MatchEventType.YELLOW_CARD:
            primary["yellow_cards"] += 1
        elif event_type in SENDING_OFF_EVENTS:
            primary["red_cards"] += 1
        event_matches[ev.player_id].add(ev.match_id)

        if event_type in GOAL_EVENTS and ev.related_player_id:
            entry(ev.related_player_id, ev.club_id)["assists"] += 1
            event_matches[ev.related_player_id].add(ev.match_id)

    for lineup in lineups:
        entry(lineup.person_id, lineup.club_id)["lineups"] += 1

    for row in session.exec(select(PlayerSeasonStats).where(PlayerSeasonStats.season_id == season_id)).all():
        session.delete(row)
    session.flush()

    for person_id, row in stats.items():
        session.add(PlayerSeasonStats(
            season_id=season_id,
            person_id=person_id,
            club_id=row["club_id"],
            goals=row["goals"],
            penalty_goals=row["penalty_goals"],
            assists=row["assists"],
            yellow_cards=row["yellow_cards"],
            red_cards=row["red_cards"],
            matches_played=max(row["lineups"], len(event_matches.get(person_id, ()))),
        ))
    session.flush()
    return len(stats)


def rebuild_career_stats_for_clubs(session: Session, club_ids: Iterable[int]) -> int:
    """Recompute PlayerClubCareerStats for the given clubs across all seasons.

    Every rostered ClubPlayer gets a row, zeroed if they have no season stats.
    """
    club_ids = sorted(set(club_ids))
    if not club_ids:
        return 0

    totals: Dict[tuple, dict] = {}
    season_rows = session.exec(select(PlayerSeasonStats).where(PlayerSeasonStats.club_id.in_(club_ids))).all()
    for s in season_rows:
        t = totals.setdefault((s.person_id, s.club_id), defaultdict(int))
        t["total_goals"] += s.goals
        t["penalty_goals"] += s.penalty_goals
        t["total_assists"] += s.assists
        t["yellow_cards"] += s.yellow_cards
        t["red_cards"] += s.red_cards
        t["total_matches"] += s.matches_played

    for link in session.exec(select(ClubPlayer).where(ClubPlayer.club_id.in_(club_ids))).all():
        totals.setdefault((link.person_id, link.club_id), defaultdict(int))

    for row in session.exec(
        select(PlayerClubCareerStats).where(PlayerClubCareerStats.club_id.in_(club_ids))
    ).all():
        session.delete(row)
    session.flush()

    for (person_id, club_id), t in totals.items():
        session.add(PlayerClubCareerStats(person_id=person_id, club_id=club_id, **t))
    session.flush()
    return len(totals)


def rebuild_player_career_stats(session: Session, season_id: int) -> int:
    club_ids = session.exec(
        select(SeasonParticipant.club_id).where(SeasonParticipant.season_id == season_id)
    ).all()
    return rebuild_career_stats_for_clubs(session, club_ids)


# ============================================================================
# Discipline
# ============================================================================


def _serve_active_suspensions(session: Session, match: Match) -> int:
    """Count this match against active bans of both clubs, once per ban."""
    active = session.exec(
        select(Disqualification).where(
            Disqualification.is_active == True,  # noqa: E712
            Disqualification.club_id.in_([match.home_club_id, match.away_club_id]),
        )
    ).all()
    served = 0
    for dq in active:
        if dq.match_id == match.id or match.match_datetime <= dq.sanction_date:
            continue
        already = session.exec(
            select(DisqualificationServedMatch).where(
                DisqualificationServedMatch.disqualification_id == dq.id,
                DisqualificationServedMatch.match_id == match.id,
            )
        ).first()
        if already:
            continue
        session.add(DisqualificationServedMatch(disqualification_id=dq.id, match_id=match.id))
        dq.matches_missed += 1
        dq.is_active = dq.matches_missed < dq.ban_duration_matches
        session.add(dq)
        served += 1
    return served


def _issue_sending_off_suspensions(session: Session, match: Match) -> int:
    events = session.exec(select(MatchEvent).where(MatchEvent.match_id == match.id)).all()
    created = 0
    for ev in events:
        event_type = MatchEventType(ev.event_type)
        if event_type not in SENDING_OFF_EVENTS:
            continue
        reason, duration = SENDING_OFF_EVENTS[event_type]
        exists = session.exec(
            select(Disqualification).where(
                Disqualification.person_id == ev.player_id,
                Disqualification.reason == reason.value,
                Disqualification.match_id == match.id,
            )
        ).first()
        if exists:
            continue
        session.add(Disqualification(
            person_id=ev.player_id,
            club_id=ev.club_id,
            season_id=match.season_id,
            match_id=match.id,
            reason=reason.value,
            sanction_date=match.match_datetime,
            ban_duration_matches=duration,
        ))
        session.flush()
        created += 1
    return created


def _issue_accumulated_card_suspensions(session: Session, match: Match) -> int:
    rows = session.exec(
        select(PlayerSeasonStats).where(
            PlayerSeasonStats.season_id == match.season_id,
            PlayerSeasonStats.yellow_cards >= YELLOW_CARD_LIMIT,
        )
    ).all()
    created = 0
    for stat in rows:
        accumulated = DisqualificationReason.ACCUMULATED_CARDS.value
        active = count_where(
            session,
            Disqualification,
            Disqualification.person_id == stat.person_id,
            Disqualification.reason == accumulated,
            Disqualification.is_active == True,  # noqa: E712
        )
        if active:
            continue
        issued = count_where(
            session,
            Disqualification,
            Disqualification.person_id == stat.person_id,
            Disqualification.reason == accumulated,
            Disqualification.season_id == match.season_id,
        )
        if issued >= stat.yellow_cards // YELLOW_CARD_LIMIT:
            continue
        session.add(Disqualification(
            person_id=stat.person_id,
            club_id=stat.club_id,
            season_id=match.season_id,
            match_id=match.id,
            reason=accumulated,
            sanction_date=match.match_datetime,
            ban_duration_matches=ACCUMULATED_CARDS_BAN_MATCHES,
        ))
        session.flush()
        created += 1
    return created


def process_disqualifications(session: Session, match: Match) -> tuple:
    """Serve existing bans, then issue new ones. Returns (served, created)."""
    served = _serve_active_suspensions(session, match)
    session.flush()
    created = _issue_sending_off_suspensions(session, match)
    created += _issue_accumulated_card_suspensions(session, match)
    return served, created


# ============================================================================
# Predictions
# ============================================================================


def update_predictions(session: Session, match: Match) -> tuple:
    """Grade 1/X/2 predictions for the match and award reached achievements.

    Returns (predictions graded, achievements awarded).
    """
    result = prediction_outcome(match)
    predictions = session.exec(select(Prediction).where(Prediction.match_id == match.id)).all()
    for p in predictions:
        p.is_correct = p.result_1x2 is not None and p.result_1x2 == result
        p.points_awarded = PREDICTION_CORRECT_POINTS if p.is_correct else 0
        session.add(p)
    session.flush()

    achievement_types = session.exec(select(AchievementType)).all()
    user_ids = sorted({p.user_id for p in predictions})
    if not achievement_types or not user_ids:
        return len(predictions), 0

    awarded = 0
    for user_id in user_ids:
        user_predictions = session.exec(select(Prediction).where(Prediction.user_id == user_id)).all()
        totals = {
            AchievementMetric.TOTAL_PREDICTIONS: len(user_predictions),
            AchievementMetric.CORRECT_PREDICTIONS: sum(1 for p in user_predictions if p.is_correct),
        }
        owned = set(session.exec(
            select(UserAchievement.achievement_type_id).where(UserAchievement.user_id == user_id)
        ).all())
        for achievement in achievement_types:
            value = totals.get(AchievementMetric(achievement.metric), 0)
            if value >= achievement.required_value and achievement.id not in owned:
                session.add(UserAchievement(user_id=user_id, achievement_type_id=achievement.id))
                owned.add(achievement.id)
                awarded += 1
    session.flush()
    return len(predictions), awarded


# ============================================================================
# Post-commit hooks
# ============================================================================


def cache_keys_for(outcome: FinalizationOutcome) -> List[str]:
    return season_view_keys(outcome.season_id)


def invalidate_cache_hook(session: Session, outcome: FinalizationOutcome, cache: VersionedCache = None) -> None:
    cache = cache or default_cache
    for key in cache_keys_for(outcome):
        cache.invalidate(key)


def publish_views_hook(session: Session, outcome: FinalizationOutcome) -> None:
    refresh_league_views(session, outcome.season_id, default_cache, default_hub)


def broadcast_result_hook(session: Session, outcome: FinalizationOutcome) -> None:
    match = session.get(Match, outcome.match_id)
    if match is None:
        return
    home = session.get(Club, match.home_club_id)
    away = session.get(Club, match.away_club_id)
    stage = None
    if match.series_id is not None:
        series = session.get(MatchSeries, match.series_id)
        stage = series.stage_name if series else None
    text_message = format_result_message(match, home.name if home else "?", away.name if away else "?", stage)
    get_result_broadcaster().send_message(text_message)


def default_post_commit_hooks() -> List[PostCommitHook]:
    return [invalidate_cache_hook, publish_views_hook, broadcast_result_hook]


def run_post_commit_hooks(
    session: Session,
    outcome: FinalizationOutcome,
    hooks: Sequence[PostCommitHook],
) -> int:
    """Run hooks in order; each failure is logged and skipped. Returns the number that failed."""
    failures = 0
    for hook in hooks:
        try:
            hook(session, outcome)
        except Exception:
            failures += 1
            logger.exception(
                f"Post-commit hook {getattr(hook, '__name__', hook)} failed for match {outcome.match_id}"
            )
    return failures


# ============================================================================
# Main entry point
# ============================================================================


def season_lock_query(season_id: int):
    return (
        select(Season)
        .where(Season.id == season_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def lock_season(session: Session, season_id: int) -> Season:
    """Take the season row lock that serializes finalizes and stage progression."""
    return session.exec(season_lock_query(season_id)).one()


def _apply_statement_timeout(session: Session, seconds: float) -> None:
    bind = session.get_bind()
    if bind.dialect.name == "postgresql":
        session.connection().execute(text(f"SET LOCAL statement_timeout = {int(seconds * 1000)}"))


def finalize_match(
    session: Session,
    match_id: int,
    hooks: Optional[Sequence[PostCommitHook]] = None,
    timeout_seconds: Optional[float] = None,
) -> Optional[FinalizationOutcome]:
    """Recompute everything derived from a finished match.

    Returns None (without writing) if the match is missing or not FINISHED.
    Raises TransientFinalizationError on timeout or a retryable database
    error; the transaction is rolled back and the call can be repeated.
    """
    budget = FINALIZE_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
    deadline = _Deadline(budget)

    try:
        _apply_statement_timeout(session, budget)
        season_id = session.exec(select(Match.season_id).where(Match.id == match_id)).first()
        if season_id is None:
            logger.warning(f"finalize_match: match {match_id} not found")
            session.rollback()
            return None
        # Season row before match row, so finalizes of one season run one at a time
        season = lock_season(session, season_id)
        match = session.exec(
            select(Match)
            .where(Match.id == match_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if match is None:
            logger.warning(f"finalize_match: match {match_id} not found")
            session.rollback()
            return None
        if match.status != MatchStatus.FINISHED:
            logger.info(f"finalize_match: match {match_id} is {match.status}, skipping aggregation")
            session.rollback()
            return None

        series_format = resolve_season_format(season, season.competition)
        profile = format_profile(series_format)

        outcome = FinalizationOutcome(
            match_id=match.id,
            season_id=season.id,
            competition_id=season.competition_id,
            series_id=match.series_id,
        )
        club_ids = {match.home_club_id, match.away_club_id}
        club_ids.update(session.exec(select(MatchLineup.club_id).where(MatchLineup.match_id == match.id)).all())
        outcome.club_ids = sorted(club_ids)

        rebuild_club_season_stats(session, season.id, profile.standings_include_playoffs)
        deadline.check("club_stats")
        rebuild_player_season_stats(session, season.id)
        deadline.check("player_stats")
        rebuild_player_career_stats(session, season.id)
        deadline.check("career_stats")
        outcome.suspensions_served, outcome.suspensions_created = process_disqualifications(session, match)
        deadline.check("disqualifications")
        outcome.predictions_graded, outcome.achievements_awarded = update_predictions(session, match)
        deadline.check("predictions")

        if match.series_id is not None:
            series = update_series_state(session, match, series_format)
            outcome.series_finished = bool(series and series.series_status == SeriesStatus.FINISHED)
            deadline.check("stage_progression")

        session.flush()
        outcome.champion_club_id = season.champion_club_id
        session.commit()
    except TransientFinalizationError as e:
        session.rollback()
        logger.warning(f"finalize_match: match {match_id} aborted ({e.code}: {e.context}), rolled back")
        raise
    except OperationalError as e:
        session.rollback()
        logger.exception(f"finalize_match: match {match_id} hit a retryable database error, rolled back")
        raise TransientFinalizationError("finalize_retryable", {"match_id": match_id}) from e
    except Exception:
        session.rollback()
        logger.exception(f"finalize_match: match {match_id} failed, transaction rolled back")
        raise

    logger.info(
        f"Match {match_id} finalized: season={outcome.season_id} series_finished={outcome.series_finished} "
        f"suspensions=+{outcome.suspensions_created} predictions={outcome.predictions_graded}"
    )
    run_post_commit_hooks(session, outcome, default_post_commit_hooks() if hooks is None else hooks)
    return outcome
