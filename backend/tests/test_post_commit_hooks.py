"""
Tests for post-commit hooks: ordering, failure isolation, cache invalidation,
view publishing and the result broadcast.
"""

import pytest
import requests
from sqlmodel import Session, select

from league.models import Club, Match, MatchStatus, SeriesFormat
from league.services import match_finalization
from league.services.broadcast import ResultBroadcaster, format_result_message
from league.services.cache import VersionedCache, default_cache
from league.services.match_finalization import (
    FinalizationOutcome,
    cache_keys_for,
    default_post_commit_hooks,
    finalize_match,
    invalidate_cache_hook,
    publish_views_hook,
    run_post_commit_hooks,
)
from league.services.realtime import (
    PUBLIC_LEAGUE_RESULTS_TOPIC,
    PUBLIC_LEAGUE_SCHEDULE_TOPIC,
    PUBLIC_LEAGUE_TABLE_TOPIC,
    default_hub,
    season_topic,
)
from league.services.season_scheduler import SeasonAutomationInput, run_season_automation


@pytest.fixture
def finished_match(session: Session, make_competition, make_clubs, season_start) -> Match:
    competition = make_competition(SeriesFormat.SINGLE_MATCH)
    clubs = make_clubs(2)
    run_season_automation(session, SeasonAutomationInput(
        competition_id=competition.id,
        club_ids=[c.id for c in clubs],
        season_name="2026",
        start_date=season_start,
    ))
    match = session.exec(select(Match)).one()
    match.home_score, match.away_score = 2, 1
    match.status = MatchStatus.FINISHED.value
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


class _FakeResponse:
    def __init__(self, payload, error=None):
        self.payload = payload
        self.error = error

    def raise_for_status(self):
        if self.error:
            raise self.error

    def json(self):
        return self.payload


class _FakeHttp:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, json=None, timeout=None):
        self.calls.append((url, json))
        return self.response


class TestHookRunner:
    def test_failing_hook_does_not_stop_the_rest(self, session: Session, finished_match: Match):
        calls = []

        def broken(session, outcome):
            raise RuntimeError("cache down")

        def recorder(session, outcome):
            calls.append(outcome.match_id)

        outcome = finalize_match(session, finished_match.id, hooks=[broken, recorder])
        assert outcome is not None
        assert calls == [finished_match.id]

    def test_failure_count(self, session: Session):
        outcome = FinalizationOutcome(match_id=1, season_id=1, competition_id=1)

        def broken(session, outcome):
            raise ValueError("boom")

        assert run_post_commit_hooks(session, outcome, [broken, lambda s, o: None, broken]) == 2

    def test_default_order(self):
        names = [h.__name__ for h in default_post_commit_hooks()]
        assert names == ["invalidate_cache_hook", "publish_views_hook", "broadcast_result_hook"]


class TestCacheInvalidation:
    def test_keys_are_the_season_views(self):
        outcome = FinalizationOutcome(match_id=5, season_id=2, competition_id=3, club_ids=[7, 8])
        assert cache_keys_for(outcome) == [
            season_topic(PUBLIC_LEAGUE_TABLE_TOPIC, 2),
            season_topic(PUBLIC_LEAGUE_SCHEDULE_TOPIC, 2),
            season_topic(PUBLIC_LEAGUE_RESULTS_TOPIC, 2),
            "season:2:bracket",
        ]

    def test_invalidate_bumps_versions(self, session: Session):
        cache = VersionedCache()
        key = season_topic(PUBLIC_LEAGUE_TABLE_TOPIC, 2)
        cache.set(key, {"stale": True})
        cache.set(season_topic(PUBLIC_LEAGUE_TABLE_TOPIC, 9), {"other": True})
        outcome = FinalizationOutcome(match_id=5, season_id=2, competition_id=3)

        invalidate_cache_hook(session, outcome, cache=cache)
        assert cache.get(key) is None
        assert cache.version(key) == 1
        assert cache.get(season_topic(PUBLIC_LEAGUE_TABLE_TOPIC, 9)) == {"other": True}


class TestPublishViews:
    def test_table_is_cached_and_published(self, session: Session, finished_match: Match):
        league_wide, per_season = [], []
        season_key = season_topic(PUBLIC_LEAGUE_TABLE_TOPIC, finished_match.season_id)
        unsubscribers = [
            default_hub.subscribe(PUBLIC_LEAGUE_TABLE_TOPIC, lambda topic, payload: league_wide.append(payload)),
            default_hub.subscribe(season_key, lambda topic, payload: per_season.append(payload)),
        ]
        try:
            finalize_match(session, finished_match.id, hooks=[invalidate_cache_hook, publish_views_hook])
        finally:
            for unsubscribe in unsubscribers:
                unsubscribe()

        assert len(league_wide) == 1
        assert per_season == league_wide
        message = league_wide[0]
        assert message["type"] == "league.table"
        assert message["season_id"] == finished_match.season_id
        standings = message["payload"]["standings"]
        assert standings[0]["club_id"] == finished_match.home_club_id
        assert standings[0]["points"] == 3

        assert default_cache.get(season_key) == message["payload"]
        assert default_cache.get(PUBLIC_LEAGUE_TABLE_TOPIC) is None


class TestBroadcast:
    def test_message_format(self, finished_match: Match):
        assert format_result_message(finished_match, "Lions", "Tigers") == "Lions 2:1 Tigers"
        finished_match.has_penalty_shootout = True
        finished_match.penalty_home_score, finished_match.penalty_away_score = 4, 3
        assert format_result_message(finished_match, "Lions", "Tigers", "Final") == "Final: Lions 2:1 Tigers (pen. 4:3)"

    def test_dry_run_without_credentials(self, monkeypatch):
        monkeypatch.delenv("LEAGUE_BOT_TOKEN", raising=False)
        monkeypatch.delenv("LEAGUE_BOT_CHAT_ID", raising=False)
        http = _FakeHttp(_FakeResponse({}))
        broadcaster = ResultBroadcaster(session=http)
        assert broadcaster.send_message("A 1:0 B")["status"] == "dry_run"
        assert http.calls == []

    def test_sends_to_bot_api(self, monkeypatch):
        monkeypatch.setenv("LEAGUE_BOT_TOKEN", "abc")
        monkeypatch.setenv("LEAGUE_BOT_CHAT_ID", "-100")
        monkeypatch.setenv("LEAGUE_BOT_API_URL", "https://bot.example/")
        http = _FakeHttp(_FakeResponse({"ok": True, "result": {"message_id": 42}}))
        result = ResultBroadcaster(session=http).send_message("A 1:0 B")

        assert result == {"status": "sent", "message_id": 42, "error": None}
        assert http.calls == [("https://bot.example/botabc/sendMessage", {"chat_id": "-100", "text": "A 1:0 B"})]

    def test_http_error_is_reported_not_raised(self, monkeypatch):
        monkeypatch.setenv("LEAGUE_BOT_TOKEN", "abc")
        monkeypatch.setenv("LEAGUE_BOT_CHAT_ID", "-100")
        http = _FakeHttp(_FakeResponse({}, error=requests.HTTPError("502 Bad Gateway")))
        result = ResultBroadcaster(session=http).send_message("A 1:0 B")
        assert result["status"] == "failed"
        assert "502" in result["error"]

    def test_broadcast_hook_sends_result(self, session: Session, finished_match: Match, monkeypatch):
        sent = []

        class Recorder:
            def send_message(self, text):
                sent.append(text)
                return {"status": "sent"}

        monkeypatch.setattr(match_finalization, "get_result_broadcaster", lambda: Recorder())
        finalize_match(session, finished_match.id, hooks=[match_finalization.broadcast_result_hook])
        home = session.get(Club, finished_match.home_club_id)
        away = session.get(Club, finished_match.away_club_id)
        assert sent == [f"{home.name} 2:1 {away.name}"]
