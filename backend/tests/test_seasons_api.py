"""
API tests for competitions, seasons, league views and match results.
"""

import pytest
from fastapi.testclient import TestClient

from league.services.cache import default_cache
from league.services.realtime import (
    PUBLIC_LEAGUE_RESULTS_TOPIC,
    PUBLIC_LEAGUE_SCHEDULE_TOPIC,
    PUBLIC_LEAGUE_TABLE_TOPIC,
    season_topic,
)


@pytest.fixture(autouse=True)
def _no_bot_credentials(monkeypatch):
    monkeypatch.delenv("LEAGUE_BOT_TOKEN", raising=False)
    monkeypatch.delenv("LEAGUE_BOT_CHAT_ID", raising=False)


def _create_competition(client: TestClient, series_format="SINGLE_MATCH") -> int:
    response = client.post("/api/competitions", json={"name": "City League", "series_format": series_format})
    assert response.status_code == 201
    return response.json()["id"]


def _create_clubs(client: TestClient, *names) -> list:
    ids = []
    for name in names:
        response = client.post("/api/clubs", json={"name": name})
        assert response.status_code == 201
        ids.append(response.json()["id"])
    return ids


def _create_season(client: TestClient, competition_id: int, club_ids, **extra):
    payload = {"name": "2026", "start_date": "2026-03-07T15:00:00", "club_ids": club_ids}
    payload.update(extra)
    return client.post(f"/api/competitions/{competition_id}/seasons", json=payload)


def test_health(client: TestClient):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestCompetitionsAndClubs:
    def test_create_and_list_competition(self, client: TestClient):
        response = client.post("/api/competitions", json={"name": " Spring Cup ", "type": "cup",
                                                           "series_format": "PLAYOFF_BRACKET"})
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Spring Cup"
        assert data["type"] == "CUP"
        assert data["series_format"] == "PLAYOFF_BRACKET"

        listed = client.get("/api/competitions").json()
        assert [c["id"] for c in listed] == [data["id"]]

    def test_invalid_competition_type(self, client: TestClient):
        response = client.post("/api/competitions", json={"name": "X", "type": "FRIENDLY"})
        assert response.status_code == 422

    def test_duplicate_club_name(self, client: TestClient):
        _create_clubs(client, "Lions")
        response = client.post("/api/clubs", json={"name": "Lions"})
        assert response.status_code == 409
        assert response.json()["detail"] == "club_name_taken"


class TestCreateSeason:
    def test_round_robin_season(self, client: TestClient):
        competition_id = _create_competition(client)
        club_ids = _create_clubs(client, "Lions", "Tigers", "Bears", "Wolves")

        response = _create_season(client, competition_id, club_ids, match_day_of_week=5, match_time="18:00")
        assert response.status_code == 201
        data = response.json()
        assert data["participants_created"] == 4
        assert data["matches_created"] == 6
        assert data["series_created"] == 0

    def test_bad_match_time(self, client: TestClient):
        competition_id = _create_competition(client)
        club_ids = _create_clubs(client, "Lions", "Tigers")
        response = _create_season(client, competition_id, club_ids, match_time="25:99")
        assert response.status_code == 422

    def test_bad_best_of(self, client: TestClient):
        competition_id = _create_competition(client, "PLAYOFF_BRACKET")
        club_ids = _create_clubs(client, "Lions", "Tigers")
        response = _create_season(client, competition_id, club_ids, best_of=0)
        assert response.status_code == 422

    def test_missing_competition(self, client: TestClient):
        club_ids = _create_clubs(client, "Lions", "Tigers")
        response = _create_season(client, 999, club_ids)
        assert response.status_code == 404
        assert response.json()["detail"] == "competition_not_found"

    def test_not_enough_participants(self, client: TestClient):
        competition_id = _create_competition(client)
        club_ids = _create_clubs(client, "Lions")
        response = _create_season(client, competition_id, club_ids)
        assert response.status_code == 422
        assert response.json()["detail"] == "not_enough_participants"

    def test_knockout_season_reports_bye(self, client: TestClient):
        competition_id = _create_competition(client, "PLAYOFF_BRACKET")
        club_ids = _create_clubs(client, "Lions", "Tigers", "Bears")
        data = _create_season(client, competition_id, club_ids).json()
        assert data["series_created"] == 2
        assert data["matches_created"] == 1
        assert data["bye_club_ids"] == [club_ids[2]]


class TestLeagueViews:
    def test_table_schedule_and_results(self, client: TestClient):
        competition_id = _create_competition(client)
        club_ids = _create_clubs(client, "Lions", "Tigers", "Bears", "Wolves")
        season_id = _create_season(client, competition_id, club_ids).json()["season_id"]

        table = client.get(f"/api/seasons/{season_id}/table").json()
        assert table["season"]["series_format"] == "SINGLE_MATCH"
        assert len(table["standings"]) == 4
        assert all(row["points"] == 0 for row in table["standings"])

        schedule = client.get(f"/api/seasons/{season_id}/schedule", params={"limit_rounds": 2}).json()
        assert [r["round_label"] for r in schedule["rounds"]] == ["Round 1", "Round 2"]
        assert all(len(r["matches"]) == 2 for r in schedule["rounds"])

        assert client.get(f"/api/seasons/{season_id}/results").json()["rounds"] == []

    def test_results_after_a_match_is_finished(self, client: TestClient):
        competition_id = _create_competition(client)
        club_ids = _create_clubs(client, "Lions", "Tigers")
        season_id = _create_season(client, competition_id, club_ids).json()["season_id"]
        match = client.get(f"/api/seasons/{season_id}/schedule").json()["rounds"][0]["matches"][0]

        client.patch(f"/api/matches/{match['id']}", json={"home_score": 3, "away_score": 0, "status": "FINISHED"})

        results = client.get(f"/api/seasons/{season_id}/results").json()
        assert results["rounds"][0]["matches"][0]["home_score"] == 3
        table = client.get(f"/api/seasons/{season_id}/table").json()
        assert table["standings"][0]["club_id"] == match["home_club"]["id"]
        assert table["standings"][0]["points"] == 3
        assert client.get(f"/api/seasons/{season_id}/schedule").json()["rounds"] == []

    def test_limit_rounds_must_be_positive(self, client: TestClient):
        competition_id = _create_competition(client)
        club_ids = _create_clubs(client, "Lions", "Tigers")
        season_id = _create_season(client, competition_id, club_ids).json()["season_id"]
        assert client.get(f"/api/seasons/{season_id}/schedule", params={"limit_rounds": 0}).status_code == 422

    def test_bracket(self, client: TestClient):
        competition_id = _create_competition(client, "PLAYOFF_BRACKET")
        club_ids = _create_clubs(client, "Lions", "Tigers", "Bears", "Wolves")
        season_id = _create_season(client, competition_id, club_ids).json()["season_id"]

        bracket = client.get(f"/api/seasons/{season_id}/bracket").json()
        assert bracket["has_playoffs"] is True
        assert [s["stage_name"] for s in bracket["stages"]] == ["Semifinal"]
        assert [s["bracket_slot"] for s in bracket["stages"][0]["series"]] == [1, 2]

    def test_unknown_season(self, client: TestClient):
        response = client.get("/api/seasons/999/table")
        assert response.status_code == 404
        assert response.json()["detail"] == "season_not_found"


class TestPlayoffsEndpoint:
    def test_playoffs_need_finished_regular_season(self, client: TestClient):
        competition_id = _create_competition(client, "BEST_OF_N")
        club_ids = _create_clubs(client, "Lions", "Tigers", "Bears", "Wolves")
        season_id = _create_season(client, competition_id, club_ids).json()["season_id"]

        response = client.post(f"/api/seasons/{season_id}/playoffs", json={"best_of": 3})
        assert response.status_code == 409
        assert response.json()["detail"] == "matches_not_finished"

    def test_playoffs_not_supported(self, client: TestClient):
        competition_id = _create_competition(client)
        club_ids = _create_clubs(client, "Lions", "Tigers")
        season_id = _create_season(client, competition_id, club_ids).json()["season_id"]
        response = client.post(f"/api/seasons/{season_id}/playoffs", json={})
        assert response.status_code == 409
        assert response.json()["detail"] == "playoffs_not_supported"


class TestMatchResults:
    @pytest.fixture
    def match(self, client: TestClient) -> dict:
        competition_id = _create_competition(client)
        club_ids = _create_clubs(client, "Lions", "Tigers")
        season_id = _create_season(client, competition_id, club_ids).json()["season_id"]
        return client.get(f"/api/seasons/{season_id}/schedule").json()["rounds"][0]["matches"][0]

    def test_finishing_a_match_returns_finalization(self, client: TestClient, match: dict):
        response = client.patch(f"/api/matches/{match['id']}",
                                json={"home_score": 1, "away_score": 2, "status": "FINISHED"})
        assert response.status_code == 200
        data = response.json()
        assert data["match"]["status"] == "FINISHED"
        assert data["match"]["away_score"] == 2
        assert data["finalization"]["match_id"] == match["id"]
        assert data["finalization"]["champion_club_id"] is None

    def test_live_score_update_does_not_finalize(self, client: TestClient, match: dict):
        response = client.patch(f"/api/matches/{match['id']}", json={"home_score": 1, "status": "LIVE"})
        assert response.status_code == 200
        assert response.json()["finalization"] is None

    def test_negative_score_rejected(self, client: TestClient, match: dict):
        response = client.patch(f"/api/matches/{match['id']}", json={"home_score": -1})
        assert response.status_code == 422

    def test_unknown_match(self, client: TestClient):
        response = client.patch("/api/matches/999", json={"home_score": 1})
        assert response.status_code == 404
        assert response.json()["detail"] == "match_not_found"

    def test_event_for_foreign_club(self, client: TestClient, match: dict):
        response = client.post(f"/api/matches/{match['id']}/events",
                               json={"player_id": 1, "club_id": 999, "event_type": "GOAL", "minute": 10})
        assert response.status_code == 422
        assert response.json()["detail"] == "club_not_in_match"

    def test_event_on_finished_match_refinalizes(self, client: TestClient, match: dict):
        client.patch(f"/api/matches/{match['id']}", json={"home_score": 1, "away_score": 0, "status": "FINISHED"})
        response = client.post(f"/api/matches/{match['id']}/events", json={
            "player_id": 1,
            "club_id": match["home_club"]["id"],
            "event_type": "GOAL",
            "minute": 55,
        })
        assert response.status_code == 201
        data = response.json()
        assert data["event_id"] is not None
        assert data["finalization"]["match_id"] == match["id"]

    def test_lineup_replaces_previous(self, client: TestClient, match: dict):
        club_id = match["home_club"]["id"]
        client.put(f"/api/matches/{match['id']}/lineup", json={"club_id": club_id, "person_ids": [1, 2, 3]})
        response = client.put(f"/api/matches/{match['id']}/lineup", json={"club_id": club_id, "person_ids": [4, 4]})
        assert response.status_code == 200
        assert response.json()["count"] == 1

    def test_finalize_requires_finished_match(self, client: TestClient, match: dict):
        response = client.post(f"/api/matches/{match['id']}/finalize")
        assert response.status_code == 422
        assert response.json()["detail"] == "match_not_finished"

    def test_manual_finalize_is_repeatable(self, client: TestClient, match: dict):
        client.patch(f"/api/matches/{match['id']}", json={"home_score": 2, "away_score": 2, "status": "FINISHED"})
        first = client.post(f"/api/matches/{match['id']}/finalize").json()
        second = client.post(f"/api/matches/{match['id']}/finalize").json()
        assert first["match_id"] == second["match_id"] == match["id"]


class TestViewCache:
    def test_cached_table_is_served_until_a_finalize(self, client: TestClient):
        competition_id = _create_competition(client)
        club_ids = _create_clubs(client, "Lions", "Tigers")
        season_id = _create_season(client, competition_id, club_ids).json()["season_id"]
        match = client.get(f"/api/seasons/{season_id}/schedule").json()["rounds"][0]["matches"][0]

        key = season_topic(PUBLIC_LEAGUE_TABLE_TOPIC, season_id)
        default_cache.set(key, {"cached": True})
        assert client.get(f"/api/seasons/{season_id}/table").json() == {"cached": True}

        client.patch(f"/api/matches/{match['id']}", json={"home_score": 1, "away_score": 0, "status": "FINISHED"})

        table = client.get(f"/api/seasons/{season_id}/table").json()
        assert table["standings"][0]["club_id"] == match["home_club"]["id"]
        assert table["standings"][0]["points"] == 3

    def test_first_read_fills_the_cache(self, client: TestClient):
        competition_id = _create_competition(client, "PLAYOFF_BRACKET")
        club_ids = _create_clubs(client, "Lions", "Tigers")
        season_id = _create_season(client, competition_id, club_ids).json()["season_id"]

        bracket = client.get(f"/api/seasons/{season_id}/bracket").json()
        assert default_cache.get(f"season:{season_id}:bracket") == bracket
        assert default_cache.get(season_topic(PUBLIC_LEAGUE_RESULTS_TOPIC, season_id)) is None

    def test_custom_round_limit_bypasses_the_cache(self, client: TestClient):
        competition_id = _create_competition(client)
        club_ids = _create_clubs(client, "Lions", "Tigers", "Bears", "Wolves")
        season_id = _create_season(client, competition_id, club_ids).json()["season_id"]
        default_cache.set(season_topic(PUBLIC_LEAGUE_SCHEDULE_TOPIC, season_id), {"cached": True})

        schedule = client.get(f"/api/seasons/{season_id}/schedule", params={"limit_rounds": 1}).json()
        assert len(schedule["rounds"]) == 1
        assert client.get(f"/api/seasons/{season_id}/schedule").json() == {"cached": True}

    def test_rescheduling_a_match_drops_the_cached_schedule(self, client: TestClient):
        competition_id = _create_competition(client)
        club_ids = _create_clubs(client, "Lions", "Tigers")
        season_id = _create_season(client, competition_id, club_ids).json()["season_id"]
        match = client.get(f"/api/seasons/{season_id}/schedule").json()["rounds"][0]["matches"][0]

        client.patch(f"/api/matches/{match['id']}", json={"match_datetime": "2026-03-21T19:00:00"})

        schedule = client.get(f"/api/seasons/{season_id}/schedule").json()
        assert schedule["rounds"][0]["matches"][0]["match_datetime"] == "2026-03-21T19:00:00"


class TestGroupSeasonPayload:
    def _payload(self, club_ids, **stage):
        groups = [
            {"group_index": 1, "label": "Group A",
             "slots": [{"position": 1, "club_id": club_ids[0]}, {"position": 2, "club_id": club_ids[1]}]},
            {"group_index": 2, "label": "Group B",
             "slots": [{"position": 1, "club_id": club_ids[2]}, {"position": 2, "club_id": club_ids[3]}]},
        ]
        return {"group_count": 2, "group_size": 2, "groups": groups, **stage}

    def test_stage_qualify_count_applies_to_every_group(self, client: TestClient):
        competition_id = _create_competition(client, "GROUP_SINGLE_ROUND_PLAYOFF")
        club_ids = _create_clubs(client, "Lions", "Tigers", "Bears", "Wolves")
        response = _create_season(client, competition_id, [], group_stage=self._payload(club_ids, qualify_count=1))
        assert response.status_code == 201
        assert response.json()["groups_created"] == 2

    def test_qualify_count_is_required_somewhere(self, client: TestClient):
        competition_id = _create_competition(client, "GROUP_SINGLE_ROUND_PLAYOFF")
        club_ids = _create_clubs(client, "Lions", "Tigers", "Bears", "Wolves")
        response = _create_season(client, competition_id, [], group_stage=self._payload(club_ids))
        assert response.status_code == 422
        assert response.json()["detail"] == "group_stage_invalid_qualify"
