"""
Tests for standings: points, tie-breakers, group tables and playoff-round filtering.
"""

from datetime import datetime

import pytest
from sqlmodel import Session, select

from league.errors import StateConflictError
from league.models import Match, MatchStatus, PredictionResult, SeasonGroup, SeasonGroupSlot, SeriesFormat
from league.services.match_finalization import rebuild_club_season_stats
from league.services.outcome import determine_match_winner, match_loser, prediction_outcome
from league.services.season_scheduler import SeasonAutomationInput, run_season_automation
from league.services.standings import (
    StandingRow,
    build_group_standings,
    build_league_table,
    compute_group_playoff_seeds,
    sort_league_table,
    tally_matches,
)

KICKOFF = datetime(2026, 4, 4, 16, 0)


def _match(home, away, hs, as_, group_id=None, pens=None):
    m = Match(
        season_id=1,
        match_datetime=KICKOFF,
        home_club_id=home,
        away_club_id=away,
        home_score=hs,
        away_score=as_,
        status=MatchStatus.FINISHED.value,
        group_id=group_id,
    )
    if pens:
        m.has_penalty_shootout = True
        m.penalty_home_score, m.penalty_away_score = pens
    return m


class TestOutcome:
    def test_score_decides(self):
        m = _match(1, 2, 0, 2)
        assert determine_match_winner(m) == 2
        assert match_loser(m) == 1
        assert prediction_outcome(m) == PredictionResult.TWO

    def test_shootout_breaks_a_draw(self):
        m = _match(1, 2, 1, 1, pens=(5, 4))
        assert determine_match_winner(m) == 1
        assert determine_match_winner(m, use_shootout=False) is None
        assert prediction_outcome(m) == PredictionResult.ONE

    def test_plain_draw(self):
        m = _match(1, 2, 2, 2)
        assert determine_match_winner(m) is None
        assert match_loser(m) is None
        assert prediction_outcome(m) == PredictionResult.DRAW


class TestTally:
    def test_points_and_goals(self):
        t = tally_matches([_match(1, 2, 3, 1), _match(2, 3, 0, 0), _match(3, 1, 2, 1)], club_ids=[1, 2, 3, 4])
        assert (t.rows[1].points, t.rows[2].points, t.rows[3].points) == (3, 1, 4)
        assert t.rows[4].matches_played == 0
        assert t.rows[1].goals_for == 4 and t.rows[1].goals_against == 3
        assert t.get_h2h(3, 1).points == 3
        assert t.get_h2h(1, 4).points == 0

    def test_shootout_winner_takes_three_points(self):
        t = tally_matches([_match(1, 2, 0, 0, pens=(3, 2))])
        assert t.rows[1].points == 3 and t.rows[1].wins == 1
        assert t.rows[2].losses == 1


class TestLeagueTableOrder:
    def test_head_to_head_breaks_points_and_goal_difference_tie(self):
        rows = [
            StandingRow(club_id=1, club_name="Alpha", points=3, wins=1, losses=1, goals_for=2, goals_against=1),
            StandingRow(club_id=2, club_name="Beta", points=3, wins=1, losses=1, goals_for=2, goals_against=1),
        ]
        tally = tally_matches([_match(1, 2, 0, 1)])
        ordered = sort_league_table(rows, tally)
        assert [r.club_id for r in ordered] == [2, 1]
        assert [r.position for r in ordered] == [1, 2]

    def test_goal_difference_beats_head_to_head(self):
        rows = [
            StandingRow(club_id=1, club_name="Alpha", points=3, goals_for=5, goals_against=1),
            StandingRow(club_id=2, club_name="Beta", points=3, goals_for=2, goals_against=1),
        ]
        tally = tally_matches([_match(1, 2, 0, 1)])
        assert [r.club_id for r in sort_league_table(rows, tally)] == [1, 2]

    def test_name_is_the_last_resort(self):
        rows = [
            StandingRow(club_id=9, club_name="beta"),
            StandingRow(club_id=3, club_name="Alpha"),
        ]
        assert [r.club_id for r in sort_league_table(rows, tally_matches([]))] == [3, 9]


class TestGroupTable:
    def test_shootouts_do_not_count_in_groups(self):
        table = build_group_standings([1, 2], [_match(1, 2, 1, 1, pens=(4, 2))])
        assert [r.points for r in table] == [1, 1]

    def test_head_to_head_before_goal_difference(self):
        matches = [
            _match(1, 2, 0, 1),
            _match(1, 3, 5, 0),
            _match(1, 4, 5, 0),
            _match(2, 3, 0, 1),
            _match(2, 4, 1, 0),
            _match(4, 3, 2, 0),
        ]
        table = build_group_standings([1, 2, 3, 4], matches)
        # 1 and 2 on 6 points: 2 won the direct match despite 1's +9 goal difference
        assert [r.club_id for r in table] == [2, 1, 4, 3]
        assert [r.points for r in table] == [6, 6, 3, 3]

    def test_matches_outside_the_group_are_ignored(self):
        table = build_group_standings([1, 2], [_match(1, 5, 9, 0), _match(2, 1, 1, 0)])
        assert [r.club_id for r in table] == [2, 1]
        assert table[1].goals_for == 0

    def test_seeds_need_groups(self):
        with pytest.raises(StateConflictError) as exc:
            compute_group_playoff_seeds([], {}, [])
        assert exc.value.code == "group_playoffs_not_configured"

    def test_seeds_need_enough_clubs_per_group(self):
        group = SeasonGroup(id=1, season_id=1, group_index=1, label="Group A", qualify_count=2)
        slots = {1: [SeasonGroupSlot(group_id=1, position=1, club_id=10)]}
        with pytest.raises(StateConflictError) as exc:
            compute_group_playoff_seeds([group], slots, [])
        assert exc.value.code == "group_playoffs_incomplete"


class TestLeagueTableFromDatabase:
    def _season(self, session, make_competition, make_clubs, series_format, count):
        competition = make_competition(series_format)
        clubs = make_clubs(count)
        result = run_season_automation(session, SeasonAutomationInput(
            competition_id=competition.id,
            club_ids=[c.id for c in clubs],
            season_name="2026",
            start_date=KICKOFF,
        ))
        return result.season_id, clubs

    def test_every_participant_has_a_row(self, session: Session, make_competition, make_clubs):
        season_id, clubs = self._season(session, make_competition, make_clubs, SeriesFormat.SINGLE_MATCH, 4)
        matches = session.exec(select(Match).where(Match.season_id == season_id).order_by(Match.id)).all()
        first = matches[0]
        first.home_score, first.away_score = 2, 1
        first.status = MatchStatus.FINISHED.value
        session.add(first)
        session.commit()
        rebuild_club_season_stats(session, season_id)
        session.commit()

        table = build_league_table(session, season_id)
        assert len(table) == 4
        assert table[0].club_id == first.home_club_id
        assert table[0].points == 3
        assert sum(r.matches_played for r in table) == 2
        assert [r.position for r in table] == [1, 2, 3, 4]

    def test_playoff_rounds_only_count_when_asked(self, session: Session, make_competition, make_clubs):
        season_id, clubs = self._season(session, make_competition, make_clubs, SeriesFormat.PLAYOFF_BRACKET, 2)
        match = session.exec(select(Match).where(Match.season_id == season_id)).one()
        match.home_score, match.away_score = 1, 0
        match.status = MatchStatus.FINISHED.value
        session.add(match)
        session.commit()

        rebuild_club_season_stats(session, season_id, include_playoffs=False)
        assert sum(r.points for r in build_league_table(session, season_id)) == 0

        rebuild_club_season_stats(session, season_id, include_playoffs=True)
        table = build_league_table(session, season_id, include_playoffs=True)
        assert table[0].club_id == match.home_club_id
        assert table[0].points == 3
