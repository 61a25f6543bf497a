"""
Standings: league table, group tables and playoff seeding.

League table order:
  points, goal difference, head-to-head points, head-to-head goal
  difference, head-to-head goals for, club name.

Group table order:
  points, head-to-head points, head-to-head goal difference, head-to-head
  goals for, head-to-head goals against (fewer first), goal difference,
  goals for, club id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlmodel import Session, or_, select

from league.errors import StateConflictError
from league.models import (
    Club,
    ClubSeasonStats,
    Match,
    MatchStatus,
    RoundType,
    SeasonGroup,
    SeasonGroupSlot,
    SeasonParticipant,
    SeasonRound,
)
from league.services.league_rules import POINTS_DRAW, POINTS_WIN
from league.services.outcome import determine_match_winner


@dataclass
class StandingRow:
    club_id: int
    club_name: str = ""
    short_name: Optional[str] = None
    logo_url: Optional[str] = None
    points: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    position: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    @property
    def matches_played(self) -> int:
        return self.wins + self.draws + self.losses

    def to_dict(self):
        return {
            "position": self.position,
            "club_id": self.club_id,
            "club_name": self.club_name,
            "club_short_name": self.short_name or self.club_name,
            "club_logo_url": self.logo_url,
            "matches_played": self.matches_played,
            "wins": self.wins,
            "draws": self.draws,
            "losses": self.losses,
            "goals_for": self.goals_for,
            "goals_against": self.goals_against,
            "goal_difference": self.goal_difference,
            "points": self.points,
        }


@dataclass
class HeadToHead:
    points: int = 0
    goals_for: int = 0
    goals_against: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against


HeadToHeadMap = Dict[Tuple[int, int], HeadToHead]


@dataclass
class Tally:
    rows: Dict[int, StandingRow] = field(default_factory=dict)
    head_to_head: HeadToHeadMap = field(default_factory=dict)

    def row(self, club_id: int) -> StandingRow:
        if club_id not in self.rows:
            self.rows[club_id] = StandingRow(club_id=club_id)
        return self.rows[club_id]

    def h2h(self, club_id: int, opponent_id: int) -> HeadToHead:
        key = (club_id, opponent_id)
        if key not in self.head_to_head:
            self.head_to_head[key] = HeadToHead()
        return self.head_to_head[key]

    def get_h2h(self, club_id: int, opponent_id: int) -> HeadToHead:
        return self.head_to_head.get((club_id, opponent_id)) or HeadToHead()


def tally_matches(
    matches: Iterable[Match],
    club_ids: Iterable[int] = (),
    use_shootout: bool = True,
) -> Tally:
    """Accumulate 3/1/0 points, goals and pairwise records from finished matches.

    Every id in club_ids gets a row even with no matches.
    """
    t = Tally()
    for cid in club_ids:
        t.row(cid)

    for m in matches:
        home = t.row(m.home_club_id)
        away = t.row(m.away_club_id)
        home.goals_for += m.home_score
        home.goals_against += m.away_score
        away.goals_for += m.away_score
        away.goals_against += m.home_score

        direct_home = t.h2h(m.home_club_id, m.away_club_id)
        direct_away = t.h2h(m.away_club_id, m.home_club_id)
        direct_home.goals_for += m.home_score
        direct_home.goals_against += m.away_score
        direct_away.goals_for += m.away_score
        direct_away.goals_against += m.home_score

        winner = determine_match_winner(m, use_shootout=use_shootout)
        if winner == m.home_club_id:
            home.points += POINTS_WIN
            home.wins += 1
            away.losses += 1
            direct_home.points += POINTS_WIN
        elif winner == m.away_club_id:
            away.points += POINTS_WIN
            away.wins += 1
            home.losses += 1
            direct_away.points += POINTS_WIN
        else:
            home.points += POINTS_DRAW
            away.points += POINTS_DRAW
            home.draws += 1
            away.draws += 1
            direct_home.points += POINTS_DRAW
            direct_away.points += POINTS_DRAW
    return t


def _desc(left: int, right: int) -> int:
    return right - left


def sort_league_table(rows: Sequence[StandingRow], tally: Tally) -> List[StandingRow]:
    """Order rows for the league table and assign positions."""

    def compare(left: StandingRow, right: StandingRow) -> int:
        if left.points != right.points:
            return _desc(left.points, right.points)
        if left.goal_difference != right.goal_difference:
            return _desc(left.goal_difference, right.goal_difference)

        lv = tally.get_h2h(left.club_id, right.club_id)
        rv = tally.get_h2h(right.club_id, left.club_id)
        if lv.points != rv.points:
            return _desc(lv.points, rv.points)
        if lv.goal_difference != rv.goal_difference:
            return _desc(lv.goal_difference, rv.goal_difference)
        if lv.goals_for != rv.goals_for:
            return _desc(lv.goals_for, rv.goals_for)

        lname, rname = left.club_name.casefold(), right.club_name.casefold()
        if lname != rname:
            return -1 if lname < rname else 1
        return left.club_id - right.club_id

    ordered = sorted(rows, key=cmp_to_key(compare))
    for index, row in enumerate(ordered):
        row.position = index + 1
    return ordered


def sort_group_table(rows: Sequence[StandingRow], tally: Tally) -> List[StandingRow]:
    def compare(left: StandingRow, right: StandingRow) -> int:
        if left.points != right.points:
            return _desc(left.points, right.points)

        lv = tally.get_h2h(left.club_id, right.club_id)
        rv = tally.get_h2h(right.club_id, left.club_id)
        if lv.points != rv.points:
            return _desc(lv.points, rv.points)
        if lv.goal_difference != rv.goal_difference:
            return _desc(lv.goal_difference, rv.goal_difference)
        if lv.goals_for != rv.goals_for:
            return _desc(lv.goals_for, rv.goals_for)
        if lv.goals_against != rv.goals_against:
            return lv.goals_against - rv.goals_against

        if left.goal_difference != right.goal_difference:
            return _desc(left.goal_difference, right.goal_difference)
        if left.goals_for != right.goals_for:
            return _desc(left.goals_for, right.goals_for)
        return left.club_id - right.club_id

    ordered = sorted(rows, key=cmp_to_key(compare))
    for index, row in enumerate(ordered):
        row.position = index + 1
    return ordered


def build_group_standings(club_ids: Sequence[int], matches: Iterable[Match]) -> List[StandingRow]:
    """Group table from the group's finished matches (shootouts ignored)."""
    members = set(club_ids)
    relevant = [
        m for m in matches
        if m.status == MatchStatus.FINISHED and m.home_club_id in members and m.away_club_id in members
    ]
    t = tally_matches(relevant, club_ids, use_shootout=False)
    return sort_group_table([t.rows[cid] for cid in club_ids], t)


def compute_group_playoff_seeds(
    groups: Sequence[SeasonGroup],
    slots_by_group: Dict[int, List[SeasonGroupSlot]],
    matches: Sequence[Match],
) -> List[int]:
    """Seed the knockout field from group placements.

    Order: placement, points, wins, goal difference, goals for, group index, club id.
    """
    if not groups:
        raise StateConflictError("group_playoffs_not_configured")

    by_group: Dict[int, List[Match]] = {}
    for m in matches:
        if m.group_id is None:
            continue
        by_group.setdefault(m.group_id, []).append(m)

    entries = []
    for group in groups:
        if group.qualify_count < 1:
            raise StateConflictError("group_playoffs_incomplete", {"group_id": group.id})
        club_ids = [
            s.club_id for s in sorted(slots_by_group.get(group.id, []), key=lambda s: s.position)
            if s.club_id
        ]
        if len(club_ids) < group.qualify_count:
            raise StateConflictError("group_playoffs_incomplete", {"group_id": group.id})

        table = build_group_standings(club_ids, by_group.get(group.id, []))
        for placement, row in enumerate(table[:group.qualify_count], start=1):
            entries.append((placement, row, group.group_index))

    if len(entries) < 2:
        raise StateConflictError("not_enough_pairs")

    entries.sort(key=lambda e: (
        e[0],
        -e[1].points,
        -e[1].wins,
        -e[1].goal_difference,
        -e[1].goals_for,
        e[2],
        e[1].club_id,
    ))
    return [row.club_id for _, row, _ in entries]


def rank_clubs_by_stats(club_ids: Sequence[int], stats_by_club: Dict[int, ClubSeasonStats]) -> List[int]:
    """Seeding order from season stats: points, wins, goal difference, goals for, fewest conceded."""

    def key(cid: int):
        s = stats_by_club.get(cid)
        if s is None:
            return (0, 0, 0, 0, 0, cid)
        return (-s.points, -s.wins, -(s.goals_for - s.goals_against), -s.goals_for, s.goals_against, cid)

    return sorted(club_ids, key=key)


def load_stats_by_club(session: Session, season_id: int) -> Dict[int, ClubSeasonStats]:
    rows = session.exec(select(ClubSeasonStats).where(ClubSeasonStats.season_id == season_id)).all()
    return {r.club_id: r for r in rows}


def standings_matches_query(season_id: int, include_playoffs: bool):
    """Finished matches that count towards the season table."""
    stmt = select(Match).where(Match.season_id == season_id, Match.status == MatchStatus.FINISHED.value)
    if not include_playoffs:
        regular_rounds = select(SeasonRound.id).where(
            SeasonRound.season_id == season_id, SeasonRound.round_type == RoundType.REGULAR.value
        )
        stmt = stmt.where(or_(Match.round_id.is_(None), Match.round_id.in_(regular_rounds)))
    return stmt


def build_league_table(session: Session, season_id: int, include_playoffs: bool = False) -> List[StandingRow]:
    """League table from ClubSeasonStats, tie-broken by head-to-head records.

    Every participant gets a row; clubs with a stats row but no participation
    (legacy data) are appended.
    """
    stats = load_stats_by_club(session, season_id)
    participant_ids = session.exec(
        select(SeasonParticipant.club_id).where(SeasonParticipant.season_id == season_id)
    ).all()
    club_ids = list(dict.fromkeys(list(participant_ids) + list(stats.keys())))
    clubs = {
        c.id: c for c in session.exec(select(Club).where(Club.id.in_(club_ids))).all()
    } if club_ids else {}

    matches = session.exec(standings_matches_query(season_id, include_playoffs)).all()
    t = tally_matches(matches, club_ids)

    rows: List[StandingRow] = []
    for cid in club_ids:
        club = clubs.get(cid)
        s = stats.get(cid)
        row = StandingRow(
            club_id=cid,
            club_name=club.name if club else "",
            short_name=club.short_name if club else None,
            logo_url=club.logo_url if club else None,
        )
        if s is not None:
            row.points, row.wins, row.draws, row.losses = s.points, s.wins, s.draws, s.losses
            row.goals_for, row.goals_against = s.goals_for, s.goals_against
        rows.append(row)

    return sort_league_table(rows, t)
