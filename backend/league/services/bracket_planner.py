"""
Single-elimination bracket planning (pure, no DB access).

Pairing: outer vs inner, seed 1 vs last, seed 2 vs second-to-last, ...
Byes: an odd field gives its lowest seed a bye; the bye holds bracket slot 1.
Ordering: series take the following bracket slots in bracket-fold order of
their top seed, so if chalk holds seed 1 and seed 2 only meet in the final.
Consecutive slots (1,2), (3,4), ... are sibling branches of the next stage.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from league.services.league_rules import (
    SERIES_GAME_SPACING_DAYS,
    SERIES_PAIR_SPACING_DAYS,
    stage_name_for_teams,
    to_odd,
)
from league.services.round_robin import unique_ids
from league.utils.dates import add_days, apply_time


@dataclass
class SeriesPlan:
    stage_name: str
    home_club_id: int
    away_club_id: int
    home_seed: int
    away_seed: int
    bracket_slot: int
    match_datetimes: List[datetime] = field(default_factory=list)


@dataclass
class ByeEntry:
    club_id: int
    seed: int
    bracket_slot: int


@dataclass
class BracketPlan:
    stage_name: Optional[str]
    series: List[SeriesPlan]
    bye: Optional[ByeEntry] = None

    @property
    def is_empty(self) -> bool:
        return not self.series


def next_power_of_two(n: int) -> int:
    p = 1
    while p < n:
        p *= 2
    return p


def bracket_fold_positions(n: int) -> List[int]:
    """Standard bracket-fold positions for *n* entries (n a power of two).

    Consecutive pairs indicate which seeds meet if chalk holds:
      4-entry  -> [1, 4, 2, 3]
      8-entry  -> [1, 8, 4, 5, 3, 6, 2, 7]
    """
    if n <= 2:
        return [1, 2][:max(n, 1)]

    half = bracket_fold_positions(n // 2)

    expanded: List[int] = []
    for s in half:
        expanded.append(s)
        expanded.append(n + 1 - s)

    mid = len(expanded) // 2
    top = expanded[:mid]
    bot = expanded[mid:]
    if len(bot) >= 4:
        bot = bot[:-4] + bot[-2:] + bot[-4:-2]

    return top + bot


def series_dates(start: datetime, pair_index: int, best_of: int, match_time: Optional[str]) -> List[datetime]:
    base = add_days(start, pair_index * SERIES_PAIR_SPACING_DAYS)
    return [
        apply_time(add_days(base, game * SERIES_GAME_SPACING_DAYS), match_time)
        for game in range(best_of)
    ]


def plan_bracket(
    seeds: Sequence[int],
    start: datetime,
    match_time: Optional[str] = None,
    best_of: int = 1,
    shuffle: bool = False,
    rng: Optional[random.Random] = None,
) -> BracketPlan:
    """Plan one knockout stage for clubs listed in seed order (index 0 = seed 1).

    With shuffle=True the field is drawn at random first and seeds are
    re-numbered in draw order.
    """
    best_of = to_odd(best_of)
    field_ids = unique_ids(seeds)
    if shuffle:
        (rng or random.Random()).shuffle(field_ids)

    if len(field_ids) < 2:
        return BracketPlan(stage_name=None, series=[])

    stage_name = stage_name_for_teams(len(field_ids))

    bye: Optional[ByeEntry] = None
    paired = field_ids
    if len(field_ids) % 2 == 1:
        bye = ByeEntry(club_id=field_ids[-1], seed=len(field_ids), bracket_slot=1)
        paired = field_ids[:-1]

    m = len(paired)
    matchups = []
    for i in range(m // 2):
        matchups.append((i, i + 1, m - i))  # (pair_index, top seed, bottom seed)

    fold = bracket_fold_positions(next_power_of_two(m))
    fold_rank = {seed: pos for pos, seed in enumerate(fold)}
    matchups.sort(key=lambda item: fold_rank[item[1]])

    first_slot = 2 if bye else 1
    plans: List[SeriesPlan] = []
    for offset, (pair_index, top, bottom) in enumerate(matchups):
        plans.append(SeriesPlan(
            stage_name=stage_name,
            home_club_id=paired[top - 1],
            away_club_id=paired[bottom - 1],
            home_seed=top,
            away_seed=bottom,
            bracket_slot=first_slot + offset,
            match_datetimes=series_dates(start, pair_index, best_of, match_time),
        ))

    return BracketPlan(stage_name=stage_name, series=plans, bye=bye)
