"""
Round-robin pairing by the circle method (Berger tables).

The first club stays fixed while the rest rotate one position per round.
An odd field gets a placeholder that turns the club facing it into a
rest-round; placeholder pairs are never emitted.

Home/away alternates by round parity in the base pass. Each repeat pass
replays the base pass, swapping home/away on every second pass so a
double round-robin is a true home-and-away schedule.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class RoundRobinPair:
    round_index: int
    home_club_id: int
    away_club_id: int


def unique_ids(club_ids: Iterable[int]) -> List[int]:
    """Drop duplicates, keeping first occurrence order."""
    seen = set()
    out: List[int] = []
    for cid in club_ids:
        if cid in seen:
            continue
        seen.add(cid)
        out.append(cid)
    return out


def generate_round_robin_pairs(club_ids: Iterable[int], rounds_per_pair: int = 1) -> List[RoundRobinPair]:
    """Build every fixture of a round-robin with `rounds_per_pair` passes.

    Returns pairs ordered by round index (contiguous from 0).
    Fewer than two distinct clubs yields an empty list.
    """
    clubs = unique_ids(club_ids)
    if len(clubs) < 2 or rounds_per_pair < 1:
        return []

    slots: List[Optional[int]] = list(clubs)
    if len(slots) % 2 == 1:
        slots.append(None)

    n = len(slots)
    half = n // 2
    base: List[List[tuple]] = []

    current = list(slots)
    for rnd in range(n - 1):
        round_pairs = []
        for i in range(half):
            a = current[i]
            b = current[n - 1 - i]
            if a is None or b is None:
                continue
            round_pairs.append((a, b) if rnd % 2 == 0 else (b, a))
        base.append(round_pairs)

        # Rotate everything but the fixed first slot one step clockwise
        rotating = current[1:]
        current = [current[0], rotating[-1]] + rotating[:-1]

    pairs: List[RoundRobinPair] = []
    base_rounds = len(base)
    for cycle in range(rounds_per_pair):
        swap = cycle % 2 == 1
        for rnd, round_pairs in enumerate(base):
            for home, away in round_pairs:
                if swap:
                    home, away = away, home
                pairs.append(RoundRobinPair(cycle * base_rounds + rnd, home, away))
    return pairs


def round_count(pairs: List[RoundRobinPair]) -> int:
    if not pairs:
        return 0
    return max(p.round_index for p in pairs) + 1
