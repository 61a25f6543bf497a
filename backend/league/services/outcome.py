"""Match outcome helpers shared by standings, progression and prediction grading."""

from typing import Optional

from league.models.prediction import PredictionResult


def determine_match_winner(match, use_shootout: bool = True) -> Optional[int]:
    """Winner club id: higher score, else the shootout winner when one was held.

    Returns None for a draw (or a level shootout).
    """
    if match.home_score > match.away_score:
        return match.home_club_id
    if match.home_score < match.away_score:
        return match.away_club_id
    if not use_shootout or not match.has_penalty_shootout:
        return None
    home_pens = match.penalty_home_score or 0
    away_pens = match.penalty_away_score or 0
    if home_pens > away_pens:
        return match.home_club_id
    if home_pens < away_pens:
        return match.away_club_id
    return None


def match_loser(match) -> Optional[int]:
    winner = determine_match_winner(match)
    if winner is None:
        return None
    return match.away_club_id if winner == match.home_club_id else match.home_club_id


def prediction_outcome(match) -> PredictionResult:
    """1/X/2 outcome of a finished match; a shootout breaks a level score."""
    winner = determine_match_winner(match)
    if winner is None:
        return PredictionResult.DRAW
    if winner == match.home_club_id:
        return PredictionResult.ONE
    return PredictionResult.TWO
