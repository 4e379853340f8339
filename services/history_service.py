"""
Round history analytics.

Pure functions over the newest-first round history so the frontend can
render volatility, streak and risk panels straight from the server.
"""
import statistics
from typing import Any, Dict, List, Optional, Sequence

from models import RoundHistoryEntry

RECENT_WINDOW = 10
PROFIT_THRESHOLD = 2.0
HIGH_RISK_THRESHOLD = 5.0
MIN_ROUNDS_FOR_VOLATILITY = 5


def recent_average(history: Sequence[RoundHistoryEntry], window: int = RECENT_WINDOW) -> Optional[float]:
    """Mean crash point of the newest `window` rounds, None without history."""
    recent = history[:window]
    if not recent:
        return None
    return sum(entry.crash_point for entry in recent) / len(recent)


def volatility_level(history: Sequence[RoundHistoryEntry], window: int = RECENT_WINDOW) -> str:
    """
    Bucket the population standard deviation of the newest rounds.

    Fewer than five rounds is reported as UNKNOWN.
    """
    if len(history) < MIN_ROUNDS_FOR_VOLATILITY:
        return "UNKNOWN"
    std_dev = statistics.pstdev(entry.crash_point for entry in history[:window])
    if std_dev < 1:
        return "LOW"
    if std_dev < 3:
        return "MEDIUM"
    if std_dev < 6:
        return "HIGH"
    return "EXTREME"


def hot_streak(history: Sequence[RoundHistoryEntry], threshold: float = PROFIT_THRESHOLD) -> int:
    streak = 0
    for entry in history:
        if entry.crash_point < threshold:
            break
        streak += 1
    return streak


def cold_streak(history: Sequence[RoundHistoryEntry], threshold: float = PROFIT_THRESHOLD) -> int:
    streak = 0
    for entry in history:
        if entry.crash_point >= threshold:
            break
        streak += 1
    return streak


def profitability_score(history: Sequence[RoundHistoryEntry], threshold: float = PROFIT_THRESHOLD) -> float:
    """Percentage of rounds that reached `threshold`."""
    if not history:
        return 0.0
    profitable = sum(1 for entry in history if entry.crash_point >= threshold)
    return profitable / len(history) * 100


def risk_distribution(history: Sequence[RoundHistoryEntry]) -> Dict[str, float]:
    """Percentage of rounds below 2x, between 2x and 5x, and at 5x or above."""
    total = len(history)
    if total == 0:
        return {"low": 0.0, "medium": 0.0, "high": 0.0}

    low = sum(1 for entry in history if entry.crash_point < PROFIT_THRESHOLD)
    high = sum(1 for entry in history if entry.crash_point >= HIGH_RISK_THRESHOLD)
    medium = total - low - high

    return {
        "low": low / total * 100,
        "medium": medium / total * 100,
        "high": high / total * 100,
    }


def summarize_history(history: Sequence[RoundHistoryEntry]) -> Dict[str, Any]:
    """Bundle every analytic into one dict for the history endpoint."""
    return {
        "recent_average": recent_average(history),
        "volatility_level": volatility_level(history),
        "hot_streak": hot_streak(history),
        "cold_streak": cold_streak(history),
        "profitability_score": profitability_score(history),
        "risk_distribution": risk_distribution(history),
    }


def crash_points(history: Sequence[RoundHistoryEntry]) -> List[float]:
    return [entry.crash_point for entry in history]
