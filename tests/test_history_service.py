from __future__ import annotations

import pytest

from models import RoundHistoryEntry
from services.history_service import (
    cold_streak,
    crash_points,
    hot_streak,
    profitability_score,
    recent_average,
    risk_distribution,
    summarize_history,
    volatility_level,
)


def _history(*points: float):
    # newest first, like EventRecorder.round_history()
    return [RoundHistoryEntry(round_id=len(points) - i, crash_point=p, ended_at=float(i)) for i, p in enumerate(points)]


def test_empty_history() -> None:
    summary = summarize_history([])

    assert summary["recent_average"] is None
    assert summary["volatility_level"] == "UNKNOWN"
    assert summary["hot_streak"] == 0
    assert summary["profitability_score"] == 0.0
    assert summary["risk_distribution"] == {"low": 0.0, "medium": 0.0, "high": 0.0}


def test_recent_average_uses_newest_window() -> None:
    history = _history(*([2.0] * 10 + [100.0]))

    assert recent_average(history) == pytest.approx(2.0)
    assert recent_average(history, window=11) == pytest.approx(120.0 / 11)


@pytest.mark.parametrize(
    "points, expected",
    [
        ((1.5, 1.6, 1.4, 1.5, 1.5), "LOW"),
        ((1.0, 3.0, 5.0, 1.5, 2.0), "MEDIUM"),
        ((1.0, 12.0, 1.2, 1.5, 2.0), "HIGH"),
        ((1.0, 40.0, 1.2, 1.5, 2.0), "EXTREME"),
        ((1.0, 40.0), "UNKNOWN"),
    ],
)
def test_volatility_levels(points, expected: str) -> None:
    assert volatility_level(_history(*points)) == expected


def test_streaks_count_from_newest_round() -> None:
    history = _history(2.5, 3.0, 1.2, 5.0)

    assert hot_streak(history) == 2
    assert cold_streak(history) == 0
    assert cold_streak(_history(1.1, 1.9, 2.0)) == 2


def test_profitability_and_risk_distribution() -> None:
    history = _history(1.5, 2.0, 4.0, 5.0)

    assert profitability_score(history) == pytest.approx(75.0)
    assert risk_distribution(history) == {"low": 25.0, "medium": 50.0, "high": 25.0}


def test_crash_points_keep_history_order() -> None:
    assert crash_points(_history(3.0, 1.2, 7.7)) == [3.0, 1.2, 7.7]
