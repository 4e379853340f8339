"""
統計服務：GameStats 的 reducer

GameStats 是事件流的 fold，不是藏起來的可變狀態：
- reduce_stats(stats, event) 回傳新的 GameStats
- replay_stats(events) 從頭重播，結果必須和即時累積的一樣
"""
from dataclasses import replace
from typing import Iterable, Optional

from models import EngineEvent, EngineEventType, GameStats


def reduce_stats(stats: GameStats, event: EngineEvent) -> GameStats:
    """
    依事件更新統計

    規則：
    - BET_PLACED: total_bets_volume += amount
    - CASHED_OUT: biggest_win = max(biggest_win, payout)
    - ROUND_CRASHED: rounds_completed += 1, biggest_multiplier = max(..., crash_point)
    - 其他事件：不變

    參數：
        stats: 目前的統計
        event: Engine 事件

    返回：
        新的 GameStats（原物件不變）
    """
    if event.event_type == EngineEventType.BET_PLACED:
        return replace(stats, total_bets_volume=stats.total_bets_volume + event.data["amount"])

    if event.event_type == EngineEventType.CASHED_OUT:
        return replace(stats, biggest_win=max(stats.biggest_win, event.data["payout"]))

    if event.event_type == EngineEventType.ROUND_CRASHED:
        return replace(
            stats,
            rounds_completed=stats.rounds_completed + 1,
            biggest_multiplier=max(stats.biggest_multiplier, event.data["crash_point"]),
        )

    return stats


def replay_stats(events: Iterable[EngineEvent], initial: Optional[GameStats] = None) -> GameStats:
    stats = initial or GameStats()
    for event in events:
        stats = reduce_stats(stats, event)
    return stats
