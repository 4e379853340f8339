"""
Event Recorder：Engine 事件的下游

職責：
1. Feed：有上限的環狀緩衝（超過上限丟掉最舊的），讀取時最新的在前
2. Round history：每個結束的回合一筆，同樣有上限
3. GameStats：用 stats_service.reduce_stats 逐筆 fold

Engine 不知道 Recorder 的存在；Recorder 只透過 engine.subscribe(recorder) 收事件
"""
from collections import deque
from typing import List, Optional
import logging
import threading

from models import (
    EngineEvent,
    EngineEventType,
    FeedEvent,
    FeedEventType,
    GameStats,
    RoundHistoryEntry,
)
from services.naming_service import new_feed_id
from services.stats_service import reduce_stats

logger = logging.getLogger(__name__)

FEED_TYPES = {
    EngineEventType.BET_PLACED: FeedEventType.BET,
    EngineEventType.CASHED_OUT: FeedEventType.CASHOUT,
    EngineEventType.POSITION_LOST: FeedEventType.CRASH,
}


def to_feed_event(event: EngineEvent) -> Optional[FeedEvent]:
    """
    把 Engine 事件轉成 FeedEvent

    返回：
        FeedEvent，或 None（回合開始、倒數等不上 feed）
    """
    feed_type = FEED_TYPES.get(event.event_type)
    if feed_type is None:
        return None

    return FeedEvent(
        id=new_feed_id(),
        type=feed_type,
        actor=event.data["actor"],
        amount=event.data["amount"],
        timestamp=event.at,
        multiplier=event.data.get("multiplier"),
    )


class EventRecorder:
    """Feed / round history / stats 的記錄器"""

    def __init__(self, feed_retention: int = 100, history_retention: int = 50):
        self._lock = threading.Lock()
        self._feed: deque = deque(maxlen=feed_retention)
        self._history: deque = deque(maxlen=history_retention)
        self._stats = GameStats()

    @classmethod
    def from_settings(cls, settings) -> "EventRecorder":
        return cls(
            feed_retention=settings.feed_retention,
            history_retention=settings.history_retention,
        )

    def __call__(self, event: EngineEvent) -> None:
        self.handle(event)

    def handle(self, event: EngineEvent) -> None:
        """
        處理一個 Engine 事件（O(1)）

        效果：
        - BET_PLACED / CASHED_OUT / POSITION_LOST：加一筆 feed
        - ROUND_CRASHED：加一筆 round history
        - 所有事件：更新 stats
        """
        feed_event = to_feed_event(event)

        with self._lock:
            if feed_event is not None:
                self._feed.append(feed_event)

            if event.event_type == EngineEventType.ROUND_CRASHED:
                self._history.append(RoundHistoryEntry(
                    round_id=event.round_id,
                    crash_point=event.data["crash_point"],
                    ended_at=event.at,
                ))

            self._stats = reduce_stats(self._stats, event)

    def record_feed(self, feed_event: FeedEvent) -> None:
        """
        加一筆外部的 feed（例如機器人下注）

        注意：
            只上 feed，不影響 stats
        """
        with self._lock:
            self._feed.append(feed_event)

    def feed_events(self, limit: Optional[int] = None) -> List[FeedEvent]:
        """最新的在前"""
        with self._lock:
            events = list(reversed(self._feed))
        return events[:limit] if limit is not None else events

    def round_history(self) -> List[RoundHistoryEntry]:
        """最新的在前"""
        with self._lock:
            return list(reversed(self._history))

    @property
    def stats(self) -> GameStats:
        return self._stats
