"""
通知服務：把 Engine 事件轉成給使用者看的 toast 訊息

只處理本地玩家（actor == "you"）的事件與回合開始；機器人的動作不通知
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

from models import EngineEvent, EngineEventType, PLAYER_ACTOR

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    level: str = "info"  # "info" | "success" | "error"


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """預設的通知出口：寫進 log"""

    def notify(self, notification: Notification) -> None:
        log = logger.warning if notification.level == "error" else logger.info
        log(f"[{notification.level.upper()}] {notification.title}: {notification.description}")


class CollectingNotifier:
    """把通知收集起來（測試、批次輸出用）"""

    def __init__(self):
        self.notifications: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)


def build_notification(event: EngineEvent) -> Optional[Notification]:
    """
    依事件產生通知

    返回：
        Notification，或 None（此事件不需要通知）
    """
    if event.event_type == EngineEventType.ROUND_LAUNCHED:
        return Notification(
            title="ROUND LAUNCHED",
            description=f"Round #{event.round_id} is live",
        )

    if event.data.get("actor") != PLAYER_ACTOR:
        return None

    if event.event_type == EngineEventType.BET_PLACED:
        return Notification(
            title="BET PLACED",
            description=f"{event.data['amount']:.4f} is riding round #{event.round_id}",
        )

    if event.event_type == EngineEventType.CASHED_OUT:
        prefix = "Auto cash-out" if event.data.get("automatic") else "Cashed out"
        return Notification(
            title="SECURED THE BAG",
            description=(
                f"{prefix}: won {event.data['payout']:.4f} "
                f"at {event.data['multiplier']:.2f}x"
            ),
            level="success",
        )

    if event.event_type == EngineEventType.POSITION_LOST:
        return Notification(
            title="LIQUIDATED",
            description=(
                f"Lost {event.data['amount']:.4f} "
                f"at {event.data['multiplier']:.2f}x"
            ),
            level="error",
        )

    return None


class NotificationRelay:
    """Engine subscriber：把事件轉成通知送到 Notifier"""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    def __call__(self, event: EngineEvent) -> None:
        notification = build_notification(event)
        if notification is not None:
            self.notifier.notify(notification)
