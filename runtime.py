"""
Runtime：組裝 Engine、Recorder、Runner 與周邊協作者

FastAPI 透過 get_runtime() 取得同一份 GameRuntime（掛在 app.state 上）
"""
from dataclasses import replace
from typing import Callable, Optional
import logging
import random
import time

from fastapi import Request

from config import Settings, get_settings
from models import Snapshot
from core.engine import RoundEngine
from core.engine_runner import EngineRunner
from core.recorder import EventRecorder
from services.bot_activity_service import BotActivitySimulator
from services.crash_point_service import CrashPointSource
from services.notification_service import LoggingNotifier, NotificationRelay, Notifier

logger = logging.getLogger(__name__)


class GameRuntime:
    """
    一個遊戲 session 的所有元件

    訂閱順序：Recorder -> 通知 ->（啟動後）機器人模擬 -> Runner
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        crash_point_source: Optional[CrashPointSource] = None,
        notifier: Optional[Notifier] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or get_settings()
        self.engine = RoundEngine(
            self.settings,
            crash_point_source=crash_point_source,
            rng=rng,
            clock=clock,
        )
        self.recorder = EventRecorder.from_settings(self.settings)
        self.notifier = notifier or LoggingNotifier()
        self.runner = EngineRunner(self.engine, self.settings.tick_interval_seconds)
        self.bots: Optional[BotActivitySimulator] = None

        self.engine.subscribe(self.recorder)
        self.engine.subscribe(NotificationRelay(self.notifier))

    async def start(self) -> None:
        await self.runner.start()

        if self.settings.bot_activity_enabled:
            self.bots = BotActivitySimulator(
                self.recorder,
                timers=self.runner.timers,
                min_count=self.settings.bot_min_count,
                max_count=self.settings.bot_max_count,
                clock=self.engine.clock,
            )
            self.engine.subscribe(self.bots)

        logger.info("Game runtime started")

    async def stop(self) -> None:
        if self.bots is not None:
            self.engine.unsubscribe(self.bots)
        await self.runner.stop()
        logger.info("Game runtime stopped")

    def snapshot(self) -> Snapshot:
        return compose_snapshot(self.engine, self.recorder)


def compose_snapshot(engine: RoundEngine, recorder: EventRecorder) -> Snapshot:
    """
    組合完整快照：Engine 的狀態 + Recorder 的 feed / history / stats

    注意：
        Engine 先推進並取得快照，再讀 Recorder，
        所以推進時產生的事件一定已經反映在 feed / stats 中
    """
    snapshot = engine.snapshot()
    return replace(
        snapshot,
        feed_events=tuple(recorder.feed_events()),
        round_history=tuple(recorder.round_history()),
        game_stats=recorder.stats,
    )


def get_runtime(request: Request) -> GameRuntime:
    """
    FastAPI dependency：提供 GameRuntime

    Runtime 在 lifespan 內建立並掛到 app.state.runtime
    """
    return request.app.state.runtime
