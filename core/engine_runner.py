"""
Engine Runner：用 asyncio 計時器驅動 Round Engine

兩種計時器：
1. 一次性的 deadline timer：WAITING -> COUNTDOWN、COUNTDOWN -> ACTIVE、CRASHED -> COUNTDOWN
2. ACTIVE 期間的取樣 task：每 tick_interval 呼叫一次 engine.poll()，觸發自動提領與爆掉

並發安全：
- 每個 callback 都記住排定時的 (phase, round_id)，進入時先比對，
  階段已經變了就什麼都不做（過期的 callback 是安全的 no-op）
- 指令可能在 FastAPI 的 worker thread 觸發轉換（例如提領時剛好爆掉），
  所以事件一律透過 call_soon_threadsafe 回到 event loop 重新同步
- stop() 清掉所有計時器與取樣 task，不會有計時器活過 teardown
"""
from typing import Optional, Set, Tuple
import asyncio
import logging
import threading

from models import EngineEvent, Phase
from core.engine import RoundEngine

logger = logging.getLogger(__name__)


class TimerRegistry:
    """
    可追蹤、可一次取消的 call_later

    用途：
        EngineRunner 的 deadline timer、機器人下注的延遲排程

    注意：
        call_later 可以從任何 thread 呼叫；實際排程一律在 event loop 上進行
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._handles: Set[asyncio.TimerHandle] = set()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._handles)

    @property
    def closed(self) -> bool:
        return self._closed

    def call_later(self, delay: float, callback, *args) -> None:
        if self._closed:
            return
        self._loop.call_soon_threadsafe(self._arm, delay, callback, args)

    def _arm(self, delay: float, callback, args) -> None:
        if self._closed:
            return

        handle: Optional[asyncio.TimerHandle] = None

        def fire():
            with self._lock:
                self._handles.discard(handle)
            callback(*args)

        handle = self._loop.call_later(max(0.0, delay), fire)
        with self._lock:
            self._handles.add(handle)

    def cancel_all(self) -> None:
        self._closed = True
        with self._lock:
            handles = list(self._handles)
            self._handles.clear()
        for handle in handles:
            handle.cancel()


class EngineRunner:
    """Round Engine 的 asyncio 驅動器"""

    def __init__(self, engine: RoundEngine, tick_interval_seconds: float = 0.033):
        self.engine = engine
        self.tick_interval = tick_interval_seconds
        self.timers: Optional[TimerRegistry] = None

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._armed_for: Optional[Tuple[Phase, int]] = None
        self._sampler: Optional[asyncio.Task] = None
        self._sampler_round: Optional[int] = None
        self._started = False
        self._stopped = False

    @property
    def is_sampling(self) -> bool:
        return self._sampler is not None and not self._sampler.done()

    async def start(self) -> None:
        """
        啟動：訂閱 Engine 事件、啟動 Engine、排定第一個 deadline

        必須在 event loop 內呼叫（FastAPI lifespan 或 asyncio.run）
        """
        if self._started:
            return
        self._started = True
        self._loop = asyncio.get_running_loop()
        self.timers = TimerRegistry(self._loop)

        self.engine.subscribe(self._on_event)
        self.engine.start()
        self._sync()
        logger.info(f"Engine runner started (tick={self.tick_interval}s)")

    async def stop(self) -> None:
        """停止：取消所有計時器與取樣 task，再停止 Engine"""
        if self._stopped:
            return
        self._stopped = True

        self.engine.unsubscribe(self._on_event)
        if self.timers is not None:
            self.timers.cancel_all()

        if self._sampler is not None and not self._sampler.done():
            self._sampler.cancel()
            try:
                await self._sampler
            except asyncio.CancelledError:
                pass

        self.engine.stop()
        logger.info("Engine runner stopped")

    def _on_event(self, event: EngineEvent) -> None:
        if self._stopped or self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._sync)
        except RuntimeError:
            # event loop 已關閉
            logger.debug(f"Dropped {event.event_type.value} after loop shutdown")

    def _sync(self) -> None:
        """依 Engine 目前的階段，確保對應的計時器存在（可重複呼叫）"""
        if self._stopped:
            return

        state = self.engine.state
        round_id = state.round.round_id

        if state.phase == Phase.ACTIVE:
            if self._sampler_round != round_id or not self.is_sampling:
                if self.is_sampling:
                    self._sampler.cancel()
                self._sampler_round = round_id
                self._sampler = self._loop.create_task(self._sample(round_id))
            return

        key = (state.phase, round_id)
        if state.phase_ends_at is None or key == self._armed_for:
            return

        self._armed_for = key
        delay = max(0.0, state.phase_ends_at - self.engine.clock())
        self.timers.call_later(delay, self._on_deadline, state.phase, round_id)

    def _on_deadline(self, phase: Phase, round_id: int) -> None:
        if self._stopped:
            return

        state = self.engine.state
        if state.phase != phase or state.round.round_id != round_id:
            logger.debug(f"Stale {phase.value} timer for round {round_id} ignored")
            return

        state = self.engine.poll()
        if state.phase == phase and state.round.round_id == round_id:
            # 計時器比 Engine 時鐘早醒，重新排定
            self._armed_for = None
        self._sync()

    async def _sample(self, round_id: int) -> None:
        while not self._stopped:
            await asyncio.sleep(self.tick_interval)
            state = self.engine.state
            if state.phase != Phase.ACTIVE or state.round.round_id != round_id:
                return
            self.engine.poll()
