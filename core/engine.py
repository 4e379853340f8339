"""
Round Engine：Crash Game 的核心

職責：
1. 持有唯一的 EngineState（階段、回合、倍率、餘額、下注）
2. 對外提供 snapshot 與三個指令：place_bet、cash_out、set_auto_cash_out_target
3. 把狀態推進到目前時間（poll），套用到期的階段轉換
4. 把事件依序發佈給訂閱者（Recorder、通知、機器人模擬、計時器）

原則：
- 每個公開方法都先把狀態推進到 clock()，再執行指令
  所以 snapshot、提領看到的倍率永遠是「呼叫當下」的倍率
- 新狀態一次指派提交；訂閱者的錯誤只記錄，不影響 Engine 狀態
- Engine 不依賴 Recorder；Recorder 只是事件的下游
"""
from dataclasses import replace
from typing import Callable, List, Optional, Sequence
import logging
import random
import time

from config import get_settings
from models import (
    CommandOutcome,
    CommandResult,
    EngineEvent,
    EngineState,
    Phase,
    RejectReason,
    Snapshot,
)
from core.bet_manager import BetManager
from core.exceptions import EngineStopped
from core.locks import new_engine_lock, synchronized
from core.state_machine import EngineRules, RoundStateMachine
from services.crash_point_service import CrashPointSource, build_crash_point_source
from services.round_phase_service import time_remaining

logger = logging.getLogger(__name__)

Subscriber = Callable[[EngineEvent], None]


class RoundEngine:
    """回合引擎"""

    def __init__(
        self,
        settings=None,
        crash_point_source: Optional[CrashPointSource] = None,
        rules: Optional[EngineRules] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ):
        settings = settings or get_settings()
        self.rules = rules or EngineRules.from_settings(settings)
        self.crash_point_source = crash_point_source or build_crash_point_source(settings)
        self.rng = rng or random.Random()
        self.clock = clock

        self._lock = new_engine_lock()
        self._state = EngineState(balance=settings.starting_balance)
        self._subscribers: List[Subscriber] = []
        self._started = False
        self._stopped = False

    # ============ 讀取 ============

    @property
    def state(self) -> EngineState:
        """目前提交的狀態（不推進時間）"""
        return self._state

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopped

    @synchronized
    def snapshot(self) -> Snapshot:
        """
        取得唯讀快照（會先推進到目前時間）

        注意：
            - crash_point 只有在 CRASHED 才公開
            - ACTIVE 期間 time_remaining_in_phase 為 None
            - feed / history / stats 由 Recorder 補上（見 runtime.compose_snapshot）
        """
        now = self.clock()
        self._advance(now)
        state = self._state
        return Snapshot(
            phase=state.phase,
            round_id=state.round.round_id,
            current_multiplier=state.current_multiplier,
            crash_point=state.round.crash_point if state.phase == Phase.CRASHED else None,
            time_remaining_in_phase=time_remaining(state, now),
            balance=state.balance,
            position=state.position,
            auto_cash_out_target=state.auto_cash_out_target,
            version=state.version,
        )

    # ============ 訂閱 ============

    def subscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    # ============ 生命週期 ============

    @synchronized
    def start(self) -> EngineState:
        """
        啟動 Engine：WAITING，並排定進入第一回合倒數的時間

        重複呼叫不會重設狀態

        異常：
            EngineStopped: Engine 已經停止（計時器已清除，不能重新啟動）
        """
        if self._stopped:
            raise EngineStopped("Engine was stopped and cannot be restarted")
        if self._started:
            return self._state

        self._started = True
        self._state = RoundStateMachine.start(self._state, self.clock(), self.rules)
        logger.info("Round engine started")
        return self._state

    @synchronized
    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        logger.info(f"Round engine stopped at round {self._state.round.round_id}")

    @synchronized
    def poll(self) -> EngineState:
        """推進到目前時間；計時器 callback 呼叫這個"""
        self._advance(self.clock())
        return self._state

    # ============ 指令 ============

    @synchronized
    def place_bet(self, amount: float) -> CommandResult:
        return self._run_command(lambda state, now: BetManager.place_bet(state, amount, now))

    @synchronized
    def cash_out(self) -> CommandResult:
        return self._run_command(BetManager.cash_out)

    @synchronized
    def set_auto_cash_out_target(self, target: Optional[float]) -> CommandResult:
        return self._run_command(lambda state, now: BetManager.set_auto_cash_out_target(state, target, now))

    # ============ 內部 ============

    def _run_command(self, command: Callable[[EngineState, float], CommandOutcome]) -> CommandResult:
        if self._stopped:
            return replace(CommandResult.rejected(RejectReason.ENGINE_STOPPED), balance=self._state.balance)

        now = self.clock()
        self._advance(now)
        state, result, events = command(self._state, now)
        self._commit(state, events)
        return replace(result, balance=state.balance)

    def _advance(self, now: float) -> None:
        if not self.is_running:
            return
        state, events = RoundStateMachine.advance(
            self._state, now, self.rules, self.crash_point_source, self.rng
        )
        self._commit(state, events)

    def _commit(self, state: EngineState, events: Sequence[EngineEvent]) -> None:
        self._state = state
        for event in events:
            self._publish(event)

    def _publish(self, event: EngineEvent) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception as e:
                logger.error(
                    f"Subscriber {subscriber!r} failed on {event.event_type.value}: {e}",
                    exc_info=True,
                )

