"""
回合狀態機：集中管理所有階段轉換

WAITING ──> COUNTDOWN ──> ACTIVE ──> CRASHED
               ^                        │
               └────────────────────────┘ (round_id + 1)

原則：
- 單一狀態物件：EngineState 是 immutable，每次轉換回傳新的狀態
- 所有階段變更都經過 RoundStateMachine.transition()，非法轉換直接丟例外
- 時間一律由呼叫者傳入（now），狀態機本身不讀時鐘，測試時可以任意餵時間
"""
from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, List
import logging
import math
import random

from models import EngineEvent, EngineEventType, EngineState, Phase, Round, Transition
from core.bet_manager import BetManager
from core.exceptions import InvalidStateTransition, InvariantViolation
from services.crash_point_service import CrashPointSource, MAX_CRASH_POINT, MIN_CRASH_POINT
from services.multiplier_service import DEFAULT_CURVE, MultiplierCurve, display_multiplier
from services.round_phase_service import draw_countdown_seconds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineRules:
    """狀態機使用的時間與曲線參數"""
    curve: MultiplierCurve = DEFAULT_CURVE
    waiting_delay_seconds: float = 1.0
    countdown_min_seconds: float = 1.0
    countdown_max_seconds: float = 5.0
    crashed_delay_seconds: float = 3.0
    min_crash_point: float = MIN_CRASH_POINT
    max_crash_point: float = MAX_CRASH_POINT

    @classmethod
    def from_settings(cls, settings) -> "EngineRules":
        return cls(
            curve=MultiplierCurve(
                base_duration_ms=settings.base_duration_ms,
                duration_per_log_ms=settings.duration_per_log_ms,
                max_duration_ms=settings.max_duration_ms,
            ),
            waiting_delay_seconds=settings.waiting_delay_seconds,
            countdown_min_seconds=settings.countdown_min_seconds,
            countdown_max_seconds=settings.countdown_max_seconds,
            crashed_delay_seconds=settings.crashed_delay_seconds,
            min_crash_point=settings.min_crash_point,
            max_crash_point=settings.max_crash_point,
        )


class RoundStateMachine:
    """回合階段狀態機"""

    ALLOWED_TRANSITIONS: Dict[Phase, FrozenSet[Phase]] = {
        Phase.WAITING: frozenset({Phase.COUNTDOWN}),
        Phase.COUNTDOWN: frozenset({Phase.ACTIVE}),
        Phase.ACTIVE: frozenset({Phase.CRASHED}),
        Phase.CRASHED: frozenset({Phase.COUNTDOWN}),
    }

    @staticmethod
    def can_transition(current: Phase, target: Phase) -> bool:
        return target in RoundStateMachine.ALLOWED_TRANSITIONS[current]

    @staticmethod
    def transition(state: EngineState, target: Phase, now: float, **changes) -> EngineState:
        """
        執行階段轉換

        參數：
            state: 目前狀態
            target: 目標階段
            now: 轉換時間
            **changes: 同時要更新的其他欄位

        返回：
            新的 EngineState（version + 1）

        異常：
            InvalidStateTransition: 不在 ALLOWED_TRANSITIONS 內的轉換
        """
        if not RoundStateMachine.can_transition(state.phase, target):
            raise InvalidStateTransition(state.phase, target)

        logger.info(
            f"Round {changes.get('round', state.round).round_id}: "
            f"{state.phase.value} -> {target.value}"
        )

        return replace(
            state,
            phase=target,
            phase_started_at=now,
            version=state.version + 1,
            **changes,
        )

    @staticmethod
    def start(state: EngineState, now: float, rules: EngineRules) -> EngineState:
        """程式啟動：停留在 WAITING，排定進入第一個 COUNTDOWN 的時間"""
        if state.phase != Phase.WAITING:
            raise InvalidStateTransition(state.phase, Phase.WAITING)
        return replace(
            state,
            phase_started_at=now,
            phase_ends_at=now + rules.waiting_delay_seconds,
            version=state.version + 1,
        )

    @staticmethod
    def begin_countdown(state: EngineState, now: float, rules: EngineRules, rng: random.Random) -> Transition:
        """
        開始下一回合的倒數（WAITING/CRASHED -> COUNTDOWN）

        效果：
        - round_id + 1，crash point 尚未產生
        - 清除上一回合的下注（連同它的自動提領設定）
        - 倍率歸 1.00
        """
        duration = draw_countdown_seconds(rng, rules.countdown_min_seconds, rules.countdown_max_seconds)
        next_round = Round(round_id=state.round.round_id + 1)

        new_state = RoundStateMachine.transition(
            state,
            Phase.COUNTDOWN,
            now,
            round=next_round,
            phase_ends_at=now + duration,
            current_multiplier=1.0,
            position=None,
        )
        event = EngineEvent(
            event_type=EngineEventType.COUNTDOWN_STARTED,
            round_id=next_round.round_id,
            at=now,
            data={"duration": duration},
        )
        return Transition(new_state, (event,))

    @staticmethod
    def launch(state: EngineState, now: float, rules: EngineRules, source: CrashPointSource) -> Transition:
        """
        回合起飛（COUNTDOWN -> ACTIVE）

        效果：
        - 產生並固定本回合的 crash point
        - 倍率重設為 1.00，記錄起飛時間

        異常：
            InvariantViolation: crash point 不是 [min_crash_point, max_crash_point] 內的有限數字
        """
        round_id = state.round.round_id
        crash_point = source.compute_crash_point(round_id)
        if not isinstance(crash_point, (int, float)) or not math.isfinite(crash_point):
            raise InvariantViolation(f"Crash point for round {round_id} is not a number: {crash_point}")
        if crash_point < rules.min_crash_point:
            raise InvariantViolation(
                f"Crash point for round {round_id} below {rules.min_crash_point}: {crash_point}"
            )
        if crash_point > rules.max_crash_point:
            raise InvariantViolation(
                f"Crash point for round {round_id} above {rules.max_crash_point}: {crash_point}"
            )

        new_state = RoundStateMachine.transition(
            state,
            Phase.ACTIVE,
            now,
            round=Round(round_id=round_id, crash_point=float(crash_point), started_at=now),
            phase_ends_at=None,
            current_multiplier=1.0,
        )
        logger.debug(f"Round {round_id} crash point: {crash_point}")

        event = EngineEvent(
            event_type=EngineEventType.ROUND_LAUNCHED,
            round_id=round_id,
            at=now,
        )
        return Transition(new_state, (event,))

    @staticmethod
    def sample(state: EngineState, now: float, rules: EngineRules) -> Transition:
        """
        取樣倍率（ACTIVE 期間每個 tick 呼叫）

        順序（固定，不可調換）：
        1. 由 (now - started_at, crash_point) 以封閉公式算出倍率
        2. 自動提領（目標 < crash point 才算贏）
        3. 爆掉判斷：到達 crash point 就轉到 CRASHED

        注意：
            倍率只取 max(舊值, 新值)，時鐘倒退也不會讓倍率下降
        """
        if state.phase != Phase.ACTIVE:
            return Transition(state)

        crash_point = state.round.crash_point
        elapsed_ms = (now - state.round.started_at) * 1000.0
        sampled = display_multiplier(rules.curve.multiplier_at(elapsed_ms, crash_point))

        events: List[EngineEvent] = []
        if sampled > state.current_multiplier:
            state = replace(state, current_multiplier=sampled, version=state.version + 1)

        state, auto_events = BetManager.try_auto_cash_out(state, rules.curve)
        events.extend(auto_events)

        if rules.curve.has_crashed(elapsed_ms, crash_point):
            state, crash_events = RoundStateMachine.crash(state, now, rules)
            events.extend(crash_events)

        return Transition(state, tuple(events))

    @staticmethod
    def crash(state: EngineState, now: float, rules: EngineRules) -> Transition:
        """
        回合爆掉（ACTIVE -> CRASHED）

        效果：
        - 倍率凍結在 crash point
        - 未提領的下注全輸
        - 產生 POSITION_LOST（如有）與 ROUND_CRASHED 事件
        """
        crash_point = state.round.crash_point
        state, loss_events = BetManager.settle_loss(state, now)

        new_state = RoundStateMachine.transition(
            state,
            Phase.CRASHED,
            now,
            phase_ends_at=now + rules.crashed_delay_seconds,
            current_multiplier=crash_point,
        )
        event = EngineEvent(
            event_type=EngineEventType.ROUND_CRASHED,
            round_id=state.round.round_id,
            at=now,
            data={"crash_point": crash_point},
        )
        return Transition(new_state, loss_events + (event,))

    @staticmethod
    def advance(
        state: EngineState,
        now: float,
        rules: EngineRules,
        source: CrashPointSource,
        rng: random.Random,
    ) -> Transition:
        """
        把狀態推進到 now，套用所有到期的轉換

        每個階段最多套用一次：下一個階段的起點就是 now，
        所以不會因為一次大的時間跳躍而連跳好幾回合

        參數：
            state: 目前狀態
            now: 目前時間（秒）
            rules: 時間與曲線參數
            source: crash point 來源
            rng: 倒數秒數用的亂數

        返回：
            Transition(新狀態, 依序發生的事件)
        """
        events: List[EngineEvent] = []
        visited = set()

        while state.phase not in visited:
            visited.add(state.phase)
            due = state.phase_ends_at is not None and now >= state.phase_ends_at

            if state.phase in (Phase.WAITING, Phase.CRASHED) and due:
                state, step = RoundStateMachine.begin_countdown(state, now, rules, rng)
            elif state.phase == Phase.COUNTDOWN and due:
                state, step = RoundStateMachine.launch(state, now, rules, source)
            elif state.phase == Phase.ACTIVE:
                state, step = RoundStateMachine.sample(state, now, rules)
            else:
                break

            events.extend(step)

        return Transition(state, tuple(events))
