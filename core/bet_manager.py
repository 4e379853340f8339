"""
Bet Manager：管理本地玩家下注的完整生命週期

職責：
1. 下注（只在 COUNTDOWN）
2. 手動提領（只在 ACTIVE）
3. 自動提領（每次取樣倍率時檢查）
4. 回合爆掉時結算輸掉的下注
5. 設定自動提領目標

原則：
- 純函數：輸入 EngineState，輸出新的 EngineState + 結果 + 事件，不修改原狀態
- 一般拒絕回傳 CommandResult(ok=False)，不丟例外
- 只有不變量被破壞（餘額為負）才丟 InvariantViolation
"""
from dataclasses import replace
from typing import Optional
import logging
import math

from models import (
    CommandOutcome,
    CommandResult,
    EngineEvent,
    EngineEventType,
    EngineState,
    PlayerPosition,
    PLAYER_ACTOR,
    RejectReason,
    Transition,
)
from core.exceptions import InvariantViolation
from services.multiplier_service import MultiplierCurve
from services.payoff_service import calculate_payout, can_afford, is_valid_amount
from services.round_phase_service import accepts_bets, allows_cash_out

logger = logging.getLogger(__name__)

MIN_AUTO_CASH_OUT_TARGET = 1.01


def _check_balance(state: EngineState) -> EngineState:
    if state.balance < 0:
        raise InvariantViolation(f"Balance went negative: {state.balance}")
    return state


def _reject(state: EngineState, reason: RejectReason) -> CommandOutcome:
    logger.info(f"Command rejected in round {state.round.round_id} ({state.phase.value}): {reason.value}")
    return CommandOutcome(state, CommandResult.rejected(reason))


class BetManager:
    """本地玩家下注管理器"""

    @staticmethod
    def place_bet(state: EngineState, amount: float, now: float) -> CommandOutcome:
        """
        下注

        前置條件：
        1. amount 必須是有限正數
        2. 階段必須是 COUNTDOWN（ACTIVE、CRASHED 都算太晚）
        3. 本回合尚未下注
        4. amount <= balance

        效果：
        - balance -= amount
        - 開倉，並帶入目前的自動提領設定
        - 產生 BET_PLACED 事件

        參數：
            state: 目前狀態
            amount: 下注金額
            now: 目前時間（秒）

        返回：
            CommandOutcome(新狀態, 結果, 事件)
        """
        if not is_valid_amount(amount):
            return _reject(state, RejectReason.INVALID_AMOUNT)

        if not accepts_bets(state.phase):
            return _reject(state, RejectReason.BETTING_CLOSED)

        if state.position is not None:
            return _reject(state, RejectReason.POSITION_ALREADY_OPEN)

        if not can_afford(state.balance, amount):
            return _reject(state, RejectReason.INSUFFICIENT_BALANCE)

        round_id = state.round.round_id
        position = PlayerPosition(
            round_id=round_id,
            amount=amount,
            placed_at=now,
            auto_cash_out_target=state.auto_cash_out_target,
        )
        new_state = _check_balance(replace(
            state,
            balance=state.balance - amount,
            position=position,
            version=state.version + 1,
        ))

        logger.info(f"Bet placed in round {round_id}: {amount}")

        event = EngineEvent(
            event_type=EngineEventType.BET_PLACED,
            round_id=round_id,
            at=now,
            data={
                "actor": PLAYER_ACTOR,
                "amount": amount,
                "auto_cash_out_target": state.auto_cash_out_target,
            },
        )
        return CommandOutcome(new_state, CommandResult.accepted(), (event,))

    @staticmethod
    def cash_out(state: EngineState, now: float) -> CommandOutcome:
        """
        手動提領

        前置條件：
        1. 有下注
        2. 尚未提領（冪等：第二次呼叫回傳失敗，不會重複派彩）
        3. 階段必須是 ACTIVE

        效果：
        - payout = amount × current_multiplier
        - balance += payout
        - 產生 CASHED_OUT 事件

        注意：
            呼叫前 Engine 會先把狀態推進到 now，
            所以 current_multiplier 就是呼叫當下的倍率
        """
        position = state.position
        if position is None:
            return _reject(state, RejectReason.NO_OPEN_POSITION)

        if position.cashed_out:
            return _reject(state, RejectReason.ALREADY_CASHED_OUT)

        if not allows_cash_out(state.phase):
            return _reject(state, RejectReason.ROUND_NOT_ACTIVE)

        new_state, event = BetManager._settle_win(
            state, state.current_multiplier, now, automatic=False
        )
        return CommandOutcome(new_state, CommandResult.accepted(payout=event.data["payout"]), (event,))

    @staticmethod
    def try_auto_cash_out(state: EngineState, curve: MultiplierCurve) -> Transition:
        """
        檢查並執行自動提領（每次取樣倍率後呼叫，且必須在爆掉判斷之前）

        觸發條件（全部成立）：
        1. 有未提領的下注，且設定了目標 T
        2. T <= current_multiplier
        3. T < crash_point（T >= crash_point 代表先爆，玩家輸）

        效果：
            以 T 結算（不是取樣時的倍率），
            時間戳記用倍率跨過 T 的那一刻（不早於設定目標的時間），一定早於同回合的爆掉事件
        """
        position = state.position
        if position is None or position.cashed_out or position.auto_cash_out_target is None:
            return Transition(state)

        if not allows_cash_out(state.phase):
            return Transition(state)

        target = position.auto_cash_out_target
        crash_point = state.round.crash_point
        if target > state.current_multiplier or target >= crash_point:
            return Transition(state)

        crossed_at = state.round.started_at + curve.elapsed_for_multiplier(target, crash_point) / 1000.0
        if position.auto_armed_at is not None:
            crossed_at = max(crossed_at, position.auto_armed_at)
        new_state, event = BetManager._settle_win(state, target, crossed_at, automatic=True)
        return Transition(new_state, (event,))

    @staticmethod
    def settle_loss(state: EngineState, now: float) -> Transition:
        """
        回合爆掉時結算未提領的下注

        效果：
        - 下注全輸（不退款）
        - balance 不變（下注時已扣款）
        - 產生 POSITION_LOST 事件
        """
        position = state.position
        if position is None or position.cashed_out:
            return Transition(state)

        logger.info(
            f"Position lost in round {position.round_id}: "
            f"{position.amount} at {state.round.crash_point}x"
        )

        event = EngineEvent(
            event_type=EngineEventType.POSITION_LOST,
            round_id=position.round_id,
            at=now,
            data={
                "actor": PLAYER_ACTOR,
                "amount": position.amount,
                "multiplier": state.round.crash_point,
            },
        )
        return Transition(state, (event,))

    @staticmethod
    def set_auto_cash_out_target(state: EngineState, target: Optional[float], now: float) -> CommandOutcome:
        """
        設定自動提領目標

        規則：
        - None：取消自動提領
        - 其他：必須是有限數字且 > 1.01

        效果：
        - 更新玩家的偏好設定（跨回合保留，下注時帶入）
        - 如果本回合已下注且尚未提領，同時更新該下注的目標
        - ACTIVE 期間設定時記下設定時間；目標已經不高於目前倍率時，
          立刻以目前倍率提領（和手動提領同樣的派彩）
        """
        if target is not None:
            if isinstance(target, bool) or not isinstance(target, (int, float)) or not math.isfinite(target):
                return _reject(state, RejectReason.INVALID_TARGET)
            if target <= MIN_AUTO_CASH_OUT_TARGET:
                return _reject(state, RejectReason.INVALID_TARGET)
            target = float(target)

        position = state.position
        armed_mid_round = (
            position is not None
            and not position.cashed_out
            and target is not None
            and allows_cash_out(state.phase)
        )
        if position is not None and not position.cashed_out:
            position = replace(
                position,
                auto_cash_out_target=target,
                auto_armed_at=now if armed_mid_round else None,
            )

        new_state = replace(
            state,
            auto_cash_out_target=target,
            position=position,
            version=state.version + 1,
        )
        logger.info(f"Auto cash-out target set to {target}")

        if armed_mid_round and target <= state.current_multiplier and target < state.round.crash_point:
            new_state, event = BetManager._settle_win(
                new_state, state.current_multiplier, now, automatic=True
            )
            return CommandOutcome(new_state, CommandResult.accepted(payout=event.data["payout"]), (event,))

        return CommandOutcome(new_state, CommandResult.accepted())

    @staticmethod
    def _settle_win(state: EngineState, multiplier: float, at: float, automatic: bool):
        position = state.position
        payout = calculate_payout(position.amount, multiplier)

        settled = replace(
            position,
            cashed_out=True,
            cash_out_multiplier=multiplier,
            payout=payout,
        )
        new_state = _check_balance(replace(
            state,
            balance=state.balance + payout,
            position=settled,
            version=state.version + 1,
        ))

        logger.info(
            f"{'Auto cash-out' if automatic else 'Cash-out'} in round {position.round_id}: "
            f"{position.amount} x {multiplier} = {payout}"
        )

        event = EngineEvent(
            event_type=EngineEventType.CASHED_OUT,
            round_id=position.round_id,
            at=at,
            data={
                "actor": PLAYER_ACTOR,
                "amount": position.amount,
                "multiplier": multiplier,
                "payout": payout,
                "automatic": automatic,
            },
        )
        return new_state, event
