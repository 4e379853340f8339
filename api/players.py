"""
Player API Endpoints

職責：
1. 下注
2. 提領
3. 設定自動提領

注意：
    一般的拒絕（餘額不足、時機不對、重複提領）回傳 200 + ok=false + reason，
    不是 HTTP 錯誤。只有 Engine 已停止這種狀況才回 409。
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from runtime import GameRuntime, get_runtime
from schemas import AutoCashOutSubmit, BetSubmit, CommandResponse
from core.exceptions import CrashGameException

router = APIRouter(prefix="/api/game", tags=["players"])
logger = logging.getLogger(__name__)


def _to_response(result) -> CommandResponse:
    return CommandResponse(
        ok=result.ok,
        reason=result.reason,
        payout=result.payout,
        balance=result.balance,
    )


@router.post("/bet", response_model=CommandResponse)
def place_bet(bet_data: BetSubmit, runtime: GameRuntime = Depends(get_runtime)):
    """
    下注（只在倒數階段接受）

    前置條件：
    - amount > 0 且 <= balance
    - 本回合尚未下注
    - 階段為 COUNTDOWN

    返回：
        - ok / reason
        - balance: 指令後的餘額
    """
    try:
        result = runtime.engine.place_bet(bet_data.amount)
        return _to_response(result)

    except CrashGameException as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to place bet: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/cashout", response_model=CommandResponse)
def cash_out(runtime: GameRuntime = Depends(get_runtime)):
    """
    提領（冪等）

    前置條件：
    - 有下注且尚未提領
    - 階段為 ACTIVE

    返回：
        - ok / reason
        - payout: 成功時的派彩（amount × 當下倍率）
        - balance: 指令後的餘額

    **冪等性**：
        第二次呼叫回傳 ok=false, reason=already_cashed_out，不會重複派彩
    """
    try:
        result = runtime.engine.cash_out()
        return _to_response(result)

    except CrashGameException as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to cash out: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.put("/auto-cashout", response_model=CommandResponse)
def set_auto_cash_out(
    target_data: AutoCashOutSubmit,
    runtime: GameRuntime = Depends(get_runtime)
):
    """
    設定自動提領目標

    參數：
        target: 目標倍率（> 1.01），null 代表取消

    效果：
        設定會跨回合保留；本回合已下注且尚未提領時立即生效
    """
    try:
        result = runtime.engine.set_auto_cash_out_target(target_data.target)
        return _to_response(result)

    except CrashGameException as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to set auto cash-out: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
