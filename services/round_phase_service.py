"""
回合階段服務：判斷各階段允許的操作與剩餘時間

Crash Game 的回合設計：
- WAITING: 只在程式啟動時出現一次
- COUNTDOWN: 倒數中，可以下注
- ACTIVE: 倍率上升中，可以提領，不能再下注（太晚了）
- CRASHED: 已爆，等待下一回合
"""
import random
from typing import Optional

from models import EngineState, Phase


def accepts_bets(phase: Phase) -> bool:
    """
    檢查此階段是否接受下注

    規則：
        只有 COUNTDOWN 接受下注；ACTIVE、CRASHED 一律拒絕
    """
    return phase == Phase.COUNTDOWN


def allows_cash_out(phase: Phase) -> bool:
    return phase == Phase.ACTIVE


def draw_countdown_seconds(rng: random.Random, minimum: float, maximum: float) -> float:
    """
    抽一個倒數秒數

    參數：
        rng: 亂數產生器（測試時可注入固定 seed）
        minimum, maximum: 秒數範圍

    返回：
        [minimum, maximum] 內的均勻亂數
    """
    if maximum <= minimum:
        return minimum
    return rng.uniform(minimum, maximum)


def time_remaining(state: EngineState, now: float) -> Optional[float]:
    """
    計算目前階段剩餘秒數

    返回：
        - ACTIVE: None（剩餘時間會洩漏 crash point）
        - 其他階段: max(0, phase_ends_at - now)
    """
    if state.phase == Phase.ACTIVE or state.phase_ends_at is None:
        return None
    return max(0.0, state.phase_ends_at - now)
