"""
計分服務：下注與提領的金額計算

純計算邏輯，不改變任何狀態
"""
import math
from typing import Optional

from models import PlayerPosition


def calculate_payout(amount: float, multiplier: float) -> float:
    """
    計算提領金額

    公式：amount × multiplier

    範例：
        calculate_payout(10, 1.80) -> 18.0
        calculate_payout(10, 3.00) -> 30.0
    """
    return amount * multiplier


def is_valid_amount(amount: float) -> bool:
    """下注金額必須是有限的正數"""
    return (
        isinstance(amount, (int, float))
        and not isinstance(amount, bool)
        and math.isfinite(amount)
        and amount > 0
    )


def can_afford(balance: float, amount: float) -> bool:
    return amount <= balance


def net_result(position: Optional[PlayerPosition]) -> float:
    """
    計算一筆下注的淨輸贏

    返回：
        - 沒有下注：0
        - 已提領：payout - amount
        - 未提領（輸掉或仍在進行）：-amount
    """
    if position is None:
        return 0.0
    if position.cashed_out:
        return (position.payout or 0.0) - position.amount
    return -position.amount
