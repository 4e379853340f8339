"""
自定義異常類別

集中管理所有 Engine 異常，方便 API 層統一處理

注意：下注、提領的一般拒絕（餘額不足、時機不對、重複提領）不是異常，
而是回傳 CommandResult(ok=False)。這裡只放「程式寫錯了」等級的問題。
"""


class CrashGameException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ 狀態轉換異常 ============

class InvalidStateTransition(CrashGameException):
    """非法的狀態轉換"""
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition from {current.value} to {target.value}")


class EngineStopped(CrashGameException):
    """Engine 已停止（計時器已清除），不能再啟動"""
    pass


# ============ 不變量異常 ============

class InvariantViolation(CrashGameException):
    """
    不變量被破壞（crash point 不在 [1.01, 1000] 內、餘額為負...）

    代表程式有 bug，必須大聲失敗，不可默默容忍
    """
    pass
