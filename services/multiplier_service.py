"""
倍率服務：倍率曲線的純計算

倍率只由兩個輸入決定：(經過時間, crash point)
- 不是累加器：任何時間、任何取樣頻率重新計算，結果都一致
- 曲線：cubic ease-out，從 1.00 平滑上升，在 target duration 時剛好等於 crash point
- target duration 隨 log(crash point) 變長：高倍率的回合飛得比較久
"""
import math
from dataclasses import dataclass


@dataclass(frozen=True)
class MultiplierCurve:
    base_duration_ms: float = 3000.0
    duration_per_log_ms: float = 2000.0
    max_duration_ms: float = 30000.0

    def target_duration_ms(self, crash_point: float) -> float:
        """
        計算回合預計飛行時間

        公式：min(base + per_log * ln(crash_point), max)

        範例（預設參數）：
            1.01x -> ~3020 ms
            2.00x -> ~4386 ms
            1000x -> ~16815 ms
        """
        extra = self.duration_per_log_ms * math.log(max(crash_point, 1.0))
        return min(self.base_duration_ms + extra, self.max_duration_ms)

    def progress(self, elapsed_ms: float, crash_point: float) -> float:
        if elapsed_ms <= 0:
            return 0.0
        return min(elapsed_ms / self.target_duration_ms(crash_point), 1.0)

    def multiplier_at(self, elapsed_ms: float, crash_point: float) -> float:
        """
        計算某個時間點的倍率

        參數：
            elapsed_ms: 回合開始後經過的毫秒數
            crash_point: 本回合的 crash point

        返回：
            倍率，範圍 [1.0, crash_point]，對 elapsed_ms 單調遞增
        """
        p = self.progress(elapsed_ms, crash_point)
        if p >= 1.0:
            return crash_point
        eased = 1.0 - (1.0 - p) ** 3
        return 1.0 + (crash_point - 1.0) * eased

    def has_crashed(self, elapsed_ms: float, crash_point: float) -> bool:
        return elapsed_ms >= self.target_duration_ms(crash_point)

    def elapsed_for_multiplier(self, multiplier: float, crash_point: float) -> float:
        """
        倍率曲線的反函數：倍率第一次到達 multiplier 的時間（毫秒）

        用途：
            自動提領的時間戳記（倍率跨過目標的那一刻，而不是取樣的那一刻）
        """
        duration = self.target_duration_ms(crash_point)
        if multiplier <= 1.0 or crash_point <= 1.0:
            return 0.0
        if multiplier >= crash_point:
            return duration
        eased = (multiplier - 1.0) / (crash_point - 1.0)
        p = 1.0 - (1.0 - eased) ** (1.0 / 3.0)
        return p * duration


DEFAULT_CURVE = MultiplierCurve()


def target_duration_ms(crash_point: float) -> float:
    return DEFAULT_CURVE.target_duration_ms(crash_point)


def multiplier_at(elapsed_ms: float, crash_point: float) -> float:
    return DEFAULT_CURVE.multiplier_at(elapsed_ms, crash_point)


def display_multiplier(multiplier: float) -> float:
    """
    顯示用倍率：無條件捨去到小數第 2 位

    捨去（不是四捨五入）保證顯示值永遠不會超過真實曲線，
    單調性也因此保留
    """
    return math.floor(multiplier * 100 + 1e-9) / 100
