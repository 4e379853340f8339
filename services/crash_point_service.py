"""
Crash point 服務：每回合 crash point 的產生

分佈要求：
- P(crash >= m) ≈ (1 - house_edge) / m
- 大部分回合在 3x 以下爆掉，極少數可以到幾百、上千倍
- 結果夾在 [1.01, 1000]

隨機來源是可替換的策略（CrashPointSource）：
- HashCrashPointSource：HMAC-SHA256(server_seed, "round_id:nonce")，僅供示意，不是公平性證明
- RandomCrashPointSource：secrets.SystemRandom，或測試用的 seeded random.Random
- FixedCrashPointSource：依序回傳指定的值（測試、展示用）

正式的真錢部署應換成可驗證的隨機來源（VRF 等），Engine 不需要改
"""
import hashlib
import hmac
import math
import random
import secrets
import time
from typing import Callable, Iterable, Optional, Protocol

DEFAULT_HOUSE_EDGE = 0.01
MIN_CRASH_POINT = 1.01
MAX_CRASH_POINT = 1000.0


class CrashPointSource(Protocol):
    def compute_crash_point(self, round_id: int) -> float:
        ...


def crash_point_from_uniform(
    u: float,
    house_edge: float = DEFAULT_HOUSE_EDGE,
    min_crash: float = MIN_CRASH_POINT,
    max_crash: float = MAX_CRASH_POINT,
) -> float:
    """
    把 [0, 1) 的均勻亂數轉成 crash point

    公式：floor(100 * (1 - edge) / (1 - u)) / 100，再夾到 [min, max]

    注意：
        - u 接近 1 時分母趨近 0，先把 u 限制在 1 - 1e-12 以下
        - 算出來小於 min 的（約 house_edge 比例）就是「開場即爆」
    """
    u = min(max(u, 0.0), 1.0 - 1e-12)
    raw = (1.0 - house_edge) / (1.0 - u)
    crash = math.floor(raw * 100) / 100
    return min(max(crash, min_crash), max_crash)


def hmac_sha256_hex(server_seed: str, message: str) -> str:
    return hmac.new(
        key=server_seed.encode("utf-8"),
        msg=message.encode("utf-8"),
        digestmod=hashlib.sha256,
    ).hexdigest()


def hash_to_uniform(hash_hex: str) -> float:
    # 前 13 個 hex 字元 = 52 bits，剛好是 double 的精度
    return int(hash_hex[:13], 16) / float(2 ** 52)


class HashCrashPointSource:
    """
    以 HMAC-SHA256 產生 crash point

    每回合的輸入：round_id + 牆鐘 nanosecond nonce，所以同一個 round_id 不會重播出同一個結果
    """

    def __init__(
        self,
        server_seed: Optional[str] = None,
        house_edge: float = DEFAULT_HOUSE_EDGE,
        min_crash: float = MIN_CRASH_POINT,
        max_crash: float = MAX_CRASH_POINT,
        nonce_factory: Callable[[], int] = time.time_ns,
    ):
        self.server_seed = server_seed or secrets.token_hex(32)
        self.house_edge = house_edge
        self.min_crash = min_crash
        self.max_crash = max_crash
        self._nonce_factory = nonce_factory

    def compute_crash_point(self, round_id: int) -> float:
        nonce = self._nonce_factory()
        hash_hex = hmac_sha256_hex(self.server_seed, f"{round_id}:{nonce}")
        return crash_point_from_uniform(
            hash_to_uniform(hash_hex), self.house_edge, self.min_crash, self.max_crash
        )


class RandomCrashPointSource:
    def __init__(
        self,
        rng: Optional[random.Random] = None,
        house_edge: float = DEFAULT_HOUSE_EDGE,
        min_crash: float = MIN_CRASH_POINT,
        max_crash: float = MAX_CRASH_POINT,
    ):
        self.rng = rng or secrets.SystemRandom()
        self.house_edge = house_edge
        self.min_crash = min_crash
        self.max_crash = max_crash

    def compute_crash_point(self, round_id: int) -> float:
        return crash_point_from_uniform(
            self.rng.random(), self.house_edge, self.min_crash, self.max_crash
        )


class FixedCrashPointSource:
    """依序回傳預先指定的 crash point；用完後重複最後一個"""

    def __init__(self, crash_points: Iterable[float]):
        self._points = list(crash_points)
        if not self._points:
            raise ValueError("FixedCrashPointSource needs at least one crash point")
        self._index = 0

    def compute_crash_point(self, round_id: int) -> float:
        point = self._points[min(self._index, len(self._points) - 1)]
        self._index += 1
        return point


def build_crash_point_source(settings) -> CrashPointSource:
    """依設定建立 crash point 來源"""
    if settings.crash_point_source == "random":
        return RandomCrashPointSource(
            house_edge=settings.house_edge,
            min_crash=settings.min_crash_point,
            max_crash=settings.max_crash_point,
        )
    if settings.crash_point_source == "hash":
        return HashCrashPointSource(
            server_seed=settings.server_seed or None,
            house_edge=settings.house_edge,
            min_crash=settings.min_crash_point,
            max_crash=settings.max_crash_point,
        )
    raise ValueError(f"Unknown crash point source: {settings.crash_point_source}")


def simulate_house_return(source: CrashPointSource, target: float, rounds: int = 100_000) -> float:
    """
    蒙地卡羅模擬：每回合固定在 target 提領的平均回報（每 1 單位下注）

    用途：
        驗證 house edge。回報 < 1 代表莊家有優勢
    """
    total = 0.0
    for round_id in range(1, rounds + 1):
        if source.compute_crash_point(round_id) > target:
            total += target
    return total / rounds
