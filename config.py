from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # 玩家
    starting_balance: float = 1000.0

    # Crash point 分佈
    house_edge: float = 0.01
    min_crash_point: float = 1.01
    max_crash_point: float = 1000.0
    crash_point_source: str = "hash"  # "hash" | "random"
    server_seed: str = ""

    # 階段時間（秒）
    waiting_delay_seconds: float = 1.0
    countdown_min_seconds: float = 1.0
    countdown_max_seconds: float = 5.0
    crashed_delay_seconds: float = 3.0
    tick_interval_seconds: float = 0.033

    # 倍率曲線（毫秒）
    base_duration_ms: float = 3000.0
    duration_per_log_ms: float = 2000.0
    max_duration_ms: float = 30000.0

    # Recorder 保留筆數
    feed_retention: int = 100
    history_retention: int = 50

    # 機器人下注（僅供顯示）
    bot_activity_enabled: bool = True
    bot_min_count: int = 5
    bot_max_count: int = 12

    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    class Config:
        env_file = ".env"
        env_prefix = "CRASH_"


@lru_cache()
def get_settings():
    return Settings()
