"""
並發控制工具

Engine 只有一份可變狀態，但會被兩種來源同時碰到：
- asyncio event loop 上的計時器（倒數、取樣）
- FastAPI 在 threadpool 內執行的同步 endpoint（下注、提領）

所以所有讀寫 Engine 狀態的方法都必須在同一把 re-entrant lock 內執行
"""
from functools import wraps
import logging
import threading

logger = logging.getLogger(__name__)


def new_engine_lock() -> threading.RLock:
    """
    建立 Engine 用的鎖

    使用 RLock：被鎖住的方法可以再呼叫另一個被鎖住的方法（例如 cash_out 內先 poll）
    """
    return threading.RLock()


def synchronized(func):
    """
    Lock decorator：確保 Engine 方法的原子性

    使用方式：
        class RoundEngine:
            def __init__(self):
                self._lock = new_engine_lock()

            @synchronized
            def place_bet(self, amount):
                # 整個方法都在 self._lock 內執行
                ...

    如果方法內發生異常：
        - 鎖一定會釋放
        - 記錄錯誤（含 traceback）
        - 異常會被重新拋出（讓上層處理）

    注意：
        - 被裝飾的必須是實例方法，且實例有 _lock 屬性
        - 狀態只在方法結尾一次提交，異常時舊狀態保持不變
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        lock = getattr(self, "_lock", None)
        if lock is None:
            raise ValueError(
                f"@synchronized requires '{type(self).__name__}._lock', "
                f"but it was not initialised"
            )

        with lock:
            try:
                return func(self, *args, **kwargs)
            except Exception as e:
                logger.error(f"Engine operation failed in {func.__name__}: {e}", exc_info=True)
                raise

    return wrapper
