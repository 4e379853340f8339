"""
命名服務：生成機器人玩家名稱

純計算邏輯，不涉及狀態轉換
"""
import random
import string
import uuid
from typing import Optional

BOT_NAMES = [
    "DegenApe", "DiamondHands", "PaperHands", "WhaleHunter",
    "MoonBoy", "CryptoChad", "YoloTrader", "LamboSeeker",
    "ToTheMoon", "HodlGang", "ShibaArmy", "SafeMoonKing",
]


def generate_suffix(rng: Optional[random.Random] = None, k: int = 4) -> str:
    """
    生成隨機的小寫英數字尾碼

    範例：a9x2, 0kq7
    """
    rng = rng or random
    return ''.join(rng.choices(string.ascii_lowercase + string.digits, k=k))


def generate_bot_name(rng: Optional[random.Random] = None) -> str:
    """
    生成機器人顯示名稱

    格式：「名稱 + 4 碼尾碼」
    範例：MoonBoyx7k2, WhaleHunter0q9a

    注意：
        - 不檢查唯一性（只是顯示用）
        - 永遠不會和本地玩家的 actor（"you"）重複
    """
    rng = rng or random
    return f"{rng.choice(BOT_NAMES)}{generate_suffix(rng)}"


def new_feed_id() -> str:
    """Feed 事件的唯一 ID（32 碼 hex）"""
    return uuid.uuid4().hex
