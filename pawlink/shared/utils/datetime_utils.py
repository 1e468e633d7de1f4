"""日時関連ユーティリティ"""

from datetime import datetime, timezone

import pytz

# 中国標準時（地図ベンダーのサービス地域）
CST = pytz.timezone("Asia/Shanghai")


def now_utc() -> datetime:
    """現在のUTC時間を取得"""
    return datetime.now(timezone.utc)


def to_local(dt: datetime) -> datetime:
    """
    datetimeを中国標準時に変換

    Args:
        dt: 変換対象のdatetime

    Returns:
        中国標準時のdatetime
    """
    if dt.tzinfo is None:
        # タイムゾーン情報がない場合はUTCとして扱う
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(CST)


def format_local(dt: datetime) -> str:
    """表示用に "YYYY-MM-DD HH:MM:SS" 形式（中国標準時）で整形"""
    return to_local(dt).strftime("%Y-%m-%d %H:%M:%S")


def format_duration(seconds: float) -> str:
    """
    秒数を読みやすい形式に変換

    Args:
        seconds: 秒数

    Returns:
        "1h23m45s" のような文字列
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")

    return "".join(parts)
