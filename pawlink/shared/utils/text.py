"""テキスト処理ユーティリティ"""

import math
import re
from typing import Any, Optional


def normalize_keyword(text: Optional[str]) -> Optional[str]:
    """
    検索キーワードを正規化

    - 全角スペースを半角スペースに変換
    - 連続する空白を1つに
    - 前後の空白を除去
    """
    if not text:
        return None

    text = text.replace("　", " ")
    text = re.sub(r"\s+", " ", text)
    text = text.strip()

    return text if text else None


def vendor_str(value: Any) -> str:
    """
    ベンダー応答のフィールドを文字列化

    高徳APIは値が無い場合に空配列 [] を返すことがあるため、
    それを空文字として扱う
    """
    if value is None or isinstance(value, (list, dict)):
        return ""
    return str(value)


def vendor_int(value: Any, default: int = 0) -> int:
    """ベンダー応答の数値フィールド（文字列 "123" / "12.5" / [] 等）を整数化"""
    text = vendor_str(value).strip()
    if not text:
        return default
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        # "inf" / "nan" は整数にできない
        return default


def vendor_float(value: Any) -> Optional[float]:
    """ベンダー応答の数値フィールドを浮動小数点化（変換不可・非有限値ならNone）"""
    text = vendor_str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None
