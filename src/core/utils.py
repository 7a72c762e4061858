# -*- coding: utf-8 -*-
from __future__ import annotations

import math
import re
from typing import Any

import pandas as pd


def safe_div(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return float(numerator) / float(denominator)


_NUM_CLEAN_RE = re.compile(r"[,$￥¥%\s]")


def to_float(value: Any) -> float:
    """
    把各种“看起来像数字”的内容转成 float（表单输入用）：
    - '1,234.56' / '¥12.3' / '  9.9 ' / '' / None / '--'
    解析不了的内容返回 0.0，与页面“清空输入框=0”的习惯一致；NaN / inf（如 "1e999"、"Infinity"）同样按 0.0 处理。
    """
    try:
        if value is None:
            return 0.0
        if isinstance(value, (int, float)):
            if pd.isna(value):
                return 0.0
            x = float(value)
        else:
            s = str(value).strip()
            if not s or s in {"--", "-", "None"}:
                return 0.0
            s = _NUM_CLEAN_RE.sub("", s)
            x = float(s) if s else 0.0
        return x if math.isfinite(x) else 0.0
    except Exception:
        return 0.0


def to_int(value: Any) -> int:
    """表单里的计数类字段：向下取整，负数截到 0。"""
    x = to_float(value)
    return max(0, int(x // 1))


def fmt_number(value: Any) -> str:
    """提示词/表格展示：整数不带小数点，其余原样（避免 1000.0 这种写法）。"""
    try:
        x = float(value)
    except (TypeError, ValueError):
        return str(value)
    if x.is_integer():
        return str(int(x))
    return str(round(x, 4))


def mask_secret(text: Any, secret: str) -> str:
    """错误信息/日志里出现密钥时替换成 ***。"""
    s = "" if text is None else str(text)
    if secret and secret in s:
        s = s.replace(secret, "***")
    return s
