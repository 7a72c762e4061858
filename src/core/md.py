# -*- coding: utf-8 -*-
"""
Markdown 工具（避免 pandas.to_markdown 依赖 tabulate）。

用在两处：提示词里的“指标对比表”附录、CLI 输出的 summary.md。
"""

from __future__ import annotations

from typing import Iterable, List, Optional

import pandas as pd

from src.core.utils import fmt_number


def md_escape(text: object) -> str:
    s = "" if text is None else str(text)
    return s.replace("|", "\\|").replace("\n", " ")


def _cell(value: object) -> str:
    if isinstance(value, bool):
        return "是" if value else "否"
    try:
        if pd.isna(value):  # type: ignore[arg-type]
            return ""
    except (TypeError, ValueError):
        pass
    if isinstance(value, (int, float)) or hasattr(value, "item"):
        return fmt_number(value)
    return md_escape(value)


def df_to_md_table(df: pd.DataFrame, columns: Optional[List[str]] = None) -> str:
    """
    DataFrame -> Markdown 表格；columns 指定输出列（按给定顺序，不存在的列忽略）。
    """
    if df is None or df.empty:
        return "_无数据_"
    cols = [c for c in (columns or list(df.columns)) if c in df.columns]
    if not cols:
        return "_无数据_"

    lines = [
        "| " + " | ".join(md_escape(c) for c in cols) + " |",
        "| " + " | ".join(["---"] * len(cols)) + " |",
    ]
    for record in df[cols].itertuples(index=False, name=None):
        lines.append("| " + " | ".join(_cell(v) for v in record) + " |")
    return "\n".join(lines)


def md_bullets(items: Iterable[str], empty_text: str = "_无_") -> str:
    out = [f"- {md_escape(x)}" for x in items if str(x or "").strip()]
    return "\n".join(out) if out else empty_text
