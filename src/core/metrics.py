# -*- coding: utf-8 -*-
"""
确定性指标计算：同一份数据，多次计算结果应完全一致。
"""

from __future__ import annotations

from typing import Dict, List

import pandas as pd

from src.core.schema import PERIOD_LABELS, PROMOTION_LABELS, ReportData

_PERCENT_FIELDS = {"visit_conversion_rate", "order_conversion_rate", "repurchase_rate", "visit_rate"}
_CURRENCY_FIELDS = {"cost", "cost_per_visit"}

METRIC_COLUMNS: List[str] = ["section", "key", "指标", "本周", "上周", "变化"]


def calculate_change(current: float, previous: float) -> str:
    """
    周同比变化文案：'+12.5%' / '-3.0%'；上周为 0 时：本周>0 记 '+100%'，否则 '0%'。
    """
    if previous == 0:
        return "+100%" if current > 0 else "0%"
    change = f"{(float(current) - float(previous)) / float(previous) * 100:.1f}"
    return f"+{change}%" if float(change) > 0 else f"{change}%"


def _label(key: str, labels: Dict[str, str]) -> str:
    name = labels.get(key, key)
    if key in _PERCENT_FIELDS:
        return f"{name}(%)"
    if key in _CURRENCY_FIELDS:
        return f"{name}(¥)"
    return name


def build_metrics_frame(report: ReportData) -> pd.DataFrame:
    """
    本周/上周指标对比表：基础运营 6 行在前，推广 5 行（如有）在后。
    """
    rows: List[Dict[str, object]] = []
    op = report.operation_data
    for key in PERIOD_LABELS:
        cur = getattr(op.this_week, key)
        prev = getattr(op.last_week, key)
        rows.append(
            {
                "section": "operation",
                "key": key,
                "指标": _label(key, PERIOD_LABELS),
                "本周": cur,
                "上周": prev,
                "变化": calculate_change(cur, prev),
            }
        )

    promo = report.promotion_data
    if promo is not None:
        for key in PROMOTION_LABELS:
            cur = getattr(promo.this_week, key)
            prev = getattr(promo.last_week, key)
            rows.append(
                {
                    "section": "promotion",
                    "key": key,
                    "指标": _label(key, PROMOTION_LABELS),
                    "本周": cur,
                    "上周": prev,
                    "变化": calculate_change(cur, prev),
                }
            )
    return pd.DataFrame(rows, columns=METRIC_COLUMNS)


def funnel_frame(report: ReportData) -> pd.DataFrame:
    """
    漏斗作图用的长表：stage / week / value（曝光 → 入店 → 下单）。
    """
    op = report.operation_data
    stages = ["exposure_count", "visit_count", "order_count"]
    rows = []
    for week_label, period in (("本周", op.this_week), ("上周", op.last_week)):
        for key in stages:
            rows.append({"stage": PERIOD_LABELS[key], "week": week_label, "value": float(getattr(period, key))})
    return pd.DataFrame(rows)
