# -*- coding: utf-8 -*-
"""
规则工具箱（把关键口径做成可复用函数，避免“同一个概念多套写法”）。

本文件只放“确定性规则”，不依赖外部服务，不做模型推断。
转化率一律用百分比（0~100），与表单录入口径一致。
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Union

from src.core.schema import PeriodData
from src.core.utils import safe_div

# 自填转化率与按计数推算值的允许偏差（百分点）
RATE_TOLERANCE: float = 5.0

# 周同比变化超过 500% 视为异常
WOW_ANOMALY_RATIO: float = 5.0

HIGH_CONVERSION_THRESHOLDS: Dict[str, float] = {
    "visit": 50.0,  # 入店转化率超过 50% 可能异常
    "order": 30.0,  # 下单转化率超过 30% 可能异常
}

_RATE_KINDS = ("visit", "order", "repurchase", "promotion_visit")


def check_data_consistency(exposure_count: float, visit_count: float, order_count: float) -> List[str]:
    """
    漏斗层级检查：入店 <= 曝光，下单 <= 入店。

    上一层为 0 时不判断（当作“未填写”，不是矛盾）。
    """
    errors: List[str] = []
    if visit_count > exposure_count and exposure_count > 0:
        errors.append("入店人数不应超过曝光人数")
    if order_count > visit_count and visit_count > 0:
        errors.append("下单人数不应超过入店人数")
    return errors


def validate_conversion_rate(actual: float, expected: float, tolerance: float = RATE_TOLERANCE) -> bool:
    return abs(float(actual) - float(expected)) <= float(tolerance)


def calculate_visit_conversion_rate(visit_count: float, exposure_count: float) -> float:
    return safe_div(visit_count, exposure_count) * 100


def calculate_order_conversion_rate(order_count: float, visit_count: float) -> float:
    return safe_div(order_count, visit_count) * 100


def check_reasonable_range(kind: str, rate: float) -> bool:
    """
    kind: visit / order / repurchase / promotion_visit，目前都是 0~100 闭区间。
    """
    if kind not in _RATE_KINDS:
        raise ValueError(f"unknown rate kind: {kind}")
    return 0 <= float(rate) <= 100


def is_week_over_week_anomaly(this_week: float, last_week: float) -> bool:
    if last_week == 0:
        return False
    change = abs((float(this_week) - float(last_week)) / float(last_week))
    return change > WOW_ANOMALY_RATIO


def is_unusually_high_conversion_rate(rate: float, kind: str) -> bool:
    if kind not in HIGH_CONVERSION_THRESHOLDS:
        raise ValueError(f"unknown conversion kind: {kind}")
    return float(rate) > HIGH_CONVERSION_THRESHOLDS[kind]


def derive_last_week(
    this_week: Union[PeriodData, Mapping[str, Any]],
    growth: Mapping[str, Any],
    last_week_repurchase_rate: float = 0.0,
) -> Dict[str, float]:
    """
    上周 = 本周 - 比上周增长（截到 0），返回 snake_case 字典，交给 PeriodData 统一校验。

    - 曝光/入店/下单/两个转化率参与推算；
    - 复购率不参与推算，由用户单独填写上周值。
    """

    def _get(field: str) -> float:
        if isinstance(this_week, PeriodData):
            return float(getattr(this_week, field))
        return float(this_week.get(field, 0) or 0)

    def _minus(field: str) -> float:
        return max(0.0, _get(field) - float(growth.get(field, 0) or 0))

    return {
        "exposure_count": int(_minus("exposure_count")),
        "visit_count": int(_minus("visit_count")),
        "visit_conversion_rate": round(_minus("visit_conversion_rate"), 4),
        "order_conversion_rate": round(_minus("order_conversion_rate"), 4),
        "order_count": int(_minus("order_count")),
        "repurchase_rate": float(last_week_repurchase_rate or 0.0),
    }
