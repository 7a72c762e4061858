# -*- coding: utf-8 -*-
"""
表单级业务校验 + 异常提示。

和 core.schema 的区别：
- schema 管“单个字段合不合法”（负数、超过 100%），不合法就不能继续
- 这里管“字段之间说不说得通”（入店 > 曝光、自填转化率和按计数算出来的对不上），
  结果是可确认的警告：用户确认后仍然可以生成报告

顺序固定（页面按这个顺序逐条展示），文案直接面向运营同学。
"""

from __future__ import annotations

import logging
from typing import List, Optional

from src.core import rules
from src.core.metrics import build_metrics_frame
from src.core.schema import PeriodData, PromotionData, ReportData, ShopOperationData

logger = logging.getLogger(__name__)

_WEEK_NAMES = (("this_week", "本周"), ("last_week", "上周"))


def _rate_warning(label: str, name: str, input_rate: float, calculated: float) -> Optional[str]:
    if rules.validate_conversion_rate(input_rate, calculated):
        return None
    return f"{label}{name}可能不准确。根据数据计算应为 {calculated:.2f}%"


def validate_business_logic(operation: ShopOperationData, promotion: Optional[PromotionData] = None) -> List[str]:
    """
    返回警告列表（空列表 = 没问题）。

    1) 入店 > 曝光（本周、上周）
    2) 下单 > 入店（本周、上周）
    3) 入店转化率与按计数推算值相差超过 5 个百分点（本周、上周）
    4) 推广进店 > 推广曝光（本周、上周）
    5) 推广进店率偏差（只查本周）
    """
    warnings: List[str] = []
    weeks = [(label, getattr(operation, attr)) for attr, label in _WEEK_NAMES]

    for label, p in weeks:
        if p.visit_count > p.exposure_count:
            warnings.append(f"{label}入店人数不应超过曝光人数")
    for label, p in weeks:
        if p.order_count > p.visit_count:
            warnings.append(f"{label}下单人数不应超过入店人数")
    for label, p in weeks:
        calculated = rules.calculate_visit_conversion_rate(p.visit_count, p.exposure_count)
        w = _rate_warning(label, "入店转化率", p.visit_conversion_rate, calculated)
        if w:
            warnings.append(w)

    if promotion is not None:
        for attr, label in _WEEK_NAMES:
            pp = getattr(promotion, attr)
            if pp.visit_count > pp.exposure_count:
                warnings.append(f"{label}推广进店量不应超过推广曝光量")
        tw = promotion.this_week
        calculated = rules.calculate_visit_conversion_rate(tw.visit_count, tw.exposure_count)
        w = _rate_warning("本周", "推广进店率", tw.visit_rate, calculated)
        if w:
            warnings.append(w)

    if warnings:
        logger.info("业务校验产生 %s 条警告", len(warnings))
    return warnings


def _high_rate_hints(label: str, p: PeriodData) -> List[str]:
    hints: List[str] = []
    # 越界的转化率由结构校验负责，这里只看 0~100 之内的
    if rules.check_reasonable_range("visit", p.visit_conversion_rate) and rules.is_unusually_high_conversion_rate(
        p.visit_conversion_rate, "visit"
    ):
        hints.append(
            f"{label}入店转化率 {p.visit_conversion_rate:g}% 偏高"
            f"（超过 {rules.HIGH_CONVERSION_THRESHOLDS['visit']:g}%），请确认数据"
        )
    if rules.check_reasonable_range("order", p.order_conversion_rate) and rules.is_unusually_high_conversion_rate(
        p.order_conversion_rate, "order"
    ):
        hints.append(
            f"{label}下单转化率 {p.order_conversion_rate:g}% 偏高"
            f"（超过 {rules.HIGH_CONVERSION_THRESHOLDS['order']:g}%），请确认数据"
        )
    return hints


def _order_rate_hint(label: str, p: PeriodData) -> Optional[str]:
    if p.visit_count <= 0:
        return None
    calculated = rules.calculate_order_conversion_rate(p.order_count, p.visit_count)
    if rules.validate_conversion_rate(p.order_conversion_rate, calculated):
        return None
    return f"{label}下单转化率 {p.order_conversion_rate:g}% 与按人数推算的 {calculated:.2f}% 相差较大，请确认数据"


def collect_anomaly_hints(report: ReportData) -> List[str]:
    """
    非阻断的异常提示（CLI 摘要 / 日志用）：
    - 周同比变化超过 500% 的指标
    - 异常高的入店/下单转化率
    - 自填下单转化率与“下单人数 / 入店人数”对不上
    """
    hints: List[str] = []
    frame = build_metrics_frame(report)
    for row in frame.to_dict("records"):
        if rules.is_week_over_week_anomaly(float(row["本周"]), float(row["上周"])):
            hints.append(f"{row['指标']} 周同比变化异常（{row['变化']}），请确认数据是否录入正确")

    op = report.operation_data
    for attr, label in _WEEK_NAMES:
        hints.extend(_high_rate_hints(label, getattr(op, attr)))
    for attr, label in _WEEK_NAMES:
        h = _order_rate_hint(label, getattr(op, attr))
        if h:
            hints.append(h)
    return hints
