# -*- coding: utf-8 -*-
"""
周报输入数据的统一结构（pydantic 模型）+ 字段级校验。

注意：
- Python 侧用 snake_case 属性名，JSON/表单线格式用 camelCase（与前端/历史 JSON 文件保持一致），两种名字都能填充。
- 错误文案直接面向运营同学（中文），表单逐字段展示；所以校验器里只抛 ValueError(中文文案)。
"""

from __future__ import annotations

import datetime as dt
import math
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel


class _BaseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """导出 camelCase JSON 字典（用于缓存/接口返回/留档）。"""
        return self.model_dump(by_alias=True, mode="json")


# 指标中文名（表单标签、指标表、提示词共用）
PERIOD_LABELS: Dict[str, str] = {
    "exposure_count": "曝光人数",
    "visit_count": "入店人数",
    "visit_conversion_rate": "入店转化率",
    "order_conversion_rate": "下单转化率",
    "order_count": "下单人数",
    "repurchase_rate": "复购率",
}

PROMOTION_LABELS: Dict[str, str] = {
    "cost": "推广花费",
    "exposure_count": "推广曝光量",
    "visit_count": "推广进店量",
    "visit_rate": "推广进店率",
    "cost_per_visit": "单次进店成本",
}

PERIOD_COUNT_FIELDS: Tuple[str, ...] = ("exposure_count", "visit_count", "order_count")
PERIOD_RATE_FIELDS: Tuple[str, ...] = ("visit_conversion_rate", "order_conversion_rate", "repurchase_rate")


def _as_number(value: Any) -> float:
    """
    接收 int/float/数字字符串；bool、NaN、inf 一律视为非法。
    """
    if isinstance(value, bool):
        raise ValueError("必须为数字")
    if isinstance(value, (int, float)):
        try:
            x = float(value)
        except OverflowError:
            raise ValueError("必须为数字") from None
    elif isinstance(value, str) and value.strip():
        try:
            x = float(value.strip())
        except ValueError:
            raise ValueError("必须为数字") from None
    else:
        raise ValueError("必须为数字")
    if math.isnan(x) or math.isinf(x):
        raise ValueError("必须为数字")
    return x


def _check_count(value: Any, negative_msg: str = "不能为负数") -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        # 大整数不走 float，避免精度丢失；但必须能换算成 float（后续环比 / 作图都按 float 算）
        if value < 0:
            raise ValueError(negative_msg)
        try:
            float(value)
        except OverflowError:
            raise ValueError("必须为数字") from None
        return value
    x = _as_number(value)
    if not x.is_integer():
        raise ValueError("必须为整数")
    if x < 0:
        raise ValueError(negative_msg)
    return int(x)


def _check_amount(value: Any, negative_msg: str) -> float:
    x = _as_number(value)
    if x < 0:
        raise ValueError(negative_msg)
    return x


def _check_rate(value: Any, negative_msg: str = "不能为负数", over_msg: str = "不能超过100%") -> float:
    x = _as_number(value)
    if x < 0:
        raise ValueError(negative_msg)
    if x > 100:
        raise ValueError(over_msg)
    return x


_BUSINESS_HOURS_RE = re.compile(r"^(\d{2}):(\d{2})\s*-\s*(\d{2}):(\d{2})$")
BUSINESS_HOURS_FORMAT_MSG = '营业时间格式错误，请使用"06:30 - 15:30"格式'


class ShopBasicInfo(_BaseModel):
    shop_name: str
    category: str
    address: str
    business_hours: str

    @field_validator("shop_name")
    @classmethod
    def _shop_name(cls, v: str) -> str:
        if len(v) < 1:
            raise ValueError("店铺名称不能为空")
        if len(v) > 50:
            raise ValueError("店铺名称不能超过50个字符")
        return v

    @field_validator("category")
    @classmethod
    def _category(cls, v: str) -> str:
        if len(v) < 1:
            raise ValueError("经营品类不能为空")
        return v

    @field_validator("address")
    @classmethod
    def _address(cls, v: str) -> str:
        if len(v) < 1:
            raise ValueError("店铺地址不能为空")
        if len(v) > 200:
            raise ValueError("地址不能超过200个字符")
        return v

    @field_validator("business_hours")
    @classmethod
    def _business_hours(cls, v: str) -> str:
        if len(v) < 1:
            raise ValueError("营业时间不能为空")
        m = _BUSINESS_HOURS_RE.match(v)
        if not m:
            raise ValueError(BUSINESS_HOURS_FORMAT_MSG)
        h1, m1, h2, m2 = (int(x) for x in m.groups())
        # 24 小时制：时 00-23，分 00-59；结束时间允许写成 24:00（营业到午夜 / 全天营业）
        end_of_day = h2 == 24 and m2 == 0
        if h1 > 23 or m1 > 59 or m2 > 59 or (h2 > 23 and not end_of_day):
            raise ValueError(BUSINESS_HOURS_FORMAT_MSG)
        return v


class PeriodData(_BaseModel):
    exposure_count: int = 0
    visit_count: int = 0
    visit_conversion_rate: float = 0.0
    order_conversion_rate: float = 0.0
    order_count: int = 0
    repurchase_rate: float = 0.0

    @field_validator(*PERIOD_COUNT_FIELDS, mode="before")
    @classmethod
    def _counts(cls, v: Any) -> int:
        return _check_count(v)

    @field_validator(*PERIOD_RATE_FIELDS, mode="before")
    @classmethod
    def _rates(cls, v: Any) -> float:
        return _check_rate(v)


class ShopOperationData(_BaseModel):
    this_week: PeriodData
    last_week: PeriodData


class PromotionPeriod(_BaseModel):
    cost: float = 0.0
    exposure_count: int = 0
    visit_count: int = 0
    visit_rate: float = 0.0
    cost_per_visit: float = 0.0

    @field_validator("cost", mode="before")
    @classmethod
    def _cost(cls, v: Any) -> float:
        return _check_amount(v, "费用不能为负数")

    @field_validator("exposure_count", mode="before")
    @classmethod
    def _exposure(cls, v: Any) -> int:
        return _check_count(v, "曝光量不能为负数")

    @field_validator("visit_count", mode="before")
    @classmethod
    def _visit(cls, v: Any) -> int:
        return _check_count(v, "进店量不能为负数")

    @field_validator("visit_rate", mode="before")
    @classmethod
    def _visit_rate(cls, v: Any) -> float:
        return _check_rate(v, "进店率应在0-100%之间", "进店率应在0-100%之间")

    @field_validator("cost_per_visit", mode="before")
    @classmethod
    def _cost_per_visit(cls, v: Any) -> float:
        return _check_amount(v, "单次成本不能为负数")


class PromotionData(_BaseModel):
    this_week: PromotionPeriod
    last_week: PromotionPeriod


class ShopAdjustmentOption(str, Enum):
    MARKET_RESEARCH = "商圈调研和店铺方案的制定"
    STORE_DESIGN = "店招海报头像的设计并上线"
    CATEGORY_OPTIMIZATION = "分类栏优化并上线"
    KEYWORD_OPTIMIZATION = "全店产品关键词优化并上线"
    PRODUCT_DESCRIPTION = "全店菜品描述并上线"
    REVIEW_MANAGEMENT = "评价解释差评申诉维护"
    IMAGE_WALL = "图片墙设计并上线"
    ANIMATED_IMAGES = "动图设计并上线"
    BRAND_STORY = "品牌故事设计并上线"
    STORE_IMAGES = "全店图设计并上线"
    PRECISION_MARKETING = "精准营销发券"
    DAILY_REPORTS = "每日群发简报"
    WEEKLY_ANALYSIS = "店铺数据周报分析"
    STORE_ANALYSIS = "店铺分解析"
    NEW_PRODUCTS = "新品上线和优化"
    ROI_ADJUSTMENT = "点金推广的ROI调整"
    VIDEO_STORE_SIGN = "视频店招的制作并上线"


_ADJUSTMENT_VALUES = {o.value: o for o in ShopAdjustmentOption}


class ShopAdjustmentData(_BaseModel):
    this_week_adjustments: List[ShopAdjustmentOption] = Field(default_factory=list)
    last_week_adjustments: List[ShopAdjustmentOption] = Field(default_factory=list)

    @field_validator("this_week_adjustments", "last_week_adjustments", mode="before")
    @classmethod
    def _options(cls, v: Any) -> List[ShopAdjustmentOption]:
        if v is None:
            return []
        if not isinstance(v, (list, tuple)):
            raise ValueError("无效的调整项目")
        out: List[ShopAdjustmentOption] = []
        for item in v:
            key = item.value if isinstance(item, ShopAdjustmentOption) else str(item)
            opt = _ADJUSTMENT_VALUES.get(key)
            if opt is None:
                raise ValueError("无效的调整项目")
            if opt not in out:
                out.append(opt)
        return out


class ReportData(_BaseModel):
    shop_info: ShopBasicInfo
    operation_data: ShopOperationData
    promotion_data: Optional[PromotionData] = None
    adjustment_data: Optional[ShopAdjustmentData] = None
    generated_at: str = Field(default_factory=lambda: dt.datetime.now().isoformat(timespec="seconds"))


_PYDANTIC_MSG_ZH = {
    "missing": "此项为必填项",
    "string_type": "必须为文本",
    "model_type": "格式错误",
    "dict_type": "格式错误",
}

M = TypeVar("M", bound=BaseModel)


def validation_errors(exc: ValidationError) -> Dict[str, str]:
    """
    把 ValidationError 展开成 {"thisWeek.exposureCount": "不能为负数"}（同一路径只保留第一条）。
    """
    out: Dict[str, str] = {}
    for err in exc.errors():
        key = ".".join(str(p) for p in err.get("loc", ()))
        if key in out:
            continue
        etype = str(err.get("type") or "")
        if etype == "value_error":
            ctx_err = (err.get("ctx") or {}).get("error")
            msg = str(ctx_err) if ctx_err is not None else str(err.get("msg") or "")
        else:
            msg = _PYDANTIC_MSG_ZH.get(etype, str(err.get("msg") or ""))
        out[key or "__root__"] = msg
    return out


def parse_model(model_cls: Type[M], data: Any) -> Tuple[Optional[M], Dict[str, str]]:
    """
    校验并返回 (模型, 错误字典)；成功时错误字典为空。
    """
    try:
        return model_cls.model_validate(data), {}
    except ValidationError as e:
        return None, validation_errors(e)
