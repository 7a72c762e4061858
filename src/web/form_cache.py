# -*- coding: utf-8 -*-
"""
表单键值缓存：把填了一半的表单留在客户端，刷新/回退页面不丢数据。

store 可以是任意 MutableMapping：Web 端用 Flask session（签名 cookie，数据在浏览器里），
测试里直接用 dict。值统一存 JSON 字符串，读坏了就当没有。
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, List, MutableMapping, Union

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "reportForm_"

# 向导里用到的缓存键（不含前缀）
SHOP_INFO = "shopInfo"
OPERATION_DATA = "operationData"
WEEKLY_GROWTH = "weeklyGrowth"
INCLUDE_PROMOTION = "includePromotion"
PROMOTION_DATA = "promotionData"
ADJUSTMENT_DATA = "adjustmentData"


class FormCache:
    def __init__(self, store: MutableMapping[str, Any], prefix: str = DEFAULT_PREFIX):
        self.store = store
        self.prefix = prefix

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str, initial: Any = None) -> Any:
        raw = self.store.get(self._full_key(key))
        if raw is None or raw == "":
            return initial
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("读取缓存 %r 失败: %s", self._full_key(key), e)
            return initial

    def set(self, key: str, value: Union[Any, Callable[[Any], Any]], initial: Any = None) -> Any:
        """
        value 可以是新值，也可以是 `旧值 -> 新值` 的函数（旧值缺失时传 initial）。
        返回写入的新值。
        """
        new_value = value(self.get(key, initial)) if callable(value) else value
        try:
            self.store[self._full_key(key)] = json.dumps(new_value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error("写入缓存 %r 失败: %s", self._full_key(key), e)
        return new_value

    def remove(self, key: str) -> None:
        self.store.pop(self._full_key(key), None)

    def keys(self) -> List[str]:
        """当前 store 里所有带前缀的键（含前缀）。"""
        return [k for k in list(self.store.keys()) if str(k).startswith(self.prefix)]

    def clear(self) -> None:
        for k in self.keys():
            self.store.pop(k, None)
