# -*- coding: utf-8 -*-
"""
pytest 共享夹具：样例周报数据、假 HTTP session、假 provider。

测试不读取本机 .env，也不发真实网络请求。
"""

from __future__ import annotations

import copy
import os
from typing import Any, Dict, List, Optional

import pytest

os.environ["WEEKLY_REPORT_DISABLE_DOTENV"] = "1"

SAMPLE_REPORT: Dict[str, Any] = {
    "shopInfo": {
        "shopName": "老王面馆",
        "category": "中式快餐",
        "address": "上海市徐汇区漕溪北路 100 号",
        "businessHours": "06:30 - 15:30",
    },
    "operationData": {
        "thisWeek": {
            "exposureCount": 1000,
            "visitCount": 100,
            "visitConversionRate": 10,
            "orderConversionRate": 20,
            "orderCount": 20,
            "repurchaseRate": 15,
        },
        "lastWeek": {
            "exposureCount": 800,
            "visitCount": 80,
            "visitConversionRate": 10,
            "orderConversionRate": 25,
            "orderCount": 20,
            "repurchaseRate": 12,
        },
    },
    "generatedAt": "2026-10-12T09:00:00",
}

SAMPLE_PROMOTION: Dict[str, Any] = {
    "thisWeek": {"cost": 200, "exposureCount": 500, "visitCount": 50, "visitRate": 10, "costPerVisit": 4},
    "lastWeek": {"cost": 150, "exposureCount": 400, "visitCount": 30, "visitRate": 7.5, "costPerVisit": 5},
}


@pytest.fixture
def report_dict() -> Dict[str, Any]:
    return copy.deepcopy(SAMPLE_REPORT)


@pytest.fixture
def report_with_promotion_dict(report_dict) -> Dict[str, Any]:
    report_dict["promotionData"] = copy.deepcopy(SAMPLE_PROMOTION)
    return report_dict


@pytest.fixture
def report(report_dict):
    from src.core.schema import ReportData

    return ReportData.model_validate(report_dict)


@pytest.fixture
def report_with_promotion(report_with_promotion_dict):
    from src.core.schema import ReportData

    return ReportData.model_validate(report_with_promotion_dict)


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "", reason: str = "OK"):
        self.status_code = status_code
        self.reason = reason
        self._payload = payload
        self.text = text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


class FakeSession:
    """按顺序返回预置响应；元素是异常时直接抛出。记录每次 post 的参数。"""

    def __init__(self, responses: List[Any]):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def post(self, url: str, json: Any = None, headers: Optional[Dict[str, str]] = None, timeout: Any = None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def completion(content: Optional[str]) -> Dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def completion_payload():
    return completion


class ScriptedProvider:
    """ChatProvider 替身：按顺序返回字符串或抛出异常。"""

    def __init__(self, outcomes: List[Any], api_key: str = "sk-test-secret"):
        self.outcomes = list(outcomes)
        self.api_key = api_key
        self.model = "test-model"
        self.calls: List[Dict[str, Any]] = []

    def generate(self, prompt, messages=None, temperature=0.7, max_tokens=None, timeout=30):
        self.calls.append(
            {"prompt": prompt, "messages": messages, "temperature": temperature, "max_tokens": max_tokens, "timeout": timeout}
        )
        item = self.outcomes.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def scripted_provider():
    return ScriptedProvider
