# -*- coding: utf-8 -*-
"""
报告生成客户端：把 ReportData 拼成提示词，调用 chat-completion 接口，带有界重试。

约定：
- provider 只负责“一次请求”，成败用异常表达；重试、退避、文案统一在这里处理
- generate_report 永远返回 APIResponse，不向上抛异常（页面/CLI 直接展示 error 文案）
- 错误文案与日志里不得出现 API 密钥
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ai_providers import ChatProvider, ProviderTimeout, create_provider
from src.analysis.ai_report import build_report_prompt
from src.core.config import Settings
from src.core.schema import ReportData
from src.core.utils import mask_secret

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "请求超时，请检查网络连接或稍后重试"
CANCELLED_MESSAGE = "请求已取消"
ALL_FAILED_MESSAGE = "所有重试尝试均失败"
MISSING_KEY_MESSAGE = "未配置 API_KEY"


@dataclass
class APIResponse:
    success: bool
    data: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": bool(self.success)}
        if self.data is not None:
            out["data"] = self.data
        if self.error is not None:
            out["error"] = self.error
        return out


class ReportClient:
    """
    用法：
        client = ReportClient(load_settings())
        result = client.generate_report(report)
        if result.success: html = result.data
    """

    def __init__(self, settings: Settings, provider: Optional[ChatProvider] = None):
        self.settings = settings
        self._provider = provider

    def _get_provider(self) -> Optional[ChatProvider]:
        if self._provider is None:
            s = self.settings
            self._provider = create_provider(s.provider, s.api_key, s.base_url, s.model)
        return self._provider

    def _mask(self, text: Any) -> str:
        return mask_secret(text, self.settings.api_key)

    def generate_report(self, report: ReportData, cancel_event: Optional[threading.Event] = None) -> APIResponse:
        s = self.settings
        if not str(s.api_key or "").strip():
            logger.warning("未配置 API_KEY，跳过报告生成")
            return APIResponse(success=False, error=MISSING_KEY_MESSAGE)

        provider = self._get_provider()
        if provider is None:
            return APIResponse(success=False, error=f"Provider 构建失败（请检查 API_PROVIDER={s.provider}）")

        prompt = build_report_prompt(report)
        messages = [{"role": "user", "content": prompt}]
        # 未传入时用一个永远不会被置位的 Event，退避等待就等价于 sleep
        cancel = cancel_event or threading.Event()
        max_retries = max(1, int(s.max_retries))

        for attempt in range(1, max_retries + 1):
            if cancel.is_set():
                logger.info("报告生成已取消（第 %s 次尝试前）", attempt)
                return APIResponse(success=False, error=CANCELLED_MESSAGE)

            is_last = attempt == max_retries
            try:
                content = provider.generate(
                    prompt=prompt,
                    messages=messages,
                    temperature=s.temperature,
                    max_tokens=s.max_tokens,
                    timeout=s.timeout,
                )
                logger.info("报告生成成功（尝试 %s/%s，%s 字符）", attempt, max_retries, len(content))
                return APIResponse(success=True, data=content)
            except ProviderTimeout as e:
                logger.warning("报告生成超时（尝试 %s/%s）: %s", attempt, max_retries, self._mask(e))
                if is_last:
                    return APIResponse(success=False, error=TIMEOUT_MESSAGE)
            except Exception as e:  # provider 异常与意外错误同样计入重试
                msg = self._mask(e)
                logger.warning("报告生成失败（尝试 %s/%s）: %s", attempt, max_retries, msg)
                if is_last:
                    return APIResponse(success=False, error=f"API请求失败 (尝试 {attempt}/{max_retries}): {msg}")

            # 第 n 次失败后等待 retry_delay * n 秒；取消时立即结束等待
            if cancel.wait(float(s.retry_delay) * attempt):
                logger.info("报告生成已取消（退避等待中）")
                return APIResponse(success=False, error=CANCELLED_MESSAGE)

        return APIResponse(success=False, error=ALL_FAILED_MESSAGE)
