# -*- coding: utf-8 -*-
"""
配置：报告生成接口的地址/模型/密钥与重试参数，全部来自环境变量（可放在仓库根目录的 .env）。

密钥不写进代码；没配 {PREFIX}_KEY（默认即 API_KEY）时报告生成会直接返回失败文案，而不是发一个注定 401 的请求。
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://haxiaiplus.cn/v1/chat/completions"
DEFAULT_MODEL = "gemini-2.5-flash-lite-preview-06-17"
# 仅供本机开发；对外部署必须配置 FLASK_SECRET_KEY
DEFAULT_SECRET_KEY = "dev-weekly-report"


@dataclass(frozen=True)
class Settings:
    """
    报告生成相关参数。

    - base_url：完整的 chat-completions 地址（不是 /v1 前缀）
    - timeout：单次请求超时（秒）
    - max_retries：最多尝试次数（含第一次）
    - retry_delay：第 n 次失败后等待 retry_delay * n 秒
    """

    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    api_key: str = ""
    provider: str = "oai_http"
    timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0
    temperature: float = 0.7
    max_tokens: int = 4000
    secret_key: str = DEFAULT_SECRET_KEY

    def with_overrides(self, **kwargs: Any) -> "Settings":
        """只覆盖传入且非 None 的值。"""
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})


def repo_root() -> Path:
    # src/core/config.py -> src/core -> src -> repo_root
    return Path(__file__).resolve().parents[2]


def load_env_file(dotenv_path: Optional[Path] = None) -> bool:
    """
    读取 .env（不覆盖已有环境变量，便于在 shell 里临时 export）。

    单元测试/CI 可以 export WEEKLY_REPORT_DISABLE_DOTENV=1 关掉，避免测试与本机环境耦合。
    """
    if str(os.getenv("WEEKLY_REPORT_DISABLE_DOTENV") or "").strip().lower() in ("1", "true", "yes", "y"):
        return False
    path = dotenv_path or (repo_root() / ".env")
    if not path.exists():
        return False
    return bool(load_dotenv(path, override=False))


def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    if v is None or not str(v).strip():
        return default
    return str(v).strip()


def _env_float(name: str, default: float, min_value: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        x = float(str(raw).strip())
    except ValueError:
        logger.warning("环境变量 %s=%r 不是数字，使用默认值 %s", name, raw, default)
        return default
    if x < min_value:
        logger.warning("环境变量 %s=%s 小于 %s，使用默认值 %s", name, x, min_value, default)
        return default
    return x


def _env_int(name: str, default: int, min_value: int = 0) -> int:
    x = _env_float(name, float(default), float(min_value))
    return int(x)


def load_settings(prefix: str = "API", dotenv: bool = True) -> Settings:
    """
    Env keys (by prefix):
        {PREFIX}_BASE_URL / {PREFIX}_MODEL / {PREFIX}_KEY / {PREFIX}_PROVIDER
        {PREFIX}_TIMEOUT / {PREFIX}_MAX_RETRIES / {PREFIX}_RETRY_DELAY
        {PREFIX}_TEMPERATURE / {PREFIX}_MAX_TOKENS
        FLASK_SECRET_KEY
    """
    if dotenv:
        load_env_file()
    p = (prefix or "API").strip().upper()
    base = Settings()
    return Settings(
        base_url=_env_str(f"{p}_BASE_URL", base.base_url),
        model=_env_str(f"{p}_MODEL", base.model),
        api_key=_env_str(f"{p}_KEY", ""),
        provider=_env_str(f"{p}_PROVIDER", base.provider).lower(),
        timeout=_env_float(f"{p}_TIMEOUT", base.timeout, min_value=1.0),
        max_retries=_env_int(f"{p}_MAX_RETRIES", base.max_retries, min_value=1),
        retry_delay=_env_float(f"{p}_RETRY_DELAY", base.retry_delay),
        temperature=_env_float(f"{p}_TEMPERATURE", base.temperature),
        max_tokens=_env_int(f"{p}_MAX_TOKENS", base.max_tokens, min_value=1),
        secret_key=_env_str("FLASK_SECRET_KEY", base.secret_key),
    )
