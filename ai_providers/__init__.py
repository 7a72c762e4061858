"""
AI Provider slot system: unified chat interface with pluggable providers.
Usage:
    from ai_providers import build_chat_provider, create_provider
    # 通过环境变量
    provider = build_chat_provider(prefix='API')
    # 或直接传参构建
    provider = create_provider('oai_http', api_key, base_url, model)

Env keys (by prefix):
    {PREFIX}_PROVIDER: one of [oai_http, openai, openai_sdk]
    {PREFIX}_KEY
    {PREFIX}_BASE_URL
    {PREFIX}_MODEL
"""
import logging
import os

from .base import (
    ChatProvider,
    ProviderError,
    ProviderHTTPError,
    ProviderResponseError,
    ProviderTimeout,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ChatProvider",
    "ProviderError",
    "ProviderHTTPError",
    "ProviderResponseError",
    "ProviderTimeout",
    "build_chat_provider",
    "create_provider",
]


def create_provider(provider_name: str, api_key: str, base_url: str | None, model: str, **kwargs) -> ChatProvider | None:
    name = (provider_name or 'oai_http').lower()
    try:
        if name in ("oai_http",):
            from .providers.oai_http import OAIHTTPProvider
            if not base_url:
                base_url = "https://api.openai.com/v1"
            return OAIHTTPProvider(api_key=api_key, base_url=base_url, model=model, session=kwargs.get("session"))
        if name in ("openai", "openai_sdk"):
            from .providers.openai_sdk import OpenAISDKProvider
            return OpenAISDKProvider(api_key=api_key, base_url=base_url, model=model)
    except Exception as e:
        logger.error("构建 Provider 失败: %s: %s", name, e)
        return None
    logger.error("未知 Provider: %s", name)
    return None


def build_chat_provider(prefix: str = 'API') -> ChatProvider | None:
    provider_name = os.getenv(f"{prefix}_PROVIDER", "oai_http").lower()
    api_key = os.getenv(f"{prefix}_KEY", "")
    base_url = os.getenv(f"{prefix}_BASE_URL", "")
    model = os.getenv(f"{prefix}_MODEL", "")
    return create_provider(provider_name, api_key, base_url, model)
