from typing import List, Dict, Any, Optional

from ..base import ChatProvider, ProviderError, ProviderHTTPError, ProviderResponseError, ProviderTimeout

_CHAT_PATH = "/chat/completions"


class OpenAISDKProvider(ChatProvider):
    """OpenAI 官方 SDK provider（关闭 SDK 自带重试，重试统一由 ReportClient 控制）。"""

    def __init__(self, api_key: str, base_url: Optional[str], model: str):
        super().__init__(api_key, base_url, model)
        try:
            from openai import OpenAI  # type: ignore
        except Exception as e:
            raise RuntimeError("未安装 openai，请先安装") from e
        # SDK 需要的是 /v1 前缀；配置里常写成完整的 chat-completions 地址
        sdk_base = self.base_url
        if sdk_base.endswith(_CHAT_PATH):
            sdk_base = sdk_base[: -len(_CHAT_PATH)]
        # base_url 为空时 SDK 使用默认 https://api.openai.com/v1
        self.client = OpenAI(api_key=api_key, base_url=(sdk_base or None), max_retries=0)

    def generate(self,
                 prompt: str,
                 messages: Optional[List[Dict[str, Any]]] = None,
                 temperature: float = 0.7,
                 max_tokens: Optional[int] = None,
                 timeout: float = 30) -> str:
        import openai  # type: ignore

        payload: Dict[str, Any] = {
            "model": self.model,
            "temperature": temperature,
            "messages": messages or [{"role": "user", "content": prompt}],
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        try:
            resp = self.client.chat.completions.create(timeout=timeout, **payload)
        except openai.APITimeoutError as e:
            raise ProviderTimeout(str(e)) from e
        except openai.APIStatusError as e:
            reason = getattr(e.response, "reason_phrase", "") or ""
            body = getattr(e.response, "text", "") or str(e)
            raise ProviderHTTPError(e.status_code, reason, body) from e
        except openai.OpenAIError as e:
            raise ProviderError(f"OpenAI SDK 调用失败: {e}") from e

        try:
            content = resp.choices[0].message.content
        except (AttributeError, IndexError):
            content = None
        if not content:
            raise ProviderResponseError()
        return content
