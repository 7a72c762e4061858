from typing import List, Dict, Any, Optional

import requests

from ..base import ChatProvider, ProviderError, ProviderHTTPError, ProviderResponseError, ProviderTimeout

_CHAT_PATH = "/chat/completions"


class OAIHTTPProvider(ChatProvider):
    """OpenAI 兼容 HTTP provider（POST /chat/completions，requests 实现）。"""

    def __init__(self, api_key: str, base_url: Optional[str], model: str, session: Optional[requests.Session] = None):
        super().__init__(api_key, base_url, model)
        # 测试里可以注入假的 session
        self.session = session or requests.Session()

    @property
    def api_url(self) -> str:
        # 兼容两种写法：完整地址 .../v1/chat/completions，或只给前缀 .../v1
        if self.base_url.endswith(_CHAT_PATH):
            return self.base_url
        return f"{self.base_url}{_CHAT_PATH}"

    def build_payload(self,
                      prompt: str,
                      messages: Optional[List[Dict[str, Any]]] = None,
                      temperature: float = 0.7,
                      max_tokens: Optional[int] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages or [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return payload

    def generate(self,
                 prompt: str,
                 messages: Optional[List[Dict[str, Any]]] = None,
                 temperature: float = 0.7,
                 max_tokens: Optional[int] = None,
                 timeout: float = 30) -> str:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        payload = self.build_payload(prompt, messages=messages, temperature=temperature, max_tokens=max_tokens)

        try:
            resp = self.session.post(self.api_url, json=payload, headers=headers, timeout=timeout)
        except requests.Timeout as e:
            raise ProviderTimeout(str(e)) from e
        except requests.RequestException as e:
            raise ProviderError(str(e)) from e

        if not resp.ok:
            try:
                body = resp.text
            except Exception:
                body = "无法获取错误详情"
            raise ProviderHTTPError(resp.status_code, resp.reason or "", body)

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(f"响应解析失败: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise ProviderResponseError()
        return str(content)
