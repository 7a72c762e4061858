from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional


class ProviderError(Exception):
    """单次调用失败（网络错误、解析失败等），由上层决定是否重试。"""


class ProviderTimeout(ProviderError):
    """单次调用超时。"""


class ProviderResponseError(ProviderError):
    """HTTP 成功但响应里没有可用的回复内容。"""

    def __init__(self, message: str = "API返回格式错误: 未找到有效的回复内容"):
        super().__init__(message)


class ProviderHTTPError(ProviderError):
    """非 2xx 响应。"""

    def __init__(self, status: int, reason: str = "", body: str = ""):
        self.status = int(status or 0)
        self.reason = reason or ""
        self.body = body or ""
        super().__init__(f"API请求失败 ({self.status}): {self.reason}. 详情: {self.body}")


class ChatProvider(ABC):
    """统一聊天生成接口：一次调用 = 一次请求，不在这里做重试。"""

    def __init__(self, api_key: str, base_url: Optional[str], model: str):
        self.api_key = api_key
        self.base_url = (base_url or '').rstrip('/') if base_url else ''
        self.model = model

    @abstractmethod
    def generate(self,
                 prompt: str,
                 messages: Optional[List[Dict[str, Any]]] = None,
                 temperature: float = 0.7,
                 max_tokens: Optional[int] = None,
                 timeout: float = 30) -> str:
        """返回生成的文本内容字符串；失败抛 ProviderError 子类。"""
        raise NotImplementedError
