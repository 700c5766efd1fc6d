"""OpenAI 兼容的流式聊天 Provider。

本模块负责：

1. 接收统一的 ChatRequest，转换为 chat/completions 请求体（显式 stream=true）。
2. 发起一次 HTTP 调用，在产出任何事件之前检查响应状态。
3. 把响应字节流交给 sse_parser，逐条产出 ChatDeltaEvent。

只做单次尝试，不做重试；重试策略由调用方决定。
"""

from typing import Any, AsyncIterator, Dict

import httpx

from sakura_core.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from sakura_core.domain.models import ChatDeltaEvent, ChatRequest
from sakura_core.providers.registry import OPENAI_CONFIG, resolve_model
from sakura_core.providers.sse_parser import iter_chat_events


class OpenAIClient:
    """OpenAI 流式客户端实现。"""

    name = "openai"

    def __init__(self, settings):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = settings

    async def chat_stream(self, req: ChatRequest) -> AsyncIterator[ChatDeltaEvent]:
        """执行一次流式对话调用，逐步 yield ChatDeltaEvent。"""

        api_key = getattr(self._settings, "openai_api_key", None)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="OPENAI_API_KEY not set")
        payload = self._build_payload(req)
        base = getattr(self._settings, "openai_base_url", None) or OPENAI_CONFIG.base_url
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                async with client.stream(
                    "POST",
                    f"{base.rstrip('/')}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                        "Accept": "text/event-stream",
                    },
                ) as resp:
                    if resp.status_code >= 400:
                        body = (await resp.aread()).decode("utf-8", errors="replace")
                        if resp.status_code == 429:
                            raise RateLimitError(code="RATE_LIMIT", message="OpenAI rate limit", http_status=429)
                        raise ApiError(code="API_ERROR", message=body or resp.reason_phrase, http_status=resp.status_code)
                    async for event in iter_chat_events(resp.aiter_bytes()):
                        yield event
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__, http_status=503)
        except httpx.StreamError as e:
            # 响应体已被消费或已关闭，无法再读取
            raise ApiError(code="EMPTY_BODY", message=f"upstream body unreadable: {type(e).__name__}", http_status=502)

    def _build_payload(self, req: ChatRequest) -> Dict[str, Any]:
        """将 ChatRequest 转成 chat/completions 所需的请求 JSON。"""

        return {
            "model": resolve_model(self.name, req.model),
            "messages": [m.to_payload() for m in req.messages],
            "stream": True,
        }
