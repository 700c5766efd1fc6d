"""Provider 抽象接口。

上层 TalkAgent 不直接依赖具体厂商的 HTTP 调用，而是依赖此协议：

- 每个厂商实现一个 StreamingProvider（如 OpenAIClient）。
- 负责：将 ChatRequest 转成具体 API 请求，并把事件流解析为 ChatDeltaEvent。
"""

from typing import AsyncIterator, Protocol

from sakura_core.domain.models import ChatDeltaEvent, ChatRequest


class StreamingProvider(Protocol):
    """流式 LLM Provider 客户端协议。

    - name: Provider 名称，用于日志。
    - chat_stream(req): 发起一次流式调用，逐条产出增量事件。
    """

    name: str

    def chat_stream(self, req: ChatRequest) -> AsyncIterator[ChatDeltaEvent]:
        ...
