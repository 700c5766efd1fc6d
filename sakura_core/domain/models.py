"""统一的对话与流式事件数据模型。

本模块定义了 talk 流程中在各层之间共享的标准数据结构：

- SignedRequest: 一次待校验签名的入站请求（原始字节，绝不重新序列化）。
- ChatMessage / ContentPart: 发给上游聊天服务的消息（system/user）。
- ChatRequest: 发给 Provider 的完整流式请求。
- ChatDeltaEvent: 从事件流中解析出的单条增量事件。

Provider 适配器（如 OpenAIClient）只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union


# 上游消息角色：talk 只会发送 system 与 user 两种
Role = Literal["system", "user"]

PartType = Literal["text", "image_url"]


@dataclass(frozen=True)
class SignedRequest:
    """一次带签名的入站请求。

    - raw_body: 收到的原始字节，签名是逐字节计算的，不能先解析再序列化。
    - signature_hex: 请求头中的十六进制签名，缺失时为 None。
    - timestamp: 请求头中的十进制时间戳字符串，缺失时为 None。
    - public_key_hex: 平台公钥（十六进制）。
    """

    raw_body: bytes
    signature_hex: Optional[str]
    timestamp: Optional[str]
    public_key_hex: str


@dataclass
class ContentPart:
    """user 消息中的一段内容：文本或图片引用。"""

    type: PartType
    text: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def of_text(cls, text: str) -> "ContentPart":
        return cls(type="text", text=text)

    @classmethod
    def of_image(cls, url: str) -> "ContentPart":
        return cls(type="image_url", url=url)

    def to_payload(self) -> Dict[str, Any]:
        if self.type == "image_url":
            return {"type": "image_url", "image_url": {"url": self.url}}
        return {"type": "text", "text": self.text or ""}


@dataclass
class ChatMessage:
    """一条发往上游的消息。

    system 消息使用纯文本 content；user 消息可以携带多个 ContentPart。
    """

    role: Role
    content: Union[str, List[ContentPart]]

    def to_payload(self) -> Dict[str, Any]:
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}
        return {"role": self.role, "content": [part.to_payload() for part in self.content]}


@dataclass
class ChatRequest:
    """一次流式聊天请求。

    model 是逻辑模型名（如 "talk"），由 registry 映射为真实模型名。
    """

    model: str
    messages: List[ChatMessage]
    stream: bool = True


@dataclass
class ChatDelta:
    """单个 choice 的增量内容；content 是需要追加的片段，而不是全量替换。"""

    role: Optional[str] = None
    content: Optional[str] = None


@dataclass
class ChatStreamChoice:
    """流式返回中的单个候选增量。"""

    index: int
    delta: ChatDelta
    finish_reason: Optional[str] = None


@dataclass
class ChatDeltaEvent:
    """事件流中的一条逻辑事件（对应一行 data: 负载）。"""

    id: str
    model: str
    choices: List[ChatStreamChoice]
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def text(self) -> str:
        """主 choice 的增量文本；没有 choice 或没有 content 时为空串。"""

        if not self.choices:
            return ""
        return self.choices[0].delta.content or ""

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ChatDeltaEvent":
        choices: List[ChatStreamChoice] = []
        for i, ch in enumerate(data.get("choices") or []):
            delta_raw = ch.get("delta") or {}
            choices.append(
                ChatStreamChoice(
                    index=ch.get("index", i),
                    delta=ChatDelta(role=delta_raw.get("role"), content=delta_raw.get("content")),
                    finish_reason=ch.get("finish_reason"),
                )
            )
        return cls(
            id=data.get("id") or "",
            model=data.get("model") or "",
            choices=choices,
            raw=data,
        )
