"""消息平台 interaction 的线上数据结构。

只覆盖 talk 流程真正用到的部分：ping、application command 以及
deferred 响应。其余 interaction 类型能被识别，但会被上层拒绝。

参考：https://discord.com/developers/docs/interactions/receiving-and-responding
"""

from enum import IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from sakura_core.domain.exceptions import ProtocolError


class InteractionType(IntEnum):
    PING = 1
    APPLICATION_COMMAND = 2
    MESSAGE_COMPONENT = 3
    APPLICATION_COMMAND_AUTOCOMPLETE = 4
    MODAL_SUBMIT = 5


class InteractionResponseType(IntEnum):
    PONG = 1
    CHANNEL_MESSAGE_WITH_SOURCE = 4
    DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE = 5
    DEFERRED_UPDATE_MESSAGE = 6
    UPDATE_MESSAGE = 7
    APPLICATION_COMMAND_AUTOCOMPLETE_RESULT = 8
    MODAL = 9
    PREMIUM_REQUIRED = 10


class CommandOption(BaseModel):
    """slash command 的一个参数值。"""

    model_config = ConfigDict(extra="ignore")

    name: str
    type: int
    value: Any = None


class CommandData(BaseModel):
    """application command interaction 的 data 字段。"""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    type: int = 1
    options: List[CommandOption] = Field(default_factory=list)


class Interaction(BaseModel):
    """一次入站 interaction。

    - token: 用于后续编辑原始响应的 interaction token（15 分钟内有效）。
    - data: 仅 application command 携带。
    """

    model_config = ConfigDict(extra="ignore")

    type: InteractionType
    id: str
    application_id: str
    token: str
    version: int = 1
    data: Optional[CommandData] = None

    def option(self, name: str) -> Optional[Any]:
        """按名称读取命令参数值，不存在时返回 None。"""

        if self.data is None:
            return None
        for opt in self.data.options:
            if opt.name == name:
                return opt.value
        return None


class InteractionResponse(BaseModel):
    """对 interaction 的即时响应。"""

    type: InteractionResponseType
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def pong(cls) -> "InteractionResponse":
        return cls(type=InteractionResponseType.PONG)

    @classmethod
    def deferred_channel_message(cls) -> "InteractionResponse":
        """告诉平台真正的回答会通过后续编辑异步送达。"""

        return cls(type=InteractionResponseType.DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def parse_interaction(raw_body: bytes) -> Interaction:
    """把已通过签名校验的原始请求体解析为 Interaction。

    JSON 非法或 interaction 类型未知时抛出 ProtocolError。
    """

    try:
        return Interaction.model_validate_json(raw_body)
    except PydanticValidationError as e:
        raise ProtocolError(code="INVALID_INTERACTION", message=f"invalid interaction payload: {e.error_count()} error(s)")
