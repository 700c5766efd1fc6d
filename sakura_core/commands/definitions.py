"""Slash command 定义。

这些 dataclass 描述了可供用户调用的命令，既用于：
- 向平台注册命令（CommandDef.to_payload）。
- 在收到 interaction 时按名称查找命令（get_command）。
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping

from sakura_core.domain.exceptions import ProtocolError


class OptionType(IntEnum):
    STRING = 3
    INTEGER = 4
    BOOLEAN = 5


@dataclass
class CommandOptionDef:
    """单个命令参数的定义。"""

    name: str
    description: str
    type: OptionType = OptionType.STRING
    required: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "type": int(self.type),
            "required": self.required,
        }


@dataclass
class CommandDef:
    """一个 CHAT_INPUT 类型的 slash command。"""

    name: str
    description: str
    options: List[CommandOptionDef] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "type": 1,
            "options": [o.to_payload() for o in self.options],
        }


TALK_COMMAND = CommandDef(
    name="talk",
    description="Ask the assistant and watch the answer stream in",
    options=[
        CommandOptionDef(name="prompt", description="What do you want to ask?", required=True),
        CommandOptionDef(name="image_url", description="Optional image to attach to the prompt"),
    ],
)

COMMANDS: Mapping[str, CommandDef] = {
    TALK_COMMAND.name: TALK_COMMAND,
}


def get_command(name: str) -> CommandDef:
    try:
        return COMMANDS[name]
    except KeyError:
        raise ProtocolError(code="UNKNOWN_COMMAND", message=f"unknown command: {name!r}")
