"""Interaction 分发逻辑。

与 HTTP 框架无关：输入已经通过签名校验并解析好的 Interaction，
输出需要立即返回给平台的 InteractionResponse。耗时的 talk 任务通过
调用方提供的 schedule（fire-and-forget）原语放到后台执行。
"""

from typing import Any, Callable, Optional

from sakura_core.agents.talk_agent import TalkAgent, run_talk_task
from sakura_core.commands.definitions import TALK_COMMAND, get_command
from sakura_core.config.settings import Settings, settings
from sakura_core.discord.client import DiscordClient
from sakura_core.domain.exceptions import ProtocolError
from sakura_core.domain.interactions import Interaction, InteractionResponse, InteractionType
from sakura_core.infrastructure.logging.logger import logger
from sakura_core.providers import create_provider


# schedule(func, *args, **kwargs)：与 fastapi.BackgroundTasks.add_task 同签名
Scheduler = Callable[..., Any]


def build_talk_agent(cfg: Optional[Settings] = None) -> TalkAgent:
    """根据配置创建 TalkAgent。"""

    cfg = cfg or settings
    return TalkAgent(
        create_provider(cfg.default_provider, cfg),
        model=cfg.default_model,
        system_prompt=cfg.system_prompt,
        heartbeat_interval=cfg.heartbeat_interval,
    )


def process_interaction(
    interaction: Interaction,
    *,
    schedule: Scheduler,
    agent: TalkAgent,
    discord: DiscordClient,
) -> InteractionResponse:
    """处理一次 interaction。

    Returns:
        PING 返回 PONG；talk 命令返回 deferred 响应，真正的回答随后
        通过编辑原始响应送达。

    Raises:
        ProtocolError: interaction 类型、命令名或必填参数不合法。
    """

    if interaction.type == InteractionType.PING:
        return InteractionResponse.pong()

    if interaction.type == InteractionType.APPLICATION_COMMAND:
        if interaction.data is None:
            raise ProtocolError(code="MISSING_COMMAND_DATA", message="command interaction without data")
        command = get_command(interaction.data.name)
        if command.name == TALK_COMMAND.name:
            return _schedule_talk(interaction, schedule=schedule, agent=agent, discord=discord)

    raise ProtocolError(code="INVALID_INTERACTION_TYPE", message="invalid interaction type")


def _schedule_talk(
    interaction: Interaction,
    *,
    schedule: Scheduler,
    agent: TalkAgent,
    discord: DiscordClient,
) -> InteractionResponse:
    prompt = interaction.option("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        raise ProtocolError(code="MISSING_OPTION", message="talk requires a prompt")
    image_url = interaction.option("image_url")
    image_urls = [image_url] if isinstance(image_url, str) and image_url else []

    publish = discord.publisher(interaction.application_id, interaction.token)
    schedule(
        run_talk_task,
        agent,
        prompt,
        publish,
        image_urls=image_urls,
        interaction_id=interaction.id,
    )
    logger.info(
        "Talk scheduled",
        extra={"extra": {"interaction_id": interaction.id, "prompt_chars": len(prompt), "images": len(image_urls)}},
    )
    return InteractionResponse.deferred_channel_message()
