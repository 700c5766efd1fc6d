"""消息平台 REST 客户端。

只实现 talk 需要的两个调用：

- 编辑 interaction 的原始响应（deferred 之后的异步更新）；
- 注册全局 slash command（由 CLI 使用）。

编辑调用不做重试：失败的 PATCH 直接以异常形式交给调用方。
"""

from typing import Any, Dict, Iterable, List

import httpx

from sakura_core.commands.definitions import CommandDef
from sakura_core.domain.exceptions import ApiError, NetworkError, ValidationError
from sakura_core.agents.talk_agent import PublishCallback


# 平台对单条消息 content 的长度上限
MAX_CONTENT_LENGTH = 2000
TRUNCATION_MARKER = "…"


def clamp_content(content: str, limit: int = MAX_CONTENT_LENGTH) -> str:
    """超长时保留末尾（最新生成的部分），并在开头加省略号。"""

    if len(content) <= limit:
        return content
    return TRUNCATION_MARKER + content[-(limit - len(TRUNCATION_MARKER)):]


class DiscordClient:
    """平台 REST API 的最小封装。"""

    def __init__(self, settings):
        self._settings = settings

    @property
    def _api_base(self) -> str:
        return self._settings.discord_api_base.rstrip("/")

    async def edit_original_response(self, application_id: str, token: str, content: str) -> None:
        url = f"{self._api_base}/webhooks/{application_id}/{token}/messages/@original"
        await self._request("PATCH", url, json={"content": clamp_content(content)})

    def publisher(self, application_id: str, token: str) -> PublishCallback:
        """绑定某次 interaction，返回给 TalkAgent 使用的发布回调。"""

        async def publish(content: str) -> None:
            await self.edit_original_response(application_id, token, content)

        return publish

    async def register_commands(self, commands: Iterable[CommandDef]) -> List[Dict[str, Any]]:
        """整体覆盖应用的全局命令列表。"""

        bot_token = getattr(self._settings, "discord_bot_token", None)
        if not bot_token:
            raise ValidationError(code="MISSING_BOT_TOKEN", message="DISCORD_BOT_TOKEN not set")
        application_id = self._settings.discord_application_id
        if not application_id:
            raise ValidationError(code="MISSING_APPLICATION_ID", message="DISCORD_APPLICATION_ID not set")
        url = f"{self._api_base}/applications/{application_id}/commands"
        resp = await self._request(
            "PUT",
            url,
            json=[c.to_payload() for c in commands],
            headers={"Authorization": f"Bot {bot_token}"},
        )
        return resp.json()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__, http_status=503)
        if resp.status_code >= 400:
            raise ApiError(code="DISCORD_API_ERROR", message=resp.text, http_status=resp.status_code)
        return resp
