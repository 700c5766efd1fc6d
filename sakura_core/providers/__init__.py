"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 解析上游事件流 (sse_parser)。
- 提供具体实现 (openai_client)。
"""

from typing import Optional

from sakura_core.config.settings import settings
from sakura_core.domain.exceptions import ValidationError
from sakura_core.providers.base import StreamingProvider
from sakura_core.providers.openai_client import OpenAIClient


def create_provider(name: Optional[str] = None, cfg=None) -> StreamingProvider:
    """根据名称创建 Provider 实例，默认取配置中的 provider。

    cfg 为空时使用全局 settings。
    """

    cfg = cfg or settings
    provider_name = (name or getattr(cfg, "default_provider", "openai")).lower()
    if provider_name == "openai":
        return OpenAIClient(cfg)
    raise ValidationError(code="UNKNOWN_PROVIDER", message=f"Unknown provider: {provider_name!r}")

