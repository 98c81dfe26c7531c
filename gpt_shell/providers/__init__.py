"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口与 ChatStream (base)。
- 维护按 URL 选择的厂商适配表 (registry)。
- SSE 字节流解码 (sse)。
- 具体的 HTTP 客户端实现 (client)。
"""

from typing import Optional

import httpx

from gpt_shell.config.settings import settings
from gpt_shell.domain.models import ProviderConfig
from gpt_shell.providers.base import ChatStream, LLMProvider
from gpt_shell.providers.client import Provider


def create_provider(
    config: ProviderConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> LLMProvider:
    """根据 ProviderConfig 创建 Provider 实例，厂商适配由 api_url 决定。"""

    return Provider(config, settings, transport=transport)


__all__ = ["ChatStream", "LLMProvider", "Provider", "create_provider"]
