"""OpenAI 兼容的 chat/completions Provider。

- 请求: POST {api_url}，Authorization: Bearer <api_key>，JSON 请求体。
- 厂商差异（额外请求头、请求体形状、响应路径）由 registry 中的适配器决定，
  适配器在构造时按 api_url 选定一次。
- 非 2xx 直接抛出 TransportError（状态码 + 原始响应体），本层不做重试。
"""

import json
import logging
from typing import AsyncIterator, Optional, Sequence

import httpx

from gpt_shell.config.settings import settings
from gpt_shell.domain.cancellation import CancellationToken
from gpt_shell.domain.exceptions import (
    DecodeError,
    NetworkError,
    TransportError,
    ValidationError,
    VendorError,
)
from gpt_shell.domain.models import Message, ProviderConfig, StreamError, StreamEvent
from gpt_shell.infrastructure.logging import log_event
from gpt_shell.providers.base import ChatStream
from gpt_shell.providers.registry import ADAPTERS, VendorAdapter, select_adapter
from gpt_shell.providers.sse import StreamDecoder


class Provider:
    """单个模型端点的客户端实现。"""

    def __init__(
        self,
        config: ProviderConfig,
        cfg=settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        adapters: Sequence[VendorAdapter] = ADAPTERS,
    ):
        self.config = config
        self._settings = cfg
        self._transport = transport
        self._adapter = select_adapter(config.api_url, adapters)

    @property
    def adapter(self) -> VendorAdapter:
        return self._adapter

    def __repr__(self) -> str:
        return f"Provider(adapter={self._adapter.name!r}, config={self.config!r})"

    async def send(
        self,
        messages: Sequence[Message],
        cancel: Optional[CancellationToken] = None,
    ) -> ChatStream:
        if not messages:
            raise ValidationError("messages must not be empty")
        body = self._adapter.build_body(self.config, messages)
        headers = self._adapter.headers(self.config.api_key)
        log_event(
            logging.INFO,
            "Sending chat request",
            url=self.config.api_url,
            model=self.config.model,
            adapter=self._adapter.name,
            message_count=len(messages),
            stream=self.config.stream,
            json_mode=self.config.json_mode,
        )

        client = httpx.AsyncClient(
            timeout=self._settings.http_timeout,
            verify=self._settings.verify_ssl,
            trust_env=False,
            transport=self._transport,
        )
        resp: Optional[httpx.Response] = None
        keep_open = False
        try:
            try:
                request = client.build_request("POST", self.config.api_url, json=body, headers=headers)
            except httpx.InvalidURL as e:
                raise ValidationError(f"invalid api url {self.config.api_url!r}: {e}")
            try:
                resp = await client.send(request, stream=True)
            except httpx.RequestError as e:
                raise NetworkError(str(e) or e.__class__.__name__)

            if not resp.is_success:
                raw = await self._read_text(resp)
                log_event(logging.WARNING, "Provider returned error status", status=resp.status_code)
                raise TransportError(resp.status_code, raw)

            if not self.config.stream:
                raw = await self._read_text(resp)
                return ChatStream.from_text(self._parse_message(raw))

            decoder = StreamDecoder(self._adapter)
            keep_open = True
            return ChatStream(
                self._events(decoder, resp, cancel),
                closers=[resp.aclose, client.aclose],
            )
        finally:
            if not keep_open:
                if resp is not None:
                    await resp.aclose()
                await client.aclose()

    async def _events(
        self,
        decoder: StreamDecoder,
        resp: httpx.Response,
        cancel: Optional[CancellationToken],
    ) -> AsyncIterator[StreamEvent]:
        try:
            async for event in decoder.decode(resp.aiter_bytes(), cancel):
                yield event
        except httpx.HTTPError as e:
            log_event(logging.ERROR, "Stream read failed", error=str(e))
            yield StreamError(f"stream read failed: {e}")

    @staticmethod
    async def _read_text(resp: httpx.Response) -> str:
        try:
            data = await resp.aread()
        except httpx.HTTPError as e:
            raise NetworkError(str(e) or e.__class__.__name__)
        return data.decode("utf-8", errors="replace")

    def _parse_message(self, raw: str) -> str:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            raise DecodeError(raw, "response is not valid JSON")
        error = self._adapter.extract_error(payload)
        if error:
            raise VendorError(error)
        content = self._adapter.extract_message_content(payload)
        if content is None:
            raise DecodeError(raw)
        return content
