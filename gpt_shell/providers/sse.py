"""SSE 流解码。

把 HTTP 响应体的原始字节块解析为与厂商无关的 StreamEvent：

- 以 ``data: `` 开头的行才是数据行，其余行（注释、心跳）忽略。
- ``data: [DONE]`` 只结束该行的有效内容，后续字节块仍会被读完。
- 数据行 JSON 解析失败时跳过该行，不让整个流失败。
- JSON 中带厂商错误字段时产出 StreamError，并放弃该字节块剩余的行。
- 处理每个字节块之前检查取消标志，一旦取消立即结束，不再产出任何事件。
"""

import codecs
import json
from typing import AsyncIterator, Iterator, List, Optional

from gpt_shell.domain.cancellation import CancellationToken
from gpt_shell.domain.models import StreamDone, StreamError, StreamEvent, TextDelta
from gpt_shell.providers.registry import OPENAI_ADAPTER, VendorAdapter

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class StreamDecoder:
    """按厂商适配规则把 SSE 字节流转换为 StreamEvent。

    一个实例只解码一条流；跨字节块的半行会缓存到下一块再处理。
    """

    def __init__(self, adapter: VendorAdapter = OPENAI_ADAPTER):
        self._adapter = adapter
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    async def decode(
        self,
        chunks: AsyncIterator[bytes],
        cancel: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamEvent]:
        async for chunk in chunks:
            if cancel is not None and cancel.cancelled:
                return
            for event in self.feed(chunk):
                yield event
        if cancel is not None and cancel.cancelled:
            return
        for event in self.flush():
            yield event
        yield StreamDone()

    def feed(self, chunk: bytes) -> List[StreamEvent]:
        """处理一个字节块，返回该块内完整行产生的事件。"""

        text = self._pending + self._utf8.decode(chunk)
        lines = text.split("\n")
        self._pending = lines.pop()
        return list(self._decode_lines(lines))

    def flush(self) -> List[StreamEvent]:
        """响应体结束时处理缓存的最后半行。"""

        tail = self._pending + self._utf8.decode(b"", final=True)
        self._pending = ""
        if not tail:
            return []
        return list(self._decode_lines([tail]))

    def _decode_lines(self, lines: List[str]) -> Iterator[StreamEvent]:
        for raw in lines:
            line = raw.rstrip("\r")
            if not line.startswith(DATA_PREFIX):
                continue
            data = line[len(DATA_PREFIX):].strip()
            if not data or data == DONE_SENTINEL:
                continue
            try:
                payload = json.loads(data)
            except json.JSONDecodeError:
                continue
            error = self._adapter.extract_error(payload)
            if error:
                yield StreamError(error)
                return
            content = self._adapter.extract_stream_content(payload)
            if content:
                yield TextDelta(content)
