"""Provider 抽象接口。

会话层不直接依赖 httpx，而是依赖此协议：

- send(messages, cancel) 发出一次聊天请求，返回 ChatStream。
- ChatStream 是 StreamEvent 的异步迭代器，用完或提前放弃时调用 aclose()
  释放底层连接。非流式模式同样返回只含一个 TextDelta 的 ChatStream，
  调用方只需要一条代码路径。
"""

from typing import AsyncIterator, Awaitable, Callable, List, Optional, Protocol, Sequence

from gpt_shell.domain.cancellation import CancellationToken
from gpt_shell.domain.models import Message, ProviderConfig, StreamEvent, TextDelta

Closer = Callable[[], Awaitable[None]]


class ChatStream:
    """StreamEvent 的异步迭代器，持有需要在结束时关闭的资源。

    Usage:
        stream = await provider.send(messages, cancel)
        async with stream:
            async for event in stream:
                ...
    """

    def __init__(self, events: AsyncIterator[StreamEvent], closers: Optional[List[Closer]] = None):
        self._events = events
        self._closers = list(closers or [])
        self._closed = False

    @classmethod
    def from_text(cls, text: str) -> "ChatStream":
        """把一次完整的非流式回复包装成单元素流。"""

        async def _single() -> AsyncIterator[StreamEvent]:
            yield TextDelta(text)

        return cls(_single())

    def __aiter__(self) -> "ChatStream":
        return self

    async def __anext__(self) -> StreamEvent:
        if self._closed:
            raise StopAsyncIteration
        return await self._events.__anext__()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._events, "aclose", None)
        if aclose is not None:
            await aclose()
        for closer in reversed(self._closers):
            await closer()

    async def __aenter__(self) -> "ChatStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


class LLMProvider(Protocol):
    """LLM Provider 客户端协议。"""

    config: ProviderConfig

    async def send(
        self,
        messages: Sequence[Message],
        cancel: Optional[CancellationToken] = None,
    ) -> ChatStream:
        ...
