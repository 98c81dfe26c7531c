"""可取消的单轮聊天会话。

一次 run_turn 完成“发送请求 → 消费流 → 拼接回复”的完整周期：

1. 等待响应头期间显示思考动画（run_with_progress），拿到流后立即停止，
   避免动画与增量文本交错输出。
2. 消费流的任务与取消标志轮询任务并发执行，先结束者胜出：轮询先结束时
   取消消费任务，返回已经拼接的部分文本。
3. 流中出现错误事件时记录日志、停止消费并返回部分文本；建立请求阶段的
   TransportError / DecodeError / NetworkError 直接抛给调用方。
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from rich.console import Console

from gpt_shell.agents.progress import ProgressRenderer, run_with_progress
from gpt_shell.config.settings import settings
from gpt_shell.domain.cancellation import CancellationToken
from gpt_shell.domain.exceptions import CancelledPartial
from gpt_shell.domain.models import Message, ProviderConfig, StreamError, TextDelta
from gpt_shell.infrastructure.logging import log_event
from gpt_shell.providers import LLMProvider, create_provider
from gpt_shell.ui.console import ThinkingSpinner, console as default_console, print_delta

DeltaSink = Callable[[str], None]
ProviderFactory = Callable[[ProviderConfig], LLMProvider]
RendererFactory = Callable[[], ProgressRenderer]


@dataclass
class TurnResult:
    """一轮对话的结果。

    - text: 已拼接的回复文本（取消或出错时为部分文本，可能为空）。
    - cancelled: 是否被用户中断。
    - error: 流中出现的错误信息（已记录日志，不再抛出）。
    """

    text: str
    cancelled: bool = False
    error: Optional[str] = None


class ChatSession:
    def __init__(
        self,
        provider_factory: ProviderFactory = create_provider,
        renderer_factory: Optional[RendererFactory] = None,
        console: Optional[Console] = None,
        cfg=settings,
    ):
        self._provider_factory = provider_factory
        self._console = console or default_console
        self._renderer_factory = renderer_factory or (lambda: ThinkingSpinner(self._console))
        self._settings = cfg

    async def run_turn(
        self,
        config: ProviderConfig,
        history: Sequence[Message],
        cancel: CancellationToken,
        on_delta: Optional[DeltaSink] = None,
    ) -> TurnResult:
        sink = on_delta or self._print_delta
        pieces: List[str] = []
        provider = self._provider_factory(config)

        consume = asyncio.create_task(self._consume(provider, list(history), cancel, sink, pieces))
        watch = asyncio.create_task(self._wait_cancelled(cancel))
        try:
            done, _ = await asyncio.wait({consume, watch}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (consume, watch):
                if not task.done():
                    task.cancel()
            await asyncio.gather(consume, watch, return_exceptions=True)

        if consume in done and not consume.cancelled():
            try:
                result = consume.result()
            except CancelledPartial as e:
                return self._cancelled(e.accumulated_text)
            self._console.print()
            log_event(logging.INFO, "Turn completed", chars=len(result.text), error=result.error)
            return result
        return self._cancelled("".join(pieces))

    async def _consume(
        self,
        provider: LLMProvider,
        history: List[Message],
        cancel: CancellationToken,
        sink: DeltaSink,
        pieces: List[str],
    ) -> TurnResult:
        stream = await run_with_progress(
            provider.send(history, cancel),
            self._renderer_factory(),
            self._settings.spinner_interval,
        )
        error: Optional[str] = None
        async with stream:
            async for event in stream:
                if cancel.cancelled:
                    raise CancelledPartial("".join(pieces))
                if isinstance(event, TextDelta):
                    if not event.text:
                        continue
                    pieces.append(event.text)
                    sink(event.text)
                elif isinstance(event, StreamError):
                    error = event.message
                    log_event(logging.ERROR, "Stream error", error=error)
                    self._console.print(f"\nerror: {error}", style="red", markup=False)
                    break
        if cancel.cancelled:
            raise CancelledPartial("".join(pieces))
        return TurnResult(text="".join(pieces), error=error)

    async def _wait_cancelled(self, cancel: CancellationToken) -> None:
        while cancel.running:
            await asyncio.sleep(self._settings.cancel_poll_interval)

    def _cancelled(self, text: str) -> TurnResult:
        self._console.print("\ncancelled", style="red")
        log_event(logging.INFO, "Turn cancelled", chars=len(text))
        return TurnResult(text=text, cancelled=True)

    def _print_delta(self, text: str) -> None:
        print_delta(text, self._console)
