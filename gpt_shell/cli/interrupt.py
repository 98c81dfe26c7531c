"""Ctrl-C 与取消标志的绑定。

对话进行期间 SIGINT 只把 CancellationToken 置为取消，不抛出
KeyboardInterrupt；对话结束后恢复原来的处理方式。
"""

import asyncio
import signal
from contextlib import contextmanager
from typing import Iterator, Optional

from gpt_shell.domain.cancellation import CancellationToken


@contextmanager
def cancel_on_interrupt(
    cancel: CancellationToken,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> Iterator[None]:
    loop = loop or asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.cancel)
    except (NotImplementedError, RuntimeError):
        # Windows 的事件循环不支持 add_signal_handler
        previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.cancel())
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, previous)
        return

    try:
        yield
    finally:
        loop.remove_signal_handler(signal.SIGINT)
