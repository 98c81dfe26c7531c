"""通用的“带进度动画执行”工具。

与聊天协议无关：传入一个 awaitable 和一个渲染器，渲染器在 awaitable
运行期间按固定间隔 tick。无论 awaitable 正常返回、抛出异常还是所在任务
被取消，返回之前都会停止渲染器并等待渲染任务结束。
"""

import asyncio
from typing import Awaitable, Protocol, TypeVar

T = TypeVar("T")


class ProgressRenderer(Protocol):
    def start(self) -> None:
        ...

    def tick(self) -> None:
        ...

    def stop(self) -> None:
        ...


async def _render_loop(renderer: ProgressRenderer, stop: asyncio.Event, interval: float) -> None:
    while not stop.is_set():
        renderer.tick()
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass


async def run_with_progress(awaitable: Awaitable[T], renderer: ProgressRenderer, interval: float) -> T:
    stop = asyncio.Event()
    renderer.start()
    render_task = asyncio.create_task(_render_loop(renderer, stop, interval))
    try:
        return await awaitable
    finally:
        stop.set()
        render_task.cancel()
        try:
            # 外层任务在这里被取消时 CancelledError 照常向上传播
            await asyncio.gather(render_task, return_exceptions=True)
        finally:
            renderer.stop()
