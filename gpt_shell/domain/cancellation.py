"""协作式取消标志。

中断信号处理函数与正在进行的会话共享同一个 CancellationToken：
信号处理只做 cancel()，会话在轮询和每个数据块处理前读取 running。
只有简单的读/写，没有复合操作，因此不需要加锁。
"""


class CancellationToken:
    """可重置的取消标志，running=False 表示请求取消。"""

    __slots__ = ("_running",)

    def __init__(self, running: bool = True):
        self._running = running

    @property
    def running(self) -> bool:
        return self._running

    @property
    def cancelled(self) -> bool:
        return not self._running

    def cancel(self) -> None:
        self._running = False

    def reset(self) -> None:
        """每一轮新的输入开始前重新置位。"""

        self._running = True

    def __repr__(self) -> str:
        return f"CancellationToken(running={self._running})"
