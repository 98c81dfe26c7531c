"""终端输出：rich Console、思考中动画与增量文本打印。"""

from rich.console import Console
from rich.live import Live
from rich.spinner import Spinner
from rich.text import Text

console = Console(highlight=False)


class ThinkingSpinner:
    """等待模型响应时显示的动画。

    不使用 rich 自带的刷新线程（auto_refresh=False），由调用方按固定间隔
    调用 tick()，stop() 后动画行被清除（transient）。
    """

    def __init__(self, out: Console = console, label: str = "thinking..."):
        self._live = Live(
            Spinner("dots", text=Text(f" {label}", style="cyan"), style="cyan"),
            console=out,
            transient=True,
            auto_refresh=False,
        )

    def start(self) -> None:
        self._live.start()

    def tick(self) -> None:
        self._live.refresh()

    def stop(self) -> None:
        self._live.stop()


def print_delta(text: str, out: Console = console, style: str = "green") -> None:
    out.print(text, end="", style=style, markup=False, soft_wrap=True)
