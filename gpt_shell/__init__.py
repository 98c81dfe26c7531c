"""gpt-shell 顶层包。

在终端中调用大模型 HTTP 接口：流式对话、机器人预设、
以及可以让模型生成并执行 shell 命令的 agent。
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
