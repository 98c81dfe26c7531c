"""agent 命令执行器。

模型给出的命令先做 ``{{变量名}}`` 替换，再交给平台 shell 执行：
POSIX 下 ``sh -c``，Windows 下 ``powershell -Command``。
替换后仍残留 ``{{...}}`` 或命令返回非 0 时抛出 ExecutionFailure。
"""

import logging
import re
import subprocess
import sys
from typing import List, Mapping, Optional

from rich.console import Console

from gpt_shell.domain.exceptions import ExecutionFailure
from gpt_shell.infrastructure.logging import log_event
from gpt_shell.ui.console import console as default_console

VARIABLE_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")
LEFTOVER_PATTERN = re.compile(r"\{\{.*?\}\}", re.DOTALL)


def substitute_variables(command: str, env: Mapping[str, str]) -> str:
    """替换命令中的 {{key}}，未知变量原样保留。"""

    def _replace(match: "re.Match[str]") -> str:
        key = match.group(1).strip()
        if key in env:
            return env[key]
        return match.group(0)

    return VARIABLE_PATTERN.sub(_replace, command)


def shell_argv(command: str, platform: str = sys.platform) -> List[str]:
    if platform.startswith("win"):
        return ["powershell", "-Command", command]
    return ["sh", "-c", command]


class CommandExecutor:
    def __init__(self, console: Optional[Console] = None, timeout: Optional[float] = None):
        self._console = console or default_console
        self._timeout = timeout

    def execute(self, command: str, env: Mapping[str, str]) -> str:
        self._console.print(f"\ncommand: {command}", markup=False)
        resolved = substitute_variables(command, env)
        if resolved != command:
            self._console.print(f"  resolved: {resolved}", style="cyan", markup=False)

        leftover = LEFTOVER_PATTERN.findall(resolved)
        if leftover:
            log_event(logging.WARNING, "Unsubstituted variables", variables=leftover)
            raise ExecutionFailure(f"unsubstituted variables in command: {resolved}")

        try:
            proc = subprocess.run(
                shell_argv(resolved),
                capture_output=True,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            log_event(logging.ERROR, "Command could not run", command=resolved, error=str(exc))
            raise ExecutionFailure(str(exc))

        stdout = proc.stdout.decode("utf-8", errors="replace")
        stderr = proc.stderr.decode("utf-8", errors="replace")
        log_event(logging.INFO, "Command finished", command=resolved, returncode=proc.returncode)
        if proc.returncode != 0:
            self._console.print(f"result: {stderr}", style="red", markup=False)
            raise ExecutionFailure(stderr or f"exit status {proc.returncode}")
        self._console.print(f"result: {stdout}", style="green", markup=False)
        return stdout
