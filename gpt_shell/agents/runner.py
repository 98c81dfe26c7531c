"""Agent 多轮循环。

每一轮：请求模型（json_mode）→ 累积增量直到拼出一个完整 JSON 对象 →
按回复形状分派：

- command: 交给 CommandExecutor 执行。成功则把结果作为 user 消息追加并结束；
  失败则把失败原因追加后重新请求模型，让模型自行修正。
- response: 打印给用户并结束。
- 两者都没有: 追加“格式错误，请重试”并重新请求模型。

用户取消时直接结束；流结束（包括空回复和流中出错）仍未得到可解析 JSON 时
抛出 InvalidReplyFormat。循环轮数受 max_agent_turns 限制。
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Literal, Mapping, Optional

from rich.console import Console

from gpt_shell.agents.session import ChatSession, DeltaSink
from gpt_shell.config.settings import settings
from gpt_shell.domain.cancellation import CancellationToken
from gpt_shell.domain.exceptions import AgentTurnLimitExceeded, ExecutionFailure, InvalidReplyFormat
from gpt_shell.domain.models import (
    AgentReply,
    CommandReply,
    MalformedReply,
    Message,
    ProviderConfig,
    ResponseReply,
)
from gpt_shell.domain.presets import Agent
from gpt_shell.infrastructure.logging import log_event
from gpt_shell.prompts import build_agent_system_prompt, feedback
from gpt_shell.tools.executor import CommandExecutor
from gpt_shell.ui.console import console as default_console, print_delta


def parse_agent_reply(value: Any) -> AgentReply:
    """把已解析的 JSON 值映射为 CommandReply / ResponseReply / MalformedReply。"""

    if not isinstance(value, dict):
        return MalformedReply(raw=json.dumps(value, ensure_ascii=False))
    thought = value.get("thought") if isinstance(value.get("thought"), str) else ""
    command = value.get("command")
    if isinstance(command, str) and command.strip():
        return CommandReply(thought=thought, command=command)
    response = value.get("response")
    if isinstance(response, str):
        return ResponseReply(thought=thought, response=response)
    return MalformedReply(raw=json.dumps(value, ensure_ascii=False))


class JsonReplyCollector:
    """累积流式增量，直到整段文本能解析为一个 JSON 对象。

    在解析成功之前不向用户输出任何内容；首次解析成功时把完整 JSON 输出一次。
    """

    def __init__(self, on_complete: DeltaSink, max_chars: int):
        self._on_complete = on_complete
        self._max_chars = max_chars
        self._text = ""
        self.value: Optional[dict] = None

    @property
    def text(self) -> str:
        return self._text

    @property
    def complete(self) -> bool:
        return self.value is not None

    def feed(self, delta: str) -> None:
        self._text += delta
        if self.complete:
            return
        if len(self._text) > self._max_chars:
            raise InvalidReplyFormat(self._text, f"reply exceeded {self._max_chars} characters")
        try:
            value = json.loads(self._text)
        except json.JSONDecodeError:
            return
        if isinstance(value, dict):
            self.value = value
            self._on_complete(self._text)


@dataclass
class AgentRun:
    """一次 agent 运行的结果。"""

    outcome: Literal["executed", "responded", "cancelled"]
    history: List[Message] = field(default_factory=list)
    output: Optional[str] = None
    turns: int = 0


class AgentRunner:
    def __init__(
        self,
        session: ChatSession,
        executor: Optional[CommandExecutor] = None,
        console: Optional[Console] = None,
        cfg=settings,
    ):
        self._session = session
        self._console = console or default_console
        self._executor = executor or CommandExecutor(self._console)
        self._settings = cfg

    async def run_agent(
        self,
        agent: Agent,
        config: ProviderConfig,
        user_prompt: str,
        cancel: CancellationToken,
    ) -> AgentRun:
        """使用 agent 预设运行：拼装系统提示词后进入循环。"""

        self._console.print(f"\nagent: {agent.name}", style="green", markup=False)
        if agent.description:
            self._console.print(f"description: {agent.description}", markup=False)
        system_prompt = build_agent_system_prompt(agent, self._settings.prompt_locale)
        return await self.run(config, system_prompt, agent.env, user_prompt, cancel)

    async def run(
        self,
        config: ProviderConfig,
        system_prompt: str,
        env: Mapping[str, str],
        user_prompt: str,
        cancel: CancellationToken,
    ) -> AgentRun:
        locale = self._settings.prompt_locale
        config = config.with_json_mode(True)
        history = [
            Message(role="system", content=system_prompt),
            Message(role="user", content=user_prompt),
        ]
        max_turns = self._settings.max_agent_turns
        last_reply: Optional[str] = None

        for turn in range(1, max_turns + 1):
            collector = JsonReplyCollector(self._print_reply, self._settings.max_reply_chars)
            result = await self._session.run_turn(config, history, cancel, on_delta=collector.feed)
            if result.cancelled:
                return AgentRun(outcome="cancelled", history=history, turns=turn)
            if not collector.complete:
                if result.error:
                    raise InvalidReplyFormat(result.text, result.error)
                raise InvalidReplyFormat(result.text)

            last_reply = result.text
            history.append(Message(role="assistant", content=result.text))
            reply = parse_agent_reply(collector.value)
            log_event(logging.INFO, "Agent reply", turn=turn, kind=type(reply).__name__)

            if isinstance(reply, CommandReply):
                try:
                    output = await asyncio.to_thread(self._executor.execute, reply.command, env)
                except ExecutionFailure as e:
                    log_event(logging.WARNING, "Agent command failed", turn=turn, reason=e.reason)
                    history.append(Message(role="user", content=feedback("exec_failed", locale, reason=e.reason)))
                    continue
                history.append(Message(role="user", content=feedback("exec_ok", locale, output=output)))
                return AgentRun(outcome="executed", history=history, output=output, turns=turn)

            if isinstance(reply, ResponseReply):
                self._console.print(reply.response, style="green", markup=False)
                return AgentRun(outcome="responded", history=history, output=reply.response, turns=turn)

            log_event(logging.WARNING, "Malformed agent reply", turn=turn)
            history.append(Message(role="user", content=feedback("bad_format", locale)))

        log_event(logging.WARNING, "Agent turn limit reached", max_turns=max_turns)
        raise AgentTurnLimitExceeded(max_turns, last_reply)

    def _print_reply(self, text: str) -> None:
        print_delta(text, self._console)
