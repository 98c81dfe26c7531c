"""CLI 的对话流程：单次对话、交互模式与 agent 运行。"""

import asyncio
import logging
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from gpt_shell.agents.runner import AgentRun, AgentRunner
from gpt_shell.agents.session import ChatSession
from gpt_shell.cli.interrupt import cancel_on_interrupt
from gpt_shell.domain.cancellation import CancellationToken
from gpt_shell.domain.models import Message, ProviderConfig
from gpt_shell.domain.presets import Agent
from gpt_shell.infrastructure.logging import log_event
from gpt_shell.infrastructure.storage import BotStore, ConfigStore
from gpt_shell.providers import create_provider
from gpt_shell.ui.console import console as default_console

NO_MODEL_TIPS = (
    "tips: no model configured, please add a model first.",
    "you can use the following command to add a model:",
    "  gpt config model add <name> <key> [--url <url>] [--model <model>]",
    "for example, add deepseek:",
    "  gpt config model add deepseek your-api-key "
    "--url https://api.deepseek.com/v1/chat/completions --model deepseek-chat",
)


def build_session(out: Console = default_console) -> ChatSession:
    return ChatSession(provider_factory=lambda config: create_provider(config), console=out)


def resolve_provider_config(store: ConfigStore, out: Console = default_console) -> Optional[ProviderConfig]:
    """读取当前模型；首次使用时写入默认模型并提示用户添加自己的模型。"""

    if store.ensure_default_model():
        for line in NO_MODEL_TIPS:
            out.print(line, markup=False)
        return None
    cfg = store.load()
    entry = store.current_model()
    if entry is None:
        for line in NO_MODEL_TIPS:
            out.print(line, markup=False)
        return None
    return ProviderConfig.from_model(entry, stream=cfg.stream)


def initial_history(
    bots: BotStore,
    store: ConfigStore,
    bot_name: Optional[str] = None,
    out: Optional[Console] = None,
) -> List[Message]:
    """选择 system prompt：指定的机器人 > 当前机器人 > 配置中的系统提示词。

    传入 out 时打印正在使用的机器人。
    """

    if bot_name:
        bot = bots.get(bot_name)
        if out is not None:
            out.print(f"using bot: [green]{escape(bot.name)}[/green]")
        return [Message(role="system", content=bot.system_prompt)]
    bot = bots.get_current()
    if bot is not None:
        if out is not None:
            out.print(f"using current bot: [green]{escape(bot.name)}[/green]")
        return [Message(role="system", content=bot.system_prompt)]
    system_prompt = store.load().system_prompt
    if system_prompt:
        return [Message(role="system", content=system_prompt)]
    return []


async def chat_once(
    session: ChatSession,
    config: ProviderConfig,
    messages: List[Message],
    cancel: CancellationToken,
) -> str:
    with cancel_on_interrupt(cancel):
        result = await session.run_turn(config, messages, cancel)
    return result.text


def interactive(
    session: ChatSession,
    config: ProviderConfig,
    history: List[Message],
    cancel: CancellationToken,
    out: Console = default_console,
) -> None:
    """交互模式：输入 exit 或 EOF 退出，等待输入时按 Ctrl-C 也会退出。"""

    out.print("enter interactive mode (input 'exit' or press Ctrl+C to exit)")
    out.print("---------------------------------------------")
    while True:
        cancel.reset()
        try:
            line = out.input("> ")
        except (EOFError, KeyboardInterrupt):
            out.print()
            break
        line = line.strip()
        if not line:
            continue
        if line == "exit":
            break

        history.append(Message(role="user", content=line))
        reply = asyncio.run(chat_once(session, config, history, cancel))
        if reply:
            history.append(Message(role="assistant", content=reply))
    log_event(logging.INFO, "Interactive session closed", messages=len(history))
    out.print("bye!")


async def run_agent(
    agent: Agent,
    config: ProviderConfig,
    prompt: str,
    cancel: CancellationToken,
    out: Console = default_console,
) -> AgentRun:
    runner = AgentRunner(build_session(out), console=out)
    with cancel_on_interrupt(cancel):
        return await runner.run_agent(agent, config, prompt, cancel)
