"""gpt 命令行入口（Typer）。

``gpt [PROMPT]`` 直接对话，不带参数进入交互模式；``config`` / ``bots`` /
``agents`` 子命令管理持久化配置。机器人别名 ``-x`` 在解析前被改写为
``--bot <bot>``。
"""

import asyncio
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

import typer
from dotenv import load_dotenv
from rich.markup import escape
from rich.table import Table

from gpt_shell import __version__
from gpt_shell.cli import chat
from gpt_shell.domain.cancellation import CancellationToken
from gpt_shell.domain.exceptions import BusinessError, ValidationError
from gpt_shell.domain.models import Message
from gpt_shell.domain.presets import Agent
from gpt_shell.infrastructure.logging import log_event
from gpt_shell.infrastructure.storage import AgentStore, BotStore, ConfigStore
from gpt_shell.ui.console import console

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

app = typer.Typer(
    name="gpt",
    help="Chat with LLM APIs from the terminal, with bot presets and command agents",
    context_settings=CONTEXT_SETTINGS,
    add_completion=False,
)
config_app = typer.Typer(help="Manage models and chat settings", context_settings=CONTEXT_SETTINGS)
model_app = typer.Typer(help="Manage models", context_settings=CONTEXT_SETTINGS)
bots_app = typer.Typer(help="Manage bot presets", context_settings=CONTEXT_SETTINGS)
alias_app = typer.Typer(help="Manage single-letter bot aliases", context_settings=CONTEXT_SETTINGS)
agents_app = typer.Typer(help="Manage command agents", context_settings=CONTEXT_SETTINGS)

app.add_typer(config_app, name="config")
config_app.add_typer(model_app, name="model")
app.add_typer(bots_app, name="bots")
bots_app.add_typer(alias_app, name="alias")
app.add_typer(agents_app, name="agents")

SUBCOMMANDS = {"chat", "config", "bots", "agents"}
ROOT_OPTIONS = {"-h", "--help", "--version"}
# chat 命令自己的短参数，不能被别名覆盖
RESERVED_SHORT_FLAGS = {"-a", "-b", "-h"}


def route_argv(argv: Sequence[str], aliases: Dict[str, str]) -> List[str]:
    """把原始命令行改写为 Typer 可以解析的形式。

    - 第一个参数不是子命令时补上隐藏的 ``chat`` 命令。
    - ``chat`` 的参数中，已配置的别名 ``-x`` 改写为 ``--bot <bot>``。
    """

    args = list(argv)
    if args and (args[0] in SUBCOMMANDS - {"chat"} or args[0] in ROOT_OPTIONS):
        return args
    if args and args[0] == "chat":
        args = args[1:]

    routed = ["chat"]
    passthrough = False
    for token in args:
        if passthrough:
            routed.append(token)
            continue
        if token == "--":
            passthrough = True
            routed.append(token)
            continue
        if len(token) == 2 and token[0] == "-" and token not in RESERVED_SHORT_FLAGS and token[1] in aliases:
            routed.extend(["--bot", aliases[token[1]]])
            continue
        routed.append(token)
    return routed


@contextmanager
def business_errors() -> Iterator[None]:
    """把 BusinessError 转为红色 ``error: ...`` 输出和退出码 1。"""

    try:
        yield
    except BusinessError as e:
        log_event(logging.ERROR, "Command failed", code=e.code, error=e.message)
        console.print(f"error: {e.message}", style="red", markup=False)
        raise typer.Exit(code=1)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"gpt {__version__}")
        raise typer.Exit()


@app.callback()
def root(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
):
    """Chat with LLM APIs from the terminal."""


@app.command("chat", hidden=True)
def chat_command(
    prompt: Optional[List[str]] = typer.Argument(None, help="Prompt; omit to enter interactive mode"),
    bot: Optional[str] = typer.Option(None, "--bot", "-b", help="Bot preset to use"),
    agent: Optional[str] = typer.Option(None, "--agent", "-a", help="Run the prompt with a command agent"),
):
    """Send one prompt, or start an interactive session."""
    with business_errors():
        text = " ".join(prompt or []).strip()
        store = ConfigStore()
        if agent:
            if not text:
                raise ValidationError("--agent requires a prompt")
            _run_agent(AgentStore().get(agent), text)
            return

        config = chat.resolve_provider_config(store, console)
        if config is None:
            return
        cancel = CancellationToken()
        session = chat.build_session(console)
        if not text:
            history = chat.initial_history(BotStore(), store, bot, out=console)
            chat.interactive(session, config, history, cancel, console)
            return
        history = chat.initial_history(BotStore(), store, bot)
        history.append(Message(role="user", content=text))
        asyncio.run(chat.chat_once(session, config, history, cancel))


def _run_agent(agent: Agent, prompt: str) -> None:
    config = chat.resolve_provider_config(ConfigStore(), console)
    if config is None:
        return
    asyncio.run(chat.run_agent(agent, config, prompt, CancellationToken(), console))


def _open_in_editor(path: Path) -> None:
    console.print(f"opening {path}", markup=False)
    typer.edit(filename=str(path))


# ---- config ----


def _show_config() -> None:
    store = ConfigStore()
    cfg = store.load()
    console.print("current config:")
    entry = cfg.models.get(cfg.current_model) if cfg.current_model else None
    if entry is None:
        console.print("  no model configured")
        return
    console.print(f"  current model: [green]{escape(cfg.current_model)}[/green]")
    console.print(f"  api url: {entry.api_url}", markup=False)
    console.print(f"  model: {entry.model}", markup=False)
    console.print(f"  stream: {str(cfg.stream).lower()}")
    if cfg.system_prompt:
        console.print(f"  system prompt: {cfg.system_prompt}", markup=False)


@config_app.callback(invoke_without_command=True)
def config_main(ctx: typer.Context):
    """Show the current config when no subcommand is given."""
    if ctx.invoked_subcommand is None:
        with business_errors():
            _show_config()


@config_app.command("show")
def config_show():
    """Show the current config."""
    with business_errors():
        _show_config()


@config_app.command("edit")
def config_edit():
    """Open config.yaml in $EDITOR."""
    with business_errors():
        store = ConfigStore()
        if not store.path.exists():
            store.save(store.load())
        _open_in_editor(store.path)


@config_app.command("system")
def config_system(prompt: Optional[str] = typer.Argument(None, help="New system prompt; omit to clear")):
    """Set or clear the default system prompt."""
    with business_errors():
        ConfigStore().set_system_prompt(prompt)
        if prompt:
            console.print("system prompt updated")
        else:
            console.print("system prompt cleared")


@config_app.command("stream")
def config_stream(enabled: bool = typer.Argument(..., help="true or false")):
    """Enable or disable streaming output."""
    with business_errors():
        ConfigStore().set_stream(enabled)
        console.print(f"stream set to: {str(enabled).lower()}")


@model_app.callback(invoke_without_command=True)
def model_main(ctx: typer.Context):
    if ctx.invoked_subcommand is None:
        console.print("available model commands:")
        console.print("  gpt config model add <name> <key> \\[--url <url>] \\[--model <model>]")
        console.print("  gpt config model remove <name>")
        console.print("  gpt config model list")
        console.print("  gpt config model use <name>")


@model_app.command("add")
def model_add(
    name: str = typer.Argument(..., help="Model name"),
    key: str = typer.Argument(..., help="API key"),
    url: Optional[str] = typer.Option(None, "--url", "-u", help="Chat completions URL"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model identifier"),
):
    """Add or replace a model."""
    with business_errors():
        ConfigStore().add_model(name, key, url, model)
        console.print(f"added model: [green]{escape(name)}[/green]")


@model_app.command("remove")
def model_remove(name: str = typer.Argument(..., help="Model name")):
    """Remove a model."""
    with business_errors():
        ConfigStore().remove_model(name)
        console.print(f"removed model: [green]{escape(name)}[/green]")


@model_app.command("list")
def model_list():
    """List configured models."""
    with business_errors():
        cfg = ConfigStore().load()
        if not cfg.models:
            console.print("no models configured")
            return
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("", width=1)
        table.add_column("Name")
        table.add_column("Model")
        table.add_column("URL")
        for name, entry in cfg.models.items():
            table.add_row("*" if name == cfg.current_model else "", name, entry.model, entry.api_url)
        console.print(table)


@model_app.command("use")
def model_use(name: str = typer.Argument(..., help="Model name")):
    """Switch the current model."""
    with business_errors():
        ConfigStore().set_current_model(name)
        console.print(f"current model: [green]{escape(name)}[/green]")


# ---- bots ----


def _list_bots() -> None:
    store = BotStore()
    cfg = store.load()
    if not cfg.bots:
        console.print("no bots configured")
        return
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("", width=1)
    table.add_column("Name")
    table.add_column("Alias")
    table.add_column("System prompt")
    for name, bot in cfg.bots.items():
        aliases = ", ".join(a for a, target in cfg.aliases.items() if target == name)
        table.add_row("*" if name == cfg.current else "", name, aliases, bot.system_prompt)
    console.print(table)


@bots_app.callback(invoke_without_command=True)
def bots_main(ctx: typer.Context):
    """List bots when no subcommand is given."""
    if ctx.invoked_subcommand is None:
        with business_errors():
            _list_bots()


@bots_app.command("add")
def bots_add(
    name: str = typer.Argument(..., help="Bot name"),
    system: str = typer.Option(..., "--system", "-s", help="System prompt"),
):
    """Add or replace a bot."""
    with business_errors():
        BotStore().add(name, system)
        console.print(f"added bot: [green]{escape(name)}[/green]")


@bots_app.command("remove")
def bots_remove(name: str = typer.Argument(..., help="Bot name")):
    """Remove a bot and its aliases."""
    with business_errors():
        BotStore().remove(name)
        console.print(f"removed bot: [green]{escape(name)}[/green]")


@bots_app.command("list")
def bots_list():
    """List bots."""
    with business_errors():
        _list_bots()


@bots_app.command("edit")
def bots_edit():
    """Open bots.yaml in $EDITOR."""
    with business_errors():
        store = BotStore()
        if not store.path.exists():
            store.save(store.load())
        _open_in_editor(store.path)


@bots_app.command("use")
def bots_use(name: str = typer.Argument(..., help="Bot name")):
    """Use a bot by default."""
    with business_errors():
        BotStore().set_current(name)
        console.print(f"current bot: [green]{escape(name)}[/green]")


@bots_app.command("clear")
def bots_clear():
    """Stop using a default bot."""
    with business_errors():
        BotStore().clear_current()
        console.print("current bot cleared")


@alias_app.callback(invoke_without_command=True)
def alias_main(ctx: typer.Context):
    if ctx.invoked_subcommand is None:
        console.print("available alias commands:")
        console.print("  gpt bots alias set <bot> <alias>  # set bot alias")
        console.print("  gpt bots alias remove <alias>     # remove alias")
        console.print("  gpt bots alias list               # list all aliases")


@alias_app.command("set")
def alias_set(
    bot: str = typer.Argument(..., help="Bot name"),
    alias: str = typer.Argument(..., help="Single character, used as -<alias>"),
):
    """Bind a single-letter alias to a bot."""
    with business_errors():
        if f"-{alias}" in RESERVED_SHORT_FLAGS:
            raise ValidationError(f"alias is reserved: {alias}")
        BotStore().set_alias(alias, bot)
        console.print(f"alias [green]-{escape(alias)}[/green] -> {escape(bot)}")


@alias_app.command("remove")
def alias_remove(alias: str = typer.Argument(..., help="Alias")):
    """Remove an alias."""
    with business_errors():
        BotStore().remove_alias(alias)
        console.print(f"removed alias: [green]{escape(alias)}[/green]")


@alias_app.command("list")
def alias_list():
    """List aliases."""
    with business_errors():
        aliases = BotStore().aliases()
        if not aliases:
            console.print("no aliases configured")
            return
        for alias, bot in aliases.items():
            console.print(f"  -{alias}: {bot}", markup=False)


# ---- agents ----


@agents_app.callback(invoke_without_command=True)
def agents_main(ctx: typer.Context):
    if ctx.invoked_subcommand is None:
        console.print("available agent commands:")
        console.print("  gpt agents add <name> --system <prompt>  add an agent")
        console.print("  gpt agents remove <name>                 remove an agent")
        console.print("  gpt agents list                          list agents")
        console.print("  gpt agents edit <name>                   edit an agent")
        console.print("  gpt agents run <name> <prompt>           run an agent")


@agents_app.command("add")
def agents_add(
    name: str = typer.Argument(..., help="Agent name"),
    system: str = typer.Option(..., "--system", "-s", help="System prompt"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Short description"),
):
    """Add an agent; env and templates are edited in its file."""
    with business_errors():
        AgentStore().save(Agent(name=name, system_prompt=system, description=description))
        console.print(f"added agent: [green]{escape(name)}[/green]")
        console.print("tip: edit env variables and command templates with:")
        console.print(f"  gpt agents edit {name}", markup=False)


@agents_app.command("remove")
def agents_remove(name: str = typer.Argument(..., help="Agent name")):
    """Remove an agent."""
    with business_errors():
        AgentStore().remove(name)
        console.print(f"removed agent: [green]{escape(name)}[/green]")


@agents_app.command("list")
def agents_list():
    """List agents."""
    with business_errors():
        agents = AgentStore().load_all()
        if not agents:
            console.print("no agents configured")
            return
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Name")
        table.add_column("Description")
        table.add_column("Env")
        table.add_column("Templates")
        for item in agents:
            table.add_row(
                item.name,
                item.description or "",
                ", ".join(item.env),
                ", ".join(item.templates),
            )
        console.print(table)


@agents_app.command("edit")
def agents_edit(name: str = typer.Argument(..., help="Agent name")):
    """Open an agent file in $EDITOR."""
    with business_errors():
        store = AgentStore()
        store.get(name)
        _open_in_editor(store.path_for(name))


@agents_app.command("run")
def agents_run(
    name: str = typer.Argument(..., help="Agent name"),
    prompt: List[str] = typer.Argument(..., help="Task for the agent"),
):
    """Run an agent with a prompt."""
    with business_errors():
        _run_agent(AgentStore().get(name), " ".join(prompt))


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point for the CLI."""
    load_dotenv()
    try:
        aliases = BotStore().aliases()
    except BusinessError as e:
        console.print(f"error: {e.message}", style="red", markup=False)
        sys.exit(1)
    args = route_argv(sys.argv[1:] if argv is None else argv, aliases)
    app(args=args, prog_name="gpt")


if __name__ == "__main__":
    main()
