"""agent 提示词加载与拼装。

按语言(locale) 从 prompts/<locale> 目录读取模板文本，再结合 agent 预设
（描述、系统提示词、变量名、命令模板）拼出完整的 system prompt。
agent 循环回填给模型的提示语也按语言放在这里。
"""

from pathlib import Path
from typing import Dict

from gpt_shell.domain.presets import Agent


PROMPTS_DIR = Path(__file__).resolve().parent

_SECTIONS: Dict[str, Dict[str, str]] = {
    "zh": {
        "env_header": "系统已配置以下环境变量，你可以在命令中使用它们：",
        "env_usage": (
            "使用变量时，请用{{变量名}}的格式，例如: {{chrome}}\n"
            "你可以选择使用或不使用这些变量，具体取决于任务需求"
        ),
        "templates_header": "可用的命令模板：",
        "templates_footer": "需要时你可以基于这些模板创建新的命令",
    },
    "en": {
        "env_header": "The following variables are configured and can be used in commands:",
        "env_usage": (
            "Reference a variable as {{name}}, for example: {{chrome}}\n"
            "Use them only when the task needs them"
        ),
        "templates_header": "Command templates you can use:",
        "templates_footer": "You may build new commands based on these templates",
    },
}

FEEDBACK: Dict[str, Dict[str, str]] = {
    "zh": {
        "exec_ok": "命令执行成功: {output}",
        "exec_failed": "命令执行失败: {reason}",
        "bad_format": "响应格式错误，请重试",
    },
    "en": {
        "exec_ok": "command succeeded: {output}",
        "exec_failed": "command failed: {reason}",
        "bad_format": "response format error, please retry with the required JSON format",
    },
}


def load_prompt(name: str, locale: str = "zh") -> str:
    """读取 prompts/<locale>/<name>.md。"""

    fname = PROMPTS_DIR / locale / f"{name}.md"
    return fname.read_text(encoding="utf-8").strip()


def build_agent_system_prompt(agent: Agent, locale: str = "zh") -> str:
    sections = _SECTIONS[locale]
    parts = []
    if agent.description:
        parts.append(agent.description)
    parts.append(agent.system_prompt)
    parts.append(load_prompt("agent_system", locale))

    if agent.env:
        lines = [sections["env_header"]]
        lines.extend(f"- {key}" for key in agent.env)
        lines.append("")
        lines.append(sections["env_usage"])
        parts.append("\n".join(lines))

    if agent.templates:
        lines = [sections["templates_header"]]
        lines.extend(f"- {name}: `{template}`" for name, template in agent.templates.items())
        lines.append(sections["templates_footer"])
        parts.append("\n".join(lines))

    parts.append(load_prompt("agent_reply_format", locale))
    return "\n\n".join(parts) + "\n"


def feedback(key: str, locale: str = "zh", **values: str) -> str:
    return FEEDBACK[locale][key].format(**values)
