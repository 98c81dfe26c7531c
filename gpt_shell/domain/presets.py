from dataclasses import dataclass, field
from typing import Dict, Optional

from gpt_shell.domain.models import DEFAULT_API_URL, DEFAULT_MODEL

DEFAULT_SYSTEM_PROMPT = "You are an AI assistant"


@dataclass
class ModelEntry:
    api_key: str
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL

    def __repr__(self) -> str:
        return f"ModelEntry(api_url={self.api_url!r}, model={self.model!r}, api_key='[REDACTED]')"


@dataclass
class AppConfig:
    models: Dict[str, ModelEntry] = field(default_factory=dict)
    current_model: Optional[str] = None
    system_prompt: Optional[str] = DEFAULT_SYSTEM_PROMPT
    stream: bool = True


@dataclass
class Bot:
    name: str
    system_prompt: str


@dataclass
class BotsConfig:
    bots: Dict[str, Bot] = field(default_factory=dict)
    aliases: Dict[str, str] = field(default_factory=dict)
    current: Optional[str] = None


@dataclass
class Agent:
    """agent 预设：系统提示词 + 命令中可用的变量 + 命令模板参考。"""

    name: str
    system_prompt: str
    description: Optional[str] = None
    env: Dict[str, str] = field(default_factory=dict)
    templates: Dict[str, str] = field(default_factory=dict)
