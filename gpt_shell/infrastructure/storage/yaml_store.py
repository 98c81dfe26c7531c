import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

import yaml

from gpt_shell.config.settings import settings
from gpt_shell.domain.exceptions import BusinessError, NotFoundError, ValidationError
from gpt_shell.domain.presets import (
    DEFAULT_SYSTEM_PROMPT,
    Agent,
    AppConfig,
    Bot,
    BotsConfig,
    ModelEntry,
)

DEFAULT_MODEL_NAME = "openai"


def read_yaml(path: Path) -> Dict[str, Any]:
    """读取 YAML 文件；文件不存在时返回空字典。"""

    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise BusinessError(code="STORE_READ_ERROR", message=f"{path}: {e}")
    if not isinstance(data, dict):
        raise BusinessError(code="STORE_READ_ERROR", message=f"{path}: expected a mapping")
    return data


def _section(path: Path, data: Dict[str, Any], key: str) -> Dict[Any, Any]:
    """取出映射类型的字段，缺省为空字典；手工编辑写坏时报 STORE_READ_ERROR。"""

    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise BusinessError(code="STORE_READ_ERROR", message=f"{path}: '{key}' must be a mapping")
    return value


def _entries(path: Path, data: Dict[str, Any], key: str) -> Dict[str, Dict[str, Any]]:
    entries = _section(path, data, key)
    for name, entry in entries.items():
        if not isinstance(entry, dict):
            raise BusinessError(code="STORE_READ_ERROR", message=f"{path}: {key}.{name} must be a mapping")
    return entries


def write_yaml(path: Path, obj: Dict[str, Any]) -> None:
    """原子写入：先写临时文件再 os.replace。"""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.parent / f"{path.stem}.{uuid4().hex}.yaml.tmp"
    try:
        tmp_path.write_text(
            yaml.safe_dump(obj, allow_unicode=True, sort_keys=False),
            encoding="utf-8",
        )
        os.replace(tmp_path, path)
    except Exception as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise BusinessError(code="STORE_WRITE_ERROR", message=str(e))


def _root(root: str | Path | None) -> Path:
    return Path(root or settings.config_dir).expanduser().resolve()


class ConfigStore:
    """config.yaml：模型列表、当前模型、系统提示词与流式开关。"""

    def __init__(self, root: str | Path | None = None):
        self._path = _root(root) / "config.yaml"

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AppConfig:
        data = read_yaml(self._path)
        models = {
            name: ModelEntry(
                api_key=str(entry.get("api_key") or ""),
                api_url=entry.get("api_url") or ModelEntry.api_url,
                model=entry.get("model") or ModelEntry.model,
            )
            for name, entry in _entries(self._path, data, "models").items()
        }
        return AppConfig(
            models=models,
            current_model=data.get("current_model"),
            system_prompt=data.get("system_prompt", DEFAULT_SYSTEM_PROMPT),
            stream=bool(data.get("stream", True)),
        )

    def save(self, cfg: AppConfig) -> None:
        write_yaml(
            self._path,
            {
                "models": {name: asdict(entry) for name, entry in cfg.models.items()},
                "current_model": cfg.current_model,
                "system_prompt": cfg.system_prompt,
                "stream": cfg.stream,
            },
        )

    def ensure_default_model(self) -> bool:
        """当前没有可用模型时插入默认 openai 模型并设为当前。返回是否插入。"""

        cfg = self.load()
        if cfg.current_model and cfg.current_model in cfg.models:
            return False
        cfg.models.setdefault(DEFAULT_MODEL_NAME, ModelEntry(api_key=""))
        cfg.current_model = DEFAULT_MODEL_NAME
        self.save(cfg)
        return True

    def add_model(self, name: str, api_key: str, api_url: Optional[str] = None, model: Optional[str] = None) -> ModelEntry:
        if not name.strip():
            raise ValidationError("model name must not be empty")
        cfg = self.load()
        entry = ModelEntry(
            api_key=api_key,
            api_url=api_url or ModelEntry.api_url,
            model=model or ModelEntry.model,
        )
        cfg.models[name] = entry
        if cfg.current_model is None or cfg.current_model not in cfg.models:
            cfg.current_model = name
        self.save(cfg)
        return entry

    def remove_model(self, name: str) -> None:
        cfg = self.load()
        if name not in cfg.models:
            raise NotFoundError("model", name)
        del cfg.models[name]
        if cfg.current_model == name:
            cfg.current_model = next(iter(cfg.models), None)
        self.save(cfg)

    def set_current_model(self, name: str) -> None:
        cfg = self.load()
        if name not in cfg.models:
            raise NotFoundError("model", name)
        cfg.current_model = name
        self.save(cfg)

    def set_system_prompt(self, prompt: Optional[str]) -> None:
        cfg = self.load()
        cfg.system_prompt = prompt
        self.save(cfg)

    def set_stream(self, stream: bool) -> None:
        cfg = self.load()
        cfg.stream = stream
        self.save(cfg)

    def current_model(self) -> Optional[ModelEntry]:
        cfg = self.load()
        if cfg.current_model is None:
            return None
        return cfg.models.get(cfg.current_model)


class BotStore:
    """bots.yaml：机器人预设、单字符别名与当前机器人。"""

    def __init__(self, root: str | Path | None = None):
        self._path = _root(root) / "bots.yaml"

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> BotsConfig:
        data = read_yaml(self._path)
        bots = {
            name: Bot(name=entry.get("name") or name, system_prompt=str(entry.get("system_prompt") or ""))
            for name, entry in _entries(self._path, data, "bots").items()
        }
        return BotsConfig(
            bots=bots,
            aliases={str(k): str(v) for k, v in _section(self._path, data, "aliases").items()},
            current=data.get("current"),
        )

    def save(self, cfg: BotsConfig) -> None:
        write_yaml(
            self._path,
            {
                "bots": {name: asdict(bot) for name, bot in cfg.bots.items()},
                "aliases": dict(cfg.aliases),
                "current": cfg.current,
            },
        )

    def add(self, name: str, system_prompt: str) -> Bot:
        if not name.strip():
            raise ValidationError("bot name must not be empty")
        cfg = self.load()
        bot = Bot(name=name, system_prompt=system_prompt)
        cfg.bots[name] = bot
        self.save(cfg)
        return bot

    def remove(self, name: str) -> None:
        cfg = self.load()
        if name not in cfg.bots:
            raise NotFoundError("bot", name)
        del cfg.bots[name]
        if cfg.current == name:
            cfg.current = None
        cfg.aliases = {alias: bot for alias, bot in cfg.aliases.items() if bot != name}
        self.save(cfg)

    def get(self, name: str) -> Bot:
        bot = self.load().bots.get(name)
        if bot is None:
            raise NotFoundError("bot", name)
        return bot

    def list(self) -> List[Bot]:
        return list(self.load().bots.values())

    def set_alias(self, alias: str, bot: str) -> None:
        if len(alias) != 1:
            raise ValidationError("alias must be a single character")
        cfg = self.load()
        if bot not in cfg.bots:
            raise NotFoundError("bot", bot)
        cfg.aliases[alias] = bot
        self.save(cfg)

    def remove_alias(self, alias: str) -> None:
        cfg = self.load()
        if alias not in cfg.aliases:
            raise NotFoundError("alias", alias)
        del cfg.aliases[alias]
        self.save(cfg)

    def aliases(self) -> Dict[str, str]:
        return self.load().aliases

    def resolve_alias(self, alias: str) -> Optional[str]:
        return self.load().aliases.get(alias)

    def set_current(self, name: str) -> None:
        cfg = self.load()
        if name not in cfg.bots:
            raise NotFoundError("bot", name)
        cfg.current = name
        self.save(cfg)

    def clear_current(self) -> None:
        cfg = self.load()
        cfg.current = None
        self.save(cfg)

    def get_current(self) -> Optional[Bot]:
        cfg = self.load()
        if cfg.current is None:
            return None
        return cfg.bots.get(cfg.current)


class AgentStore:
    """agents/<name>.yaml：每个 agent 一个文件，方便直接编辑。"""

    def __init__(self, root: str | Path | None = None):
        self._dir = _root(root) / "agents"

    def path_for(self, name: str) -> Path:
        return self._dir / f"{name}.yaml"

    def load_all(self) -> List[Agent]:
        if not self._dir.exists():
            return []
        return [self._load(path) for path in sorted(self._dir.glob("*.yaml"))]

    def get(self, name: str) -> Agent:
        path = self.path_for(name)
        if not path.exists():
            raise NotFoundError("agent", name)
        return self._load(path)

    def save(self, agent: Agent) -> Path:
        if not agent.name.strip():
            raise ValidationError("agent name must not be empty")
        path = self.path_for(agent.name)
        obj = {"name": agent.name}
        if agent.description:
            obj["description"] = agent.description
        obj["system_prompt"] = agent.system_prompt
        obj["env"] = dict(agent.env)
        obj["templates"] = dict(agent.templates)
        write_yaml(path, obj)
        return path

    def remove(self, name: str) -> None:
        path = self.path_for(name)
        if not path.exists():
            raise NotFoundError("agent", name)
        try:
            path.unlink()
        except OSError as e:
            raise BusinessError(code="STORE_DELETE_ERROR", message=str(e))

    def _load(self, path: Path) -> Agent:
        data = read_yaml(path)
        return Agent(
            name=data.get("name") or path.stem,
            system_prompt=str(data.get("system_prompt") or ""),
            description=data.get("description"),
            env={str(k): str(v) for k, v in _section(path, data, "env").items()},
            templates={str(k): str(v) for k, v in _section(path, data, "templates").items()},
        )
