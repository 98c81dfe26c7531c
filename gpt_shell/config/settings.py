"""配置管理模块。

进程级配置（超时、日志目录、轮询间隔等）通过 pydantic-settings 从
环境变量（前缀 ``GPT_SHELL_``）和 ``.env`` 文件加载。

用户持久化的模型/机器人/Agent 配置不在这里，见
``gpt_shell.infrastructure.storage``。
"""

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 目录 ----
    config_dir: Path = Field(
        default_factory=lambda: Path.home() / ".gpt-shell",
        description="配置根目录，保存 config.yaml / bots.yaml / agents/",
    )
    log_dir: Optional[Path] = Field(
        default=None,
        description="日志目录，为空时使用 <config_dir>/logs",
    )
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否截断日志内容")

    # ---- HTTP ----
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")
    verify_ssl: bool = Field(default=True, description="是否校验服务端证书")

    # ---- 会话 ----
    cancel_poll_interval: float = Field(
        default=0.05,
        gt=0,
        description="取消标志轮询间隔（秒）",
    )
    spinner_interval: float = Field(default=0.08, gt=0, description="加载动画帧间隔（秒）")

    # ---- Agent ----
    max_agent_turns: int = Field(
        default=10,
        ge=1,
        le=100,
        description="单次 agent 运行内请求模型的最大轮数",
    )
    max_reply_chars: int = Field(
        default=65536,
        ge=256,
        description="agent 回复 JSON 累积缓冲的最大字符数",
    )
    prompt_locale: Literal["zh", "en"] = Field(default="zh", description="agent 提示词语言")

    model_config = SettingsConfigDict(
        env_prefix="GPT_SHELL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("config_dir", "log_dir")
    @classmethod
    def expand_user(cls, v: Optional[Path]) -> Optional[Path]:
        if v is None:
            return v
        return Path(v).expanduser()

    @property
    def resolved_log_dir(self) -> Path:
        return self.log_dir or (self.config_dir / "logs")


settings = Settings()
