"""统一的对话与流式事件数据模型。

本模块定义了在 Provider、会话和 agent 循环之间共享的标准数据结构：

- Message: 一条对话消息（system/user/assistant）。
- ProviderConfig: 一次请求所用的模型配置，构造后不可变。
- StreamEvent: 流式解码产出的事件（TextDelta / StreamError / StreamDone）。
- AgentReply: agent 单轮 JSON 回复解析后的形状（Command / Response / Malformed）。
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Literal, Optional, Tuple, Union


# LLM 消息角色类型（与 OpenAI 等厂商的 role 字段对应）
Role = Literal["system", "user", "assistant"]

DEFAULT_API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-3.5-turbo"


@dataclass(frozen=True)
class Message:
    """一条对话消息。

    - role: 消息角色。
    - content: 纯文本内容。
    - name / function_call: 可选字段，为空时不出现在请求体中。
    """

    role: Role
    content: str
    name: Optional[str] = None
    function_call: Optional[Any] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.name is not None:
            payload["name"] = self.name
        if self.function_call is not None:
            payload["function_call"] = self.function_call
        return payload


@dataclass(frozen=True)
class FunctionDef:
    """一个可供 LLM 调用的函数定义（OpenAI functions 格式）。"""

    name: str
    description: str
    parameters: Dict[str, Any]

    def to_payload(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


@dataclass(frozen=True)
class ProviderConfig:
    """单次聊天请求的模型配置。

    每个选项都通过 with_* 方法生成新的实例，原实例保持不变。
    api_key 不参与 repr，避免出现在日志或调试输出中。
    """

    api_key: str = field(repr=False)
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    json_mode: bool = False
    stream: bool = True
    functions: Optional[Tuple[FunctionDef, ...]] = None

    @classmethod
    def from_model(cls, entry: Any, stream: bool = True) -> "ProviderConfig":
        """从持久化的模型条目（含 api_key/api_url/model）构造。"""

        return cls(api_key=entry.api_key, api_url=entry.api_url, model=entry.model, stream=stream)

    def with_url(self, url: str) -> "ProviderConfig":
        return replace(self, api_url=url)

    def with_model(self, model: str) -> "ProviderConfig":
        return replace(self, model=model)

    def with_json_mode(self, enabled: bool) -> "ProviderConfig":
        return replace(self, json_mode=enabled)

    def with_stream(self, enabled: bool) -> "ProviderConfig":
        return replace(self, stream=enabled)

    def with_functions(self, functions: Optional[List[FunctionDef]]) -> "ProviderConfig":
        return replace(self, functions=tuple(functions) if functions else None)

    def __repr__(self) -> str:
        return (
            f"ProviderConfig(api_url={self.api_url!r}, model={self.model!r}, "
            f"json_mode={self.json_mode!r}, stream={self.stream!r}, "
            f"functions={self.functions!r}, api_key='[REDACTED]')"
        )


# ---- 流式事件 ----


@dataclass(frozen=True)
class TextDelta:
    """一段增量文本。"""

    text: str


@dataclass(frozen=True)
class StreamError:
    """流中出现的错误（厂商 error 字段或读取失败）。"""

    message: str


@dataclass(frozen=True)
class StreamDone:
    """响应体读取完毕。"""


StreamEvent = Union[TextDelta, StreamError, StreamDone]


# ---- agent 回复 ----


@dataclass(frozen=True)
class CommandReply:
    thought: str
    command: str


@dataclass(frozen=True)
class ResponseReply:
    thought: str
    response: str


@dataclass(frozen=True)
class MalformedReply:
    raw: str


AgentReply = Union[CommandReply, ResponseReply, MalformedReply]
