"""厂商适配表。

不同厂商的请求头、请求体和响应 JSON 路径略有差异。这里把差异集中成
VendorAdapter 记录，按 api_url 中的特征子串选择，未命中时使用 OpenAI 兼容
的默认适配。新增厂商只需要在 ADAPTERS 中追加一条记录。"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from gpt_shell.domain.models import Message, ProviderConfig

PathKey = Union[str, int]
JsonPath = Tuple[PathKey, ...]

BodyBuilder = Callable[[ProviderConfig, Sequence[Message]], Dict[str, Any]]


def dig(payload: Any, path: JsonPath) -> Any:
    """按路径取值，任意一级缺失或类型不符时返回 None。"""

    current = payload
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def default_body(config: ProviderConfig, messages: Sequence[Message]) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "model": config.model,
        "messages": [m.to_payload() for m in messages],
        "stream": config.stream,
    }
    if config.json_mode:
        body["response_format"] = {"type": "json_object"}
    if config.functions:
        body["functions"] = [f.to_payload() for f in config.functions]
    return body


def dashscope_body(config: ProviderConfig, messages: Sequence[Message]) -> Dict[str, Any]:
    # 原生接口从 input.messages 读取；incremental_output 让每个事件只携带增量
    body = default_body(config, messages)
    body["input"] = {"messages": body["messages"]}
    body["parameters"] = {"result_format": "message", "incremental_output": config.stream}
    return body


def bearer_auth(api_key: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"}


OPENAI_STREAM_PATHS: Tuple[JsonPath, ...] = (
    ("choices", 0, "delta", "content"),
    ("choices", 0, "message", "content"),
)
OPENAI_MESSAGE_PATHS: Tuple[JsonPath, ...] = (("choices", 0, "message", "content"),)
DASHSCOPE_PATHS: Tuple[JsonPath, ...] = (
    ("output", "choices", 0, "message", "content"),
    ("output", "text"),
)
ERROR_PATHS: Tuple[JsonPath, ...] = (
    ("error_msg",),
    ("error", "message"),
    ("error",),
)


@dataclass(frozen=True)
class VendorAdapter:
    """单个厂商的请求/响应差异。

    - url_marker: api_url 包含该子串时命中；None 表示默认适配。
    - stream_paths: 流式事件中按顺序尝试的文本路径。
    - message_paths: 非流式响应中按顺序尝试的文本路径。
    - error_paths: 厂商错误信息所在路径。
    """

    name: str
    url_marker: Optional[str]
    extra_headers: Mapping[str, str] = field(default_factory=dict)
    auth_headers: Callable[[str], Dict[str, str]] = bearer_auth
    build_body: BodyBuilder = default_body
    stream_paths: Tuple[JsonPath, ...] = OPENAI_STREAM_PATHS
    message_paths: Tuple[JsonPath, ...] = OPENAI_MESSAGE_PATHS
    error_paths: Tuple[JsonPath, ...] = ERROR_PATHS

    def matches(self, api_url: str) -> bool:
        return self.url_marker is not None and self.url_marker in api_url

    def headers(self, api_key: str) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(self.auth_headers(api_key))
        headers.update(self.extra_headers)
        return headers

    def extract_stream_content(self, payload: Any) -> Optional[str]:
        return _first_text(payload, self.stream_paths)

    def extract_message_content(self, payload: Any) -> Optional[str]:
        return _first_text(payload, self.message_paths)

    def extract_error(self, payload: Any) -> Optional[str]:
        for path in self.error_paths:
            value = dig(payload, path)
            if isinstance(value, str) and value:
                return value
        return None


def _first_text(payload: Any, paths: Tuple[JsonPath, ...]) -> Optional[str]:
    for path in paths:
        value = dig(payload, path)
        if isinstance(value, str):
            return value
    return None


DASHSCOPE_ADAPTER = VendorAdapter(
    name="dashscope",
    url_marker="dashscope.aliyuncs.com",
    extra_headers={"X-DashScope-SSE": "enable"},
    build_body=dashscope_body,
    stream_paths=DASHSCOPE_PATHS + OPENAI_STREAM_PATHS,
    message_paths=DASHSCOPE_PATHS + OPENAI_MESSAGE_PATHS,
)

V36_ADAPTER = VendorAdapter(
    name="v36",
    url_marker="free.v36.cm",
    extra_headers={"x-foo": "true"},
)

OPENAI_ADAPTER = VendorAdapter(name="openai", url_marker=None)

ADAPTERS: Tuple[VendorAdapter, ...] = (DASHSCOPE_ADAPTER, V36_ADAPTER)


def select_adapter(api_url: str, adapters: Sequence[VendorAdapter] = ADAPTERS) -> VendorAdapter:
    """根据 api_url 选择适配器，纯函数。"""

    for adapter in adapters:
        if adapter.matches(api_url):
            return adapter
    return OPENAI_ADAPTER
