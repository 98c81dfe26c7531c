from gpt_shell.domain.models import FunctionDef, Message, ProviderConfig
from gpt_shell.providers.registry import (
    DASHSCOPE_ADAPTER,
    OPENAI_ADAPTER,
    V36_ADAPTER,
    dashscope_body,
    default_body,
    dig,
    select_adapter,
)


def test_select_adapter_by_url():
    assert select_adapter("https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions") is DASHSCOPE_ADAPTER
    assert select_adapter("https://free.v36.cm/v1/chat/completions") is V36_ADAPTER
    assert select_adapter("https://api.deepseek.com/v1/chat/completions") is OPENAI_ADAPTER
    assert select_adapter("") is OPENAI_ADAPTER


def test_headers():
    headers = DASHSCOPE_ADAPTER.headers("sk-1")
    assert headers["Authorization"] == "Bearer sk-1"
    assert headers["Content-Type"] == "application/json"
    assert headers["X-DashScope-SSE"] == "enable"
    assert V36_ADAPTER.headers("k")["x-foo"] == "true"
    assert "X-DashScope-SSE" not in OPENAI_ADAPTER.headers("k")


def test_default_body_shape():
    config = ProviderConfig(api_key="k", model="m", stream=False)
    body = default_body(config, [Message(role="user", content="hi")])
    assert body == {"model": "m", "messages": [{"role": "user", "content": "hi"}], "stream": False}


def test_default_body_json_mode_and_functions():
    fn = FunctionDef(name="run", description="run a command", parameters={"type": "object"})
    config = ProviderConfig(api_key="k").with_json_mode(True).with_functions([fn])
    body = default_body(config, [Message(role="user", content="hi", name="me")])
    assert body["response_format"] == {"type": "json_object"}
    assert body["functions"][0]["name"] == "run"
    assert body["messages"][0]["name"] == "me"


def test_dashscope_body_adds_native_fields():
    config = ProviderConfig(api_key="k", model="qwen-turbo", stream=True)
    body = dashscope_body(config, [Message(role="user", content="hi")])
    assert body["input"]["messages"] == body["messages"]
    assert body["parameters"] == {"result_format": "message", "incremental_output": True}


def test_dig():
    payload = {"choices": [{"delta": {"content": "x"}}]}
    assert dig(payload, ("choices", 0, "delta", "content")) == "x"
    assert dig(payload, ("choices", 1, "delta")) is None
    assert dig(payload, ("choices", "0")) is None
    assert dig({"choices": None}, ("choices", 0)) is None


def test_extract_error_paths():
    assert OPENAI_ADAPTER.extract_error({"error_msg": "a"}) == "a"
    assert OPENAI_ADAPTER.extract_error({"error": {"message": "b"}}) == "b"
    assert OPENAI_ADAPTER.extract_error({"error": "c"}) == "c"
    assert OPENAI_ADAPTER.extract_error({"error": None}) is None


def test_message_content_paths():
    assert OPENAI_ADAPTER.extract_message_content({"choices": [{"message": {"content": "m"}}]}) == "m"
    assert OPENAI_ADAPTER.extract_message_content({"choices": [{"delta": {"content": "d"}}]}) is None
    assert DASHSCOPE_ADAPTER.extract_message_content({"output": {"text": "t"}}) == "t"
