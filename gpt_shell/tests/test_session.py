import asyncio
import io

import pytest
from rich.console import Console

from gpt_shell.agents.session import ChatSession
from gpt_shell.domain.cancellation import CancellationToken
from gpt_shell.domain.exceptions import TransportError
from gpt_shell.domain.models import Message, ProviderConfig, StreamDone, StreamError, TextDelta
from gpt_shell.providers.base import ChatStream

CONFIG = ProviderConfig(api_key="k", api_url="https://api.example.com/v1/chat/completions")
HISTORY = [Message(role="user", content="hi")]


class SessionSettings:
    cancel_poll_interval = 0.01
    spinner_interval = 0.01


class RecordingRenderer:
    def __init__(self):
        self.calls = []

    def start(self):
        self.calls.append("start")

    def tick(self):
        self.calls.append("tick")

    def stop(self):
        self.calls.append("stop")


class FakeProvider:
    def __init__(self, events, delay=0.0, error=None):
        self.events = events
        self.delay = delay
        self.error = error
        self.sent = []
        self.closed = False

    async def send(self, messages, cancel=None):
        self.sent.append(list(messages))
        if self.error is not None:
            raise self.error

        async def gen():
            for event in self.events:
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield event

        async def close():
            self.closed = True

        return ChatStream(gen(), closers=[close])


def _session(provider, renderer):
    out = Console(file=io.StringIO(), width=200)
    session = ChatSession(
        provider_factory=lambda config: provider,
        renderer_factory=lambda: renderer,
        console=out,
        cfg=SessionSettings(),
    )
    return session, out


def test_turn_assembles_deltas_in_order():
    provider = FakeProvider([TextDelta("Hel"), TextDelta("lo"), StreamDone()])
    renderer = RecordingRenderer()
    session, out = _session(provider, renderer)

    result = asyncio.run(session.run_turn(CONFIG, HISTORY, CancellationToken()))

    assert result.text == "Hello"
    assert not result.cancelled
    assert result.error is None
    assert "Hello" in out.file.getvalue()
    assert provider.sent == [HISTORY]
    assert provider.closed
    assert renderer.calls[0] == "start"
    assert renderer.calls[-1] == "stop"


def test_custom_sink_replaces_printing():
    provider = FakeProvider([TextDelta("a"), TextDelta("b")])
    session, out = _session(provider, RecordingRenderer())
    seen = []

    result = asyncio.run(session.run_turn(CONFIG, HISTORY, CancellationToken(), on_delta=seen.append))

    assert seen == ["a", "b"]
    assert result.text == "ab"
    assert "ab" not in out.file.getvalue()


def test_pre_cancelled_token_returns_empty_text():
    provider = FakeProvider([TextDelta("X"), StreamDone()], delay=0.01)
    renderer = RecordingRenderer()
    session, out = _session(provider, renderer)
    cancel = CancellationToken()
    cancel.cancel()

    result = asyncio.run(session.run_turn(CONFIG, HISTORY, cancel))

    assert result.cancelled
    assert result.text == ""
    assert "cancelled" in out.file.getvalue()
    assert renderer.calls.count("start") == renderer.calls.count("stop")


def test_cancel_mid_stream_returns_accumulated_text():
    provider = FakeProvider([TextDelta(c) for c in "abcdefghij"], delay=0.01)
    renderer = RecordingRenderer()
    session, _ = _session(provider, renderer)
    cancel = CancellationToken()
    seen = []

    def sink(text):
        seen.append(text)
        if len(seen) == 3:
            cancel.cancel()

    result = asyncio.run(session.run_turn(CONFIG, HISTORY, cancel, on_delta=sink))

    assert result.cancelled
    assert result.text == "abc"
    assert seen == ["a", "b", "c"]
    assert renderer.calls[-1] == "stop"
    assert provider.closed


def test_stream_error_returns_partial_text():
    provider = FakeProvider([TextDelta("part"), StreamError("boom"), TextDelta("never")])
    session, out = _session(provider, RecordingRenderer())

    result = asyncio.run(session.run_turn(CONFIG, HISTORY, CancellationToken()))

    assert result.text == "part"
    assert result.error == "boom"
    assert not result.cancelled
    assert "error: boom" in out.file.getvalue()


def test_transport_error_on_send_propagates_and_stops_renderer():
    provider = FakeProvider([], error=TransportError(500, "server error"))
    renderer = RecordingRenderer()
    session, _ = _session(provider, renderer)

    with pytest.raises(TransportError):
        asyncio.run(session.run_turn(CONFIG, HISTORY, CancellationToken()))
    assert renderer.calls[0] == "start"
    assert renderer.calls[-1] == "stop"
