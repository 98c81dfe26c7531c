import asyncio

from gpt_shell.domain.cancellation import CancellationToken
from gpt_shell.domain.models import StreamDone, StreamError, TextDelta
from gpt_shell.providers.registry import DASHSCOPE_ADAPTER
from gpt_shell.providers.sse import StreamDecoder


async def _chunks(*parts):
    for part in parts:
        yield part


def _decode(*parts, decoder=None, cancel=None):
    decoder = decoder or StreamDecoder()

    async def run():
        return [e async for e in decoder.decode(_chunks(*parts), cancel)]

    return asyncio.run(run())


def test_single_delta_then_done():
    events = _decode(
        b'data: {"choices":[{"delta":{"content":"X"}}]}\n\n',
        b"data: [DONE]\n\n",
    )
    assert events == [TextDelta("X"), StreamDone()]


def test_malformed_json_is_skipped():
    events = _decode(
        b'data: {"choices":\n',
        b'data: {"choices":[{"delta":{"content":"ok"}}]}\n',
    )
    assert events == [TextDelta("ok"), StreamDone()]


def test_non_data_lines_are_ignored():
    events = _decode(
        b": keep-alive\n",
        b"event: message\r\n",
        b'data: {"choices":[{"delta":{"content":"a"}}]}\r\n',
    )
    assert events == [TextDelta("a"), StreamDone()]


def test_line_split_across_chunks():
    events = _decode(
        b'data: {"choices":[{"delta":{"con',
        b'tent":"hi"}}]}\n\n',
    )
    assert events == [TextDelta("hi"), StreamDone()]


def test_multibyte_character_split_across_chunks():
    raw = 'data: {"choices":[{"delta":{"content":"你好"}}]}\n'.encode("utf-8")
    cut = raw.index("你".encode("utf-8")) + 1
    events = _decode(raw[:cut], raw[cut:])
    assert events == [TextDelta("你好"), StreamDone()]


def test_trailing_line_without_newline_is_flushed():
    events = _decode(b'data: {"choices":[{"delta":{"content":"tail"}}]}')
    assert events == [TextDelta("tail"), StreamDone()]


def test_full_message_fallback_while_streaming():
    events = _decode(b'data: {"choices":[{"message":{"content":"full"}}]}\n')
    assert events == [TextDelta("full"), StreamDone()]


def test_empty_content_is_not_emitted():
    events = _decode(b'data: {"choices":[{"delta":{"role":"assistant","content":""}}]}\n')
    assert events == [StreamDone()]


def test_vendor_error_stops_rest_of_chunk():
    events = _decode(
        b'data: {"error_msg":"quota exceeded"}\n'
        b'data: {"choices":[{"delta":{"content":"dropped"}}]}\n'
    )
    assert events == [StreamError("quota exceeded"), StreamDone()]


def test_nested_error_message():
    events = _decode(b'data: {"error":{"message":"bad key","type":"auth"}}\n')
    assert events[0] == StreamError("bad key")


def test_data_after_done_is_still_drained():
    events = _decode(
        b"data: [DONE]\n",
        b'data: {"choices":[{"delta":{"content":"late"}}]}\n',
    )
    assert events == [TextDelta("late"), StreamDone()]


def test_cancelled_before_first_chunk_yields_nothing():
    cancel = CancellationToken()
    cancel.cancel()
    events = _decode(b'data: {"choices":[{"delta":{"content":"X"}}]}\n', cancel=cancel)
    assert events == []


def test_cancel_mid_stream_stops_without_done():
    cancel = CancellationToken()

    async def chunks():
        yield b'data: {"choices":[{"delta":{"content":"A"}}]}\n'
        cancel.cancel()
        yield b'data: {"choices":[{"delta":{"content":"B"}}]}\n'

    async def run():
        return [e async for e in StreamDecoder().decode(chunks(), cancel)]

    assert asyncio.run(run()) == [TextDelta("A")]


def test_dashscope_paths():
    decoder = StreamDecoder(DASHSCOPE_ADAPTER)
    events = _decode(
        b'data: {"output":{"choices":[{"message":{"content":"tong"}}]}}\n',
        b'data: {"output":{"text":"yi"}}\n',
        decoder=decoder,
    )
    assert events == [TextDelta("tong"), TextDelta("yi"), StreamDone()]


def test_default_adapter_ignores_dashscope_paths():
    events = _decode(b'data: {"output":{"text":"yi"}}\n')
    assert events == [StreamDone()]
