from handsoff.utils.sse_parser import SSELineBuffer, iter_data_payloads, parse_json_object


def test_iter_data_payloads_skips_noise_and_bad_lines() -> None:
    text = (
        "event: message_start\n"
        'data: {"a": 1}\n'
        "\n"
        ": keep-alive\n"
        "data: {oops\n"
        "data:[2]\n"
        "data: [DONE]\n"
    )
    assert list(iter_data_payloads(text)) == [{"a": 1}, [2]]


def test_parse_json_object_only_accepts_objects() -> None:
    assert parse_json_object(' {"x": 1} ') == {"x": 1}
    assert parse_json_object("[1, 2]") is None
    assert parse_json_object("{") is None


def test_line_buffer_holds_partial_line() -> None:
    buffer = SSELineBuffer()
    assert buffer.feed(b'data: {"usa') == ""
    assert buffer.feed(b'ge": 1}\n\ndata: {"b"') == 'data: {"usage": 1}\n\n'
    assert buffer.flush() == 'data: {"b"'


def test_line_buffer_handles_split_utf8() -> None:
    encoded = "data: 你好\n".encode()
    buffer = SSELineBuffer()
    # 在多字节字符中间切开
    assert buffer.feed(encoded[:8]) == ""
    assert buffer.feed(encoded[8:]) == "data: 你好\n"
    assert buffer.flush() == ""
