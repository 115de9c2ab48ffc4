import json

from sydney_core.providers.codec import DELIMITER, FrameCodec


def test_encode_appends_single_delimiter():
    data = FrameCodec().encode({"protocol": "json", "version": 1})
    assert data.endswith(DELIMITER)
    assert data.count(DELIMITER) == 1
    assert json.loads(data[:-1]) == {"protocol": "json", "version": 1}


def test_encode_keeps_non_ascii():
    data = FrameCodec().encode({"text": "你好"})
    assert "你好".encode("utf-8") in data


def test_split_drops_empty_segments():
    assert FrameCodec().split(b"A\x1e\x1eB\x1e") == [b"A", b"B"]


def test_decode_concatenated_frames():
    codec = FrameCodec()
    buffer = codec.encode({"type": 1}) + codec.encode({"type": 2}) + DELIMITER
    assert [m["type"] for m in codec.decode(buffer)] == [1, 2]


def test_decode_accepts_text_and_skips_malformed():
    codec = FrameCodec()
    messages = codec.decode('{"type": 6}\x1enot-json\x1e[1, 2]\x1e{"type": 3}\x1e')
    assert messages == [{"type": 6}, {"type": 3}]


def test_codec_is_reusable():
    codec = FrameCodec()
    first = codec.decode(codec.encode({"n": 1}))
    second = codec.decode(codec.encode({"n": 2}))
    assert first == [{"n": 1}]
    assert second == [{"n": 2}]
