from n2k_connect.transports.base_transport import LineBuffer


def test_reassembles_split_reads():
    buffer = LineBuffer()
    assert buffer.feed(b"2024-01-01T00:00:00Z,2,127") == []
    assert buffer.feed(b"250,1,255,8,ff\n2024") == ["2024-01-01T00:00:00Z,2,127250,1,255,8,ff"]
    assert buffer.feed(b"-01-02\n") == ["2024-01-02"]


def test_drops_blank_and_whitespace_lines():
    assert LineBuffer().feed(b"a\n\n   \r\nb\n") == ["a", "b"]


def test_crlf_delimiter():
    buffer = LineBuffer("\r\n")
    assert buffer.feed(b"09F11201 00 01\r") == []
    assert buffer.feed(b"\n09F11201 02\r\n") == ["09F11201 00 01", "09F11201 02"]


def test_multibyte_characters_split_across_reads():
    buffer = LineBuffer()
    encoded = "café\n".encode("utf-8")
    assert buffer.feed(encoded[:4]) == []
    assert buffer.feed(encoded[4:]) == ["café"]


def test_flush_returns_trailing_text():
    buffer = LineBuffer()
    buffer.feed(b"one\ntwo")
    assert buffer.flush() == ["two"]
    assert buffer.flush() == []
