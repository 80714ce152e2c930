"""
Test parsing raw requests.
"""

from pytest import raises

from embedstatics import RequestContext, MalformedRequest, parse_request
from embedstatics._request import looks_like_upgrade


def test_parse_request():

    req = parse_request(b"GET /index.html HTTP/1.1\r\nHost: x\r\n\r\n")
    assert req.method == "GET"
    assert req.full_path == "/index.html"
    assert req.path == "/index.html"
    assert req.headers == b"Host: x"
    assert "GET /index.html" in repr(req)

    # Trailing bytes (a body) are ignored
    req = parse_request(b"HEAD / HTTP/1.1\r\n\r\nbody")
    assert req.method == "HEAD"
    assert req.path == "/"
    assert req.headers == b""

    # Method is case sensitive and taken verbatim
    req = parse_request(b"get /a HTTP/1.1\r\n\r\n")
    assert req.method == "get"

    # Buffer types
    req = parse_request(bytearray(b"GET /a HTTP/1.1\r\n\r\n"))
    assert req.path == "/a"
    req = parse_request(memoryview(b"GET /b HTTP/1.1\r\n\r\n"))
    assert req.path == "/b"


def test_parse_request_query():

    req = parse_request(b"GET /style.css?v=1&x=2 HTTP/1.1\r\n\r\n")
    assert req.full_path == "/style.css?v=1&x=2"
    assert req.path == "/style.css"

    req = parse_request(b"GET /?x HTTP/1.1\r\n\r\n")
    assert req.path == "/"

    req = parse_request(b"GET ? HTTP/1.1\r\n\r\n")
    assert req.path == ""


def test_parse_request_fail():

    # No terminator
    with raises(MalformedRequest):
        parse_request(b"GET / HTTP/1.1\r\nHost: x\r\n")
    with raises(MalformedRequest):
        parse_request(b"")

    # Single token
    with raises(MalformedRequest):
        parse_request(b"GARBAGE\r\n\r\n")

    # Method and path, but nothing after the path
    with raises(MalformedRequest):
        parse_request(b"GET /\r\n\r\n")

    # A MalformedRequest is a ValueError
    with raises(ValueError):
        parse_request(b"\r\n\r\n")


def test_request_headers():

    req = parse_request(
        b"GET / HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"IF-NONE-MATCH:  \"abc\" \r\n"
        b"no colon\r\n"
        b"X-Empty:\r\n"
        b"X-Dup: 1\r\n"
        b"X-Dup: 2\r\n"
        b"\r\n"
    )
    headers = list(req.iter_headers())
    assert headers == [
        ("host", "localhost"),
        ("if-none-match", '"abc"'),
        ("x-empty", ""),
        ("x-dup", "1"),
        ("x-dup", "2"),
    ]
    assert req.get_header("If-None-Match") == '"abc"'
    assert req.get_header("x-dup") == "1"
    assert req.get_header("x-nope") is None
    assert req.get_header("x-nope", "") == ""


def test_request_context():

    req = RequestContext("GET", "/a?b", b"Host: x")
    assert req.method == "GET"
    assert req.path == "/a"
    assert req.get_header("host") == "x"

    req = RequestContext("GET", "/")
    assert req.headers == b""
    assert list(req.iter_headers()) == []


def test_looks_like_upgrade():

    buffer = (
        b"GET /chat HTTP/1.1\r\n"
        b"Upgrade: websocket\r\n"
        b"Sec-WebSocket-Key: dGhlIHNhbXBsZSBub25jZQ==\r\n"
        b"\r\n"
    )
    assert looks_like_upgrade(buffer)
    assert looks_like_upgrade(buffer.lower())
    assert looks_like_upgrade(buffer.upper())
    assert not looks_like_upgrade(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")

    # Other marker
    assert looks_like_upgrade(b"GET / HTTP/1.1\r\nX-Mine: 1\r\n\r\n", "x-mine")
    assert not looks_like_upgrade(buffer, "x-mine")


if __name__ == "__main__":
    from common import run_tests

    run_tests(globals())
