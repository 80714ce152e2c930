"""
This module implements the static HTTP responder: look up the requested
asset, negotiate conditional GET, and compose the response.
"""

from http import HTTPStatus
from collections import namedtuple

from ._logging import logger
from ._request import HEADER_TERMINATOR, MalformedRequest, parse_request
from ._request import looks_like_upgrade
from ._table import get_static_assets, registry, parse_header_lines


Response = namedtuple("Response", ["status", "headers", "body"])

PLAIN_TEXT = "text/plain; charset=utf-8"
ALLOWED_METHODS = "GET", "HEAD"


class DisconnectedError(IOError):
    """ Raised when the send primitive fails, i.e. the connection is gone.
    The response is abandoned. The host only needs to close the connection.
    """


def reason_phrase(status):
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"


def compose_headers(headers, content_length):
    """ Compose the full list of response headers from the given header
    lines of an asset. Injects ``Cache-Control: no-cache`` if the asset
    has neither an ETag nor a cache-control header.
    """
    result = [("Connection", "close")]
    names = {name.lower() for name, _ in headers}
    if not names & {"etag", "cache-control"}:
        result.append(("Cache-Control", "no-cache"))
    result.extend(headers)
    result.append(("Content-Length", str(content_length)))
    return result


def error_response(status):
    """ Get a response with a plain text body for the given error status.
    """
    body = (reason_phrase(status) + "\n").encode()
    headers = compose_headers(parse_header_lines(PLAIN_TEXT), len(body))
    return Response(status, headers, body)


def is_not_modified(record, request):
    """ Get whether the request has an ``If-None-Match`` header that
    contains the full validator of the given record.
    """
    validator = record.validator
    if not validator:
        return False
    validator = validator.upper()
    for name, value in request.iter_headers():
        if name != "if-none-match":
            continue
        for tag in value.split(","):
            tag = tag.strip()
            if tag.startswith("W/"):
                tag = tag[2:]
            if tag.strip('"').upper() == validator:
                return True
    return False


def respond(request, table=None, root_alias=None):
    """ Produce the ``Response`` for the given ``RequestContext``.

    If no table is given, the active table is used. The ``root_alias``
    (a ``RootAlias`` object) decides what url answers ``/``; by default
    the process-wide root alias is used.
    """
    if request.method not in ALLOWED_METHODS:
        return error_response(405)

    if table is None:
        table = get_static_assets()
    if root_alias is None:
        root_alias = registry.root_alias

    url = request.path or "/"
    if url == "/":
        url = root_alias.resolve(table)

    record = table.find(url)
    if record is None:
        return error_response(404)

    if is_not_modified(record, request):
        return Response(304, compose_headers(record.headers, 0), b"")
    elif request.method == "HEAD":
        return Response(200, compose_headers(record.headers, record.size), b"")
    else:
        headers = compose_headers(record.headers, record.size)
        return Response(200, headers, record.payload)


def encode_response(response):
    """ Encode the status line and headers of the response as bytes,
    including the empty line that ends the head. The body is not included.
    """
    status, headers, _ = response
    lines = [f"HTTP/1.1 {status} {reason_phrase(status)}"]
    lines.extend(f"{name}: {value}" for name, value in headers)
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")


def send_response(response, send):
    """ Send the response using the given send primitive. Raises
    ``DisconnectedError`` if sending fails.
    """
    try:
        send(encode_response(response))
        if response.body:
            send(response.body)
    except OSError as err:
        raise DisconnectedError(f"Could not send response: {err}") from err


def serve_static_http(buffer, send, table=None, root_alias=None):
    """ Serve a static HTTP response for the raw request in the given
    buffer, using the given send primitive (a callable that accepts bytes).
    Returns the ``Response`` that was sent. The caller should close the
    connection afterwards.
    """
    try:
        request = parse_request(buffer)
    except MalformedRequest as err:
        logger.debug(f"Bad request: {err}")
        response = error_response(400)
    else:
        response = respond(request, table, root_alias)
        logger.debug(f"{request.method} {request.full_path} -> {response.status}")
    send_response(response, send)
    return response


def handle_request(
    buffer, send, handshake=None, *, upgrade_header="Sec-WebSocket-Key"
):
    """ Handle a raw request that was received on a connection.

    * If the buffer does not contain a full request head, a 400 is sent.
    * If a ``handshake`` callable is given and the request looks like an
      upgrade request (it mentions ``upgrade_header``), the buffer is
      passed to ``handshake()`` and its result is returned. Nothing is sent.
    * Otherwise a static response is sent and None is returned.
    """
    buffer = bytes(buffer)
    if HEADER_TERMINATOR not in buffer:
        send_response(error_response(400), send)
        return None
    if handshake is not None and looks_like_upgrade(buffer, upgrade_header):
        return handshake(buffer)
    serve_static_http(buffer, send)
    return None
