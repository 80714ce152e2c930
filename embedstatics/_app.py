"""
This module implements an ASGI application that serves an asset table,
so that the assets can also be hosted by an ASGI server such as Uvicorn,
Hypercorn or Daphne.
"""

from ._http import respond
from ._logging import logger
from ._request import RequestContext
from ._table import RootAlias


def make_asgi_app(table=None):
    """ Get an ASGI application that serves the given ``AssetTable``,
    or the active table (at the time of each request) if not given.
    """

    root_alias = None if table is None else RootAlias()

    async def embedstatics_app(scope, receive, send):
        if scope["type"] == "http":
            await _handle_http(scope, send, table, root_alias)
        elif scope["type"] == "websocket":
            await _handle_websocket(receive, send)
        elif scope["type"] == "lifespan":
            await _handle_lifespan(receive, send)
        else:
            logger.warning(f"Unknown ASGI type {scope['type']}")

    return embedstatics_app


def request_from_scope(scope):
    """ Create a ``RequestContext`` from an ASGI http scope. The headers
    are serialized into a header block like they would appear on the wire.
    """
    path = scope["path"]  # percent-decoded, and includes the root_path
    query = scope.get("query_string", b"")
    if query:
        path += "?" + query.decode("latin-1")
    headers = b"\r\n".join(key + b": " + val for key, val in scope["headers"])
    return RequestContext(scope["method"], path, headers)


async def _handle_lifespan(receive, send):
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            logger.info("Server is starting up")
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            logger.info("Server is shutting down")
            await send({"type": "lifespan.shutdown.complete"})
            return
        else:
            logger.warning(f"Unknown lifespan message {message['type']}")


async def _handle_http(scope, send, table, root_alias):

    started = False
    try:
        request = request_from_scope(scope)
        status, headers, body = respond(request, table, root_alias)
        # The ASGI server manages the connection itself
        rawheaders = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in headers
            if name.lower() != "connection"
        ]
        started = True
        await send(
            {"type": "http.response.start", "status": status, "headers": rawheaders}
        )
        await send({"type": "http.response.body", "body": body, "more_body": False})

    except Exception as err:
        error_text = f"{type(err).__name__} in static handler: {str(err)}"
        logger.error(error_text, exc_info=err)
        if not started:
            body = error_text.encode()
            rawheaders = [
                (b"content-type", b"text/plain; charset=utf-8"),
                (b"content-length", str(len(body)).encode()),
            ]
            await send(
                {"type": "http.response.start", "status": 500, "headers": rawheaders}
            )
            await send({"type": "http.response.body", "body": body, "more_body": False})


async def _handle_websocket(receive, send):
    # Static assets are not served over websockets; refuse the connection.
    message = await receive()
    if message["type"] == "websocket.connect":
        await send({"type": "websocket.close", "code": 1000})
