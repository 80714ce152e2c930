"""
A minimal connection host for the static responder. It receives the
request head from a socket, defers upgrade requests to a handshake
function, serves everything else from the active asset table, and closes
the connection.
"""

import socketserver

from ._http import DisconnectedError, handle_request
from ._logging import logger
from ._request import HEADER_TERMINATOR


RECV_SIZE = 4096
MAX_REQUEST_HEAD = 64 * 2 ** 10


def receive_request(sock, limit=MAX_REQUEST_HEAD):
    """ Receive from the socket until the request head is complete, the
    limit is reached, or the peer stops sending. Returns the bytes read.
    """
    buffer = b""
    while HEADER_TERMINATOR not in buffer and len(buffer) < limit:
        chunk = sock.recv(RECV_SIZE)
        if not chunk:
            break
        buffer += chunk
    return buffer


def handle_connection(sock, handshake=None, *, timeout=None):
    """ Handle one connection. If ``handshake`` is given, it is called
    as ``handshake(sock, buffer)`` for upgrade requests, and owns the
    socket from then on, unless it raises. In all other cases the socket
    is closed when the static response has been sent (or failed).
    """
    upgraded = False

    def do_handshake(buffer):
        nonlocal upgraded
        result = handshake(sock, buffer)
        upgraded = True
        return result

    try:
        if timeout is not None:
            sock.settimeout(timeout)
        buffer = receive_request(sock)
        if buffer:
            handle_request(buffer, sock.sendall, do_handshake if handshake else None)
    except DisconnectedError as err:
        logger.debug(str(err))  # Not really an error
    except OSError as err:
        logger.debug(f"Connection error: {err}")
    except Exception as err:
        logger.error(f"{type(err).__name__} in static handler: {err}", exc_info=err)
    finally:
        if not upgraded:
            sock.close()


class _RequestHandler(socketserver.BaseRequestHandler):
    def handle(self):
        handle_connection(
            self.request, self.server.handshake, timeout=self.server.connection_timeout
        )


class StaticServer(socketserver.ThreadingTCPServer):
    """ A threaded TCP server that serves the active asset table, one
    thread per connection. Use ``serve_forever()`` and ``shutdown()``
    as with any ``socketserver`` server.

    A handshake runs in the thread of its connection, and the connection
    is closed when it returns.
    """

    allow_reuse_address = True
    daemon_threads = True

    def __init__(
        self, bind=("127.0.0.1", 8080), handshake=None, connection_timeout=10.0
    ):
        self.handshake = handshake
        self.connection_timeout = connection_timeout
        super().__init__(bind, _RequestHandler)
