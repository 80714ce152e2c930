"""
Example that serves the active assets from a plain threaded TCP server,
next to another protocol. Requests that carry a Sec-WebSocket-Key header
are passed to the handshake function; here it just refuses them.

Without loading an asset module, the built-in placeholder page is served
at http://localhost:8080/.
"""

import embedstatics


def handshake(sock, buffer):
    # A real server would complete the websocket handshake here
    sock.sendall(b"HTTP/1.1 501 Not Implemented\r\nContent-Length: 0\r\n\r\n")


if __name__ == "__main__":
    server = embedstatics.StaticServer(("localhost", 8080), handshake)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        server.shutdown()
    finally:
        server.server_close()
