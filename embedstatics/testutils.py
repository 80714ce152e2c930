"""
Embedstatics test utilities.
"""

import os
import sys
import time
import socket
import asyncio
import logging
import tempfile
import threading
import subprocess
from collections import namedtuple
from urllib.parse import unquote, urlparse

import requests
from requests.structures import CaseInsensitiveDict

from ._app import make_asgi_app
from ._host import StaticServer
from ._http import handle_request
from ._logging import logger


Response = namedtuple("Response", ["status", "headers", "body"])

testfilename = os.path.join(
    tempfile.gettempdir(), f"embedstatics_test_script_{os.getpid()}.py"
)

PORT = 49152 + os.getpid() % 16383  # hash pid to ephimeral port number
URL = f"http://127.0.0.1:{PORT}"


def parse_response(data):
    """ Parse raw response bytes into a ``Response`` tuple. The headers
    are a case insensitive dict.
    """
    head, sep, body = data.partition(b"\r\n\r\n")
    if not sep:
        raise ValueError("Response has no header terminator.")
    lines = head.decode("latin-1").split("\r\n")
    version, status, _ = (lines[0] + " ").split(" ", 2)
    assert version == "HTTP/1.1", f"Unexpected status line {lines[0]!r}"
    headers = CaseInsensitiveDict()
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip()] = value.strip()
    return Response(int(status), headers, body)


class RawTestClient:
    """ A client that feeds raw request bytes directly into
    ``handle_request()``, capturing what is sent back. Serves from the
    active asset table. No sockets involved.

    The ``sent`` attribute holds the chunks sent for the last request,
    and ``handshakes`` the buffers that were deferred to the handshake.
    """

    def __init__(self, upgrade=False):
        self.sent = []
        self.handshakes = []
        self._handshake = self._do_handshake if upgrade else None

    def _do_handshake(self, buffer):
        self.handshakes.append(buffer)
        return "upgraded"

    def send_raw(self, buffer):
        """ Handle the given raw request. Returns a ``Response``, or None
        if the request was deferred to the handshake.
        """
        self.sent = []
        result = handle_request(buffer, self.sent.append, self._handshake)
        if result is not None:
            return None
        return parse_response(b"".join(self.sent))

    def request(self, method, path, headers=None):
        """ Compose a request from the method, path and headers, and
        handle it. Returns a ``Response``.
        """
        lines = [f"{method} {path} HTTP/1.1", "Host: localhost"]
        for key, val in (headers or {}).items():
            lines.append(f"{key}: {val}")
        return self.send_raw(("\r\n".join(lines) + "\r\n\r\n").encode("latin-1"))

    def get(self, path, headers=None):
        return self.request("GET", path, headers)

    def head(self, path, headers=None):
        return self.request("HEAD", path, headers)


class _LogCollector(logging.Handler):
    def __init__(self):
        super().__init__()
        self.lines = []

    def emit(self, record):
        self.lines.append(record.getMessage())


class BaseTestServer:
    """ Base class for test servers. Objects of this class represent a
    server instance that serves assets, to test against.

    The server can be started/stopped by using it as a context manager.
    The ``url`` attribute represents the url that can be used to make
    requests to the server. When the server has stopped, the ``out``
    attribute contains the server output.

    Only one instance of this class (per process) should be used (as a
    context manager) at any given time.
    """

    def __init__(self, server_description):
        self._server = server_description
        self._out = ""

    @property
    def url(self):
        """ The url at which the server is listening.
        """
        return URL

    @property
    def out(self):
        """ The output of the server. This gets set when the
        with-statement using this object exits.
        """
        return self._out

    def __enter__(self):
        self._out = ""
        self._start_server()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        out = self._stop_server()
        self._out = "\n".join(self.filter_lines(out.splitlines()))
        if exc_value is not None:
            self.log(f"{self._server} server output:")
            self.log(self.out)

    def get(self, path, headers=None, **kwargs):
        """ Send a GET request to the server. See request() for detais.
        """
        return self.request("GET", path, headers=headers, **kwargs)

    def head(self, path, headers=None, **kwargs):
        """ Send a HEAD request to the server. See request() for detais.
        """
        return self.request("HEAD", path, headers=headers, **kwargs)

    def request(self, method, path, data=None, headers=None, **kwargs):
        """ Send a request to the server. Returns a named tuple ``(status, headers, body)``.
        The body is the raw (not decompressed) body.

        Arguments:
            method (str): the HTTP method (e.g. "GET")
            path (str): path or url (also see the ``url`` property).
            data: the bytes to send (optional).
            headers: headers to send (optional).
            kwargs: additional arguments to pass to ``requests.request()``.

        """
        assert isinstance(method, str)
        assert isinstance(path, str)
        if path.startswith("http"):
            url = path
        else:
            url = self.url + "/" + path.lstrip("/")
        return self._request(method, url, data=data, headers=headers, **kwargs)

    def log(self, *messages, sep=" ", end="\n"):
        """ Log a message. Overloadable. Default write to stdout.
        """
        msg = sep.join(str(m) for m in messages)
        sys.stdout.write(msg + end)
        sys.stdout.flush()

    def filter_lines(self, lines):
        """ Overloadable line filter.
        """
        return lines

    def _requests_request(self, method, url, **kwargs):
        # Use a stream so that the body is not decoded
        r = requests.request(method, url, stream=True, **kwargs)
        body = r.raw.read(decode_content=False)
        r.close()
        return Response(r.status_code, r.headers, body)


class SocketTestServer(BaseTestServer):
    """ Subclass of BaseTestServer that runs a ``StaticServer`` in a thread
    of this process. Requests can be done via the methods of this object,
    or with raw sockets (see ``address``).
    """

    def __init__(self, handshake=None):
        super().__init__("socket")
        self._handshake = handshake
        self._collector = _LogCollector()

    @property
    def address(self):
        return ("127.0.0.1", PORT)

    def _start_server(self):
        self._collector.lines = []
        logger.addHandler(self._collector)
        self._srv = StaticServer(self.address, self._handshake)
        self._thread = threading.Thread(target=self._srv.serve_forever, daemon=True)
        self._thread.start()

    def _stop_server(self):
        self._srv.shutdown()
        self._srv.server_close()
        self._thread.join(5)
        logger.removeHandler(self._collector)
        return "\n".join(self._collector.lines)

    def send_raw(self, data):
        """ Send raw bytes over a new connection, and return all bytes
        received until the server closes the connection.
        """
        with socket.create_connection(self.address, timeout=5) as sock:
            sock.sendall(data)
            chunks = []
            while True:
                chunk = sock.recv(65536)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def _request(self, method, url, **kwargs):
        return self._requests_request(method, url, **kwargs)


START_CODE = """
import os
import sys
import time
import threading
import _thread

import embedstatics

def closer():
    while os.path.isfile(__file__):
        time.sleep(0.01)
    _thread.interrupt_main()

if __name__ == "__main__":
    threading.Thread(target=closer, daemon=True).start()
    embedstatics.run(ARTIFACT, "ASGISERVER", "localhost:PORT")
    sys.stderr.flush()
    sys.stdout.flush()
    sys.exit(0)
"""


class ProcessTestServer(BaseTestServer):
    """ Subclass of BaseTestServer that serves a compiled asset module with
    an actual ASGI server in a subprocess. The ``server`` argument must be
    a server supported by the ``run()`` function, like "uvicorn",
    "hypercorn" or "daphne".

    This provides a very realistic approach, though the overhead of
    starting and stopping the server costs about a second. Therefore it is
    most suited for integration tests.
    """

    def __init__(self, artifact, server):
        super().__init__(server)
        self._artifact = os.path.abspath(artifact)

    def _start_server(self):
        code = START_CODE.replace("ASGISERVER", self._server).replace("PORT", str(PORT))
        code = code.replace("ARTIFACT", repr(self._artifact))
        with open(testfilename, "wb") as f:
            f.write(code.encode())
        # Start server, clean up the temp filename on failure since __exit__ wont be called.
        try:
            self._start_subprocess()
        except Exception as err:
            self._delfile()
            raise err

    def _start_subprocess(self):
        # Don't use stdin; it breaks multiprocessing somehow!
        self._p = subprocess.Popen(
            [sys.executable, testfilename],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
        # Wait for process to start, and make sure it is not dead
        while self._p.poll() is None:
            time.sleep(0.02)
            try:
                requests.get(URL + "/", timeout=0.05)
                break
            except (requests.ConnectionError, requests.ReadTimeout):
                pass
        if self._p.poll() is not None:
            raise RuntimeError(
                "Process failed to start!\n" + self._p.stdout.read().decode()
            )

    def _stop_server(self):
        # Ask process to stop
        self._delfile()
        # Force it to stop if needed
        for i in range(5):
            etime = time.time() + 5
            while self._p.poll() is None and time.time() < etime:
                time.sleep(0.01)
            if self._p.poll() is not None:
                break
            self._p.terminate()
        else:
            raise RuntimeError("Runaway server process failed to terminate!")
        return self._p.stdout.read().decode(errors="ignore")

    def _delfile(self):
        try:
            os.remove(testfilename)
        except OSError:
            pass

    def _request(self, method, url, **kwargs):
        return self._requests_request(method, url, **kwargs)


class MockTestServer(BaseTestServer):
    """ Subclass of BaseTestServer that mocks an ASGI server and
    operates in-process. This is a less realistic approach, but faster
    and allows tracking test coverage, so it's more suited for unit
    tests.

    The ``app`` can be an ASGI application or an ``AssetTable``. If not
    given, an app that serves the active table is used.

    Requests *must* be done via the methods of this object. The used url
    can be anything.
    """

    def __init__(self, app=None):
        super().__init__("mock")
        if app is None or not callable(app):
            app = make_asgi_app(app)
        self._asgi_app = app
        self._loop = None
        self._collector = _LogCollector()

    @property
    def app(self):
        return self._asgi_app

    def _start_server(self):
        self._loop = asyncio.new_event_loop()
        self._collector.lines = []
        logger.addHandler(self._collector)
        self._lifespan_messages = []
        self._lifespan_completes = []
        try:
            self._lifespan_task = self._loop.create_task(self._run_lifespan())
            self._wait_for_lifespan_complete("startup")
        except Exception as err:
            logger.removeHandler(self._collector)
            raise err

    def _stop_server(self):
        try:
            self._wait_for_lifespan_complete("shutdown")
        finally:
            logger.removeHandler(self._collector)
            self._loop.close()
        return "\n".join(self._collector.lines)

    async def _run_lifespan(self):
        async def receive():
            while not self._lifespan_messages:
                await asyncio.sleep(0.01)
            return self._lifespan_messages.pop(0)

        async def send(m):
            self._lifespan_completes.append(m["type"])

        await self._asgi_app({"type": "lifespan"}, receive, send)

    def _wait_for_lifespan_complete(self, what, timeout=5):
        what_complete = f"lifespan.{what}.complete"

        async def waiter():
            etime = time.time() + timeout
            while what_complete not in self._lifespan_completes:
                if self._lifespan_task.done():
                    raise RuntimeError(
                        f"Lifespan task finished without producing {what}"
                    )
                if time.time() > etime:
                    raise RuntimeError(
                        f"Timeout for {what}, has {self._lifespan_completes}"
                    )
                await asyncio.sleep(0.01)

        self._lifespan_messages.append({"type": f"lifespan.{what}"})
        self._loop.run_until_complete(waiter())

    def _make_scope(self, request):
        scheme, netloc, path, params, query, fragment = urlparse(request.url)
        if ":" in netloc:
            host, port = netloc.split(":", 1)
            port = int(port)
        else:
            host, port = netloc, 80

        headers = [[b"host", netloc.encode()]]
        headers += [
            [key.lower().encode(), value.encode()]
            for key, value in request.headers.items()
        ]

        return {
            "type": "http",
            "http_version": "1.1",
            "method": request.method,
            "scheme": scheme,
            "path": unquote(path),
            "root_path": "",
            "query_string": query.encode(),
            "headers": headers,
            "client": ["testclient", 50000],
            "server": [host, port],
        }

    def _request(self, method, url, **kwargs):
        req = requests.Request(method, url, **kwargs)
        p = req.prepare()  # Get the "resolved" request
        p.headers.setdefault("user-agent", "embedstatics_mock_server")
        scope = self._make_scope(p)

        messages = []

        async def receive():
            return {"type": "http.request", "body": p.body or b"", "more_body": False}

        async def send(m):
            messages.append(m)

        self._loop.run_until_complete(self._asgi_app(scope, receive, send))

        status, headers, chunks = 9999, CaseInsensitiveDict(), []
        for m in messages:
            if m["type"] == "http.response.start":
                status = m["status"]
                for key, val in m["headers"]:
                    headers[key.decode()] = val.decode()
            elif m["type"] == "http.response.body":
                chunks.append(m["body"])
        return Response(status, headers, b"".join(chunks))
