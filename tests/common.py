"""
Common utilities used in our test scripts.
"""

import os
import sys
import logging

import embedstatics
from embedstatics._table import registry
from embedstatics.testutils import ProcessTestServer, MockTestServer


def get_backend():
    return os.environ.get("ASGI_SERVER", "mock").lower()


def set_backend_from_argv():
    for arg in sys.argv:
        if arg.upper().startswith("--ASGI_SERVER="):
            os.environ["ASGI_SERVER"] = arg.split("=")[1].strip().lower()


def run_tests(scope):
    for func in list(scope.values()):
        if callable(func) and func.__name__.startswith("test_"):
            print(f"Running {func.__name__} ...")
            func()
    print("Done")


def filter_lines(lines):
    # Overloadable line filter
    skip = (
        "Running on http",  # hypercorn
        "Task was destroyed but",
        "task: <Task pending coro",
        "Aborted!",
    )
    return [line for line in lines if line and not line.startswith(skip)]


def reset_registry():
    """Forget the active table and root alias."""
    registry.reset()


def write_files(dirname, files):
    """Write a dict of filename -> str/bytes into the given directory."""
    for fname, content in files.items():
        if isinstance(content, str):
            content = content.encode()
        with open(os.path.join(dirname, fname), "wb") as f:
            f.write(content)


def make_artifact(dirname, files, **kwargs):
    """Write the files into <dirname>/www and compile them into
    <dirname>/assets.py. Returns the artifact filename.
    """
    src = os.path.join(dirname, "www")
    os.mkdir(src)
    write_files(src, files)
    out = os.path.join(dirname, "assets.py")
    embedstatics.compile_assets(src, out, **kwargs)
    return out


def make_server(artifact):
    servername = get_backend()
    if servername == "mock":
        table = embedstatics.load_assets(artifact, register=False)
        server = MockTestServer(table)
    else:
        server = ProcessTestServer(artifact, servername)
    server.filter_lines = filter_lines
    return server


class LogCapturer(logging.Handler):
    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())

    def __enter__(self):
        logger = logging.getLogger("embedstatics")
        logger.addHandler(self)
        return self

    def __exit__(self, *args, **kwargs):
        logger = logging.getLogger("embedstatics")
        logger.removeHandler(self)
