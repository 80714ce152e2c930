"""
Test some specifics of the run function, using a recording launcher in
place of the real ASGI servers.
"""

import os
import tempfile
import importlib

import pytest

import embedstatics
from embedstatics import _run
from embedstatics.testutils import MockTestServer

from common import make_artifact, reset_registry


async def static_app(scope, receive, send):
    await embedstatics.make_asgi_app()(scope, receive, send)


class Recorder:
    def __init__(self):
        self.calls = []

    def __call__(self, appname, host, port, options):
        self.calls.append((appname, host, port, options))
        return 0


def run_recorded(target, bind="localhost:8080", **kwargs):
    recorder = Recorder()
    ori_launch = _run.SERVERS["uvicorn"]
    _run.SERVERS["uvicorn"] = recorder
    try:
        embedstatics.run(target, "uvicorn", bind, **kwargs)
    finally:
        _run.SERVERS["uvicorn"] = ori_launch
    assert len(recorder.calls) == 1
    return recorder.calls[0]


def import_app(appname):
    modname, _, name = appname.partition(":")
    return getattr(importlib.import_module(modname), name)


def cleanup():
    os.environ.pop(_run.ASSETS_ENV_VAR, None)
    _run._served_app = embedstatics.make_asgi_app()
    reset_registry()


def test_run_app_object():

    table = embedstatics.AssetTable(
        [embedstatics.AssetRecord("/x.html", "text/html", "x")]
    )
    try:
        appname, host, port, options = run_recorded(
            embedstatics.make_asgi_app(table), workers=2
        )
        assert (host, port, options) == ("127.0.0.1", 8080, {"workers": 2})

        # The app cannot be imported by its own name, but the path resolves
        app = import_app(appname)
        with MockTestServer(app) as p:
            r = p.get("/x.html")
        assert r.status == 200
        assert r.body == b"x"
    finally:
        cleanup()


def test_run_app_by_name():

    appname, _, _, _ = run_recorded(static_app)
    assert appname == f"{__name__}:static_app"
    assert import_app(appname) is static_app

    appname, _, _, _ = run_recorded("mymodule:myapp")
    assert appname == "mymodule:myapp"


def test_run_asset_module():

    artifact = make_artifact(tempfile.mkdtemp(), {"index.html": "<html>hi</html>"})
    try:
        appname, host, port, _ = run_recorded(artifact, "0.0.0.0:9000")
        assert (host, port) == ("0.0.0.0", 9000)
        assert embedstatics.get_static_assets().urls == ("/index.html",)
        assert os.environ[_run.ASSETS_ENV_VAR] == os.path.abspath(artifact)

        # A fresh worker process loads the assets from the environment
        reset_registry()
        with MockTestServer(import_app(appname)) as p:
            r = p.get("/")
        assert r.status == 200
        assert embedstatics.get_static_assets().urls == ("/index.html",)
    finally:
        cleanup()


def test_run_fails():

    with pytest.raises(ValueError) as err:
        run_recorded("foo")
    assert "module:name" in str(err.value)

    with pytest.raises(ValueError) as err:
        run_recorded(os.path.join(tempfile.mkdtemp(), "nope.py"))
    assert "not found" in str(err.value)

    with pytest.raises(TypeError):
        run_recorded(42)

    for bind in ("localhost", "localhost:", ":8080", "localhost:http"):
        with pytest.raises(ValueError) as err:
            run_recorded("foo:bar", bind)
        assert "host:port" in str(err.value)

    with pytest.raises(ValueError) as err:
        embedstatics.run("foo:bar", "nonexistingserver")
    assert "invalid server" in str(err.value).lower()

    with pytest.raises(TypeError):
        embedstatics.run("foo:bar", None)


if __name__ == "__main__":
    from common import run_tests

    run_tests(globals())
