"""
This module implements ``run()``, which serves a compiled asset module
(or an ASGI app) with an ASGI server of choice.

ASGI servers import the app by its ``"module:name"`` path. Asset modules
and app objects that cannot be found by name are served through the
``app`` object in this module.
"""

import os
import sys

from ._app import make_asgi_app
from ._table import load_assets, registry


ASSETS_ENV_VAR = "EMBEDSTATICS_ASSETS"
PROXY_APP_PATH = __name__ + ":app"

_served_app = make_asgi_app()


async def app(scope, receive, send):
    """ ASGI app that serves whatever ``run()`` was asked to serve. In a
    fresh process (e.g. a server worker) it first loads the asset module
    named by the ``EMBEDSTATICS_ASSETS`` environment variable.
    """
    filename = os.environ.get(ASSETS_ENV_VAR, "")
    if filename and not registry.is_set:
        load_assets(filename)
    await _served_app(scope, receive, send)


def app_path(target):
    """ Get the ``"module:name"`` path under which the server can import the
    app to serve. The target can be the filename of a compiled asset module
    (which is loaded here), an app path, or an ASGI app object.
    """
    global _served_app

    if isinstance(target, str):
        if target.endswith(".py"):
            filename = os.path.abspath(target)
            if not os.path.isfile(filename):
                raise ValueError(f"Asset module not found: {target!r}")
            load_assets(filename)
            os.environ[ASSETS_ENV_VAR] = filename
            return PROXY_APP_PATH
        elif ":" not in target:
            raise ValueError(
                "Give an asset module (.py file) or the full path of an app "
                f"as 'module:name', not {target!r}"
            )
        return target

    if not callable(target):
        raise TypeError("embedstatics.run() needs an asset module or an ASGI app.")
    modname = getattr(target, "__module__", None)
    name = getattr(target, "__name__", None)
    module = sys.modules.get(modname or "")
    if name and getattr(module, name, None) is target:
        return f"{modname}:{name}"
    # Not importable by name (e.g. from make_asgi_app()), so serve it in-process
    _served_app = target
    return PROXY_APP_PATH


def run(target, server, bind="localhost:8080", **kwargs):
    """ Serve the assets with the given ASGI server.

    Arguments:

    * ``target`` (required): the filename of a compiled asset module, an
      ASGI app (e.g. from ``make_asgi_app()``), or its ``"module:name"`` path.
    * ``server`` (required): "uvicorn", "hypercorn" or "daphne".
    * ``bind``: the host and port to bind to, as ``"host:port"``.
    * ``kwargs``: additional command line options for the server, e.g.
      ``workers=4``. Underscores become dashes.

    Blocks until the server stops.
    """
    if not isinstance(server, str):
        raise TypeError("embedstatics.run() server must be a str.")
    launch = SERVERS.get(server.lower(), None)
    if launch is None:
        raise ValueError(f"Invalid server specified: {server!r}")
    host, sep, port = str(bind).rpartition(":")
    if not (sep and host and port.isdigit()):
        raise ValueError(f"embedstatics.run() bind must be 'host:port', not {bind!r}")
    if host == "localhost":
        host = "127.0.0.1"

    return launch(app_path(target), host, int(port), kwargs)


def _options_to_args(options):
    return [f"--{key.replace('_', '-')}={val}" for key, val in options.items()]


def _launch_uvicorn(appname, host, port, options):
    from uvicorn.main import main

    # Uvicorn is quite verbose at its default log level
    options = {"log_level": "warning", **options, "host": host, "port": port}
    return main(_options_to_args(options) + [appname])


def _launch_hypercorn(appname, host, port, options):
    from hypercorn.__main__ import main

    options = {**options, "bind": f"{host}:{port}"}
    return main(_options_to_args(options) + [appname])


def _launch_daphne(appname, host, port, options):
    from daphne.cli import CommandLineInterface

    options = {"verbosity": 0, **options, "bind": host, "port": port}
    return CommandLineInterface().run(_options_to_args(options) + [appname])


SERVERS = {
    "uvicorn": _launch_uvicorn,
    "hypercorn": _launch_hypercorn,
    "daphne": _launch_daphne,
}
