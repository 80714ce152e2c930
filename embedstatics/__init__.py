"""
Embedstatics - embed a directory of static files and serve it over HTTP

Embedstatics compiles the files in a directory into an importable Python
module: a content-addressed table of gzipped assets, each with a strong
ETag. At run time, the table is served from memory, so a server that
mostly speaks another protocol (e.g. websockets) can also answer plain
HTTP requests for its web pages, scripts and images, with correct caching.
"""

from ._ctypes import content_type_for_filename
from ._codec import CompressionError
from ._table import AssetRecord, AssetTable, RootAlias
from ._table import set_static_assets, get_static_assets, root_alias, load_assets
from ._request import RequestContext, MalformedRequest, parse_request
from ._http import DisconnectedError, respond, serve_static_http, handle_request
from ._compiler import BuildError, compile_assets
from ._host import StaticServer, handle_connection
from ._app import make_asgi_app
from ._run import run


__all__ = [
    "content_type_for_filename",
    "CompressionError",
    "AssetRecord",
    "AssetTable",
    "RootAlias",
    "set_static_assets",
    "get_static_assets",
    "root_alias",
    "load_assets",
    "RequestContext",
    "MalformedRequest",
    "parse_request",
    "DisconnectedError",
    "respond",
    "serve_static_http",
    "handle_request",
    "BuildError",
    "compile_assets",
    "StaticServer",
    "handle_connection",
    "make_asgi_app",
    "run",
]


__version__ = "0.3.0"
