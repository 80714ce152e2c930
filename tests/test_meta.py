"""
Test some meta stuff.
"""

import os
import embedstatics


def test_namespace():
    assert embedstatics.__version__

    ns = set(name for name in dir(embedstatics) if not name.startswith("_"))

    ns.discard("testutils")  # may or may not be imported

    assert ns == {
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
    }
    assert ns == set(embedstatics.__all__)


def test_newlines():
    # Let's be a bit pedantic about sanitizing whitespace :)

    for root, dirs, files in os.walk(os.path.dirname(os.path.abspath(__file__))):
        for fname in files:
            if fname.endswith((".py", ".md", ".rst", ".yml")):
                with open(os.path.join(root, fname), "rb") as f:
                    text = f.read().decode()
                    assert "\r" not in text, f"{fname} has CR!"
                    assert "\t" not in text, f"{fname} has tabs!"


if __name__ == "__main__":
    test_namespace()
    test_newlines()
