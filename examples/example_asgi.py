"""
Example that embeds a small website and serves it with Uvicorn.

The files are written to a temporary directory, compiled into an asset
module, and that module is served with ``run()``.
In a real project you'd run ``embedstatics www/ myassets.py`` at build
time, and ``embedstatics.run("myassets.py", "uvicorn")`` to serve it.
"""

import os
import tempfile

import embedstatics


pages = {
    "index.html": "<html><a href='foo.html'>foo</a> or <a href='bar.html'>bar</a></html>",
    "foo.html": "<html>This is foo, there is also <a href='bar.html'>bar</a></html>",
    "bar.html": "<html>This is bar, there is also <a href='foo.html'>foo</a></html>",
    "style.css": "body { font-family: sans-serif; }",
}


def build(dirname):
    src = os.path.join(dirname, "www")
    os.makedirs(src, exist_ok=True)
    for fname, text in pages.items():
        with open(os.path.join(src, fname), "wb") as f:
            f.write(text.encode())
    out = os.path.join(dirname, "example_assets.py")
    embedstatics.compile_assets(src, out, max_age=100)
    return out


if __name__ == "__main__":
    artifact = build(tempfile.gettempdir())
    embedstatics.run(artifact, "uvicorn", "localhost:8080")
