"""
Mapping of filename extensions to content types. Only files with an
extension in this list are admitted into an asset table.
"""

CONTENT_TYPES = {
    ".html": "text/html; charset=utf-8",
    ".htm": "text/html; charset=utf-8",
    ".js": "text/javascript; charset=utf-8",
    ".css": "text/css; charset=utf-8",
    ".json": "application/json; charset=utf-8",
    ".txt": "text/plain; charset=utf-8",
    ".svg": "image/svg+xml",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".ico": "image/x-icon",
    ".wasm": "application/wasm",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
}


def content_type_for_filename(filename):
    """ Get the content type (str) for the given filename, or None if
    the file is not accepted. The extension is compared case-insensitive.
    Names without an extension, and dotfiles like ``.html``, are rejected.
    """
    dot = filename.rfind(".")
    if dot <= 0:
        return None
    return CONTENT_TYPES.get(filename[dot:].lower(), None)
