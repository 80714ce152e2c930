"""
This module implements the in-memory asset table, the process-wide
registry that holds the active table, and the root alias that decides
which asset answers a request for ``/``.
"""

import os
import time
import threading
import importlib.util

from ._codec import VALIDATOR_LENGTH
from ._logging import logger


DEFAULT_ROOT_ALIAS = "/index.html"


def parse_header_lines(content_type):
    """ Parse a content type string into a tuple of ``(name, value)`` pairs.

    A string that ends with CRLF is a set of complete header lines (e.g.
    ``"Content-Type: text/css\\r\\nEtag: \\"...\\"\\r\\n"``). Any other
    string is a bare MIME type.
    """
    if not content_type.endswith("\r\n"):
        return (("Content-Type", content_type),)
    headers = []
    for line in content_type.split("\r\n"):
        if not line:
            continue
        name, sep, value = line.partition(":")
        if not sep:
            raise ValueError(f"Invalid header line in content type: {line!r}")
        headers.append((name.strip(), value.strip()))
    return tuple(headers)


class AssetRecord:
    """ A single static asset, fixed at compile time. Objects of this
    class are immutable.

    * ``url (str)``: the exact request path that serves this asset.
    * ``content_type (str)``: the MIME type, or a set of complete
      CRLF-terminated header lines (as emitted by the compiler).
    * ``payload (bytes)``: the body as stored (gzipped if compressed).
    * ``size (int)``: the length of the stored payload.
    """

    __slots__ = ("_url", "_content_type", "_payload", "_headers", "_validator")

    def __init__(self, url, content_type, payload):
        if not isinstance(url, str):
            raise TypeError("Asset url must be a str.")
        if not isinstance(content_type, str):
            raise TypeError("Asset content type must be a str.")
        if isinstance(payload, str):
            payload = payload.encode()
        elif not isinstance(payload, bytes):
            raise TypeError("Asset payload must be bytes or str.")
        self._url = url
        self._content_type = content_type
        self._payload = payload
        self._headers = parse_header_lines(content_type)
        self._validator = None
        for name, value in self._headers:
            if name.lower() == "etag":
                value = value.strip('"')
                if len(value) == VALIDATOR_LENGTH:
                    self._validator = value
                break

    def __repr__(self):
        return f"<AssetRecord {self._url!r} {self.size} bytes>"

    @property
    def url(self):
        return self._url

    @property
    def content_type(self):
        """ The content type string, verbatim.
        """
        return self._content_type

    @property
    def headers(self):
        """ The header lines that are sent with this asset, as a tuple of
        ``(name, value)`` tuples.
        """
        return self._headers

    @property
    def payload(self):
        return self._payload

    @property
    def size(self):
        return len(self._payload)

    @property
    def validator(self):
        """ The 40-character strong validator (the ETag without quotes),
        or None if this asset has none.
        """
        return self._validator

    @property
    def is_compressed(self):
        """ Whether the payload is a gzip container.
        """
        for name, value in self._headers:
            if name.lower() == "content-encoding":
                return value.lower() == "gzip"
        return False


class AssetTable:
    """ An ordered, read-only sequence of ``AssetRecord`` objects, with
    lookup by url. A table is never mutated after construction, so it
    can be shared between threads without locking.
    """

    __slots__ = ("_records", "_index")

    def __init__(self, records):
        self._records = tuple(records)
        self._index = {}
        for i, record in enumerate(self._records):
            if not isinstance(record, AssetRecord):
                raise TypeError("AssetTable can only contain AssetRecord objects.")
            self._index.setdefault(record.url, i)

    @classmethod
    def from_arrays(cls, urls, content_types, contents, sizes=None):
        """ Create a table from the parallel arrays in a compiled artifact.
        If sizes are given, they must match the lengths of the contents.
        """
        urls = list(urls)
        content_types = list(content_types)
        contents = list(contents)
        if not len(urls) == len(content_types) == len(contents):
            raise ValueError("Asset arrays must have equal length.")
        if sizes is not None:
            sizes = list(sizes)
            if sizes != [len(c) for c in contents]:
                raise ValueError("Asset sizes do not match the contents.")
        return cls(
            AssetRecord(url, ctype, content)
            for url, ctype, content in zip(urls, content_types, contents)
        )

    def __len__(self):
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def __getitem__(self, i):
        return self._records[i]

    def __repr__(self):
        return f"<AssetTable with {len(self._records)} assets>"

    @property
    def urls(self):
        return tuple(record.url for record in self._records)

    def find(self, url):
        """ Get the record for the given url, or None.
        """
        i = self._index.get(url, None)
        return None if i is None else self._records[i]


DEFAULT_HTML = (
    "<html><head><title>WS STATIC OK</title></head><body>"
    "Success<br>"
    f"Built: {time.strftime('%b %d %Y %H:%M:%S')}"
    "</body></html>"
)

DEFAULT_ASSETS = AssetTable(
    [AssetRecord("/", "text/html; charset=utf-8", DEFAULT_HTML)]
)


class RootAlias:
    """ The one-time decision of which url answers a request for ``/``.

    The first call to ``resolve()`` scans the given table; concurrent
    first calls are serialized, and later calls return the stored value.
    """

    def __init__(self, default=DEFAULT_ROOT_ALIAS):
        self._value = default
        self._resolved = False
        self._lock = threading.Lock()

    @property
    def value(self):
        return self._value

    @property
    def resolved(self):
        return self._resolved

    def set(self, url):
        """ Explicitly set the alias. This prevents any later resolution.
        """
        with self._lock:
            self._value = str(url)
            self._resolved = True

    def resolve(self, table):
        """ Get the alias, scanning the given table if this is the first call.

        The scan picks ``/index.html`` if present, else ``/`` if present,
        else the only ``.html`` url if there is exactly one. Otherwise the
        default is kept (and ``/`` will likely 404).
        """
        if self._resolved:
            return self._value
        with self._lock:
            if not self._resolved:
                url = find_root_alias(table)
                if url is not None:
                    self._value = url
                    logger.info(f"Will use [{url}] for default root /")
                self._resolved = True
        return self._value


def find_root_alias(table):
    """ Scan the table for the url that should serve ``/``, or None.
    """
    for url in (DEFAULT_ROOT_ALIAS, "/"):
        if table.find(url) is not None:
            return url
    html_urls = [record.url for record in table if record.url.endswith(".html")]
    if len(html_urls) == 1:
        return html_urls[0]
    return None


class AssetRegistry:
    """ Holds the active asset table. Swapping the table is atomic;
    readers always see either the old or the new table, never a mix.
    """

    def __init__(self):
        self._table = None
        self._lock = threading.Lock()
        self.root_alias = RootAlias()

    def set(self, table):
        if not isinstance(table, AssetTable):
            raise TypeError("set_static_assets() expects an AssetTable.")
        with self._lock:
            self._table = table

    @property
    def is_set(self):
        """ Whether a table was registered. The placeholder does not count.
        """
        return self._table is not None

    def get(self):
        table = self._table
        return DEFAULT_ASSETS if table is None else table

    def reset(self):
        """ Forget the active table and the root alias. Mostly for testing.
        """
        with self._lock:
            self._table = None
            self.root_alias = RootAlias()


registry = AssetRegistry()


def set_static_assets(table):
    """ Install the given ``AssetTable`` as the active table. Subsequent
    lookups see the new table. The table's order and uniqueness are not
    validated; pass a table produced by the compiler.
    """
    registry.set(table)


def get_static_assets():
    """ Get the active ``AssetTable``. If none was registered, this is
    a table with a single placeholder page at ``/``.
    """
    return registry.get()


def root_alias():
    """ Get the url that answers requests for ``/``, resolving it against
    the active table on first use.
    """
    return registry.root_alias.resolve(registry.get())


def load_assets(filename, register=True):
    """ Load a compiled asset module from the given file and return its
    ``AssetTable``. If ``register`` is True (default), the table becomes
    the active table.
    """
    filename = os.path.abspath(filename)
    if not filename.endswith(".py"):
        raise ValueError("Compiled asset modules must have a .py extension.")
    basename = os.path.basename(filename)[:-3]
    modname = "".join(c if c.isalnum() else "_" for c in basename)
    modname = "_embedstatics_assets_" + modname
    spec = importlib.util.spec_from_file_location(modname, filename)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    if register:
        return module.init_embedded_assets()
    return AssetTable.from_arrays(
        module.static_urls,
        module.static_content_type,
        module.static_content,
        module.static_content_size,
    )
