"""
This module implements parsing of a raw buffered HTTP request into a
``RequestContext``: the method, the path and the header block.
"""

HEADER_TERMINATOR = b"\r\n\r\n"


class MalformedRequest(ValueError):
    """ Raised when a request buffer cannot be parsed. Results in a 400.
    """


class RequestContext:
    """ The parsed request line and headers of a single request.
    Objects of this class only live for the duration of one request.
    """

    __slots__ = ("_method", "_full_path", "_headers")

    def __init__(self, method, full_path, headers=b""):
        self._method = method
        self._full_path = full_path
        self._headers = bytes(headers)

    def __repr__(self):
        return f"<RequestContext {self._method} {self._full_path}>"

    @property
    def method(self):
        """ The method token (str), e.g. 'GET' or 'HEAD'. Case sensitive.
        """
        return self._method

    @property
    def full_path(self):
        """ The path as it appears in the request line, including the query.
        """
        return self._full_path

    @property
    def path(self):
        """ The path without the query string, as used for lookup.
        """
        return self._full_path.partition("?")[0]

    @property
    def headers(self):
        """ The header block (bytes), i.e. the lines after the request line.
        """
        return self._headers

    def iter_headers(self):
        """ Iterate over the headers as ``(name, value)`` tuples of str.
        Names are lowercase. Lines without a colon are ignored.
        """
        for line in self._headers.split(b"\r\n"):
            name, sep, value = line.partition(b":")
            if sep:
                yield name.strip().decode("latin-1").lower(), value.strip().decode(
                    "latin-1"
                )

    def get_header(self, name, default=None):
        """ Get the value of the first header with the given (case
        insensitive) name.
        """
        name = name.lower()
        for key, value in self.iter_headers():
            if key == name:
                return value
        return default


def parse_request(buffer):
    """ Parse the given raw request (bytes), which must contain at least
    the full request head, up to and including the empty line. Returns a
    ``RequestContext``. Raises ``MalformedRequest`` if the header
    terminator is missing or the request line does not contain a method
    and a path separated by spaces.
    """
    buffer = bytes(buffer)
    end = buffer.find(HEADER_TERMINATOR)
    if end < 0:
        raise MalformedRequest("Request has no header terminator.")
    line, _, headers = buffer[:end].partition(b"\r\n")
    method, sep1, rest = line.partition(b" ")
    path, sep2, _version = rest.partition(b" ")
    if not (sep1 and sep2):
        raise MalformedRequest("Request line must contain method and path.")
    return RequestContext(method.decode("latin-1"), path.decode("latin-1"), headers)


def looks_like_upgrade(buffer, header_name="Sec-WebSocket-Key"):
    """ Get whether the raw request looks like an upgrade request for
    the other protocol, i.e. it mentions the given header name (case
    insensitive).
    """
    return header_name.lower().encode() in bytes(buffer).lower()
