"""
The compression codec and the content hasher used by the compiler.
"""

import gzip
import zlib
import hashlib

COMPRESS_LEVEL = 9
VALIDATOR_LENGTH = 40


class CompressionError(RuntimeError):
    """ Raised when the compression backend fails. The compiler does not
    recover from this; it never falls back to storing raw bytes.
    """


def compress(data, level=COMPRESS_LEVEL):
    """ Compress the given bytes into a gzip container. The result is
    deterministic: the header has no filename and a zero mtime, so equal
    input (and level) gives equal output.
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(f"Can only compress bytes, not {type(data)}.")
    try:
        return gzip.compress(bytes(data), compresslevel=level, mtime=0)
    except (zlib.error, MemoryError, ValueError) as err:
        raise CompressionError(f"Could not compress {len(data)} bytes: {err}")


def decompress(data):
    """ Decompress a gzip container (as produced by ``compress()``).
    """
    return gzip.decompress(data)


def compute_validator(data):
    """ Get the strong validator for the given (uncompressed) bytes: the
    SHA-1 digest as 40 uppercase hex characters.
    """
    return hashlib.sha1(data).hexdigest().upper()
