"""
This module implements the asset compiler: it packages the files in a
directory into a self-contained Python module that holds an asset table.

The scan is not recursive. Only regular files with an accepted extension
are included, in sorted order, so that the same directory always produces
the exact same module.
"""

import os
import sys
import argparse

from ._codec import COMPRESS_LEVEL, compress, compute_validator, CompressionError
from ._ctypes import content_type_for_filename
from ._logging import logger
from ._table import AssetRecord


BYTES_PER_LINE = 16


class BuildError(IOError):
    """ Raised when the input directory cannot be read, or the output
    cannot be written. Aborts the compilation.
    """


def collect_filenames(input_dir):
    """ Get the sorted list of names of the files in the given directory
    that can be included as assets. Directories, special files and files
    with an unaccepted extension are skipped.
    """
    try:
        names = os.listdir(input_dir)
    except OSError as err:
        raise BuildError(f"Cannot open input directory {input_dir!r}: {err.strerror}")
    names = [name for name in names if content_type_for_filename(name)]
    names = [name for name in names if os.path.isfile(os.path.join(input_dir, name))]
    return sorted(names)


def _read_file(filename):
    with open(filename, "rb") as f:
        return f.read()


def make_header_lines(content_type, validator, compressed=True, max_age=None):
    """ Compose the header lines (a CRLF-terminated str) that are stored
    with an asset in place of a bare content type.
    """
    lines = [f"Content-Type: {content_type}", f'Etag: "{validator}"']
    if max_age is not None:
        lines.append(f"Cache-Control: public, must-revalidate, max-age={max_age:d}")
    if compressed:
        lines.append("Content-Encoding: gzip")
    return "".join(line + "\r\n" for line in lines)


def build_record(
    input_dir, filename, url_prefix="/", *, compress_level=COMPRESS_LEVEL, max_age=None
):
    """ Read, hash and compress a single file, and return an ``AssetRecord``.
    Returns None (and logs a warning) if the file cannot be read.
    A failure to compress raises ``CompressionError``.
    """
    content_type = content_type_for_filename(filename)
    if content_type is None:
        raise ValueError(f"Not an accepted file type: {filename!r}")
    path = os.path.join(input_dir, filename)
    try:
        data = _read_file(path)
    except OSError as err:
        logger.warning(f"Failed to read: {path} ({err.strerror or err})")
        return None
    validator = compute_validator(data)
    payload = compress(data, compress_level)
    headers = make_header_lines(content_type, validator, True, max_age)
    return AssetRecord(url_prefix + filename, headers, payload)


def identifier_from_filename(filename):
    """ Turn a filename into a valid Python identifier suffix.
    """
    ident = "".join(c if c.isascii() and c.isalnum() else "_" for c in filename)
    return ident or "file"


def _write_bytes_constant(f, name, data):
    f.write(f"{name} = (\n")
    if not data:
        f.write('    b""\n')
    for i in range(0, len(data), BYTES_PER_LINE):
        chunk = data[i : i + BYTES_PER_LINE]
        f.write('    b"' + "".join(f"\\x{b:02x}" for b in chunk) + '"\n')
    f.write(")\n\n")


def _write_tuple(f, name, items, comments=None):
    f.write(f"{name} = (\n")
    for i, item in enumerate(items):
        if comments is not None:
            f.write(f"    # {comments[i]!r}\n")
        f.write(f"    {item},\n")
    f.write(")\n\n")


PRELUDE = '''"""
Static assets embedded by embedstatics. Generated file, do not edit.

Call ``init_embedded_assets()`` to make these the active assets.
"""

import embedstatics

'''

POSTLUDE = '''
def init_embedded_assets():
    """ Register these assets as the active asset table. Returns the table.
    """
    table = embedstatics.AssetTable.from_arrays(
        static_urls, static_content_type, static_content, static_content_size
    )
    embedstatics.set_static_assets(table)
    return table
'''


def compile_assets(
    input_dir,
    output_path,
    url_prefix="/",
    *,
    compress_level=COMPRESS_LEVEL,
    max_age=None,
):
    """ Compile the files in ``input_dir`` into a Python module at
    ``output_path``. Each asset is served at ``url_prefix + filename``.
    Returns the number of embedded assets.

    Files are processed one at a time, so only one file is held in memory.
    Files that cannot be read are skipped with a warning. Raises
    ``BuildError`` if the directory cannot be listed or the output cannot
    be written, and ``CompressionError`` if compression fails. In both
    cases no output file is produced.
    """
    if not url_prefix:
        url_prefix = "/"
    if max_age is not None:
        if isinstance(max_age, bool) or not isinstance(max_age, int) or max_age < 0:
            raise TypeError("compile_assets() max_age must be a non-negative int")

    names = collect_filenames(input_dir)

    tmp_path = str(output_path) + ".tmp"
    try:
        f = open(tmp_path, "w", encoding="utf-8", newline="\n")
    except OSError as err:
        raise BuildError(f"Cannot create output {str(output_path)!r}: {err.strerror}")

    entries = []  # (filename, url, content_type, constant name, size)
    used_idents = set()
    try:
        with f:
            f.write(PRELUDE)
            for name in names:
                record = build_record(
                    input_dir,
                    name,
                    url_prefix,
                    compress_level=compress_level,
                    max_age=max_age,
                )
                if record is None:
                    continue
                ident = "ws_static_" + identifier_from_filename(name)
                base, i = ident, 1
                while ident in used_idents:
                    i += 1
                    ident = f"{base}_{i}"
                used_idents.add(ident)
                _write_bytes_constant(f, ident, record.payload)
                entries.append(
                    (name, record.url, record.content_type, ident, record.size)
                )
                del record  # release the payload before reading the next file

            f.write(f"static_count = {len(entries)}\n\n")
            _write_tuple(f, "static_urls", [repr(e[1]) for e in entries])
            _write_tuple(
                f,
                "static_content_type",
                [repr(e[2]) for e in entries],
                [e[0] for e in entries],
            )
            _write_tuple(f, "static_content", [e[3] for e in entries])
            _write_tuple(f, "static_content_size", [str(e[4]) for e in entries])
            f.write(POSTLUDE)
        os.replace(tmp_path, output_path)
    except OSError as err:
        _remove(tmp_path)
        raise BuildError(f"Cannot write output {str(output_path)!r}: {err.strerror}")
    except BaseException:
        _remove(tmp_path)
        raise

    logger.info(f"Embedded {len(entries)} assets into {output_path}")
    return len(entries)


def _remove(filename):
    try:
        os.remove(filename)
    except OSError:
        pass


def main(argv=None):
    """ CLI entry point: ``embedstatics <input_dir> <output> [url_prefix]``.
    Returns the exit code.
    """
    parser = argparse.ArgumentParser(
        prog="embedstatics",
        description="Embed the files in a directory as a static asset module.",
    )
    parser.add_argument("input_dir", help="directory with the files to embed")
    parser.add_argument("output", help="the Python module to write")
    parser.add_argument("url_prefix", nargs="?", default="/", help="default '/'")
    parser.add_argument(
        "--level", type=int, default=COMPRESS_LEVEL, help="gzip compression level"
    )
    parser.add_argument(
        "--max-age", type=int, default=None, help="add a cache-control max-age"
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)
    if args.max_age is not None and args.max_age < 0:
        parser.error("--max-age must be a non-negative int")

    if args.verbose:
        logger.setLevel("DEBUG")

    try:
        compile_assets(
            args.input_dir,
            args.output,
            args.url_prefix,
            compress_level=args.level,
            max_age=args.max_age,
        )
    except (BuildError, CompressionError) as err:
        sys.stderr.write(f"embedstatics: {err}\n")
        return 1
    return 0
