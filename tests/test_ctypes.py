"""
Test the mapping of filenames to content types.
"""

from embedstatics import content_type_for_filename


def test_accepted_types():

    assert content_type_for_filename("index.html") == "text/html; charset=utf-8"
    assert content_type_for_filename("index.htm") == "text/html; charset=utf-8"
    assert content_type_for_filename("app.js") == "text/javascript; charset=utf-8"
    assert content_type_for_filename("style.css") == "text/css; charset=utf-8"
    assert content_type_for_filename("data.json") == "application/json; charset=utf-8"
    assert content_type_for_filename("notes.txt") == "text/plain; charset=utf-8"
    assert content_type_for_filename("logo.svg") == "image/svg+xml"
    assert content_type_for_filename("logo.png") == "image/png"
    assert content_type_for_filename("photo.jpg") == "image/jpeg"
    assert content_type_for_filename("photo.jpeg") == "image/jpeg"
    assert content_type_for_filename("anim.gif") == "image/gif"
    assert content_type_for_filename("favicon.ico") == "image/x-icon"
    assert content_type_for_filename("module.wasm") == "application/wasm"
    assert content_type_for_filename("font.woff") == "font/woff"
    assert content_type_for_filename("font.woff2") == "font/woff2"


def test_case_insensitive():

    assert content_type_for_filename("INDEX.HTML") == "text/html; charset=utf-8"
    assert content_type_for_filename("Photo.JpEg") == "image/jpeg"


def test_rejected():

    for fname in (
        "archive.tar.gz",
        "README",
        "Makefile",
        ".html",
        ".gitignore",
        "index.html.bak",
        "script.py",
        "movie.mp4",
        "trailingdot.",
    ):
        assert content_type_for_filename(fname) is None, fname

    # Only the last extension counts
    ctype = content_type_for_filename("archive.gz.js")
    assert ctype == "text/javascript; charset=utf-8"
    assert content_type_for_filename("x.tar.png") == "image/png"


if __name__ == "__main__":
    from common import run_tests

    run_tests(globals())
