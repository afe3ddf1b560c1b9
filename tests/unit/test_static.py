"""
Unit tests for the static file handler.
"""

import io
import os

import pytest

from minihttpd.http.errors import (
    BodyCopyFailure,
    FileCreateFailure,
    FileNotFound,
    MissingOrInvalidContentLength,
    PathOutsideRoot,
    PayloadTooLarge,
    UnsupportedFileType,
    UnsupportedMethod,
)
from minihttpd.http.request import Method, ParsedRequest
from minihttpd.handlers.static import StaticFileHandler


def get(target: str) -> ParsedRequest:
    return ParsedRequest(method=Method.GET, target=target)


def post(target: str, length: int) -> ParsedRequest:
    return ParsedRequest(
        method=Method.POST,
        target=target,
        headers={"content-length": str(length)},
        content_length=length,
    )


def split_response(data: bytes):
    head, _, body = bytes(data).partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    headers = dict(line.split(": ", 1) for line in lines[1:])
    return lines[0], headers, body


@pytest.fixture
def handler(files_root) -> StaticFileHandler:
    return StaticFileHandler(root_dir=files_root, max_upload_size=1024, chunk_size=4)


class TestResolve:
    """Path resolution and confinement."""

    def test_plain_path(self, handler, files_root):
        assert handler.resolve("/index.html") == files_root.resolve() / "index.html"

    def test_query_string_dropped(self, handler, files_root):
        assert handler.resolve("/notes.txt?v=2&x=y") == files_root.resolve() / "notes.txt"

    def test_percent_decoded(self, handler, files_root):
        assert handler.resolve("/sub/pa%67e.html") == files_root.resolve() / "sub" / "page.html"

    def test_dotdot_inside_root_allowed(self, handler, files_root):
        assert handler.resolve("/sub/../index.html") == files_root.resolve() / "index.html"

    def test_absolute_form(self, handler, files_root):
        target = "http://127.0.0.1:8080/sub/page.html?v=1"
        assert handler.resolve(target) == files_root.resolve() / "sub" / "page.html"

    def test_absolute_form_escape_rejected(self, handler):
        with pytest.raises(PathOutsideRoot):
            handler.resolve("http://example.com/../secret.txt")

    @pytest.mark.parametrize("target", [
        "/../secret.txt",
        "/sub/../../secret.txt",
        "/%2e%2e/secret.txt",
        "/..%2fsecret.txt",
        "/bad%00name.txt",
    ])
    def test_escape_rejected(self, handler, target):
        with pytest.raises(PathOutsideRoot) as exc_info:
            handler.resolve(target)

        assert exc_info.value.status_code == 400

    def test_symlink_out_of_root_rejected(self, handler, files_root):
        os.symlink(files_root.parent / "secret.txt", files_root / "link.txt")

        with pytest.raises(PathOutsideRoot):
            handler.resolve("/link.txt")

    def test_root_must_exist(self, tmp_path):
        with pytest.raises(ValueError):
            StaticFileHandler(root_dir=tmp_path / "missing")


class TestHandleGet:
    """GET requests."""

    def test_serves_file(self, handler, fake_connection):
        conn = fake_connection()
        handler.handle(conn, get("/index.html"))

        status, headers, body = split_response(conn.sent)
        assert status == "HTTP/1.1 200 OK"
        assert headers["Content-Type"] == "text/html; charset=utf-8"
        assert headers["Content-Length"] == str(len(body))
        assert headers["Connection"] == "close"
        assert body == b"<h1>hello</h1>\n"
        assert conn.response_status == 200

    @pytest.mark.parametrize("target, content_type", [
        ("/notes.txt", "text/plain; charset=utf-8"),
        ("/style.css", "text/css; charset=utf-8"),
        ("/cat.gif", "image/gif"),
        ("/photo.jpg", "image/jpeg"),
    ])
    def test_content_types(self, handler, fake_connection, target, content_type):
        conn = fake_connection()
        handler.handle(conn, get(target))

        _, headers, _ = split_response(conn.sent)
        assert headers["Content-Type"] == content_type

    def test_binary_body_exact(self, handler, fake_connection, files_root):
        conn = fake_connection()
        handler.handle(conn, get("/cat.gif"))

        _, _, body = split_response(conn.sent)
        assert body == (files_root / "cat.gif").read_bytes()

    def test_unsupported_extension_existing_file(self, handler, fake_connection):
        conn = fake_connection()

        with pytest.raises(UnsupportedFileType):
            handler.handle(conn, get("/script.js"))

        assert conn.sent == b""

    def test_unsupported_extension_missing_file(self, handler, fake_connection):
        """The whitelist is checked before the filesystem: 400, not 404."""
        with pytest.raises(UnsupportedFileType):
            handler.handle(fake_connection(), get("/nothing.exe"))

    def test_missing_file(self, handler, fake_connection):
        with pytest.raises(FileNotFound) as exc_info:
            handler.handle(fake_connection(), get("/missing.txt"))

        assert exc_info.value.status_code == 404

    def test_directory_with_whitelisted_name(self, handler, fake_connection, files_root):
        (files_root / "dir.html").mkdir()

        with pytest.raises(FileNotFound):
            handler.handle(fake_connection(), get("/dir.html"))

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="needs named pipes")
    def test_fifo_with_whitelisted_name(self, handler, fake_connection, files_root):
        """A FIFO is refused without being opened, so the worker never blocks."""
        os.mkfifo(files_root / "pipe.txt")

        with pytest.raises(FileNotFound):
            handler.handle(fake_connection(), get("/pipe.txt"))


class TestHandlePost:
    """POST requests."""

    def test_stores_exact_body(self, handler, fake_connection, files_root):
        conn = fake_connection(b"hello world" + b"EXTRA")
        handler.handle(conn, post("/upload.txt", 11))

        assert (files_root / "upload.txt").read_bytes() == b"hello world"
        assert conn.reader.read() == b"EXTRA"

        status, headers, body = split_response(conn.sent)
        assert status == "HTTP/1.1 200 OK"
        assert headers["Content-Length"] == "0"
        assert headers["Connection"] == "close"
        assert body == b""

    def test_overwrites_existing(self, handler, fake_connection, files_root):
        handler.handle(fake_connection(b"new"), post("/notes.txt", 3))
        assert (files_root / "notes.txt").read_bytes() == b"new"

    def test_no_extension_whitelist(self, handler, fake_connection, files_root):
        handler.handle(fake_connection(b"data"), post("/blob.bin", 4))
        assert (files_root / "blob.bin").read_bytes() == b"data"

    def test_zero_length(self, handler, fake_connection, files_root):
        handler.handle(fake_connection(b""), post("/empty.txt", 0))
        assert (files_root / "empty.txt").read_bytes() == b""

    def test_length_from_headers_when_not_extracted(self, handler, fake_connection, files_root):
        request = ParsedRequest(method=Method.POST, target="/h.txt", headers={"content-length": "2"})
        handler.handle(fake_connection(b"ok"), request)
        assert (files_root / "h.txt").read_bytes() == b"ok"

    def test_too_large_touches_nothing(self, handler, fake_connection, files_root):
        with pytest.raises(PayloadTooLarge) as exc_info:
            handler.handle(fake_connection(b"x"), post("/big.txt", 4096))

        assert exc_info.value.status_code == 413
        assert not (files_root / "big.txt").exists()

    def test_short_body(self, handler, fake_connection, files_root):
        conn = fake_connection(b"only5")

        with pytest.raises(BodyCopyFailure) as exc_info:
            handler.handle(conn, post("/short.txt", 10))

        assert exc_info.value.status_code == 500
        assert conn.sent == b""
        # The partial upload is left in place
        assert (files_root / "short.txt").read_bytes() == b"only5"

    def test_create_failure(self, handler, fake_connection):
        with pytest.raises(FileCreateFailure) as exc_info:
            handler.handle(fake_connection(b"abc"), post("/no/such/dir.txt", 3))

        assert exc_info.value.status_code == 500

    def test_read_error_is_copy_failure(self, handler, fake_connection):
        class BrokenStream(io.RawIOBase):
            def readable(self):
                return True

            def readinto(self, b):
                raise ConnectionResetError("peer reset")

        conn = fake_connection()
        conn.reader = io.BufferedReader(BrokenStream())

        with pytest.raises(BodyCopyFailure):
            handler.handle(conn, post("/reset.txt", 3))

    def test_traversal_rejected(self, handler, fake_connection, files_root):
        with pytest.raises(PathOutsideRoot):
            handler.handle(fake_connection(b"pwn"), post("/../evil.txt", 3))

        assert not (files_root.parent / "evil.txt").exists()

    def test_missing_length_still_411(self, handler, fake_connection):
        """Without a reader-extracted length the handler applies the same rule."""
        request = ParsedRequest(method=Method.POST, target="/x.txt", headers={})

        with pytest.raises(MissingOrInvalidContentLength) as exc_info:
            handler.handle(fake_connection(b"abc"), request)

        assert exc_info.value.status_code == 411


class TestOtherMethods:

    @pytest.mark.parametrize("token", ["PUT", "DELETE", "HEAD"])
    def test_not_implemented(self, handler, fake_connection, token):
        request = ParsedRequest(method=Method.OTHER, method_token=token, target="/index.html")

        with pytest.raises(UnsupportedMethod) as exc_info:
            handler.handle(fake_connection(), request)

        assert exc_info.value.status_code == 501


def test_requires_body_length():
    assert StaticFileHandler.requires_body_length is True
