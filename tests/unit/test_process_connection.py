"""
Unit tests for Server._process_connection().
"""

import pytest

from minihttpd import Server, ServerConfig
from minihttpd.handlers.base import ModeHandler
from minihttpd.http.errors import FileNotFound


class RaisingHandler(ModeHandler):
    name = "raising"

    def __init__(self, error: Exception):
        self.error = error

    def handle(self, conn, request):
        raise self.error


def make_server(files_root, error: Exception) -> Server:
    return Server(ServerConfig(root_dir=str(files_root)), handler=RaisingHandler(error))


class TestProcessConnection:
    """Error outcomes per connection."""

    def test_http_error_answered_not_aborted(self, files_root, fake_connection):
        conn = fake_connection(b"GET /x.txt HTTP/1.1\r\n\r\n")

        make_server(files_root, FileNotFound("gone"))._process_connection(conn)

        assert bytes(conn.sent).startswith(b"HTTP/1.1 404 Not Found\r\n")
        assert conn.response_status == 404
        assert not conn.aborted

    def test_parse_error_answered_not_aborted(self, files_root, fake_connection):
        conn = fake_connection(b"GARBAGE\r\n\r\n")

        make_server(files_root, KeyError("unused"))._process_connection(conn)

        assert bytes(conn.sent).startswith(b"HTTP/1.1 400 ")
        assert not conn.aborted

    @pytest.mark.parametrize("error", [
        ConnectionResetError("peer reset"),
        TimeoutError("timed out"),
        KeyError("boom"),
        RuntimeError("bug"),
    ])
    def test_other_errors_abort(self, files_root, fake_connection, error):
        conn = fake_connection(b"GET / HTTP/1.1\r\n\r\n")

        make_server(files_root, error)._process_connection(conn)

        assert conn.sent == b""
        assert conn.aborted

    def test_access_line_written(self, files_root, fake_connection, caplog):
        conn = fake_connection(b"GET /x.txt HTTP/1.1\r\n\r\n")

        with caplog.at_level("INFO", logger="minihttpd.access"):
            make_server(files_root, FileNotFound("gone"))._process_connection(conn)

        messages = [r.getMessage() for r in caplog.records if r.name == "minihttpd.access"]
        assert len(messages) == 1
        assert messages[0].startswith('127.0.0.1 - "GET /x.txt" 404 ')
