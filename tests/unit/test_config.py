"""
Unit tests for configuration and the CLI.
"""

import pytest

from minihttpd.__main__ import build_parser, main
from minihttpd.config import ServerConfig
from minihttpd.handlers import ProxyHandler, StaticFileHandler, create_handler


ENV_VARS = [
    "HTTP_MODE", "HTTP_HOST", "HTTP_PORT", "HTTP_MAX_CONNECTIONS",
    "HTTP_ROOT_DIR", "HTTP_TIMEOUT", "HTTP_CONNECT_TIMEOUT", "HTTP_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults(self):
        config = ServerConfig()

        assert config.mode == "static"
        assert config.host == "127.0.0.1"
        assert config.port == 8080
        assert config.max_connections == 10
        assert config.timeout is None
        assert config.connect_timeout is None
        assert config.root_dir == "files"
        assert config.max_upload_size == 10 * 1024 * 1024
        config.validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("HTTP_MODE", "proxy")
        monkeypatch.setenv("HTTP_PORT", "3000")
        monkeypatch.setenv("HTTP_MAX_CONNECTIONS", "25")
        monkeypatch.setenv("HTTP_TIMEOUT", "2.5")
        monkeypatch.setenv("HTTP_LOG_LEVEL", "DEBUG")

        config = ServerConfig.from_env()

        assert config.mode == "proxy"
        assert config.port == 3000
        assert config.max_connections == 25
        assert config.timeout == 2.5
        assert config.connect_timeout is None
        assert config.log_level == "DEBUG"

    def test_overrides_beat_env(self, monkeypatch):
        monkeypatch.setenv("HTTP_PORT", "3000")
        monkeypatch.setenv("HTTP_ROOT_DIR", "/srv/env")

        config = ServerConfig.from_env(port=4000, root_dir=None)

        assert config.port == 4000
        assert config.root_dir == "/srv/env"

    def test_bad_env_number(self, monkeypatch):
        monkeypatch.setenv("HTTP_PORT", "eighty")

        with pytest.raises(ValueError, match="HTTP_PORT"):
            ServerConfig.from_env()

    @pytest.mark.parametrize("field, value", [
        ("mode", "ftp"),
        ("port", 70000),
        ("port", -1),
        ("max_connections", 0),
        ("timeout", 0),
        ("connect_timeout", -2.0),
        ("buffer_size", 10),
        ("log_level", "CHATTY"),
    ])
    def test_validate_rejects(self, field, value):
        config = ServerConfig(**{field: value})

        with pytest.raises(ValueError):
            config.validate()

    def test_port_zero_allowed(self):
        ServerConfig(port=0).validate()


class TestCreateHandler:
    """Tests for create_handler()."""

    def test_static(self, files_root):
        handler = create_handler(ServerConfig(mode="static", root_dir=str(files_root)))

        assert isinstance(handler, StaticFileHandler)
        assert handler.root_dir == files_root.resolve()
        assert handler.requires_body_length is True

    def test_proxy(self):
        handler = create_handler(ServerConfig(mode="proxy", connect_timeout=3.0))

        assert isinstance(handler, ProxyHandler)
        assert handler.connect_timeout == 3.0
        assert handler.requires_body_length is False

    def test_missing_root(self, tmp_path):
        with pytest.raises(ValueError):
            create_handler(ServerConfig(mode="static", root_dir=str(tmp_path / "nope")))


class TestCLI:
    """Tests for the argument parser."""

    def test_positional_mode_and_port(self):
        args = build_parser().parse_args(["proxy", "8888"])

        assert args.mode == "proxy"
        assert args.port == 8888
        assert args.host is None
        assert args.max_connections is None

    def test_options(self):
        args = build_parser().parse_args([
            "static", "0", "--root", "public", "--max-connections", "3",
            "--timeout", "1.5", "--log-level", "debug",
        ])

        assert args.root == "public"
        assert args.max_connections == 3
        assert args.timeout == 1.5
        assert args.log_level == "DEBUG"

    def test_unknown_mode(self):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["ftp", "21"])

        assert exc_info.value.code == 2

    def test_invalid_config_is_usage_error(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["static", "0", "--root", str(tmp_path / "missing")])

        assert exc_info.value.code == 2
