import argparse
import dataclasses

import pytest

from cors_proxy.config import (
    DEFAULT_ALLOW_HEADERS,
    ProxyConfig,
    parse_config,
    validate_port,
    validate_upstream_host,
)


@pytest.fixture(autouse=True)
def no_upstream_env(monkeypatch):
    """Make --host required regardless of the caller's environment."""
    monkeypatch.setattr("cors_proxy.config.UPSTREAM_HOST", "")
    monkeypatch.setattr("cors_proxy.config.SERVER_PORT", 4000)
    monkeypatch.setattr("cors_proxy.config.ALLOW_HEADERS", None)
    monkeypatch.setattr("cors_proxy.config.PROXY_TIMEOUT", 300.0)


class TestParseConfig:
    def test_defaults(self):
        config = parse_config(["--host", "http://127.0.0.1:8888/"])

        assert config == ProxyConfig(
            host="http://127.0.0.1:8888/",
            server_port=4000,
            allow_headers=None,
            timeout=300.0,
        )
        assert config.listen_host == "127.0.0.1"

    def test_all_flags(self):
        config = parse_config(
            [
                "--host",
                "https://api.example.com",
                "--server-port",
                "8080",
                "--allow-headers",
                "X-Custom,Authorization",
                "--timeout",
                "2.5",
            ]
        )

        assert config.server_port == 8080
        assert config.allow_headers == "X-Custom,Authorization"
        assert config.timeout == 2.5
        assert config.listen_address == "127.0.0.1:8080"

    def test_missing_host_exits_with_usage(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse_config([])

        assert exc_info.value.code == 2
        err = capsys.readouterr().err
        assert "usage:" in err
        assert "--host" in err

    def test_host_from_environment(self, monkeypatch):
        monkeypatch.setattr("cors_proxy.config.UPSTREAM_HOST", "http://env-host:1234")

        config = parse_config([])

        assert config.host == "http://env-host:1234"

    def test_flag_overrides_environment(self, monkeypatch):
        monkeypatch.setattr("cors_proxy.config.UPSTREAM_HOST", "http://env-host:1234")

        config = parse_config(["--host", "http://flag-host:1"])

        assert config.host == "http://flag-host:1"

    @pytest.mark.parametrize("port", ["70000", "-1", "abc"])
    def test_invalid_port_exits(self, port):
        with pytest.raises(SystemExit) as exc_info:
            parse_config(["--host", "http://localhost:9000", "--server-port", port])

        assert exc_info.value.code == 2

    @pytest.mark.parametrize(
        "host", ["localhost:9000", "/relative", "ftp://files.example.com", "http://"]
    )
    def test_invalid_host_exits(self, host, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse_config(["--host", host])

        assert exc_info.value.code == 2
        assert "upstream host" in capsys.readouterr().err

    def test_non_positive_timeout_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            parse_config(["--host", "http://localhost:9000", "--timeout", "0"])

        assert exc_info.value.code == 2


class TestProxyConfig:
    def test_upstream_base_strips_trailing_slash(self):
        assert ProxyConfig(host="http://localhost:9000/").upstream_base == (
            "http://localhost:9000"
        )
        assert ProxyConfig(host="http://localhost:9000/api/").upstream_base == (
            "http://localhost:9000/api"
        )

    def test_effective_allow_headers(self):
        assert ProxyConfig(host="http://h").effective_allow_headers == (
            DEFAULT_ALLOW_HEADERS
        )
        assert (
            ProxyConfig(host="http://h", allow_headers="X-A").effective_allow_headers
            == "X-A"
        )

    def test_is_immutable(self):
        config = ProxyConfig(host="http://h")

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.host = "http://other"


class TestValidators:
    @pytest.mark.parametrize("value,expected", [("0", 0), ("4000", 4000), ("65535", 65535)])
    def test_validate_port_accepts_u16(self, value, expected):
        assert validate_port(value) == expected

    def test_validate_port_rejects_out_of_range(self):
        with pytest.raises(argparse.ArgumentTypeError):
            validate_port("65536")

    def test_validate_upstream_host_rejects_query(self):
        with pytest.raises(ValueError):
            validate_upstream_host("http://localhost:9000/?a=1")

    def test_validate_upstream_host_accepts_base_path(self):
        assert validate_upstream_host("https://example.com/api/") == (
            "https://example.com/api/"
        )
