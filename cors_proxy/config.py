"""
Command-line configuration for the proxy.

Flags fall back to environment variables (see ``cors_proxy.vars``), so the
proxy can be started either as ``cors-proxy --host http://127.0.0.1:8888/`` or
with ``UPSTREAM_HOST`` exported.
"""

import argparse
from dataclasses import dataclass
from typing import Optional, Sequence
from urllib.parse import urlparse

from cors_proxy.vars import (
    ALLOW_HEADERS,
    LISTEN_HOST,
    PROXY_TIMEOUT,
    SERVER_PORT,
    UPSTREAM_HOST,
)

DEFAULT_ALLOW_HEADERS = "Content-Type,Authorization"


@dataclass(frozen=True)
class ProxyConfig:
    """Immutable startup configuration shared by every request."""

    host: str
    server_port: int = 4000
    allow_headers: Optional[str] = None
    timeout: float = 300.0
    listen_host: str = LISTEN_HOST

    @property
    def upstream_base(self) -> str:
        return self.host.rstrip("/")

    @property
    def listen_address(self) -> str:
        return f"{self.listen_host}:{self.server_port}"

    @property
    def effective_allow_headers(self) -> str:
        return self.allow_headers or DEFAULT_ALLOW_HEADERS


def validate_port(value: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}")
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range (0-65535): {port}")
    return port


def validate_upstream_host(host: str) -> str:
    """
    Check that the upstream is an absolute http(s) URL.

    Only an optional trailing slash may follow the base path; queries and
    fragments would end up in the middle of every forwarded URL.
    """
    parsed = urlparse(host)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"upstream host must use http or https: {host!r}")
    if not parsed.netloc:
        raise ValueError(f"upstream host must be an absolute URL: {host!r}")
    if parsed.query or parsed.fragment:
        raise ValueError(
            f"upstream host must not carry a query or fragment: {host!r}"
        )
    return host


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cors-proxy",
        description=(
            "Reverse proxy that forwards every request to one upstream host "
            "and appends permissive CORS headers."
        ),
        epilog="Example: cors-proxy --host http://127.0.0.1:8888/ "
        "then call http://127.0.0.1:4000/<your api path>",
    )
    parser.add_argument(
        "--server-port",
        type=validate_port,
        default=SERVER_PORT,
        help="Local port to listen on (default: %(default)s)",
    )
    parser.add_argument(
        "--host",
        default=UPSTREAM_HOST or None,
        required=not UPSTREAM_HOST,
        help="Upstream base URL, e.g. http://127.0.0.1:8888/",
    )
    parser.add_argument(
        "--allow-headers",
        default=ALLOW_HEADERS,
        help=(
            "Comma-separated headers for Access-Control-Allow-Headers "
            f"(default: {DEFAULT_ALLOW_HEADERS})"
        ),
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=PROXY_TIMEOUT,
        help="Upstream request timeout in seconds (default: %(default)s)",
    )
    return parser


def parse_config(argv: Optional[Sequence[str]] = None) -> ProxyConfig:
    """Parse ``argv`` into a ProxyConfig, exiting with usage on bad input."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        host = validate_upstream_host(args.host)
    except ValueError as e:
        parser.error(str(e))

    if args.timeout <= 0:
        parser.error(f"timeout must be positive: {args.timeout}")

    return ProxyConfig(
        host=host,
        server_port=args.server_port,
        allow_headers=args.allow_headers,
        timeout=args.timeout,
    )
