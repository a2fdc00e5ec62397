import logging
from typing import AsyncIterator, List, Tuple

import httpx
from fastapi import Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from opentelemetry import trace
from starlette.background import BackgroundTask

from cors_proxy.config import ProxyConfig
from cors_proxy.proxy.cors import annotate
from cors_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# httpx recomputes these for the upstream request
RECOMPUTED_REQUEST_HEADERS = {"host", "content-length"}


def build_target_url(upstream_base: str, path_and_query: str) -> str:
    """
    Join the upstream base and an inbound path+query with exactly one slash.

    Exactly one leading slash is removed from ``path_and_query`` and any
    trailing slashes from ``upstream_base``, so ``http://up:9000/`` and
    ``/foo?x=1`` give ``http://up:9000/foo?x=1``.
    """
    if path_and_query.startswith("/"):
        path_and_query = path_and_query[1:]
    return f"{upstream_base.rstrip('/')}/{path_and_query}"


def request_path_and_query(request: Request) -> str:
    """Raw inbound path plus ``?query`` when present, percent-encoding intact."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = request.url.path
    query = request.url.query
    return f"{path}?{query}" if query else path


def _connection_tokens(raw_headers: List[Tuple[bytes, bytes]]) -> set:
    """Header names listed in a Connection header are hop-by-hop as well."""
    tokens = set()
    for name, value in raw_headers:
        if name.lower() != b"connection":
            continue
        tokens.update(
            t.strip().lower().decode("latin-1") for t in value.split(b",") if t.strip()
        )
    return tokens


def _filter_raw(raw_headers: List[Tuple[bytes, bytes]], skip: set) -> list:
    skip = skip | _connection_tokens(raw_headers)
    return [
        (name.lower(), value)
        for name, value in raw_headers
        if name.lower().decode("latin-1") not in skip
    ]


def prepare_headers(request: Request) -> List[Tuple[bytes, bytes]]:
    """
    Inbound headers to send upstream as raw bytes, duplicates and order preserved.

    Values are never re-encoded, so bytes outside ASCII reach the upstream
    as the client sent them. Hop-by-hop headers are dropped, as are Host and
    Content-Length which httpx sets for the upstream connection.
    """
    return _filter_raw(
        request.headers.raw, HOP_BY_HOP_HEADERS | RECOMPUTED_REQUEST_HEADERS
    )


def preflight_response(config: ProxyConfig) -> Response:
    """Empty 200 answer to an OPTIONS preflight; the upstream is never contacted."""
    response = Response(status_code=200)
    annotate(response, config.allow_headers)
    return response


def error_response(config: ProxyConfig, exception: BaseException) -> Response:
    response = PlainTextResponse(
        format_exception_message(exception), status_code=400
    )
    annotate(response, config.allow_headers)
    return response


async def relay_body(upstream: httpx.Response) -> AsyncIterator[bytes]:
    """Relay the raw upstream body, releasing the connection however the stream ends."""
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    finally:
        await upstream.aclose()


def build_response(config: ProxyConfig, upstream: httpx.Response) -> Response:
    """
    Stream the upstream response back unchanged apart from the CORS headers.

    Header values are copied as raw bytes and the body is relayed still
    content-encoded, so Content-Encoding and Content-Length from the upstream
    remain accurate.
    """
    response = StreamingResponse(
        relay_body(upstream),
        status_code=upstream.status_code,
        background=BackgroundTask(upstream.aclose),
    )
    response.raw_headers.extend(_filter_raw(upstream.headers.raw, HOP_BY_HOP_HEADERS))
    annotate(response, config.allow_headers)
    return response


async def forward(
    config: ProxyConfig, client: httpx.AsyncClient, request: Request
) -> Response:
    """
    Forward ``request`` to the configured upstream.

    OPTIONS is answered locally. Every other method is sent to
    ``<upstream>/<path and query>`` with its headers and body. Transport
    failures, including a target URL httpx cannot parse, become a
    ``400 Bad Request`` carrying the error text; nothing is retried.
    """
    if request.method == "OPTIONS":
        logger.debug(f"Answering OPTIONS preflight for {request.url.path}")
        return preflight_response(config)

    with tracer.start_as_current_span("proxy_request") as span:
        target_url = build_target_url(
            config.upstream_base, request_path_and_query(request)
        )
        span.set_attribute("proxy.target_url", target_url)
        span.set_attribute("proxy.method", request.method)

        logger.debug(f"Proxying {target_url} [{request.method}]")

        headers = prepare_headers(request)
        body = await request.body()

        try:
            upstream_request = client.build_request(
                method=request.method,
                url=target_url,
                headers=headers,
                content=body,
            )
            upstream = await client.send(upstream_request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            log_exception_with_details(
                logger, f"[Proxy] Request to {target_url} failed:", e
            )
            span.set_attribute("proxy.error", type(e).__name__)
            return error_response(config, e)

        span.set_attribute("proxy.status_code", upstream.status_code)
        try:
            return build_response(config, upstream)
        except Exception:
            await upstream.aclose()
            raise
