from typing import Callable, Dict, List, Optional

import httpx
from fastapi import Request


class RecordingUpstream:
    """httpx.MockTransport handler that records every request it receives."""

    def __init__(
        self, handler: Optional[Callable[[httpx.Request], httpx.Response]] = None
    ):
        self.requests: List[httpx.Request] = []
        self._handler = handler or (lambda request: httpx.Response(200, text="ok"))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def called(self) -> bool:
        return bool(self.requests)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


class UnreachableUpstream(RecordingUpstream):
    """Upstream that refuses every connection, like a closed port."""

    def __init__(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

        super().__init__(refuse)


class ForbiddenUpstream(RecordingUpstream):
    """Upstream that fails the test if it is ever contacted."""

    def __init__(self):
        def fail(request: httpx.Request) -> httpx.Response:
            raise AssertionError(f"upstream must not be called: {request.url}")

        super().__init__(fail)


def make_request(
    method: str = "GET",
    path: str = "/",
    query: str = "",
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
) -> Request:
    """Build a Starlette request as uvicorn would hand it to the app."""
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("latin-1"),
        "query_string": query.encode("latin-1"),
        "root_path": "",
        "headers": [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ],
        "server": ("127.0.0.1", 4000),
        "client": ("127.0.0.1", 50000),
    }

    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


async def read_body(response) -> bytes:
    """Drain a (streaming) response and run its background task."""
    if hasattr(response, "body_iterator"):
        body = b"".join([chunk async for chunk in response.body_iterator])
    else:
        body = response.body
    if response.background is not None:
        await response.background()
    return body
