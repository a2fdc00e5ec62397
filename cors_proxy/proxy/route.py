import httpx
from fastapi import APIRouter, Request
from starlette.types import Receive, Scope, Send

from cors_proxy.config import ProxyConfig
from cors_proxy.proxy.forwarder import forward

router = APIRouter()


def get_config(request: Request) -> ProxyConfig:
    return request.app.state.config


def get_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.client


class ProxyEndpoint:
    """
    ASGI endpoint that proxies every method and path to the upstream.

    Starlette only leaves a route's method filter open for ASGI apps, not for
    plain function endpoints, so extension methods such as PROPFIND or REPORT
    reach the upstream instead of getting a 405.
    """

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        response = await forward(get_config(request), get_client(request), request)
        await response(scope, receive, send)


# Register catch-all route for proxying
router.add_route("/{path:path}", ProxyEndpoint(), include_in_schema=False)
