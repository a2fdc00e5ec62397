import logging
from contextlib import asynccontextmanager
from typing import Optional, Sequence

import httpx
import uvicorn
from fastapi import FastAPI

from cors_proxy.config import ProxyConfig, parse_config
from cors_proxy.proxy.route import router
from cors_proxy.telemetry import configure_tracing, instrument_app
from cors_proxy.vars import LOG_LEVEL

logger = logging.getLogger("uvicorn.error")


def build_client(config: ProxyConfig) -> httpx.AsyncClient:
    """The shared upstream client; redirects are relayed to the caller as-is."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.timeout),
        follow_redirects=False,
    )


def create_app(
    config: ProxyConfig, client: Optional[httpx.AsyncClient] = None
) -> FastAPI:
    """
    Build the proxy application.

    When ``client`` is given it is used for every request and left open on
    shutdown; otherwise the lifespan creates one client and closes it when the
    server stops.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "client", None) is None:
            owned = app.state.client = build_client(config)
        logger.info(
            f"CORS proxy listening on http://{config.listen_address} -> {config.host}"
        )
        logger.info(f"Example: call http://{config.listen_address}/<your api path>")
        try:
            yield
        finally:
            if owned is not None:
                await owned.aclose()
                app.state.client = None

    # Docs routes would shadow upstream paths like /docs
    app = FastAPI(
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config
    app.state.client = client

    instrument_app(app)
    app.include_router(router)
    return app


def run(config: ProxyConfig) -> None:
    """Serve on 127.0.0.1 until interrupted; uvicorn exits non-zero if the bind fails."""
    app = create_app(config)
    uvicorn.run(
        app,
        host=config.listen_host,
        port=config.server_port,
        log_level=LOG_LEVEL,
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    config = parse_config(argv)
    configure_tracing()
    run(config)
