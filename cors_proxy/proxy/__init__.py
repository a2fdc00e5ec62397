from .cors import annotate, cors_headers
from .forwarder import build_target_url, forward, preflight_response
from .route import router

__all__ = [
    "annotate",
    "cors_headers",
    "build_target_url",
    "forward",
    "preflight_response",
    "router",
]
