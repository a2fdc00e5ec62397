from typing import List, Optional, Tuple

from fastapi.responses import Response

from cors_proxy.config import DEFAULT_ALLOW_HEADERS

ALLOW_ORIGIN = "*"
REQUEST_METHODS = "GET,POST,PUT,DELETE,OPTIONS,HEAD,PATCH"
ALLOW_CREDENTIALS = "true"


def cors_headers(allow_headers: Optional[str] = None) -> List[Tuple[str, str]]:
    """The cross-origin headers appended to every proxied response, in order."""
    return [
        ("Access-Control-Allow-Origin", ALLOW_ORIGIN),
        ("Access-Control-Request-Method", REQUEST_METHODS),
        ("Access-Control-Allow-Headers", allow_headers or DEFAULT_ALLOW_HEADERS),
        ("Access-Control-Allow-Credentials", ALLOW_CREDENTIALS),
    ]


def annotate(response: Response, allow_headers: Optional[str] = None) -> None:
    """
    Append the CORS headers to ``response`` in place.

    Headers are appended, never replaced: an upstream that already sends its
    own CORS headers ends up with both values, and annotating twice yields
    duplicate lines.
    """
    for name, value in cors_headers(allow_headers):
        response.headers.append(name, value)
