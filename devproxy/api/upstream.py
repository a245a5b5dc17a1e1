"""Upstream forwarding route.

Relays every request that no other route claims to the configured upstream.
This is the downstream handler the FEO interceptor wraps; it does not retry,
cache or rewrite bodies.
"""

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from devproxy.core.config import get_config
from devproxy.core.error_types import ERROR_CODE_UPSTREAM, ERROR_TYPE_API, error_body
from devproxy.core.http_client import get_http_client
from devproxy.core.logging import get_logger

logger = get_logger()

router = APIRouter()

MAX_ERROR_MESSAGE_LEN = 500

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

# httpx decodes the body, so these no longer describe what we send back
_DECODED_BODY_HEADERS = frozenset({"content-encoding", "content-length"})


def build_upstream_url(base_url: str, path: str, query: str) -> str:
    """Join the upstream base URL with the request path and query string."""
    url = base_url.rstrip("/") + path
    if query:
        url += f"?{query}"
    return url


def filter_request_headers(headers) -> dict[str, str]:
    return {
        name: value
        for name, value in headers.items()
        if name.lower() not in HOP_BY_HOP_HEADERS and name.lower() != "host"
    }


def filter_response_headers(headers: httpx.Headers) -> list[tuple[bytes, bytes]]:
    return [
        (name.lower(), value)
        for name, value in headers.raw
        if name.lower().decode("latin-1") not in HOP_BY_HOP_HEADERS | _DECODED_BODY_HEADERS
    ]


@router.api_route(
    "/{path:path}",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    include_in_schema=False,
)
async def forward(request: Request, path: str) -> Response:
    """Forward the request to the upstream and relay its response"""
    config = get_config()
    url = build_upstream_url(config.upstream_url, request.url.path, request.url.query)

    try:
        upstream_response = await get_http_client().request(
            request.method,
            url,
            headers=filter_request_headers(request.headers),
            content=await request.body(),
        )
    except httpx.HTTPError as e:
        logger.error(f"Upstream request failed: method={request.method} url={url} error={e}")
        return JSONResponse(
            status_code=502,
            content=error_body(
                f"Upstream request failed: {str(e)[:MAX_ERROR_MESSAGE_LEN]}",
                ERROR_TYPE_API,
                ERROR_CODE_UPSTREAM,
            ),
        )

    response = Response(
        content=upstream_response.content,
        status_code=upstream_response.status_code,
    )
    raw_headers = filter_response_headers(upstream_response.headers)
    if request.method != "HEAD":
        raw_headers.append((b"content-length", str(len(response.body)).encode("latin-1")))
    response.raw_headers = raw_headers
    return response
