"""
Relay Module

Forwards a delivery to its Discord endpoint and streams Discord's answer
back to the original caller.

Design Decisions:
- Only an allow-list of inbound headers is copied to the outbound request
- The body is re-serialized as pretty-printed JSON with a trailing newline
- The upstream body is streamed through unmodified, never buffered
- Transport failures become a 500 JSON envelope instead of a hung response
- No retries: a failed forward is reported, not repeated
"""

import json
from typing import Any, Dict, Mapping

import httpx
from fastapi import status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask
from starlette.responses import Response

from webhook_relay.logging_config import get_logger
from webhook_relay.models import ForwardPlan

logger = get_logger(__name__)

# Inbound header (lowercase) -> outbound header name
FORWARDED_HEADERS: Dict[str, str] = {
    "accept": "Accept",
    "content-type": "Content-Type",
    "user-agent": "User-Agent",
    "x-github-delivery": "X-GitHub-Delivery",
    "x-github-event": "X-GitHub-Event",
    "x-github-hook-id": "X-GitHub-Hook-ID",
    "x-github-hook-installation-target-id": "X-GitHub-Hook-Installation-Target-ID",
    "x-github-hook-installation-target-type": "X-GitHub-Hook-Installation-Target-Type",
}

HOP_BY_HOP_HEADERS = {"connection", "keep-alive", "transfer-encoding"}


def respond_json(status_code: int, message: str, data: Any = None) -> JSONResponse:
    """Build the {status, message, data} envelope used for every error."""
    return JSONResponse(
        status_code=status_code,
        content={"status": status_code, "message": message, "data": data}
    )


def build_forward_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """
    Copy the allow-listed headers of the inbound request.

    Args:
        headers: Inbound headers (case-insensitive mapping)

    Returns:
        Outbound headers with canonical names
    """
    forwarded = {}
    for name, outbound_name in FORWARDED_HEADERS.items():
        value = headers.get(name)
        if value:
            forwarded[outbound_name] = value
    return forwarded


def serialize_payload(payload: Any) -> bytes:
    """
    Pretty-print the payload the way GitHub delivers it.

    Non-ASCII text stays as-is unless the payload carries unpaired
    surrogates, which UTF-8 cannot encode; those fall back to \\u escapes.
    """
    try:
        return (json.dumps(payload, indent=2, ensure_ascii=False) + "\n").encode("utf-8")
    except UnicodeEncodeError:
        return (json.dumps(payload, indent=2) + "\n").encode("utf-8")


async def forward(
    method: str,
    headers: Mapping[str, str],
    plan: ForwardPlan,
    http_client: httpx.AsyncClient
) -> Response:
    """
    Forward a delivery and mirror the upstream response.

    Args:
        method: HTTP method of the inbound request
        headers: Inbound request headers
        plan: Resolved URL and payload
        http_client: Shared async HTTP client

    Returns:
        A streaming response mirroring Discord's status, headers and body,
        or a 500 envelope when the forward itself failed
    """
    request = http_client.build_request(
        method,
        plan.url,
        content=serialize_payload(plan.payload),
        headers=build_forward_headers(headers)
    )

    try:
        upstream = await http_client.send(request, stream=True)
    except httpx.HTTPError as e:
        logger.error(
            "Error while forwarding request to discord",
            target=plan.target.value,
            error=str(e),
            error_type=type(e).__name__
        )
        return respond_json(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Error while forwarding request to discord",
            {"error": str(e), "type": type(e).__name__}
        )

    logger.info(
        "Forwarded event",
        target=plan.target.value,
        rewritten=plan.rewritten,
        status_code=upstream.status_code
    )

    response = StreamingResponse(
        upstream.aiter_raw(),
        status_code=upstream.status_code,
        background=BackgroundTask(upstream.aclose)
    )
    response.raw_headers = [
        (name.lower(), value)
        for name, value in upstream.headers.raw
        if name.lower().decode("latin-1") not in HOP_BY_HOP_HEADERS
    ]
    return response
