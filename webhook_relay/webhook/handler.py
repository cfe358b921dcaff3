"""
Webhook Handler Module

This module defines the FastAPI endpoint GitHub delivers webhooks to.

Per delivery:
1. Validate the request is a GitHub JSON event (400 otherwise)
2. Verify the signature when a secret is configured
3. Unknown event types go straight to the catch-all channel
4. Known event types are classified; skipped events answer 204
5. The delivery is forwarded and Discord's response is relayed back

Classification errors are mapped to responses here and nowhere else.
"""

import json
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from starlette.responses import Response

from webhook_relay.config import EndpointConfig, Settings
from webhook_relay.logging_config import get_logger
from webhook_relay.models import CheckedEvent, RoutingTarget, parse_webhook_event
from webhook_relay.services.classifier import classify
from webhook_relay.services.github_client import (
    GitHubAPIError,
    GitHubClient,
    GitHubNotFoundError,
)
from webhook_relay.services.relay import forward, respond_json
from webhook_relay.services.resolver import ServerConfigurationError, resolve_target
from webhook_relay.webhook.security import (
    extract_delivery_id,
    is_github_event,
    verify_webhook_signature,
)

logger = get_logger(__name__)

# Create router for webhook endpoints
router = APIRouter(prefix="/webhook", tags=["webhook"])


async def _relay(
    request: Request,
    payload: Any,
    target: RoutingTarget,
    delivery_id: Optional[str]
) -> Response:
    """Resolve the endpoint for a target and forward the delivery."""
    endpoints: EndpointConfig = request.app.state.endpoints
    http_client: httpx.AsyncClient = request.app.state.http_client

    try:
        plan = resolve_target(target, payload, endpoints)
    except ServerConfigurationError as e:
        logger.error(
            "Cannot forward event",
            target=target.value,
            delivery_id=delivery_id,
            error=str(e)
        )
        return respond_json(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Cannot process request due to missing server side keys",
            {"target": target.value}
        )

    return await forward(request.method, request.headers, plan, http_client)


def _upstream_error_response(error: GitHubAPIError) -> Response:
    """Report a failed lookup, mirroring GitHub's rate-limit headers."""
    status_code = (
        status.HTTP_429_TOO_MANY_REQUESTS
        if error.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        else status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    response = respond_json(
        status_code,
        "An error occurred in an upstream fetch request",
        {"status_code": error.status_code, "error": str(error)}
    )
    for name, value in error.rate_limit.items():
        response.headers[name] = value
    return response


@router.api_route(
    "/github",
    methods=["POST", "PUT", "PATCH"],
    response_model=None
)
async def github_webhook(request: Request) -> Response:
    """
    GitHub webhook endpoint.

    Classifies the delivery and proxies it to the matching Discord
    webhook, answering with whatever Discord answered.

    Args:
        request: FastAPI request object

    Returns:
        Discord's response, 204 for skipped events, or an error envelope
    """
    settings: Settings = request.app.state.settings
    delivery_id = extract_delivery_id(request)

    # Step 1: Shape check, nothing else runs for non-GitHub requests
    if not is_github_event(request):
        logger.info(
            "Rejected request without GitHub event headers",
            delivery_id=delivery_id,
            remote_addr=request.client.host if request.client else "unknown"
        )
        return PlainTextResponse("Not a github event", status_code=status.HTTP_400_BAD_REQUEST)

    event_name = request.headers["X-GitHub-Event"]

    # Step 2: Verify webhook signature when configured
    raw_body = await request.body()
    verify_webhook_signature(request, raw_body, settings.github_webhook_secret)

    # Step 3: Parse the payload
    try:
        payload = json.loads(raw_body) if raw_body else {}
    except ValueError as e:
        logger.error("Failed to parse webhook payload", error=str(e), delivery_id=delivery_id)
        return respond_json(status.HTTP_400_BAD_REQUEST, "Invalid JSON payload", {"error": str(e)})

    logger.info(
        "Received GitHub webhook",
        event_name=event_name,
        action=payload.get("action") if isinstance(payload, dict) else None,
        delivery_id=delivery_id
    )

    # Step 4: Unknown events are never dropped, they go to the catch-all
    checked_event = CheckedEvent.from_header(event_name)
    if checked_event is None:
        logger.debug("Unchecked event, forwarding to catch-all", event_name=event_name)
        return await _relay(request, payload, RoutingTarget.MONOREPO, delivery_id)

    if not isinstance(payload, dict):
        return respond_json(status.HTTP_400_BAD_REQUEST, "Payload must be a JSON object")

    # Step 5: Parse into the event family
    try:
        event = parse_webhook_event(checked_event, payload)
    except ValidationError as e:
        logger.error(
            "Invalid webhook payload",
            event_name=event_name,
            error=str(e),
            delivery_id=delivery_id
        )
        return respond_json(
            status.HTTP_400_BAD_REQUEST,
            f"Invalid payload for event '{event_name}'",
            {"errors": e.errors(include_url=False, include_context=False, include_input=False)}
        )

    # Step 6: Classify
    lookup = GitHubClient(request.app.state.http_client, settings)
    try:
        target = await classify(event, lookup)
    except GitHubNotFoundError:
        logger.info(
            "Lookup target not found, forwarding to catch-all",
            event_name=event_name,
            delivery_id=delivery_id
        )
        return await _relay(request, payload, RoutingTarget.MONOREPO, delivery_id)
    except GitHubAPIError as e:
        logger.error(
            "Upstream lookup failed",
            event_name=event_name,
            status_code=e.status_code,
            delivery_id=delivery_id
        )
        return _upstream_error_response(e)
    except Exception as e:
        logger.error(
            "Unexpected error while classifying event",
            event_name=event_name,
            error=str(e),
            error_type=type(e).__name__,
            delivery_id=delivery_id
        )
        return respond_json(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred while processing the event",
            {"error": str(e), "type": type(e).__name__}
        )

    if target is RoutingTarget.NONE:
        logger.info("Event skipped", event_name=event_name, delivery_id=delivery_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # Step 7: Forward
    logger.info(
        "Routing event",
        event_name=event_name,
        target=target.value,
        delivery_id=delivery_id
    )
    return await _relay(request, payload, target, delivery_id)


@router.get("/health")
async def webhook_health() -> Dict[str, str]:
    """
    Health check endpoint for the webhook service.

    Returns:
        Simple health status
    """
    return {"status": "healthy", "service": "webhook"}
