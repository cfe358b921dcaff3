"""
Target Resolver Module

Maps a routing target to the Discord endpoint the delivery goes to.

Policy:
1. An endpoint configured for the target is used as-is.
2. Otherwise the catch-all endpoint is used, and the forwarded payload's
   repository full name becomes "<owner>/<target>" so the catch-all
   channel still shows which sub-project the event was for.
3. Otherwise the deployment is missing keys: ServerConfigurationError.
"""

import copy
from typing import Any

from webhook_relay.config import EndpointConfig
from webhook_relay.logging_config import get_logger
from webhook_relay.models import ForwardPlan, RoutingTarget

logger = get_logger(__name__)


class ServerConfigurationError(Exception):
    """No usable endpoint is configured for a resolved target."""
    def __init__(self, target: RoutingTarget):
        super().__init__(f"No endpoint configured for target '{target.value}' and no catch-all")
        self.target = target


def rewrite_repository_name(payload: Any, target: RoutingTarget) -> Any:
    """
    Return a copy of the payload with repository.full_name set to owner/target.

    Payloads without a repository object, or that are not JSON objects at
    all, are returned unchanged (as a copy).
    """
    rewritten = copy.deepcopy(payload)
    if not isinstance(rewritten, dict):
        return rewritten
    repository = rewritten.get("repository")
    if isinstance(repository, dict) and repository.get("full_name"):
        owner = str(repository["full_name"]).split("/")[0]
        repository["full_name"] = f"{owner}/{target.value}"
    return rewritten


def resolve_target(
    target: RoutingTarget,
    payload: Any,
    endpoints: EndpointConfig
) -> ForwardPlan:
    """
    Resolve where a delivery for the given target should be forwarded.

    Args:
        target: Routing target computed for the event
        payload: Original webhook payload (not modified)
        endpoints: Endpoint table built at startup

    Returns:
        ForwardPlan with the URL and the payload to send

    Raises:
        ValueError: If called with RoutingTarget.NONE
        ServerConfigurationError: If neither a specific nor a catch-all
            endpoint is configured
    """
    if target is RoutingTarget.NONE:
        raise ValueError("Skipped events must not be forwarded")

    url = endpoints.url_for(target.value)
    if url:
        return ForwardPlan(target=target, url=url, payload=payload)

    catch_all = endpoints.catch_all
    if not catch_all:
        logger.error("No endpoint configured", target=target.value)
        raise ServerConfigurationError(target)

    logger.info(
        "No endpoint for target, using catch-all",
        target=target.value
    )
    return ForwardPlan(
        target=target,
        url=catch_all,
        payload=rewrite_repository_name(payload, target),
        rewritten=True
    )
