"""
Services Package

This package contains the routing pipeline behind the webhook endpoint:
- classifier: event to routing target rules
- github_client: GitHub API lookups used by the classifier
- resolver: routing target to Discord endpoint
- relay: outbound forward and response passthrough
"""

from webhook_relay.services.classifier import classify
from webhook_relay.services.github_client import (
    GitHubAPIError,
    GitHubClient,
    GitHubNotFoundError,
)
from webhook_relay.services.relay import forward, respond_json
from webhook_relay.services.resolver import ServerConfigurationError, resolve_target

__all__ = [
    "classify",
    "GitHubAPIError",
    "GitHubClient",
    "GitHubNotFoundError",
    "forward",
    "respond_json",
    "ServerConfigurationError",
    "resolve_target",
]
