"""
Webhook Security Module

This module validates the shape of incoming deliveries and, when a webhook
secret is configured, verifies GitHub's HMAC signature.

Design Decisions:
- Use constant-time comparison to prevent timing attacks
- Verify signature before any payload processing
- Support both SHA-1 and SHA-256 signatures (SHA-256 preferred)
- Signature checks are opt-in: without a secret every delivery is accepted
"""

import hashlib
import hmac
from typing import Optional

from fastapi import HTTPException, Request, status

from webhook_relay.logging_config import get_logger

logger = get_logger(__name__)


def is_github_event(request: Request) -> bool:
    """
    Check the delivery looks like a GitHub webhook.

    A delivery needs an X-GitHub-Event header and a JSON content type.
    """
    event_name = request.headers.get("X-GitHub-Event")
    content_type = request.headers.get("Content-Type") or ""
    return bool(event_name) and "json" in content_type.lower()


def verify_webhook_signature(
    request: Request,
    raw_body: bytes,
    secret: Optional[str]
) -> bool:
    """
    Verify the GitHub webhook signature.

    GitHub sends a signature in the X-Hub-Signature-256 header.
    It must match the HMAC-SHA256 of the request body using the
    webhook secret.

    Args:
        request: FastAPI request object
        raw_body: Raw request body bytes
        secret: Configured webhook secret, None to skip verification

    Returns:
        True if the signature is valid or verification is disabled

    Raises:
        HTTPException: If signature is missing or invalid
    """
    if not secret:
        return True

    # Prefer SHA-256, fall back to SHA-1
    signature_header = request.headers.get("X-Hub-Signature-256")
    algorithm = "sha256"

    if not signature_header:
        signature_header = request.headers.get("X-Hub-Signature")
        algorithm = "sha1"

    if not signature_header:
        logger.warning(
            "Missing webhook signature header",
            remote_addr=request.client.host if request.client else "unknown"
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing webhook signature"
        )

    try:
        prefix, signature = signature_header.split("=", 1)
        if prefix != algorithm:
            raise ValueError(f"Unexpected algorithm prefix: {prefix}")
    except ValueError as e:
        logger.warning("Invalid signature format", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature format"
        )

    hash_func = hashlib.sha256 if algorithm == "sha256" else hashlib.sha1
    expected_signature = hmac.new(secret.encode(), raw_body, hash_func).hexdigest()

    if not hmac.compare_digest(signature, expected_signature):
        logger.warning(
            "Webhook signature mismatch",
            remote_addr=request.client.host if request.client else "unknown",
            algorithm=algorithm
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature"
        )

    logger.debug("Webhook signature verified successfully", algorithm=algorithm)
    return True


def extract_delivery_id(request: Request) -> Optional[str]:
    """
    Extract the webhook delivery ID from headers.

    Used to correlate log lines for one delivery.
    """
    return request.headers.get("X-GitHub-Delivery")
