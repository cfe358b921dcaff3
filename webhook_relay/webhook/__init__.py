"""
Webhook Package

This package contains webhook handling components:
- handler: FastAPI route handlers
- security: Request shape checks and signature verification
"""

from webhook_relay.webhook.handler import router

__all__ = ["router"]
