"""
GitHub to Discord Webhook Relay

Receives GitHub repository events, picks the Discord channel that should
see each one and proxies the delivery to that channel's webhook.
"""

__version__ = "1.0.0"
