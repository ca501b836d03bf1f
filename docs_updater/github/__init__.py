# =============================================================================
# DOCS UPDATER - GITHUB PACKAGE
# =============================================================================
"""
GitHub Integration Package

Components:
    - client: REST API client (pull requests, contents, refs, labels)
    - webhook_handler: Pull request webhooks and the aiohttp server

Usage:
    from docs_updater.github import GitHubClient

    client = GitHubClient(token="ghp_...")
    files = client.list_pull_files("acme/api", 42)
"""

from docs_updater.github.client import (
    GitHubClient,
    GitHubAPIError,
    RateLimitError,
    NotFoundError,
    AuthenticationError,
    ValidationError,
    decode_content,
)
from docs_updater.github.webhook_handler import (
    WebhookHandler,
    WebhookServer,
    WebhookError,
    WebhookValidationError,
    WebhookParseError,
    WebhookConfigError,
    create_webhook_handler,
    create_webhook_server,
)


__all__ = [
    # Client
    "GitHubClient",
    "GitHubAPIError",
    "RateLimitError",
    "NotFoundError",
    "AuthenticationError",
    "ValidationError",
    "decode_content",
    # Webhooks
    "WebhookHandler",
    "WebhookServer",
    "WebhookError",
    "WebhookValidationError",
    "WebhookParseError",
    "WebhookConfigError",
    "create_webhook_handler",
    "create_webhook_server",
]
