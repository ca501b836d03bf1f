# =============================================================================
# DOCS UPDATER - WEBHOOK HANDLER
# =============================================================================
"""
GitHub Webhook Handler

Receives pull request events from GitHub and runs the documentation
pipeline for every pull request that is opened or updated.

Supported Events:
    - pull_request: opened, synchronize (everything else is ignored)
    - ping: Sent when the webhook is first configured

Security:
    - Validates webhook signature using HMAC-SHA256 when a secret is set

Payloads may be delivered as JSON or form-encoded (``payload=<json>``).
A payload may carry a ``config`` object that overrides the documentation
settings for that run.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qs

from aiohttp import web

from docs_updater.engine.state import summarize_state
from monitoring.metrics import MetricsCollector


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class WebhookError(Exception):
    """Base exception for webhook errors."""
    pass


class WebhookValidationError(WebhookError):
    """Raised when webhook signature validation fails."""
    pass


class WebhookParseError(WebhookError):
    """Raised when webhook payload cannot be parsed or lacks required fields."""
    pass


class WebhookConfigError(WebhookError):
    """Raised when webhook configuration is invalid."""
    pass


# =============================================================================
# CONSTANTS
# =============================================================================

# GitHub header names (compared lower-cased)
HEADER_EVENT = "X-GitHub-Event"
HEADER_SIGNATURE = "X-Hub-Signature-256"
HEADER_DELIVERY = "X-GitHub-Delivery"

# Pull request actions that trigger a pipeline run
RELEVANT_ACTIONS = frozenset(["opened", "synchronize"])

# Title prefix of the PRs this service opens
BOT_TITLE_PREFIX = "📚 Update documentation"

# Label carried by documentation PRs
DOCS_LABEL = "documentation"

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _empty_stats() -> Dict[str, Any]:
    return {
        "total_received": 0,
        "total_processed": 0,
        "total_ignored": 0,
        "total_errors": 0,
        "by_event": {},
        "last_received": None,
    }


# =============================================================================
# PAYLOAD HELPERS
# =============================================================================


def parse_body(body: bytes, content_type: str) -> Dict[str, Any]:
    """
    Decode a webhook body according to its content type.

    Raises:
        WebhookParseError: For unsupported content types or invalid JSON
    """
    content_type = (content_type or "").lower()
    try:
        text = body.decode("utf-8")
        if JSON_CONTENT_TYPE in content_type:
            payload = json.loads(text)
        elif FORM_CONTENT_TYPE in content_type:
            form = parse_qs(text)
            if "payload" not in form:
                raise WebhookParseError("Form body has no payload field")
            payload = json.loads(form["payload"][0])
        else:
            raise WebhookParseError(f"Unsupported content type: {content_type or 'none'}")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise WebhookParseError(f"Invalid JSON payload: {e}")

    if not isinstance(payload, dict):
        raise WebhookParseError("Webhook payload must be a JSON object")
    return payload


def is_valid_pull_request(payload: Dict[str, Any]) -> bool:
    """Check the fields needed to start a run are all present."""
    pull_request = payload.get("pull_request") or {}
    repository = payload.get("repository") or {}
    owner = repository.get("owner") or {}
    return bool(
        pull_request.get("number")
        and owner.get("login")
        and repository.get("name")
        and payload.get("action")
    )


def is_bot_pr(pull_request: Dict[str, Any], title_prefixes: Tuple[str, ...]) -> bool:
    """
    Detect pull requests this service opened itself.

    Matches the documentation title prefix, the ``documentation`` label
    or a bot author.
    """
    title = pull_request.get("title") or ""
    if title_prefixes and title.startswith(title_prefixes):
        return True
    labels = [label.get("name", "") for label in pull_request.get("labels") or []]
    if DOCS_LABEL in labels:
        return True
    user = pull_request.get("user") or {}
    return user.get("type") == "Bot"


def is_relevant_event(event_type: str, action: str) -> bool:
    return event_type == "pull_request" and action in RELEVANT_ACTIONS


# =============================================================================
# WEBHOOK HANDLER CLASS
# =============================================================================


class WebhookHandler:
    """
    Handles incoming GitHub webhooks.

    This class:
    1. Validates webhook signatures using HMAC-SHA256
    2. Parses JSON or form-encoded payloads
    3. Filters bot PRs and irrelevant actions
    4. Runs the documentation pipeline once per accepted delivery

    Attributes:
        secret: Webhook secret for validation (empty disables the check)
        pipeline: DocsUpdatePipeline (anything with create_state/run)
        metrics: Optional MetricsCollector
        stats: Delivery counters for ``/stats``
    """

    def __init__(
        self,
        pipeline: Any,
        secret: Optional[str] = None,
        metrics: Optional[MetricsCollector] = None,
        bot_title_prefix: Optional[str] = None,
    ):
        """
        Initialize webhook handler.

        Args:
            pipeline: Pipeline to run for accepted pull requests
            secret: Webhook secret for signature validation
            metrics: Optional metrics collector
            bot_title_prefix: Extra title prefix that marks documentation PRs
        """
        self.secret = str(secret).encode("utf-8") if secret else b""
        self.pipeline = pipeline
        self.metrics = metrics

        prefixes = [BOT_TITLE_PREFIX]
        if bot_title_prefix and bot_title_prefix not in prefixes:
            prefixes.append(bot_title_prefix)
        self.bot_title_prefixes: Tuple[str, ...] = tuple(prefixes)

        self.stats = _empty_stats()

        logger.info("WebhookHandler initialized")

    async def handle_webhook(
        self,
        headers: Dict[str, str],
        body: bytes,
    ) -> Dict[str, Any]:
        """
        Process an incoming webhook.

        Args:
            headers: HTTP headers (any case)
            body: Raw request body

        Returns:
            {"status": "processed", ...}, {"status": "ignored", "reason": "..."}
            or {"status": "error", ...} when the pipeline fails

        Raises:
            WebhookValidationError: If signature is invalid
            WebhookParseError: If the event header, body or required
                fields are missing or malformed
        """
        self.stats["total_received"] += 1
        self.stats["last_received"] = datetime.now(timezone.utc).isoformat()
        headers = {key.lower(): value for key, value in headers.items()}

        if self.secret and not self._validate_signature(headers, body):
            self.stats["total_errors"] += 1
            self._record("unknown", "", "rejected")
            raise WebhookValidationError("Invalid webhook signature")

        try:
            event_type, action, payload = self._parse_event(headers, body)
        except WebhookParseError:
            self.stats["total_errors"] += 1
            self._record(headers.get(HEADER_EVENT.lower(), "unknown"), "", "invalid")
            raise

        event_key = f"{event_type}.{action}" if action else event_type
        self.stats["by_event"][event_key] = self.stats["by_event"].get(event_key, 0) + 1

        delivery_id = headers.get(HEADER_DELIVERY.lower(), "unknown")
        logger.info(f"Webhook received: {event_key} (delivery: {delivery_id})")

        if event_type == "ping":
            return self._ignored(event_type, action, self._handle_ping_event(payload))

        if not is_valid_pull_request(payload):
            self.stats["total_errors"] += 1
            self._record(event_type, action, "invalid")
            raise WebhookParseError("Invalid webhook payload")

        pull_request = payload["pull_request"]
        if is_bot_pr(pull_request, self.bot_title_prefixes):
            logger.info(f"Skipping bot PR #{pull_request['number']}")
            return self._ignored(
                event_type, action, {"status": "ignored", "reason": "Skipping bot PR"}
            )

        if not is_relevant_event(event_type, action):
            logger.debug(f"Ignoring {event_key} event")
            return self._ignored(
                event_type, action, {"status": "ignored", "reason": f"Event ignored: {event_key}"}
            )

        return await self._run_pipeline(event_type, action, payload)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _validate_signature(self, headers: Dict[str, str], body: bytes) -> bool:
        """
        Validate webhook signature.

        Uses HMAC-SHA256 with configured secret.

        Args:
            headers: HTTP headers (lower-cased keys)
            body: Raw request body

        Returns:
            True if signature is valid, False otherwise
        """
        signature_header = headers.get(HEADER_SIGNATURE.lower(), "")

        if not signature_header:
            logger.warning("Missing webhook signature header")
            return False

        if not signature_header.startswith("sha256="):
            logger.warning("Invalid signature format (expected sha256=...)")
            return False

        expected_signature = signature_header[7:]
        computed = hmac.new(self.secret, body, hashlib.sha256).hexdigest()

        # Constant-time comparison to prevent timing attacks
        return hmac.compare_digest(computed, expected_signature)

    def _parse_event(
        self,
        headers: Dict[str, str],
        body: bytes,
    ) -> Tuple[str, str, Dict[str, Any]]:
        """
        Parse event type and payload.

        Returns:
            (event_type, action, payload)

        Raises:
            WebhookParseError: If parsing fails
        """
        event_type = headers.get(HEADER_EVENT.lower(), "").lower()
        if not event_type:
            raise WebhookParseError("No GitHub event header found")

        payload = parse_body(body, headers.get("content-type", ""))
        action = payload.get("action") or ""

        return event_type, action, payload

    def _handle_ping_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Acknowledge the ping GitHub sends when the hook is configured."""
        zen = payload.get("zen", "")
        hook_id = payload.get("hook_id", "")

        logger.info(f"Webhook ping received. Hook ID: {hook_id}, Zen: {zen}")

        return {"status": "pong", "hook_id": hook_id, "zen": zen}

    async def _run_pipeline(
        self,
        event_type: str,
        action: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        repository = payload["repository"]
        owner = repository["owner"]["login"]
        repo = repository["name"]
        pull_number = int(payload["pull_request"]["number"])

        logger.info(f"Running documentation pipeline for {owner}/{repo}#{pull_number}")
        try:
            state = self.pipeline.create_state(owner, repo, pull_number, payload.get("config"))
            final_state = await self.pipeline.run(state)
        except Exception as e:
            self.stats["total_errors"] += 1
            self._record(event_type, action, "error")
            logger.error(f"Webhook processing failed: {e}", exc_info=True)
            return {
                "status": "error",
                "error": "Webhook processing failed",
                "details": str(e),
            }

        self.stats["total_processed"] += 1
        self._record(event_type, action, "processed")
        return {
            "status": "processed",
            "message": "Documentation update completed",
            "response": summarize_state(final_state),
        }

    def _ignored(self, event_type: str, action: str, result: Dict[str, Any]) -> Dict[str, Any]:
        self.stats["total_ignored"] += 1
        self._record(event_type, action, "ignored")
        return result

    def _record(self, event_type: str, action: str, outcome: str) -> None:
        if self.metrics:
            self.metrics.record_webhook_event(event_type, action, outcome)

    # =========================================================================
    # STATISTICS AND MONITORING
    # =========================================================================

    def get_stats(self) -> Dict[str, Any]:
        """
        Get webhook statistics.

        Returns:
            Statistics dict
        """
        return self.stats.copy()

    def reset_stats(self) -> None:
        """Reset webhook statistics."""
        self.stats = _empty_stats()


# =============================================================================
# WEBHOOK SERVER
# =============================================================================


class WebhookServer:
    """
    HTTP server for receiving webhooks.

    Uses aiohttp for async HTTP handling.

    Attributes:
        handler: WebhookHandler instance
        host: Host to bind to
        port: Port to listen on
        path: URL path for webhook endpoint
    """

    def __init__(
        self,
        handler: WebhookHandler,
        host: str = "0.0.0.0",
        port: int = 8080,
        path: str = "/webhooks/github",
    ):
        """
        Initialize webhook server.

        Args:
            handler: WebhookHandler instance
            host: Host to bind to (default: 0.0.0.0)
            port: Port to listen on (default: 8080)
            path: URL path for webhooks (default: /webhooks/github)
        """
        self.handler = handler
        self.host = host
        self.port = port
        self.path = path

        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._running = False

        logger.info(f"WebhookServer initialized (will listen on {host}:{port}{path})")

    def build_app(self) -> web.Application:
        """Create the aiohttp application with all routes."""
        app = web.Application()
        app.router.add_post(self.path, self._handle_webhook)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/stats", self._handle_stats)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self) -> None:
        """
        Start the webhook server.

        Creates aiohttp application and starts listening for connections.
        """
        if self._running:
            logger.warning("Webhook server already running")
            return

        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        self._running = True
        logger.info(f"Webhook server started on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the webhook server."""
        if not self._running:
            return

        logger.info("Stopping webhook server...")

        if self._site:
            await self._site.stop()

        if self._runner:
            await self._runner.cleanup()

        self._running = False
        self._runner = None
        self._site = None

        logger.info("Webhook server stopped")

    @property
    def is_running(self) -> bool:
        """Check if server is running."""
        return self._running

    # =========================================================================
    # REQUEST HANDLERS
    # =========================================================================

    async def _handle_webhook(self, request: web.Request) -> web.Response:
        """
        Handle incoming webhook HTTP request.

        Args:
            request: aiohttp request object

        Returns:
            JSON response with processing result
        """
        try:
            body = await request.read()
            headers = {k: v for k, v in request.headers.items()}

            result = await self.handler.handle_webhook(headers, body)

            status = 200 if result.get("status") != "error" else 500
            return web.json_response(result, status=status)

        except WebhookValidationError as e:
            logger.warning(f"Webhook validation failed: {e}")
            return web.json_response(
                {"status": "error", "error": "Invalid signature"},
                status=401,
            )

        except WebhookParseError as e:
            logger.warning(f"Webhook parse error: {e}")
            return web.json_response(
                {"status": "error", "error": str(e)},
                status=400,
            )

        except Exception as e:
            logger.error(f"Unexpected error handling webhook: {e}", exc_info=True)
            return web.json_response(
                {"status": "error", "error": "Internal server error"},
                status=500,
            )

    async def _handle_health(self, request: web.Request) -> web.Response:
        del request  # Unused but required by aiohttp
        return web.json_response({
            "status": "healthy",
            "server": "webhook",
            "running": self._running,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    async def _handle_stats(self, request: web.Request) -> web.Response:
        del request  # Unused but required by aiohttp
        stats = self.handler.get_stats()
        if self.handler.metrics:
            stats["metrics"] = self.handler.metrics.snapshot()
        return web.json_response({
            "status": "ok",
            "stats": stats,
        })

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        """Prometheus text exposition."""
        del request  # Unused but required by aiohttp
        metrics = self.handler.metrics
        if metrics is None:
            return web.json_response(
                {"status": "error", "error": "Metrics are disabled"},
                status=404,
            )
        return web.Response(
            body=metrics.export(),
            headers={"Content-Type": MetricsCollector.CONTENT_TYPE},
        )


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================


def create_webhook_handler(
    pipeline: Any,
    secret: Optional[str] = None,
    metrics: Optional[MetricsCollector] = None,
) -> WebhookHandler:
    """
    Create a configured webhook handler.

    The pipeline's configured PR title prefix is treated as a bot marker
    alongside the default one.
    """
    config = getattr(pipeline, "config", None)
    title_prefix = config.pr.title_prefix if config is not None else None
    return WebhookHandler(
        pipeline=pipeline,
        secret=secret,
        metrics=metrics,
        bot_title_prefix=title_prefix,
    )


def create_webhook_server(
    handler: WebhookHandler,
    config: Optional[Dict[str, Any]] = None,
) -> WebhookServer:
    """
    Create a configured webhook server.

    Args:
        handler: WebhookHandler instance
        config: Optional configuration with host, port, path

    Returns:
        Configured WebhookServer instance

    Raises:
        WebhookConfigError: If the port or path is invalid
    """
    config = config or {}

    try:
        port = int(config.get("port", 8080))
    except (TypeError, ValueError):
        raise WebhookConfigError(f"Invalid webhook port: {config.get('port')!r}")
    if not 0 < port < 65536:
        raise WebhookConfigError(f"Webhook port out of range: {port}")

    path = config.get("path", "/webhooks/github")
    if not path.startswith("/"):
        raise WebhookConfigError(f"Webhook path must start with '/': {path}")

    return WebhookServer(
        handler=handler,
        host=config.get("host", "0.0.0.0"),
        port=port,
        path=path,
    )


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    # Main classes
    "WebhookHandler",
    "WebhookServer",
    # Factory functions
    "create_webhook_handler",
    "create_webhook_server",
    # Helpers
    "parse_body",
    "is_valid_pull_request",
    "is_bot_pr",
    "is_relevant_event",
    # Exceptions
    "WebhookError",
    "WebhookValidationError",
    "WebhookParseError",
    "WebhookConfigError",
    # Constants
    "HEADER_EVENT",
    "HEADER_SIGNATURE",
    "HEADER_DELIVERY",
    "RELEVANT_ACTIONS",
    "BOT_TITLE_PREFIX",
]
