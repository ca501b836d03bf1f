# =============================================================================
# DOCS UPDATER - MAIN ENTRY POINT
# =============================================================================
"""
Docs Updater Main Module

Entry point for the documentation update service. It wires the GitHub and
LLM clients into the pipeline and either serves GitHub webhooks or runs the
pipeline once for a single pull request.

The service operates in two modes:
1. Server Mode: Receives pull request webhooks from GitHub (default)
2. One-shot Mode: ``--pr owner/repo#N`` runs once and prints the result

Usage:
    python -m docs_updater.main
    python -m docs_updater.main --config config/docs_updater.yaml --port 9000
    python -m docs_updater.main --pr acme/api#42
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import re
import signal
import sys
from typing import Any, Dict, Optional, Tuple

from docs_updater import __version__
from docs_updater.config import ConfigurationError, load_config
from docs_updater.engine.pipeline import DocsUpdatePipeline, create_docs_update_pipeline
from docs_updater.engine.state import summarize_state
from docs_updater.github.webhook_handler import (
    WebhookServer,
    create_webhook_handler,
    create_webhook_server,
)
from monitoring.logger import mask_dict, setup_logging
from monitoring.metrics import MetricsCollector


logger = logging.getLogger(__name__)

PR_REFERENCE = re.compile(r"^(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+)#(?P<number>\d+)$")


def parse_pr_reference(reference: str) -> Tuple[str, str, int]:
    """
    Split ``owner/repo#N`` into its parts.

    Raises:
        ValueError: If the reference is malformed
    """
    match = PR_REFERENCE.match(reference.strip())
    if not match:
        raise ValueError(f"Expected owner/repo#NUMBER, got '{reference}'")
    return match.group("owner"), match.group("repo"), int(match.group("number"))


# =============================================================================
# SERVICE CLASS
# =============================================================================


class DocsUpdaterService:
    """
    Owns the pipeline, the metrics collector and the webhook server.

    Attributes:
        settings: Merged service settings from ``load_config``
        metrics: Prometheus metrics collector
        pipeline: Documentation pipeline (created in setup())
        server: Webhook server (created in serve())
    """

    def __init__(self, settings: Dict[str, Any]):
        self.settings = settings
        self.metrics = MetricsCollector()
        self.pipeline: Optional[DocsUpdatePipeline] = None
        self.server: Optional[WebhookServer] = None
        self._shutdown_event = asyncio.Event()

    def setup(self) -> None:
        """
        Create the pipeline and its clients.

        Raises:
            ConfigurationError: If credentials are missing
        """
        logger.info("Initializing documentation updater...")
        logger.debug(f"Settings: {mask_dict(self.settings)}")

        self.pipeline = create_docs_update_pipeline(
            settings=self.settings,
            metrics=self.metrics,
        )
        llm = self.pipeline.ctx.llm_client
        self.metrics.set_system_info(
            version=__version__,
            llm_provider=llm.provider_name,
            llm_model=llm.get_model(),
        )
        logger.info(f"Pipeline ready (LLM: {llm.provider_name}/{llm.get_model()})")

    async def serve(self) -> None:
        """Run the webhook server until stop() is called."""
        webhook_settings = self.settings.get("webhook", {})
        handler = create_webhook_handler(
            self.pipeline,
            secret=webhook_settings.get("secret"),
            metrics=self.metrics,
        )
        if not webhook_settings.get("secret"):
            logger.warning("No webhook secret configured, signatures are not checked")

        self.server = create_webhook_server(handler, webhook_settings)
        await self.server.start()
        try:
            await self._shutdown_event.wait()
        finally:
            await self._cleanup()

    async def run_once(self, owner: str, repo: str, pull_number: int) -> Dict[str, Any]:
        """Run the pipeline for one pull request and summarize the result."""
        try:
            state = self.pipeline.create_state(owner, repo, pull_number)
            final_state = await self.pipeline.run(state)
            return summarize_state(final_state)
        finally:
            await self._cleanup()

    async def stop(self) -> None:
        """Gracefully stop the service."""
        logger.info("Stopping documentation updater...")
        self._shutdown_event.set()

    async def _cleanup(self) -> None:
        if self.server is not None:
            await self.server.stop()
            self.server = None
        if self.pipeline is not None:
            self.pipeline.ctx.github_client.close()


# =============================================================================
# COMMAND LINE INTERFACE
# =============================================================================


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Mintlify documentation updater",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--config",
        default="config/docs_updater.yaml",
        help="Path to configuration file (default: config/docs_updater.yaml)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--host",
        help="Webhook server host (overrides config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Webhook server port (overrides config)",
    )
    parser.add_argument(
        "--pr",
        metavar="OWNER/REPO#N",
        help="Run the pipeline once for this pull request and exit",
    )

    return parser.parse_args(argv)


def apply_cli_overrides(settings: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Fold command line flags into the loaded settings."""
    if args.host:
        settings["webhook"]["host"] = args.host
    if args.port:
        settings["webhook"]["port"] = args.port
    if args.debug:
        settings["logging"]["level"] = "DEBUG"
    return settings


# =============================================================================
# SIGNAL HANDLING
# =============================================================================


def setup_signal_handlers(service: DocsUpdaterService, loop: asyncio.AbstractEventLoop) -> None:
    """Setup signal handlers for graceful shutdown."""

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}, initiating shutdown...")
        loop.call_soon_threadsafe(lambda: loop.create_task(service.stop()))

    # Only set signal handlers if running on Unix-like systems
    if sys.platform != "win32":
        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


async def async_main(settings: Dict[str, Any], pr_reference: Optional[str] = None) -> int:
    """Async entry point; returns the process exit code."""
    service = DocsUpdaterService(settings)
    service.setup()

    if pr_reference:
        owner, repo, pull_number = parse_pr_reference(pr_reference)
        result = await service.run_once(owner, repo, pull_number)
        print(json.dumps(result, indent=2, default=str))
        return 0

    setup_signal_handlers(service, asyncio.get_running_loop())
    await service.serve()
    return 0


def main(argv: Optional[list] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    settings = apply_cli_overrides(load_config(args.config), args)

    log_settings = settings["logging"]
    setup_logging(
        level=log_settings["level"],
        fmt=log_settings["format"],
        log_file=log_settings.get("file"),
    )

    logger.info("=" * 60)
    logger.info(f"Mintlify Docs Updater v{__version__}")
    logger.info("=" * 60)

    try:
        sys.exit(asyncio.run(async_main(settings, args.pr)))
    except KeyboardInterrupt:
        logger.info("Docs updater stopped by user")
    except (ConfigurationError, ValueError) as e:
        logger.critical(f"Invalid configuration: {e}")
        sys.exit(2)
    except Exception as e:
        logger.critical(f"Docs updater failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
