# =============================================================================
# DOCS UPDATER - MONITORING PACKAGE
# =============================================================================
"""
Monitoring Package

Logging and metrics infrastructure for the documentation update service.

Components:
    - Logger: structlog over stdlib logging, run context, masking
    - Metrics: Prometheus metrics with a per-collector registry

Usage:
    from monitoring import setup_logging, MetricsCollector, log_context

    setup_logging(level="INFO", fmt="json")

    metrics = MetricsCollector()
    metrics.record_webhook_event("pull_request", "opened", "processed")

    with log_context(owner="acme", repo="api", pull_number=42):
        ...
"""

# Logger
from monitoring.logger import (
    setup_logging,
    LogContext,
    log_context,
    mask_sensitive_data,
    mask_dict,
    mask_tokens,
)

# Metrics
from monitoring.metrics import (
    MetricsCollector,
    create_metrics_collector,
    estimate_cost,
    LLM_PRICING,
)


__all__ = [
    # Logger
    "setup_logging",
    "LogContext",
    "log_context",
    "mask_sensitive_data",
    "mask_dict",
    "mask_tokens",
    # Metrics
    "MetricsCollector",
    "create_metrics_collector",
    "estimate_cost",
    "LLM_PRICING",
]
