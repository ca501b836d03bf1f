# =============================================================================
# DOCS UPDATER - METRICS COLLECTION
# =============================================================================
"""
Metrics Collection Module

Prometheus metrics for the documentation update service. Each collector
owns its registry, so several collectors (one per test, one per server)
never clash over metric names.

Metric Categories:
    - Webhook metrics: Deliveries by event, action and outcome
    - Pipeline metrics: Runs by result, stage durations
    - LLM metrics: Calls, tokens, costs and latency per stage
    - GitHub metrics: Files committed
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

logger = logging.getLogger(__name__)


# =============================================================================
# LLM COST ESTIMATOR
# =============================================================================

# Pricing per 1K tokens (USD) - update as providers adjust rates
LLM_PRICING: Dict[str, Dict[str, float]] = {
    # OpenAI
    "gpt-4o": {"input": 0.005, "output": 0.015},
    "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
    "gpt-4-turbo": {"input": 0.01, "output": 0.03},
    "gpt-4": {"input": 0.03, "output": 0.06},
    "gpt-3.5-turbo": {"input": 0.0005, "output": 0.0015},
    # Anthropic
    "claude-opus-4-20250514": {"input": 0.015, "output": 0.075},
    "claude-sonnet-4-20250514": {"input": 0.003, "output": 0.015},
    "claude-3-5-sonnet-20241022": {"input": 0.003, "output": 0.015},
    "claude-3-5-haiku-20241022": {"input": 0.001, "output": 0.005},
}

# Fallback pricing for unknown models
_DEFAULT_PRICING = {"input": 0.01, "output": 0.03}

# Local models cost nothing per token
_FREE_PREFIXES = ("llama", "mistral", "codellama", "qwen", "phi")


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """
    Estimate the dollar cost of an LLM call.

    Args:
        model: Model identifier.
        input_tokens: Number of input tokens.
        output_tokens: Number of output tokens.

    Returns:
        Estimated cost in USD.
    """
    if model.startswith(_FREE_PREFIXES):
        return 0.0

    # Try exact match, then longest prefix match
    rates = LLM_PRICING.get(model)
    if rates is None:
        for key in sorted(LLM_PRICING, key=len, reverse=True):
            if model.startswith(key):
                rates = LLM_PRICING[key]
                break
    if rates is None:
        rates = _DEFAULT_PRICING

    return (input_tokens * rates["input"] + output_tokens * rates["output"]) / 1000


# =============================================================================
# METRICS COLLECTOR
# =============================================================================


class MetricsCollector:
    """
    Central metrics collector for the documentation update service.

    Usage::

        metrics = MetricsCollector()
        metrics.record_webhook_event("pull_request", "opened", "processed")
        metrics.record_stage_duration("plan_doc_updates", 4.2)
        metrics.record_llm_call("plan_doc_updates", "gpt-4o", 1500, 800, 3.2)
        body = metrics.export()
    """

    CONTENT_TYPE = CONTENT_TYPE_LATEST

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize all metric collectors.

        Args:
            registry: Registry to register on (default: a fresh one)
        """
        self.registry = registry or CollectorRegistry()
        self._start_time = time.monotonic()

        # Webhook metrics
        self.webhook_events = Counter(
            "docs_updater_webhook_events_total",
            "Webhook deliveries received",
            ["event", "action", "outcome"],
            registry=self.registry,
        )

        # Pipeline metrics
        self.pipeline_runs = Counter(
            "docs_updater_pipeline_runs_total",
            "Pipeline runs by result",
            ["result"],
            registry=self.registry,
        )
        self.pipelines_active = Gauge(
            "docs_updater_pipelines_active",
            "Pipeline runs currently executing",
            registry=self.registry,
        )
        self.stage_duration = Histogram(
            "docs_updater_stage_duration_seconds",
            "Pipeline stage duration",
            ["stage"],
            buckets=[0.5, 1, 2.5, 5, 10, 30, 60, 120, 300, 600],
            registry=self.registry,
        )

        # LLM metrics
        self.llm_requests = Counter(
            "docs_updater_llm_requests_total",
            "LLM API calls",
            ["stage", "model", "result"],
            registry=self.registry,
        )
        self.llm_tokens = Counter(
            "docs_updater_llm_tokens_total",
            "LLM tokens used",
            ["stage", "model", "token_type"],
            registry=self.registry,
        )
        self.llm_cost = Counter(
            "docs_updater_llm_cost_dollars_total",
            "Estimated LLM cost in USD",
            ["model"],
            registry=self.registry,
        )
        self.llm_latency = Histogram(
            "docs_updater_llm_latency_seconds",
            "LLM call latency",
            ["stage"],
            buckets=[0.5, 1, 2, 5, 10, 20, 30, 60, 120],
            registry=self.registry,
        )

        # GitHub metrics
        self.files_committed = Counter(
            "docs_updater_files_committed_total",
            "Documentation files committed",
            ["type"],
            registry=self.registry,
        )

        self.system_info = Info(
            "docs_updater",
            "Documentation updater service information",
            registry=self.registry,
        )

    # -- Webhook metrics ---------------------------------------------------

    def record_webhook_event(self, event: str, action: str, outcome: str) -> None:
        """Record a webhook delivery and how it was handled."""
        self.webhook_events.labels(
            event=event or "unknown", action=action or "", outcome=outcome
        ).inc()

    # -- Pipeline metrics --------------------------------------------------

    def pipeline_started(self) -> None:
        self.pipelines_active.inc()

    def pipeline_finished(self, result: str) -> None:
        """Record the end of a run (``success``, ``noop`` or ``error``)."""
        self.pipelines_active.dec()
        self.pipeline_runs.labels(result=result).inc()

    def record_stage_duration(self, stage: str, duration: float) -> None:
        self.stage_duration.labels(stage=stage).observe(duration)

    # -- LLM metrics -------------------------------------------------------

    def record_llm_call(
        self,
        stage: str,
        model: str,
        tokens_input: int,
        tokens_output: int,
        duration: float,
        success: bool = True,
    ) -> None:
        """Record an LLM API call with token counts and latency."""
        self.llm_requests.labels(
            stage=stage, model=model, result="success" if success else "error"
        ).inc()
        self.llm_latency.labels(stage=stage).observe(duration)
        if not success:
            return

        self.llm_tokens.labels(stage=stage, model=model, token_type="input").inc(tokens_input)
        self.llm_tokens.labels(stage=stage, model=model, token_type="output").inc(tokens_output)
        self.llm_cost.labels(model=model).inc(
            estimate_cost(model, tokens_input, tokens_output)
        )

    # -- GitHub metrics ----------------------------------------------------

    def record_file_committed(self, file_type: str) -> None:
        """Record a committed file (create/update/delete/navigation)."""
        self.files_committed.labels(type=file_type).inc()

    # -- System ------------------------------------------------------------

    def set_system_info(self, **info: str) -> None:
        self.system_info.info(info)

    def get_uptime(self) -> float:
        """Return seconds since this collector was created."""
        return time.monotonic() - self._start_time

    # =====================================================================
    # EXPORT / SNAPSHOT
    # =====================================================================

    def export(self) -> bytes:
        """Prometheus text exposition of this collector's registry."""
        return generate_latest(self.registry)

    def get_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Current value of a sample (e.g. ``docs_updater_pipeline_runs_total``)."""
        return self.registry.get_sample_value(name, labels or {})

    def snapshot(self) -> Dict[str, Any]:
        """Plain dict of headline numbers, for ``/stats`` and logs."""
        runs = {
            result: self.get_value("docs_updater_pipeline_runs_total", {"result": result}) or 0
            for result in ("success", "noop", "error")
        }
        return {
            "uptime_seconds": round(self.get_uptime(), 1),
            "pipelines_active": self.get_value("docs_updater_pipelines_active") or 0,
            "pipeline_runs": runs,
        }


def create_metrics_collector(registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Factory function to create a MetricsCollector."""
    return MetricsCollector(registry=registry)


__all__ = [
    "MetricsCollector",
    "create_metrics_collector",
    "estimate_cost",
    "LLM_PRICING",
]
