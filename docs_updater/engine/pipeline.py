# =============================================================================
# DOCS UPDATER - LANGGRAPH PIPELINE DEFINITION
# =============================================================================
"""
LangGraph Pipeline Module

Defines the documentation update pipeline as a LangGraph state graph.
Stages run strictly in sequence; each returns the fields it produced and
LangGraph merges them into the next state version.

Pipeline Overview:
    ┌──────────────────────────┐
    │   ANALYZE_CODE_CHANGES   │  PR diff -> CodeAnalysis
    └────────────┬─────────────┘
                 ▼
    ┌──────────────────────────┐
    │  ANALYZE_DOC_STRUCTURE   │  docs tree -> DocStructure
    └────────────┬─────────────┘
                 ▼
    ┌──────────────────────────┐
    │     PLAN_DOC_UPDATES     │  -> UpdatePlan
    └────────────┬─────────────┘
                 ▼
    ┌──────────────────────────┐
    │     GENERATE_CONTENT     │  -> GeneratedContent.files
    └────────────┬─────────────┘
                 ▼
    ┌──────────────────────────┐
    │    UPDATE_NAVIGATION     │  -> GeneratedContent.navigation_update
    └────────────┬─────────────┘
                 ▼
    ┌──────────────────────────┐
    │      CREATE_DOCS_PR      │  -> PublishResult
    └────────────┬─────────────┘
                 ▼
                END
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from langgraph.graph import StateGraph, END
from langgraph.graph.state import CompiledStateGraph

from docs_updater.config import (
    ConfigurationError,
    DocConfig,
    DocsRepo,
    create_full_config,
)
from docs_updater.engine.errors import (
    PipelineError,
    PreconditionError,
    ContentGenerationError,
)
from docs_updater.engine.retry import RetryPolicy
from docs_updater.engine.state import ReviewState, Stage, create_initial_state
from docs_updater.github.client import GitHubClient
from docs_updater.llm.client import LLMClient
from docs_updater.nodes import (
    NodeContext,
    analyze_code_changes_node,
    analyze_doc_structure_node,
    plan_doc_updates_node,
    generate_content_node,
    update_navigation_node,
    create_docs_pr_node,
)
from monitoring.logger import log_context
from monitoring.metrics import MetricsCollector

logger = logging.getLogger(__name__)

NodeFunction = Callable[[Dict[str, Any], NodeContext], Awaitable[Dict[str, Any]]]

# Stage order; each stage has one outgoing edge to the next
STAGES: List[Tuple[str, NodeFunction]] = [
    (Stage.ANALYZE_CODE_CHANGES.value, analyze_code_changes_node),
    (Stage.ANALYZE_DOC_STRUCTURE.value, analyze_doc_structure_node),
    (Stage.PLAN_DOC_UPDATES.value, plan_doc_updates_node),
    (Stage.GENERATE_CONTENT.value, generate_content_node),
    (Stage.UPDATE_NAVIGATION.value, update_navigation_node),
    (Stage.CREATE_DOCS_PR.value, create_docs_pr_node),
]


class DocsUpdatePipeline:
    """
    Runs the documentation update stages for one pull request at a time.

    Runs share nothing but the clients, so concurrent ``run`` calls are
    independent.

    Attributes:
        ctx: Node context handed to every stage
        graph: Compiled LangGraph workflow
        config: Service-level DocConfig used when a run doesn't bring one
    """

    RECURSION_LIMIT = 25

    def __init__(self, ctx: NodeContext, config: Optional[DocConfig] = None):
        self.ctx = ctx
        self.config = config or create_full_config()
        self.graph: CompiledStateGraph = self._build_graph()

    def _bind(self, name: str, node: NodeFunction) -> Callable[[ReviewState], Awaitable[Dict[str, Any]]]:
        """Wrap a node so LangGraph can call it with the state only."""

        async def run_node(state: ReviewState) -> Dict[str, Any]:
            logger.info(f"Stage {name} started")
            start = time.monotonic()
            try:
                return await node(state, self.ctx)
            finally:
                duration = time.monotonic() - start
                if self.ctx.metrics:
                    self.ctx.metrics.record_stage_duration(name, duration)
                logger.info(f"Stage {name} finished in {duration:.2f}s")

        run_node.__name__ = name
        return run_node

    def _build_graph(self) -> CompiledStateGraph:
        """
        Build the LangGraph pipeline definition.

        Returns:
            Compiled LangGraph workflow
        """
        graph = StateGraph(ReviewState)

        for name, node in STAGES:
            graph.add_node(name, self._bind(name, node))

        graph.set_entry_point(STAGES[0][0])
        for (current, _), (following, _) in zip(STAGES, STAGES[1:]):
            graph.add_edge(current, following)
        graph.add_edge(STAGES[-1][0], END)

        return graph.compile()

    # =========================================================================
    # PUBLIC METHODS
    # =========================================================================

    def create_state(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        overrides: Optional[Dict[str, Any]] = None,
        docs_repo: Optional[DocsRepo] = None,
    ) -> ReviewState:
        """Initial state for a run, with ``overrides`` merged over the service config."""
        config = create_full_config(overrides, base=self.config.to_dict())
        return create_initial_state(owner, repo, pull_number, config, docs_repo)

    async def run(self, state: ReviewState) -> ReviewState:
        """
        Execute the pipeline.

        Args:
            state: Initial state (see ``create_state``)

        Returns:
            Final pipeline state

        Raises:
            PreconditionError: If a stage misses upstream state
            ContentGenerationError: If a page comes back empty
            PipelineError: For any other stage failure
        """
        label = f"{state['owner']}/{state['repo']}#{state['pull_number']}"
        metrics = self.ctx.metrics
        if metrics:
            metrics.pipeline_started()

        result = "error"
        with log_context(
            owner=state["owner"], repo=state["repo"], pull_number=state["pull_number"]
        ):
            logger.info(f"Starting documentation pipeline for {label}")
            try:
                final_state = await self._run_with_langgraph(state)
                publish_result = final_state.get("publish_result")
                result = "noop" if publish_result is None or publish_result.is_noop else "success"
                logger.info(f"Pipeline for {label} completed ({result})")
                return final_state
            except PipelineError:
                raise
            except Exception as e:
                logger.error(f"Pipeline error for {label}: {e}")
                raise PipelineError(f"Pipeline failed: {e}") from e
            finally:
                if metrics:
                    metrics.pipeline_finished(result)

    async def _run_with_langgraph(self, state: ReviewState) -> ReviewState:
        """Stream the graph, folding each stage's delta into the state."""
        current: Dict[str, Any] = dict(state)
        config = {"recursion_limit": self.RECURSION_LIMIT}

        async for event in self.graph.astream(state, config=config, stream_mode="updates"):
            for node_name, delta in event.items():
                logger.debug(f"Node {node_name} completed")
                if delta:
                    current = {**current, **delta}

        return current


# =============================================================================
# FACTORY FUNCTION
# =============================================================================


def create_docs_update_pipeline(
    config: Optional[Dict[str, Any]] = None,
    github_token: Optional[str] = None,
    llm_api_key: Optional[str] = None,
    settings: Optional[Dict[str, Any]] = None,
    metrics: Optional[MetricsCollector] = None,
) -> DocsUpdatePipeline:
    """
    Create a pipeline wired to GitHub and the configured LLM provider.

    Args:
        config: Partial documentation config (see ``create_full_config``)
        github_token: GitHub token (default: settings["github"]["token"])
        llm_api_key: LLM API key (default: settings["llm"]["api_key"])
        settings: Service settings from ``load_config``
        metrics: Optional metrics collector

    Returns:
        Configured DocsUpdatePipeline

    Raises:
        ConfigurationError: If the GitHub token or the LLM key is missing
    """
    settings = settings or {}
    github_settings = settings.get("github", {})
    llm_settings = settings.get("llm", {})
    retry_policy = RetryPolicy.from_dict(settings.get("retry"))

    github_token = github_token or github_settings.get("token")
    if not github_token:
        raise ConfigurationError("GitHub token is required")

    provider = (llm_settings.get("provider") or "openai").lower()
    llm_api_key = llm_api_key or llm_settings.get("api_key")
    if not llm_api_key and provider != "ollama":
        raise ConfigurationError(f"API key for LLM provider '{provider}' is required")

    github_client = GitHubClient(
        token=github_token,
        base_url=github_settings.get("api_url"),
        timeout=github_settings.get("timeout"),
        retry_policy=retry_policy,
    )
    llm_client = LLMClient(
        provider=provider,
        model=llm_settings.get("model"),
        api_key=llm_api_key,
        base_url=llm_settings.get("base_url"),
        retry_policy=retry_policy,
        metrics=metrics,
    )

    ctx = NodeContext(
        github_client=github_client,
        llm_client=llm_client,
        metrics=metrics,
        config={"max_tokens": llm_settings.get("max_tokens", 4096)},
    )
    doc_config = create_full_config(config, base=settings.get("docs"))
    return DocsUpdatePipeline(ctx, doc_config)


__all__ = [
    "DocsUpdatePipeline",
    "create_docs_update_pipeline",
    "create_initial_state",
    "STAGES",
    "PipelineError",
    "PreconditionError",
    "ContentGenerationError",
]
