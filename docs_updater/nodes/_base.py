# =============================================================================
# DOCS UPDATER - NODE BASE MODULE
# =============================================================================
"""
Shared types, context, and utilities for all pipeline nodes.

Every node in the pipeline shares:
- NodeContext: Access to services (GitHub, LLM, metrics)
- ReviewState: The state dict flowing through the graph
- Helper functions for common operations

Nodes never mutate the state they receive; they return a dict holding
only the fields they produced.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional, TYPE_CHECKING

from docs_updater.engine.errors import PreconditionError
from docs_updater.github.client import GitHubAPIError, NotFoundError

if TYPE_CHECKING:
    from docs_updater.github.client import GitHubClient
    from docs_updater.llm.client import LLMClient, LLMResponse
    from monitoring.metrics import MetricsCollector

logger = logging.getLogger(__name__)


# =============================================================================
# NODE CONTEXT
# =============================================================================


@dataclass
class NodeContext:
    """
    Shared context passed to every node.

    Provides access to the external collaborators of a run.
    """
    github_client: 'GitHubClient'
    llm_client: 'LLMClient'
    metrics: Optional['MetricsCollector'] = None
    config: Dict[str, Any] = field(default_factory=dict)

    @property
    def max_tokens(self) -> int:
        return self.config.get("max_tokens", 4096)


# =============================================================================
# NODE CONFIGURATION DEFAULTS
# =============================================================================


NODE_CONFIGS = {
    "analyze_code_changes": {
        "temperature": 0.1,
    },
    "analyze_doc_structure": {
        "temperature": 0.1,
        "doc_extensions": (".md", ".mdx"),
        "manifest_name": "mint.json",
    },
    "plan_doc_updates": {
        "temperature": 0.2,
    },
    "generate_content": {
        "default_temperature": 0.3,
    },
    "update_navigation": {
        "manifest_name": "mint.json",
    },
    "create_docs_pr": {
        "navigation_commit_message": "Update navigation structure",
    },
}


# =============================================================================
# SHARED HELPERS
# =============================================================================


def require_state(state: Dict[str, Any], stage: str, *fields: str) -> None:
    """
    Raise PreconditionError when an upstream field is absent.

    Raises:
        PreconditionError: For the first missing field
    """
    for name in fields:
        if state.get(name) is None:
            raise PreconditionError(stage, name)


async def ask_llm(
    ctx: NodeContext,
    stage: str,
    system: str,
    prompt: str,
    temperature: float,
    json_mode: bool = False,
) -> 'LLMResponse':
    """Run one LLM completion off the event loop."""
    return await asyncio.to_thread(
        ctx.llm_client.complete,
        prompt=prompt,
        system=system,
        max_tokens=ctx.max_tokens,
        temperature=temperature,
        json_mode=json_mode,
        stage=stage,
    )


async def fetch_file_text(
    ctx: NodeContext,
    repo: str,
    path: str,
    ref: Optional[str] = None,
) -> Optional[str]:
    """
    Fetch a file's text, or None when it is missing or unreadable.

    Missing files are expected (new pages); other failures are logged.
    """
    try:
        return await asyncio.to_thread(
            ctx.github_client.get_file_text, repo, path, ref
        )
    except NotFoundError:
        return None
    except GitHubAPIError as e:
        logger.warning(f"Failed to fetch {repo}:{path}@{ref}: {e}")
        return None


async def post_comment(
    ctx: NodeContext,
    repo: str,
    issue_number: int,
    body: str,
) -> None:
    """Post a comment on an issue or pull request; failures are logged only."""
    try:
        await asyncio.to_thread(
            ctx.github_client.add_comment, repo, issue_number, body
        )
    except GitHubAPIError as e:
        logger.warning(f"Failed to post comment on {repo}#{issue_number}: {e}")


def history_entry(
    state: Dict[str, Any],
    node: str,
    action: str,
    details: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """Return the state history with a new entry appended."""
    history = list(state.get("history", []))
    history.append({
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "node": node,
        "action": action,
        "details": details or {},
    })
    return history


def parent_dir_name(path: str) -> str:
    """Name of the directory holding ``path`` ("" for top-level files)."""
    parts = path.strip("/").split("/")
    return parts[-2] if len(parts) > 1 else ""


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "NodeContext",
    "NODE_CONFIGS",
    "require_state",
    "ask_llm",
    "fetch_file_text",
    "post_comment",
    "history_entry",
    "parent_dir_name",
]
