# =============================================================================
# DOCS UPDATER - LANGGRAPH NODES PACKAGE
# =============================================================================
"""
LangGraph Nodes Package

Node implementations for the documentation update pipeline, one module
per stage.

Node Contract:
    Each node function must:
    1. Accept (state: Dict, ctx: NodeContext) as arguments
    2. Return a dict with only the fields it produced
    3. Raise PreconditionError when upstream state is missing
    4. Log and skip per-item failures (one page, one file)
    5. Log all significant actions

Usage:
    from docs_updater.nodes import NodeContext, analyze_code_changes_node

    ctx = NodeContext(github_client=github, llm_client=llm, metrics=metrics)
    delta = await analyze_code_changes_node(state, ctx)
"""

# Base module
from docs_updater.nodes._base import (
    NodeContext,
    NODE_CONFIGS,
    require_state,
    ask_llm,
    fetch_file_text,
    post_comment,
    history_entry,
    parent_dir_name,
)

# Node implementations
from docs_updater.nodes.analyze_code_changes import analyze_code_changes_node
from docs_updater.nodes.analyze_doc_structure import analyze_doc_structure_node
from docs_updater.nodes.plan_doc_updates import plan_doc_updates_node
from docs_updater.nodes.generate_content import generate_content_node
from docs_updater.nodes.update_navigation import (
    update_navigation_node,
    apply_navigation_changes,
)
from docs_updater.nodes.create_docs_pr import create_docs_pr_node, render_template


__all__ = [
    # Base
    "NodeContext",
    "NODE_CONFIGS",
    "require_state",
    "ask_llm",
    "fetch_file_text",
    "post_comment",
    "history_entry",
    "parent_dir_name",
    # Nodes
    "analyze_code_changes_node",
    "analyze_doc_structure_node",
    "plan_doc_updates_node",
    "generate_content_node",
    "update_navigation_node",
    "create_docs_pr_node",
    # Helpers
    "apply_navigation_changes",
    "render_template",
]
