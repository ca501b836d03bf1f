# =============================================================================
# DOCS UPDATER - PLAN DOC UPDATES NODE
# =============================================================================
"""
Update Planner

Hands the code analysis and the documentation structure to the model and
gets back the list of pages to create, update or delete, plus the
navigation changes grouped by navigation group.

Pipeline Position:
    ANALYZE_DOC_STRUCTURE --> PLAN_DOC_UPDATES --> GENERATE_CONTENT
"""

from __future__ import annotations

import json
import logging
from typing import Dict, Any

from docs_updater.engine.parsing import parse_update_plan
from docs_updater.engine.state import CodeAnalysis, DocStructure, Stage, UpdatePlan
from docs_updater.nodes._base import (
    NodeContext,
    NODE_CONFIGS,
    ask_llm,
    history_entry,
    require_state,
)

logger = logging.getLogger(__name__)

STAGE = Stage.PLAN_DOC_UPDATES.value


PLANNING_SYSTEM_PROMPT = """You are a documentation planning expert. Your task is to analyze code changes and the existing documentation structure to plan necessary documentation updates.

Key principles:
1. Focus on user value - what would developers need to know?
2. Respect existing documentation structure and organization
3. Prioritize updates based on significance and impact
4. Consider relationships between documents
5. Plan navigation changes to maintain good organization

Consider these factors when planning:
- New features or APIs need comprehensive documentation
- Significant changes to existing features need doc updates
- Related documents may need cross-reference updates
- Overview/index files need updates for significant changes
- Navigation structure should reflect content organization

Navigation pages are identified by their path without extension
(e.g. "docs/guides/setup" for docs/guides/setup.mdx).

Return a detailed plan as a JSON object with this structure:
{
  "summary": "Brief summary of overall documentation update needs",
  "updates": [
    {
      "path": "docs/path/to/file.mdx",
      "type": "create|update|delete",
      "priority": "high|medium|low",
      "reason": "Explanation of why this update is needed",
      "sourceFiles": ["src/path/to/file.ts"],
      "relatedDocs": ["docs/path/to/related.mdx"],
      "suggestedContent": {
        "sections": ["Section 1", "Section 2"],
        "examples": ["Example usage 1"],
        "notes": ["Important note"]
      }
    }
  ],
  "navigationChanges": [
    {
      "group": "navigation group name",
      "changes": [
        {"type": "add|move|remove", "page": "docs/path/to/file"}
      ]
    }
  ]
}"""

FALLBACK_PLAN_SUMMARY = "Error parsing LLM response"


def build_planning_prompt(
    code_analysis: CodeAnalysis,
    doc_structure: DocStructure,
    docs_path: str,
) -> str:
    return (
        "Here is the code analysis:\n"
        f"{json.dumps(code_analysis.to_dict(), indent=2)}\n\n"
        "Here is the current documentation structure:\n"
        f"{json.dumps(doc_structure.to_dict(), indent=2, ensure_ascii=False)}\n\n"
        "Please create a detailed documentation update plan based on these changes.\n"
        f"The docs directory is: {docs_path}\n"
    )


async def plan_doc_updates_node(
    state: Dict[str, Any],
    ctx: NodeContext,
) -> Dict[str, Any]:
    """
    Plan documentation updates.

    Returns:
        Delta with ``update_plan`` and ``history``

    Raises:
        PreconditionError: If code_analysis or doc_structure is missing
    """
    require_state(state, STAGE, "code_analysis", "doc_structure", "config")

    logger.info("Generating documentation update plan")

    response = await ask_llm(
        ctx,
        STAGE,
        system=PLANNING_SYSTEM_PROMPT,
        prompt=build_planning_prompt(
            state["code_analysis"],
            state["doc_structure"],
            state["config"].docs_path,
        ),
        temperature=NODE_CONFIGS[STAGE]["temperature"],
        json_mode=True,
    )

    result = parse_update_plan(response.content)
    if result.ok:
        plan = result.value
    else:
        logger.error(f"Failed to parse plan response: {result.error}")
        plan = UpdatePlan(summary=FALLBACK_PLAN_SUMMARY)

    logger.info(
        f"Plan generated with {len(plan.updates)} updates and "
        f"{len(plan.navigation_changes)} navigation groups"
    )
    for update in plan.updates:
        logger.info(
            f"Planned {update.type.value} of {update.path} "
            f"(priority {update.priority.value}): {update.reason[:100]}"
        )

    return {
        "update_plan": plan,
        "history": history_entry(state, STAGE, "planned", {
            "updates": len(plan.updates),
            "navigation_changes": len(plan.all_navigation_changes()),
            "parsed": result.ok,
        }),
    }


__all__ = [
    "plan_doc_updates_node",
    "build_planning_prompt",
    "PLANNING_SYSTEM_PROMPT",
    "FALLBACK_PLAN_SUMMARY",
]
