# =============================================================================
# DOCS UPDATER - ANALYZE CODE CHANGES NODE
# =============================================================================
"""
Code Change Analyzer

Fetches the files changed by the pull request, flags what kind of code
each patch touches and asks the model for a summary, the impacted areas
and the files whose documentation may need updating.

Pipeline Position:
    START --> ANALYZE_CODE_CHANGES --> ANALYZE_DOC_STRUCTURE
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, Any, List

from docs_updater.engine.parsing import parse_code_analysis_response
from docs_updater.engine.state import (
    ChangeSignificance,
    ChangeType,
    CodeAnalysis,
    CodeChange,
    Stage,
)
from docs_updater.nodes._base import (
    NodeContext,
    NODE_CONFIGS,
    ask_llm,
    history_entry,
    parent_dir_name,
    require_state,
)

logger = logging.getLogger(__name__)

STAGE = Stage.ANALYZE_CODE_CHANGES.value


# =============================================================================
# PROMPTS
# =============================================================================

ANALYSIS_SYSTEM_PROMPT = """You are a code analysis expert. Analyze the following code changes and provide:
1. A brief summary of the changes
2. Identification of impacted areas/categories
3. Assessment of whether these are significant changes (new features, API changes, etc.)
4. Related files that might need documentation updates

Return your analysis as a JSON object with this structure:
{
  "summary": "Brief description of changes",
  "impactedAreas": ["area1", "area2"],
  "significantChanges": boolean,
  "relatedFiles": ["file1", "file2"]
}"""

FALLBACK_ANALYSIS = {
    "summary": "Error parsing analysis",
    "impacted_areas": [],
    "significant_changes": False,
    "related_files": [],
}

TEST_FILE_MARKERS = (".test.", ".spec.", "_test.")


# =============================================================================
# HEURISTICS
# =============================================================================


def is_test_file(path: str) -> bool:
    name = path.rsplit("/", 1)[-1]
    return (
        any(marker in name for marker in TEST_FILE_MARKERS)
        or name.startswith("test_")
        or path.startswith("tests/")
        or "/tests/" in path
    )


def assess_significance(path: str, patch: str) -> ChangeSignificance:
    """Keyword presence heuristics over a patch."""
    return ChangeSignificance(
        has_exports="export " in patch,
        has_interfaces="interface " in patch,
        has_classes="class " in patch,
        has_types="type " in patch,
        has_enums="enum " in patch,
        is_test=is_test_file(path),
    )


def build_changes(files: List[Dict[str, Any]]) -> List[CodeChange]:
    """Turn pull request file entries into CodeChange records."""
    changes = []
    for entry in files:
        path = entry["filename"]
        patch = entry.get("patch") or ""
        changes.append(CodeChange(
            file=path,
            patch=patch,
            type=ChangeType.from_github(entry.get("status", "modified")),
            significance=assess_significance(path, patch),
            category=parent_dir_name(path),
        ))
    return changes


def format_changes_prompt(changes: List[CodeChange]) -> str:
    blocks = []
    for change in changes:
        blocks.append(
            f"File: {change.file} ({change.type.value})\n"
            f"Category: {change.category}\n"
            f"Significance: {json.dumps(change.significance.to_dict())}\n"
            f"Patch:\n```diff\n{change.patch}\n```\n"
        )
    return "Here are the code changes to analyze:\n" + "\n".join(blocks)


# =============================================================================
# NODE IMPLEMENTATION
# =============================================================================


async def analyze_code_changes_node(
    state: Dict[str, Any],
    ctx: NodeContext,
) -> Dict[str, Any]:
    """
    Analyze the pull request diff.

    Args:
        state: Current pipeline state (needs owner, repo, pull_number)
        ctx: Node execution context

    Returns:
        Delta with ``code_analysis`` and ``history``
    """
    require_state(state, STAGE, "owner", "repo", "pull_number")
    source_repo = f"{state['owner']}/{state['repo']}"
    pull_number = state["pull_number"]

    logger.info(f"Analyzing code changes of {source_repo}#{pull_number}")

    files = await asyncio.to_thread(
        ctx.github_client.list_pull_files, source_repo, pull_number
    )
    logger.info(f"Found {len(files)} changed files")

    changes = build_changes(files)
    heuristic_areas = [
        c.category for c in changes
        if c.category and not c.significance.is_test
    ]

    response = await ask_llm(
        ctx,
        STAGE,
        system=ANALYSIS_SYSTEM_PROMPT,
        prompt=format_changes_prompt(changes),
        temperature=NODE_CONFIGS[STAGE]["temperature"],
        json_mode=True,
    )

    result = parse_code_analysis_response(response.content)
    if result.ok:
        analysis = result.value
    else:
        logger.error(f"Failed to parse code analysis response: {result.error}")
        analysis = FALLBACK_ANALYSIS

    for change in changes:
        change.related_files = [
            path for path in analysis["related_files"] if path != change.file
        ]

    code_analysis = CodeAnalysis(
        changes=changes,
        impacted_areas=list(dict.fromkeys(heuristic_areas + analysis["impacted_areas"])),
        significant_changes=analysis["significant_changes"],
        summary=analysis["summary"],
    )

    logger.info(
        f"Code analysis: {len(changes)} files, "
        f"areas={', '.join(code_analysis.impacted_areas) or 'none'}, "
        f"significant={code_analysis.significant_changes}"
    )

    return {
        "code_analysis": code_analysis,
        "history": history_entry(state, STAGE, "analyzed", {
            "files": len(changes),
            "parsed": result.ok,
        }),
    }


__all__ = [
    "analyze_code_changes_node",
    "assess_significance",
    "build_changes",
    "is_test_file",
    "ANALYSIS_SYSTEM_PROMPT",
]
