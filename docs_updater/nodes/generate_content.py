# =============================================================================
# DOCS UPDATER - GENERATE CONTENT NODE
# =============================================================================
"""
Content Generator

Writes the MDX body of every planned create/update. Each prompt carries
the patches and current text of the source files, an existing page or a
sibling page to imitate, the suggested outline and the related pages.

Pipeline Position:
    PLAN_DOC_UPDATES --> GENERATE_CONTENT --> UPDATE_NAVIGATION
"""

from __future__ import annotations

import json
import logging
import re
from typing import Dict, Any, List, Optional, Tuple

from docs_updater.config import DocConfig, DocsRepo
from docs_updater.engine.errors import ContentGenerationError
from docs_updater.engine.state import (
    CodeAnalysis,
    DocStructure,
    GeneratedContent,
    GeneratedFile,
    PlannedDocUpdate,
    Stage,
    UpdateType,
    resolve_docs_repo,
)
from docs_updater.nodes._base import (
    NodeContext,
    ask_llm,
    fetch_file_text,
    history_entry,
    parent_dir_name,
    require_state,
)

logger = logging.getLogger(__name__)

STAGE = Stage.GENERATE_CONTENT.value


# =============================================================================
# PROMPTS
# =============================================================================

MDX_RULES = """MDX Formatting Rules:
1. Use {/* */} for comments, not HTML <!-- --> style
2. Always add a blank line before and after code blocks
3. Ensure code blocks have proper language tags:
   ```typescript
   // code here
   ```
4. Use proper heading spacing: "## Heading" not "##Heading"
5. Keep consistent newline spacing - one blank line between sections
6. Use proper MDX components for callouts, tabs, etc.
7. Start with frontmatter (---) containing title and description
8. IMPORTANT: Return the MDX content directly, do not wrap in backticks"""

CONTENT_GUIDELINES = """Content Guidelines:
- Be precise and technical in descriptions
- Include code examples where relevant
- Follow existing documentation style
- Maintain any existing metadata and tags
- If documenting APIs, include:
  - Function signatures
  - Parameter descriptions
  - Return types
  - Usage examples"""

# Fence the model sometimes wraps its whole answer in
OPENING_FENCE = re.compile(r"^```(?:mdx|md|markdown)?[ \t]*\n")
CLOSING_FENCE = re.compile(r"\n?```\s*$")


def build_system_prompt(update: PlannedDocUpdate, style_guide: Optional[str]) -> str:
    task = "create new" if update.type == UpdateType.CREATE else "update existing"
    prompt = (
        "You are a technical documentation expert specializing in Mintlify MDX documentation.\n"
        f"Your task is to {task} documentation based on code changes.\n\n"
        f"{MDX_RULES}\n\n{CONTENT_GUIDELINES}"
    )
    if style_guide:
        prompt += f"\n\nStyle Guide:\n{style_guide}"
    return prompt


def build_user_prompt(
    update: PlannedDocUpdate,
    doc_structure: DocStructure,
    code_analysis: CodeAnalysis,
    sources: List[Tuple[str, str]],
    existing_content: Optional[str],
    template_content: Optional[str],
) -> str:
    task = "Create new" if update.type == UpdateType.CREATE else "Update"
    source_text = dict(sources)

    source_blocks = []
    for path in update.source_files:
        change = code_analysis.find_change(path)
        block = (
            f"File: {path}\n"
            f"Type: {change.type.value if change else 'unknown'}\n"
            f"Patch:\n```diff\n{change.patch if change else ''}\n```\n"
        )
        if path in source_text:
            block += f"Current content:\n```\n{source_text[path]}\n```\n"
        source_blocks.append(block)

    if update.related_docs:
        related = "\n".join(
            f"- {doc} ({'exists' if doc_structure.find_file(doc) else 'planned'})"
            for doc in update.related_docs
        )
    else:
        related = "No related documentation"

    if update.suggested_content:
        structure = json.dumps(update.suggested_content.to_dict(), indent=2)
    else:
        structure = "Standard documentation structure"

    sections = [
        f"Task: {task} documentation file at {update.path}",
        f"Context:\n{update.reason}",
        "Source Files:\n" + ("\n".join(source_blocks) or "None"),
    ]
    if template_content:
        sections.append(f"Template to follow:\n{template_content}")
    if existing_content:
        sections.append(f"Current content to update:\n{existing_content}")
    sections.extend([
        f"Suggested Structure:\n{structure}",
        f"Related Documentation:\n{related}",
        "Please provide the complete MDX content for this documentation file.\n"
        "Remember: Return the content directly, starting with frontmatter (---). "
        "Do not wrap in backticks.",
    ])
    return "\n\n".join(sections)


def strip_code_fences(content: str) -> str:
    """
    Remove a code fence wrapped around the whole answer.

    The closing fence only goes with an opening one, so a page that ends
    in its own code block keeps it.
    """
    content = content.strip()
    unwrapped, opened = OPENING_FENCE.subn("", content, count=1)
    if not opened:
        return content
    return CLOSING_FENCE.sub("", unwrapped, count=1).strip()


def find_template_file(doc_structure: DocStructure, update: PlannedDocUpdate) -> Optional[str]:
    """First page in the target's category that is not the target itself."""
    category = parent_dir_name(update.path)
    for doc in doc_structure.files:
        if doc.category == category and doc.path != update.path:
            return doc.path
    return None


# =============================================================================
# GENERATION
# =============================================================================


async def fetch_sources(
    ctx: NodeContext,
    source_repo: str,
    pull_number: int,
    paths: List[str],
) -> List[Tuple[str, str]]:
    """Text of each source file at the pull request head; misses are skipped."""
    sources = []
    for path in paths:
        content = await fetch_file_text(ctx, source_repo, path, f"refs/pull/{pull_number}/head")
        if content is None:
            logger.warning(f"Could not fetch source file {path}")
            continue
        sources.append((path, content))
    return sources


async def generate_file(
    ctx: NodeContext,
    state: Dict[str, Any],
    update: PlannedDocUpdate,
    docs_repo: DocsRepo,
    config: DocConfig,
) -> GeneratedFile:
    """
    Generate one documentation page.

    Raises:
        ContentGenerationError: If the model returns no content
    """
    doc_structure: DocStructure = state["doc_structure"]
    existing_content = None
    template_content = None

    if update.type == UpdateType.UPDATE:
        existing_content = await fetch_file_text(
            ctx, docs_repo.full_name, update.path, docs_repo.branch
        )
        if existing_content is None:
            logger.info(f"No existing content found for {update.path}")

    if update.type == UpdateType.CREATE:
        template_path = find_template_file(doc_structure, update)
        if template_path:
            template_content = await fetch_file_text(
                ctx, docs_repo.full_name, template_path, docs_repo.branch
            )
            if template_content is not None:
                logger.info(f"Using {template_path} as template for {update.path}")

    sources = await fetch_sources(
        ctx,
        f"{state['owner']}/{state['repo']}",
        state["pull_number"],
        update.source_files,
    )

    response = await ask_llm(
        ctx,
        STAGE,
        system=build_system_prompt(update, config.llm.style_guide),
        prompt=build_user_prompt(
            update,
            doc_structure,
            state["code_analysis"],
            sources,
            existing_content,
            template_content,
        ),
        temperature=config.llm.temperature,
    )

    content = strip_code_fences(response.content or "")
    if not content:
        raise ContentGenerationError(update.path)

    return GeneratedFile(
        path=update.path,
        content=content,
        type=update.type,
        reason=update.reason,
    )


async def generate_content_node(
    state: Dict[str, Any],
    ctx: NodeContext,
) -> Dict[str, Any]:
    """
    Generate content for every planned update, in plan order.

    Returns:
        Delta with ``generated_content`` and ``history``

    Raises:
        PreconditionError: If update_plan, doc_structure or code_analysis is missing
        ContentGenerationError: If a page comes back empty
    """
    require_state(state, STAGE, "update_plan", "doc_structure", "code_analysis", "config")
    plan = state["update_plan"]
    config: DocConfig = state["config"]
    docs_repo = resolve_docs_repo(state)

    files = []
    for update in plan.updates:
        logger.info(
            f"Processing {update.path} ({update.type.value}, priority {update.priority.value})"
        )
        if update.type == UpdateType.DELETE:
            files.append(GeneratedFile(
                path=update.path,
                content="",
                type=UpdateType.DELETE,
                reason=update.reason,
            ))
            continue

        files.append(await generate_file(ctx, state, update, docs_repo, config))

    logger.info(f"Generated content for {len(files)} files")

    return {
        "generated_content": GeneratedContent(files=files),
        "history": history_entry(state, STAGE, "generated", {
            "files": [f.path for f in files],
        }),
    }


__all__ = [
    "generate_content_node",
    "generate_file",
    "build_system_prompt",
    "build_user_prompt",
    "find_template_file",
    "strip_code_fences",
]
