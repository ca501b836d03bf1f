# =============================================================================
# DOCS UPDATER - ANALYZE DOC STRUCTURE NODE
# =============================================================================
"""
Documentation Structure Scanner

Walks the documentation directory of the docs repository, collecting the
pages, the categories (directories directly under the docs root), the
navigation groups of ``mint.json`` and a printable file tree. Each page is
then read and the model lists what it references.

Pipeline Position:
    ANALYZE_CODE_CHANGES --> ANALYZE_DOC_STRUCTURE --> PLAN_DOC_UPDATES
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from typing import Dict, Any, List, Optional

from docs_updater.config import DocsRepo
from docs_updater.engine.parsing import parse_references
from docs_updater.engine.state import (
    DocFile,
    DocStructure,
    NavigationItem,
    Stage,
    resolve_docs_repo,
)
from docs_updater.github.client import GitHubAPIError, decode_content
from docs_updater.nodes._base import (
    NodeContext,
    NODE_CONFIGS,
    ask_llm,
    fetch_file_text,
    history_entry,
    parent_dir_name,
    require_state,
)

logger = logging.getLogger(__name__)

STAGE = Stage.ANALYZE_DOC_STRUCTURE.value


REFERENCES_SYSTEM_PROMPT = """You are a documentation analyzer. Analyze this documentation file and identify:
1. References to other documentation files or sections
2. Code files or packages it documents
3. Related documentation that should be updated together

Return your analysis as a JSON object with this structure:
{
  "references": ["file1", "file2"],
  "codeFiles": ["code1", "code2"],
  "relatedDocs": ["doc1", "doc2"]
}"""


# =============================================================================
# TRAVERSAL
# =============================================================================


def parse_navigation(manifest: Dict[str, Any]) -> List[NavigationItem]:
    """NavigationItems of a manifest's ``navigation`` array."""
    items = []
    for entry in manifest.get("navigation") or []:
        if isinstance(entry, dict) and "group" in entry:
            items.append(NavigationItem.from_dict(entry))
        else:
            logger.warning(f"Skipping unrecognized navigation entry: {entry!r}")
    return items


class DocTreeScanner:
    """
    Depth-first scan of a documentation directory.

    Attributes:
        files: Documentation pages found
        categories: Directories directly under the docs root
        navigation: Groups parsed from the navigation manifest
        file_tree: Indented listing of every entry visited
    """

    def __init__(self, ctx: NodeContext, docs_repo: DocsRepo, docs_path: str):
        self.ctx = ctx
        self.docs_repo = docs_repo
        self.docs_path = docs_path
        self.files: List[DocFile] = []
        self.categories: List[str] = []
        self.navigation: List[NavigationItem] = []
        self.file_tree = ""

        node_config = NODE_CONFIGS[STAGE]
        self._doc_extensions = node_config["doc_extensions"]
        self._manifest_name = node_config["manifest_name"]

    async def scan(self) -> DocStructure:
        await self._traverse(self.docs_path, 0)
        return DocStructure(
            files=self.files,
            categories=self.categories,
            navigation=self.navigation,
            file_tree=self.file_tree,
        )

    async def _list(self, path: str) -> List[Dict[str, Any]]:
        contents = await asyncio.to_thread(
            self.ctx.github_client.get_contents,
            self.docs_repo.full_name,
            path,
            self.docs_repo.branch,
        )
        return contents if isinstance(contents, list) else [contents]

    async def _traverse(self, path: str, depth: int) -> None:
        try:
            entries = await self._list(path)
        except GitHubAPIError as e:
            logger.error(f"Error reading directory {path}: {e}")
            return

        for entry in entries:
            item_path = entry["path"]
            is_dir = entry.get("type") == "dir"
            icon = "📁" if is_dir else "📄"
            self.file_tree += f"{' ' * (depth * 2)}{icon} {item_path}\n"

            if is_dir:
                if path == self.docs_path and entry["name"] not in self.categories:
                    self.categories.append(entry["name"])
                await self._traverse(item_path, depth + 1)
            elif item_path.endswith(self._doc_extensions):
                self.files.append(DocFile(
                    path=item_path,
                    type=entry.get("type", "file"),
                    category=parent_dir_name(item_path),
                ))
            elif item_path.endswith(self._manifest_name):
                await self._read_manifest(entry)

    async def _read_manifest(self, entry: Dict[str, Any]) -> None:
        try:
            if "content" not in entry:
                entry = await asyncio.to_thread(
                    self.ctx.github_client.get_contents,
                    self.docs_repo.full_name,
                    entry["path"],
                    self.docs_repo.branch,
                )
            manifest = json.loads(decode_content(entry))
            self.navigation = parse_navigation(manifest)
            logger.info(f"Found {len(self.navigation)} navigation groups")
        except (GitHubAPIError, ValueError, AttributeError) as e:
            logger.error(f"Error reading {entry.get('path')}: {e}")


# =============================================================================
# REFERENCE ANALYSIS
# =============================================================================


async def analyze_references(
    ctx: NodeContext,
    docs_repo: DocsRepo,
    doc_file: DocFile,
) -> Optional[List[str]]:
    """References of one page, or None when it can't be read or parsed."""
    content = await fetch_file_text(ctx, docs_repo.full_name, doc_file.path, docs_repo.branch)
    if content is None:
        logger.error(f"Could not read {doc_file.path} for reference analysis")
        return None

    response = await ask_llm(
        ctx,
        STAGE,
        system=REFERENCES_SYSTEM_PROMPT,
        prompt=f"Documentation file: {doc_file.path}\n\nContent:\n{content}",
        temperature=NODE_CONFIGS[STAGE]["temperature"],
        json_mode=True,
    )

    result = parse_references(response.content)
    if not result.ok:
        logger.error(f"Failed to parse references for {doc_file.path}: {result.error}")
        return None
    return result.value


# =============================================================================
# NODE IMPLEMENTATION
# =============================================================================


async def analyze_doc_structure_node(
    state: Dict[str, Any],
    ctx: NodeContext,
) -> Dict[str, Any]:
    """
    Scan the documentation tree and analyze page references.

    Returns:
        Delta with ``doc_structure`` and ``history``
    """
    require_state(state, STAGE, "owner", "repo", "config")
    docs_repo = resolve_docs_repo(state)
    docs_path = state["config"].docs_path

    logger.info(
        f"Scanning {docs_repo.full_name}@{docs_repo.branch} under '{docs_path}'"
    )

    structure = await DocTreeScanner(ctx, docs_repo, docs_path).scan()
    logger.info(
        f"Structure built: {len(structure.files)} doc files, "
        f"{len(structure.categories)} categories"
    )

    analyzed_files = []
    for index, doc_file in enumerate(structure.files, start=1):
        try:
            references = await analyze_references(ctx, docs_repo, doc_file)
        except Exception as e:
            logger.error(f"Error analyzing references for {doc_file.path}: {e}")
            references = None
        analyzed_files.append(replace(doc_file, references=references or []))
        if index % 5 == 0:
            logger.info(f"Analyzed {index}/{len(structure.files)} files")

    doc_structure = replace(structure, files=analyzed_files)
    logger.debug(f"Documentation tree:\n{doc_structure.file_tree}")

    return {
        "doc_structure": doc_structure,
        "history": history_entry(state, STAGE, "scanned", {
            "files": len(doc_structure.files),
            "categories": doc_structure.categories,
            "navigation_groups": len(doc_structure.navigation),
        }),
    }


__all__ = [
    "analyze_doc_structure_node",
    "analyze_references",
    "parse_navigation",
    "DocTreeScanner",
    "REFERENCES_SYSTEM_PROMPT",
]
