# =============================================================================
# DOCS UPDATER - UPDATE NAVIGATION NODE
# =============================================================================
"""
Navigation Updater

Applies the planned navigation changes to ``mint.json``. The manifest is
looked up in the docs directory first (monorepo layout), then at the
repository root. When the changes leave the navigation as it was, no
update is produced.

Pipeline Position:
    GENERATE_CONTENT --> UPDATE_NAVIGATION --> CREATE_DOCS_PR
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from typing import Dict, Any, List, Optional, Tuple

from docs_updater.config import DocsRepo
from docs_updater.engine.state import (
    GeneratedContent,
    NavigationChange,
    NavigationChangeType,
    NavigationItem,
    NavigationUpdate,
    Stage,
    resolve_docs_repo,
)
from docs_updater.github.client import GitHubAPIError, NotFoundError, decode_content
from docs_updater.nodes._base import (
    NodeContext,
    NODE_CONFIGS,
    history_entry,
    require_state,
)

logger = logging.getLogger(__name__)

STAGE = Stage.UPDATE_NAVIGATION.value


# =============================================================================
# NAVIGATION EDITING
# =============================================================================


def _find_group(navigation: List[NavigationItem], name: str) -> int:
    wanted = name.lower()
    for index, item in enumerate(navigation):
        if item.group.lower() == wanted:
            return index
    return -1


def _find_page(navigation: List[NavigationItem], page: str) -> int:
    for index, item in enumerate(navigation):
        if page in item.pages:
            return index
    return -1


def apply_navigation_changes(
    navigation: List[NavigationItem],
    changes: List[NavigationChange],
) -> List[NavigationItem]:
    """
    Apply navigation changes, returning a new list.

    Group names match case-insensitively.

    - add: append the page to the group (created when absent), once
    - remove: drop the page from the group; an emptied group is deleted
    - move: take the page out of the group currently holding it and append
      it to the target group (created when absent); an emptied source group
      is deleted. Pages not found anywhere, or already in the target, stay.
    """
    updated = [replace(item, pages=list(item.pages)) for item in navigation]

    for change in changes:
        index = _find_group(updated, change.group)

        if change.type == NavigationChangeType.ADD:
            if index == -1:
                updated.append(NavigationItem(group=change.group))
                index = len(updated) - 1
            if change.page not in updated[index].pages:
                updated[index].pages.append(change.page)

        elif change.type == NavigationChangeType.REMOVE:
            if index == -1:
                logger.warning(
                    f"Group '{change.group}' not found for operation: remove"
                )
                continue
            group = updated[index]
            group.pages = [page for page in group.pages if page != change.page]
            if not group.pages:
                del updated[index]

        elif change.type == NavigationChangeType.MOVE:
            source_index = _find_page(updated, change.page)
            if source_index == -1 or source_index == index:
                continue
            source = updated[source_index]
            source.pages = [page for page in source.pages if page != change.page]
            if index == -1:
                target = NavigationItem(group=change.group)
                updated.append(target)
            else:
                target = updated[index]
            if change.page not in target.pages:
                target.pages.append(change.page)
            if not source.pages:
                updated.remove(source)

        else:
            logger.warning(f"Unknown navigation change type: {change.type}")

    return updated


# =============================================================================
# MANIFEST ACCESS
# =============================================================================


async def _get_manifest_file(ctx: NodeContext, docs_repo: DocsRepo, path: str) -> Dict[str, Any]:
    contents = await asyncio.to_thread(
        ctx.github_client.get_contents, docs_repo.full_name, path, docs_repo.branch
    )
    if isinstance(contents, list) or contents.get("type") != "file":
        raise GitHubAPIError(f"{path} not found or is a directory")
    return contents


async def load_manifest(
    ctx: NodeContext,
    docs_repo: DocsRepo,
    docs_path: str,
) -> Tuple[str, Dict[str, Any]]:
    """
    Locate the navigation manifest: ``{docs_path}/mint.json``, then the
    repository root.

    Returns:
        (path, contents API response)

    Raises:
        NotFoundError: If neither location holds the manifest
    """
    manifest_name = NODE_CONFIGS[STAGE]["manifest_name"]
    path = f"{docs_path}/{manifest_name}" if docs_path else manifest_name
    try:
        return path, await _get_manifest_file(ctx, docs_repo, path)
    except NotFoundError:
        if path == manifest_name:
            raise
        logger.info(f"{path} not found, trying repository root")
    return manifest_name, await _get_manifest_file(ctx, docs_repo, manifest_name)


def split_navigation(raw: List[Any]) -> Tuple[List[NavigationItem], List[Any]]:
    """Separate group entries from entries this updater doesn't edit."""
    groups, others = [], []
    for entry in raw:
        if isinstance(entry, dict) and "group" in entry:
            groups.append(NavigationItem.from_dict(entry))
        else:
            others.append(entry)
    return groups, others


# =============================================================================
# NODE IMPLEMENTATION
# =============================================================================


async def build_navigation_update(
    ctx: NodeContext,
    docs_repo: DocsRepo,
    docs_path: str,
    changes: List[NavigationChange],
) -> Optional[NavigationUpdate]:
    """NavigationUpdate for ``changes``, or None when nothing changes."""
    try:
        path, contents = await load_manifest(ctx, docs_repo, docs_path)
        manifest = json.loads(decode_content(contents))
    except (GitHubAPIError, ValueError) as e:
        logger.error(f"Error reading navigation manifest: {e}")
        return None

    if not isinstance(manifest, dict) or not isinstance(manifest.get("navigation"), list):
        logger.warning(f"No navigation array found in {path}")
        return None

    navigation, others = split_navigation(manifest["navigation"])
    logger.info(f"Current navigation: {len(navigation)} groups")

    updated = apply_navigation_changes(navigation, changes)
    if updated == navigation:
        logger.info("No changes made to navigation structure")
        return None

    manifest["navigation"] = [item.to_dict() for item in updated] + others
    for change in changes:
        logger.info(f"Navigation {change.type.value}: {change.page} in group '{change.group}'")

    return NavigationUpdate(
        path=path,
        content=json.dumps(manifest, indent=2, ensure_ascii=False),
        sha=contents.get("sha"),
        changes=changes,
    )


async def update_navigation_node(
    state: Dict[str, Any],
    ctx: NodeContext,
) -> Dict[str, Any]:
    """
    Update the navigation manifest.

    Returns:
        Delta with ``generated_content`` (carrying the navigation update,
        if any) and ``history``

    Raises:
        PreconditionError: If update_plan or doc_structure is missing
    """
    require_state(state, STAGE, "update_plan", "doc_structure", "config")
    changes = state["update_plan"].all_navigation_changes()

    navigation_update = None
    if not changes:
        logger.info("No navigation changes required")
    else:
        logger.info(f"Found {len(changes)} navigation changes to process")
        navigation_update = await build_navigation_update(
            ctx,
            resolve_docs_repo(state),
            state["config"].docs_path,
            changes,
        )

    generated = state.get("generated_content") or GeneratedContent()
    return {
        "generated_content": replace(generated, navigation_update=navigation_update),
        "history": history_entry(state, STAGE, "navigation", {
            "changes": len(changes),
            "updated": navigation_update is not None,
        }),
    }


__all__ = [
    "update_navigation_node",
    "apply_navigation_changes",
    "build_navigation_update",
    "load_manifest",
    "split_navigation",
]
