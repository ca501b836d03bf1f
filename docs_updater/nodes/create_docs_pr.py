# =============================================================================
# DOCS UPDATER - CREATE DOCS PR NODE
# =============================================================================
"""
PR Publisher

Commits the generated pages and the navigation manifest, then either opens
a documentation pull request on a fresh branch (default) or, with
``pr.update_original_pr``, commits straight onto the branch of the pull
request that triggered the run.

Pipeline Position:
    UPDATE_NAVIGATION --> CREATE_DOCS_PR --> END
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from docs_updater.config import DocConfig, DocsRepo
from docs_updater.engine.state import (
    GeneratedContent,
    GeneratedFile,
    NavigationUpdate,
    PublishResult,
    Stage,
    UpdatePlan,
    UpdateType,
    resolve_docs_repo,
)
from docs_updater.github.client import GitHubAPIError
from docs_updater.nodes._base import (
    NodeContext,
    NODE_CONFIGS,
    history_entry,
    post_comment,
    require_state,
)

logger = logging.getLogger(__name__)

STAGE = Stage.CREATE_DOCS_PR.value

COMMIT_VERBS = {
    UpdateType.CREATE: "Add",
    UpdateType.UPDATE: "Update",
    UpdateType.DELETE: "Delete",
}


# =============================================================================
# TEMPLATES
# =============================================================================


def render_template(template: str, pull_number: int, summary: str, now: datetime = None) -> str:
    """Substitute ``{{PR_NUMBER}}``, ``{{TIMESTAMP}}`` and ``{{SUMMARY}}``."""
    now = now or datetime.now(timezone.utc)
    return (
        template
        .replace("{{PR_NUMBER}}", str(pull_number))
        .replace("{{TIMESTAMP}}", now.date().isoformat())
        .replace("{{SUMMARY}}", summary or "Documentation updates")
    )


def branch_name(prefix: str, pull_number: int, timestamp: int = None) -> str:
    return f"{prefix}{pull_number}-{timestamp or int(time.time())}"


# =============================================================================
# COMMITS
# =============================================================================


async def commit_file(
    ctx: NodeContext,
    repo: str,
    branch: str,
    generated: GeneratedFile,
) -> bool:
    """
    Commit one generated file to ``branch``.

    Returns:
        True if committed; failures are logged and reported as False
    """
    github = ctx.github_client
    message = f"{COMMIT_VERBS[generated.type]} {generated.path}"
    try:
        sha = await asyncio.to_thread(github.get_file_sha, repo, generated.path, branch)

        if generated.type == UpdateType.DELETE:
            if sha is None:
                logger.info(f"{generated.path} doesn't exist, nothing to delete")
                return False
            await asyncio.to_thread(
                github.delete_file, repo, generated.path, message, branch, sha
            )
        else:
            logger.info(
                f"{'Updating' if sha else 'Creating'} {generated.path} on {branch}"
            )
            await asyncio.to_thread(
                github.create_or_update_file,
                repo, generated.path, generated.content, message, branch, sha,
            )
    except GitHubAPIError as e:
        logger.error(f"Error committing {generated.path}: {e}")
        return False

    if ctx.metrics:
        ctx.metrics.record_file_committed(generated.type.value)
    return True


async def commit_navigation(
    ctx: NodeContext,
    repo: str,
    branch: str,
    navigation: NavigationUpdate,
    lookup_sha: bool = False,
) -> bool:
    """Commit the navigation manifest, replacing the blob it was read from."""
    github = ctx.github_client
    try:
        sha = navigation.sha
        if lookup_sha:
            sha = await asyncio.to_thread(
                github.get_file_sha, repo, navigation.path, branch
            ) or sha
        await asyncio.to_thread(
            github.create_or_update_file,
            repo,
            navigation.path,
            navigation.content,
            NODE_CONFIGS[STAGE]["navigation_commit_message"],
            branch,
            sha,
        )
    except GitHubAPIError as e:
        logger.error(f"Error updating navigation: {e}")
        return False

    if ctx.metrics:
        ctx.metrics.record_file_committed("navigation")
    logger.info("Updated navigation structure")
    return True


async def commit_all(
    ctx: NodeContext,
    repo: str,
    branch: str,
    generated: GeneratedContent,
    lookup_navigation_sha: bool = False,
) -> List[str]:
    """Commit every file and the manifest; returns the committed paths."""
    committed = []
    for generated_file in generated.files:
        if await commit_file(ctx, repo, branch, generated_file):
            committed.append(generated_file.path)
    if generated.navigation_update is not None:
        if await commit_navigation(
            ctx, repo, branch, generated.navigation_update, lookup_navigation_sha
        ):
            committed.append(generated.navigation_update.path)
    return committed


def committed_pages(generated: GeneratedContent, committed: List[str]) -> List[str]:
    """Generated pages that made it onto the branch, in plan order."""
    done = set(committed)
    return [f.path for f in generated.files if f.path in done]


# =============================================================================
# PUBLISHING MODES
# =============================================================================


async def open_docs_pr(
    ctx: NodeContext,
    state: Dict[str, Any],
    docs_repo: DocsRepo,
    generated: GeneratedContent,
    plan: UpdatePlan,
) -> PublishResult:
    """Commit to a new branch of the docs repo and open a pull request."""
    github = ctx.github_client
    config: DocConfig = state["config"]
    pull_number = state["pull_number"]
    repo = docs_repo.full_name

    branch = branch_name(config.pr.branch_prefix, pull_number)
    base_sha = await asyncio.to_thread(github.get_branch_sha, repo, docs_repo.branch)
    await asyncio.to_thread(github.create_ref, repo, f"refs/heads/{branch}", base_sha)
    logger.info(f"Created branch {branch} from {docs_repo.branch} ({base_sha[:7]})")

    committed = await commit_all(ctx, repo, branch, generated)

    title = render_template(config.pr.title_template, pull_number, plan.summary)
    body = render_template(config.pr.body_template, pull_number, plan.summary)
    pr = await asyncio.to_thread(
        github.create_pull_request, repo, title, branch, docs_repo.branch, body
    )
    logger.info(f"Pull request created: {pr['html_url']}")

    if config.pr.labels:
        try:
            await asyncio.to_thread(github.add_labels, repo, pr["number"], config.pr.labels)
        except GitHubAPIError as e:
            logger.warning(f"Failed to label {repo}#{pr['number']}: {e}")

    await post_comment(
        ctx,
        f"{state['owner']}/{state['repo']}",
        pull_number,
        f"I've created a documentation update PR: {pr['html_url']}",
    )

    return PublishResult(
        pr_number=pr["number"],
        pr_url=pr["html_url"],
        branch=branch,
        files=committed_pages(generated, committed),
    )


async def update_original_pr(
    ctx: NodeContext,
    state: Dict[str, Any],
    generated: GeneratedContent,
) -> PublishResult:
    """Commit onto the head branch of the triggering pull request."""
    source_repo = f"{state['owner']}/{state['repo']}"
    pull_number = state["pull_number"]

    pr = await asyncio.to_thread(
        ctx.github_client.get_pull_request, source_repo, pull_number
    )
    head_repo = (pr["head"].get("repo") or {}).get("full_name") or source_repo
    branch = pr["head"]["ref"]
    logger.info(f"Committing documentation to {head_repo}:{branch}")

    committed = await commit_all(
        ctx, head_repo, branch, generated, lookup_navigation_sha=True
    )

    if committed:
        listing = "\n".join(f"- `{path}`" for path in committed)
        await post_comment(
            ctx,
            source_repo,
            pull_number,
            f"I've updated the documentation in this PR:\n\n{listing}",
        )

    return PublishResult(
        pr_number=pull_number,
        pr_url=pr.get("html_url", ""),
        branch=branch,
        files=committed_pages(generated, committed),
    )


# =============================================================================
# NODE IMPLEMENTATION
# =============================================================================


def _targets_source_repo(state: Dict[str, Any], docs_repo: DocsRepo) -> bool:
    return (docs_repo.owner, docs_repo.repo) == (state["owner"], state["repo"])


async def create_docs_pr_node(
    state: Dict[str, Any],
    ctx: NodeContext,
) -> Dict[str, Any]:
    """
    Publish the generated documentation.

    Returns:
        Delta with ``publish_result`` and ``history``

    Raises:
        PreconditionError: If generated_content or update_plan is missing
    """
    require_state(state, STAGE, "generated_content", "update_plan", "config")
    generated: GeneratedContent = state["generated_content"]
    config: DocConfig = state["config"]
    docs_repo = resolve_docs_repo(state)

    if not generated.has_changes:
        logger.info("No updates to process, skipping PR creation")
        result = PublishResult.noop()
    elif config.pr.update_original_pr and _targets_source_repo(state, docs_repo):
        result = await update_original_pr(ctx, state, generated)
    else:
        if config.pr.update_original_pr:
            logger.warning(
                f"Docs live in {docs_repo.full_name}, not the source repository; "
                "opening a separate documentation PR"
            )
        result = await open_docs_pr(ctx, state, docs_repo, generated, state["update_plan"])

    return {
        "publish_result": result,
        "history": history_entry(state, STAGE, "published", result.to_dict()),
    }


__all__ = [
    "create_docs_pr_node",
    "open_docs_pr",
    "update_original_pr",
    "commit_file",
    "commit_navigation",
    "committed_pages",
    "render_template",
    "branch_name",
]
