# =============================================================================
# DOCS UPDATER - PIPELINE STATE
# =============================================================================
"""
Pipeline State Module

Data structures flowing through the documentation update pipeline.

Every stage reads the current ``ReviewState`` and returns a delta holding
only the fields it produced. LangGraph merges the delta into the next
state version, so records produced by one stage are never edited in place
by a later one.

Records:
    CodeAnalysis     <- analyze_code_changes
    DocStructure     <- analyze_doc_structure
    UpdatePlan       <- plan_doc_updates
    GeneratedContent <- generate_content / update_navigation
    PublishResult    <- create_docs_pr
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, TypedDict

from docs_updater.config import DocConfig, DocsRepo


# =============================================================================
# ENUMS
# =============================================================================


class ChangeType(str, Enum):
    """File status as reported for a pull request."""
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"

    @classmethod
    def from_github(cls, status: str) -> "ChangeType":
        if status == "removed":
            return cls.DELETED
        try:
            return cls(status)
        except ValueError:
            return cls.MODIFIED


class UpdateType(str, Enum):
    """Operation planned for a documentation file."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class NavigationChangeType(str, Enum):
    ADD = "add"
    MOVE = "move"
    REMOVE = "remove"


class Stage(str, Enum):
    """Pipeline stages, in execution order."""
    ANALYZE_CODE_CHANGES = "analyze_code_changes"
    ANALYZE_DOC_STRUCTURE = "analyze_doc_structure"
    PLAN_DOC_UPDATES = "plan_doc_updates"
    GENERATE_CONTENT = "generate_content"
    UPDATE_NAVIGATION = "update_navigation"
    CREATE_DOCS_PR = "create_docs_pr"


# =============================================================================
# CODE ANALYSIS
# =============================================================================


@dataclass
class ChangeSignificance:
    """Cheap keyword heuristics computed from a file patch."""
    has_exports: bool = False
    has_interfaces: bool = False
    has_classes: bool = False
    has_types: bool = False
    has_enums: bool = False
    is_test: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)


@dataclass
class CodeChange:
    """One changed file of the pull request."""
    file: str
    patch: str
    type: ChangeType
    significance: ChangeSignificance
    category: str = ""
    related_files: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "patch": self.patch,
            "type": self.type.value,
            "significance": self.significance.to_dict(),
            "category": self.category,
            "related_files": list(self.related_files),
        }


@dataclass
class CodeAnalysis:
    """Output of the code change analyzer."""
    changes: List[CodeChange] = field(default_factory=list)
    impacted_areas: List[str] = field(default_factory=list)
    significant_changes: bool = False
    summary: str = ""

    def find_change(self, path: str) -> Optional[CodeChange]:
        for change in self.changes:
            if change.file == path:
                return change
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "changes": [c.to_dict() for c in self.changes],
            "impacted_areas": list(self.impacted_areas),
            "significant_changes": self.significant_changes,
            "summary": self.summary,
        }


# =============================================================================
# DOC STRUCTURE
# =============================================================================


@dataclass
class DocFile:
    """A documentation page found in the docs tree."""
    path: str
    type: str = "file"
    category: str = ""
    references: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class NavigationItem:
    """
    A navigation group of the manifest.

    ``pages`` holds page identifiers; nested groups (dicts) are carried
    through untouched, as are other group keys (``icon``, ``version``...).
    """
    group: str
    pages: List[Any] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {"group": self.group, **self.extra}
        data["pages"] = list(self.pages)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NavigationItem":
        extra = {k: v for k, v in data.items() if k not in ("group", "pages")}
        return cls(
            group=str(data.get("group", "")),
            pages=list(data.get("pages") or []),
            extra=extra,
        )


@dataclass
class DocStructure:
    """Output of the documentation structure scanner."""
    files: List[DocFile] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    navigation: List[NavigationItem] = field(default_factory=list)
    file_tree: str = ""

    def find_file(self, path: str) -> Optional[DocFile]:
        for doc in self.files:
            if doc.path == path:
                return doc
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files": [f.to_dict() for f in self.files],
            "categories": list(self.categories),
            "navigation": [n.to_dict() for n in self.navigation],
            "file_tree": self.file_tree,
        }


# =============================================================================
# UPDATE PLAN
# =============================================================================


@dataclass
class SuggestedContent:
    sections: List[str] = field(default_factory=list)
    examples: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.sections or self.examples or self.notes)

    def to_dict(self) -> Dict[str, List[str]]:
        return asdict(self)


@dataclass
class PlannedDocUpdate:
    """A single file creation, update or deletion."""
    path: str
    type: UpdateType
    priority: Priority = Priority.MEDIUM
    reason: str = ""
    source_files: List[str] = field(default_factory=list)
    related_docs: List[str] = field(default_factory=list)
    suggested_content: Optional[SuggestedContent] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "type": self.type.value,
            "priority": self.priority.value,
            "reason": self.reason,
            "source_files": list(self.source_files),
            "related_docs": list(self.related_docs),
            "suggested_content": (
                self.suggested_content.to_dict() if self.suggested_content else None
            ),
        }


@dataclass
class NavigationChange:
    """A single navigation operation targeting ``group``."""
    type: NavigationChangeType
    page: str
    group: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type.value, "page": self.page, "group": self.group}


@dataclass
class NavigationChangeGroup:
    """Navigation operations grouped by target group."""
    group: str
    changes: List[NavigationChange] = field(default_factory=list)

    def flatten(self) -> List[NavigationChange]:
        return [
            NavigationChange(type=c.type, page=c.page, group=self.group)
            for c in self.changes
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "group": self.group,
            "changes": [{"type": c.type.value, "page": c.page} for c in self.changes],
        }


@dataclass
class UpdatePlan:
    """Output of the update planner."""
    summary: str = ""
    updates: List[PlannedDocUpdate] = field(default_factory=list)
    navigation_changes: List[NavigationChangeGroup] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.updates and not self.navigation_changes

    def all_navigation_changes(self) -> List[NavigationChange]:
        changes: List[NavigationChange] = []
        for group in self.navigation_changes:
            changes.extend(group.flatten())
        return changes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "updates": [u.to_dict() for u in self.updates],
            "navigation_changes": [g.to_dict() for g in self.navigation_changes],
        }


# =============================================================================
# GENERATED CONTENT & PUBLISHING
# =============================================================================


@dataclass
class GeneratedFile:
    path: str
    content: str
    type: UpdateType
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "content": self.content,
            "type": self.type.value,
            "reason": self.reason,
        }


@dataclass
class NavigationUpdate:
    """Replacement for the navigation manifest, with its revision marker."""
    path: str
    content: str
    sha: Optional[str] = None
    changes: List[NavigationChange] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "content": self.content,
            "sha": self.sha,
            "changes": [c.to_dict() for c in self.changes],
        }


@dataclass
class GeneratedContent:
    files: List[GeneratedFile] = field(default_factory=list)
    navigation_update: Optional[NavigationUpdate] = None

    @property
    def has_changes(self) -> bool:
        return bool(self.files) or self.navigation_update is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files": [f.to_dict() for f in self.files],
            "navigation_update": (
                self.navigation_update.to_dict() if self.navigation_update else None
            ),
        }


@dataclass
class PublishResult:
    """Identifying fields of the documentation PR (``pr_number == 0`` = no-op)."""
    pr_number: int = 0
    pr_url: str = ""
    branch: str = ""
    files: List[str] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return self.pr_number == 0

    @classmethod
    def noop(cls) -> "PublishResult":
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# GRAPH STATE
# =============================================================================


class ReviewState(TypedDict, total=False):
    """
    State passed through the LangGraph pipeline.

    Identifiers and config are set at creation; each stage adds its own
    output field.
    """
    # Core identifiers
    owner: str
    repo: str
    pull_number: int
    config: DocConfig
    docs_repo: Optional[DocsRepo]

    # Stage outputs
    code_analysis: CodeAnalysis
    doc_structure: DocStructure
    update_plan: UpdatePlan
    generated_content: GeneratedContent
    publish_result: PublishResult

    # Bookkeeping
    history: List[Dict[str, Any]]
    started_at: str


def create_initial_state(
    owner: str,
    repo: str,
    pull_number: int,
    config: DocConfig,
    docs_repo: Optional[DocsRepo] = None,
) -> ReviewState:
    """Create the state a pipeline run starts from."""
    return ReviewState(
        owner=owner,
        repo=repo,
        pull_number=pull_number,
        config=config,
        docs_repo=docs_repo or config.docs_repo,
        history=[],
        started_at=datetime.now(timezone.utc).isoformat(),
    )


def resolve_docs_repo(state: ReviewState) -> DocsRepo:
    """Docs repository of a run; defaults to the source repo on ``main``."""
    docs_repo = state.get("docs_repo")
    if docs_repo is not None:
        return docs_repo
    return DocsRepo(owner=state["owner"], repo=state["repo"], branch="main")


def summarize_state(state: ReviewState) -> Dict[str, Any]:
    """JSON-friendly summary of a finished run."""
    summary: Dict[str, Any] = {
        "owner": state.get("owner"),
        "repo": state.get("repo"),
        "pull_number": state.get("pull_number"),
    }
    analysis = state.get("code_analysis")
    if analysis is not None:
        summary["code_summary"] = analysis.summary
        summary["files_analyzed"] = len(analysis.changes)
    plan = state.get("update_plan")
    if plan is not None:
        summary["plan_summary"] = plan.summary
        summary["planned_updates"] = len(plan.updates)
    generated = state.get("generated_content")
    if generated is not None:
        summary["generated_files"] = [f.path for f in generated.files]
        summary["navigation_updated"] = generated.navigation_update is not None
    result = state.get("publish_result")
    if result is not None:
        summary["pull_request"] = result.to_dict()
    return summary


__all__ = [
    "ChangeType",
    "UpdateType",
    "Priority",
    "NavigationChangeType",
    "Stage",
    "ChangeSignificance",
    "CodeChange",
    "CodeAnalysis",
    "DocFile",
    "NavigationItem",
    "DocStructure",
    "SuggestedContent",
    "PlannedDocUpdate",
    "NavigationChange",
    "NavigationChangeGroup",
    "UpdatePlan",
    "GeneratedFile",
    "NavigationUpdate",
    "GeneratedContent",
    "PublishResult",
    "ReviewState",
    "create_initial_state",
    "resolve_docs_repo",
    "summarize_state",
]
