# =============================================================================
# DOCS UPDATER - LLM RESPONSE PARSING
# =============================================================================
"""
LLM Response Parsing

Models are asked for JSON, but answers still arrive wrapped in code fences,
surrounded by prose, or with fields of the wrong shape. Each parser here
extracts the JSON object, validates it field by field and returns a
``ParseResult``: either ``ok`` with a typed value, or an error message the
calling stage logs before falling back to its default.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

from docs_updater.engine.state import (
    NavigationChange,
    NavigationChangeGroup,
    NavigationChangeType,
    PlannedDocUpdate,
    Priority,
    SuggestedContent,
    UpdatePlan,
    UpdateType,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Spellings models use for navigation operations
NAVIGATION_TYPE_ALIASES = {
    "delete": "remove",
    "create": "add",
}


@dataclass
class ParseResult(Generic[T]):
    """Outcome of parsing one LLM response."""
    ok: bool
    value: Optional[T] = None
    error: str = ""

    @classmethod
    def success(cls, value: T) -> "ParseResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "ParseResult[T]":
        return cls(ok=False, error=error)


# =============================================================================
# JSON EXTRACTION
# =============================================================================


def extract_json(text: str) -> Optional[Any]:
    """Extract a JSON value from text, handling markdown code blocks."""
    if not text:
        return None

    # Try to find JSON in code block
    match = re.search(r"```(?:json)?\s*\n(.*?)```", text, re.DOTALL)
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            pass

    # Try to parse entire text as JSON
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Try to find JSON object in text
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            pass

    return None


def _load_object(text: str) -> Tuple[Optional[Dict[str, Any]], str]:
    data = extract_json(text)
    if data is None:
        return None, "Response is not valid JSON"
    if not isinstance(data, dict):
        return None, f"Expected a JSON object, got {type(data).__name__}"
    return data, ""


def _field(data: Dict[str, Any], *names: str) -> Any:
    """First present key among camelCase / snake_case spellings."""
    for name in names:
        if name in data:
            return data[name]
    return None


def _string_list(value: Any, name: str) -> Tuple[List[str], str]:
    if value is None:
        return [], ""
    if not isinstance(value, list):
        return [], f"'{name}' must be a list"
    if not all(isinstance(item, str) for item in value):
        return [], f"'{name}' must contain only strings"
    return list(value), ""


def _dedupe(items: List[str]) -> List[str]:
    return list(dict.fromkeys(item for item in items if item))


# =============================================================================
# CODE ANALYSIS
# =============================================================================


def parse_code_analysis_response(text: str) -> ParseResult[Dict[str, Any]]:
    """
    Parse the analyzer's ``{summary, impactedAreas, significantChanges,
    relatedFiles}`` answer.

    Returns:
        ParseResult whose value has snake_case keys ``summary``,
        ``impacted_areas``, ``significant_changes``, ``related_files``
    """
    data, error = _load_object(text)
    if data is None:
        return ParseResult.failure(error)

    summary = _field(data, "summary")
    if summary is not None and not isinstance(summary, str):
        return ParseResult.failure("'summary' must be a string")

    impacted_areas, error = _string_list(
        _field(data, "impactedAreas", "impacted_areas"), "impactedAreas"
    )
    if error:
        return ParseResult.failure(error)

    related_files, error = _string_list(
        _field(data, "relatedFiles", "related_files"), "relatedFiles"
    )
    if error:
        return ParseResult.failure(error)

    significant = _field(data, "significantChanges", "significant_changes")
    if significant is not None and not isinstance(significant, bool):
        return ParseResult.failure("'significantChanges' must be a boolean")

    return ParseResult.success({
        "summary": summary or "No summary provided",
        "impacted_areas": _dedupe(impacted_areas),
        "significant_changes": bool(significant),
        "related_files": _dedupe(related_files),
    })


# =============================================================================
# DOC REFERENCES
# =============================================================================


def parse_references(text: str) -> ParseResult[List[str]]:
    """
    Parse a ``{references, codeFiles, relatedDocs}`` answer into one
    de-duplicated list, in that order.
    """
    data, error = _load_object(text)
    if data is None:
        return ParseResult.failure(error)

    merged: List[str] = []
    for names in (("references",), ("codeFiles", "code_files"), ("relatedDocs", "related_docs")):
        items, error = _string_list(_field(data, *names), names[0])
        if error:
            return ParseResult.failure(error)
        merged.extend(items)

    return ParseResult.success(_dedupe(merged))


# =============================================================================
# UPDATE PLAN
# =============================================================================


def _parse_suggested_content(value: Any) -> Optional[SuggestedContent]:
    if not isinstance(value, dict):
        return None
    content = SuggestedContent()
    for name in ("sections", "examples", "notes"):
        items, error = _string_list(value.get(name), name)
        if not error:
            setattr(content, name, items)
    return None if content.is_empty() else content


def _parse_update(entry: Any) -> Tuple[Optional[PlannedDocUpdate], str]:
    if not isinstance(entry, dict):
        return None, "entry is not an object"

    path = entry.get("path")
    if not isinstance(path, str) or not path.strip():
        return None, "missing 'path'"

    try:
        update_type = UpdateType(str(entry.get("type", "")).lower())
    except ValueError:
        return None, f"unknown type {entry.get('type')!r} for {path}"

    try:
        priority = Priority(str(entry.get("priority", "medium")).lower())
    except ValueError:
        priority = Priority.MEDIUM

    source_files, error = _string_list(_field(entry, "sourceFiles", "source_files"), "sourceFiles")
    if error:
        return None, f"{error} for {path}"
    related_docs, error = _string_list(_field(entry, "relatedDocs", "related_docs"), "relatedDocs")
    if error:
        return None, f"{error} for {path}"

    reason = entry.get("reason")
    return PlannedDocUpdate(
        path=path.strip().lstrip("/"),
        type=update_type,
        priority=priority,
        reason=reason if isinstance(reason, str) else "",
        source_files=source_files,
        related_docs=related_docs,
        suggested_content=_parse_suggested_content(
            _field(entry, "suggestedContent", "suggested_content")
        ),
    ), ""


def _parse_change(entry: Any, group: str) -> Tuple[Optional[NavigationChange], str]:
    if not isinstance(entry, dict):
        return None, "navigation change is not an object"
    raw_type = str(entry.get("type", "")).lower()
    try:
        change_type = NavigationChangeType(NAVIGATION_TYPE_ALIASES.get(raw_type, raw_type))
    except ValueError:
        return None, f"unknown navigation change type {entry.get('type')!r}"
    page = entry.get("page") or entry.get("path")
    if not isinstance(page, str) or not page.strip():
        return None, "navigation change without 'page'"
    return NavigationChange(type=change_type, page=page.strip(), group=group), ""


def _parse_navigation_changes(value: Any) -> List[NavigationChangeGroup]:
    """
    Accept grouped entries (``{group, changes: [{type, page}]}``) and flat
    entries (``{type, group, page}``); flat entries fold into their group.
    """
    if not isinstance(value, list):
        if value is not None:
            logger.warning("Ignoring navigationChanges: not a list")
        return []

    groups: Dict[str, NavigationChangeGroup] = {}
    for entry in value:
        if not isinstance(entry, dict):
            logger.warning("Dropping navigation entry: not an object")
            continue
        group = entry.get("group")
        if not isinstance(group, str) or not group.strip():
            logger.warning(f"Dropping navigation entry without group: {entry}")
            continue
        group = group.strip()

        raw_changes = entry["changes"] if "changes" in entry else [entry]
        if not isinstance(raw_changes, list):
            logger.warning(f"Dropping navigation entry for {group}: 'changes' is not a list")
            continue

        for raw in raw_changes:
            change, error = _parse_change(raw, group)
            if change is None:
                logger.warning(f"Dropping navigation change in {group}: {error}")
                continue
            groups.setdefault(group, NavigationChangeGroup(group=group)).changes.append(change)

    return list(groups.values())


def parse_update_plan(text: str) -> ParseResult[UpdatePlan]:
    """
    Parse the planner's answer into an UpdatePlan.

    Malformed JSON fails the whole parse; individual malformed entries are
    dropped with a warning.
    """
    data, error = _load_object(text)
    if data is None:
        return ParseResult.failure(error)

    raw_updates = data.get("updates") or []
    if not isinstance(raw_updates, list):
        return ParseResult.failure("'updates' must be a list")

    updates = []
    for i, entry in enumerate(raw_updates):
        update, error = _parse_update(entry)
        if update is None:
            logger.warning(f"Dropping planned update {i}: {error}")
            continue
        updates.append(update)

    summary = data.get("summary")
    return ParseResult.success(UpdatePlan(
        summary=summary if isinstance(summary, str) else "",
        updates=updates,
        navigation_changes=_parse_navigation_changes(
            _field(data, "navigationChanges", "navigation_changes")
        ),
    ))


__all__ = [
    "ParseResult",
    "extract_json",
    "parse_code_analysis_response",
    "parse_references",
    "parse_update_plan",
]
