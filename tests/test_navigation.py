"""Tests for docs_updater.nodes.update_navigation: mint.json editing."""

import json

import pytest

from docs_updater.config import DocsRepo
from docs_updater.engine.errors import PreconditionError
from docs_updater.engine.state import (
    GeneratedContent,
    NavigationChange,
    NavigationChangeGroup,
    NavigationChangeType,
    NavigationItem,
    UpdatePlan,
)
from docs_updater.github.client import NotFoundError
from docs_updater.nodes.update_navigation import (
    apply_navigation_changes,
    build_navigation_update,
    split_navigation,
    update_navigation_node,
)
from tests.conftest import file_contents

ADD = NavigationChangeType.ADD
REMOVE = NavigationChangeType.REMOVE
MOVE = NavigationChangeType.MOVE


def nav(**groups):
    return [NavigationItem(group=name, pages=list(pages)) for name, pages in groups.items()]


# ── apply_navigation_changes ─────────────────────────────────────────────────


class TestAddChange:
    def test_appends_to_existing_group(self):
        result = apply_navigation_changes(
            nav(Guides=["guides/setup"]),
            [NavigationChange(ADD, "guides/login", "Guides")],
        )
        assert result[0].pages == ["guides/setup", "guides/login"]

    def test_creates_missing_group(self):
        result = apply_navigation_changes(
            nav(Guides=["guides/setup"]),
            [NavigationChange(ADD, "api/auth", "API")],
        )
        assert [item.group for item in result] == ["Guides", "API"]
        assert result[1].pages == ["api/auth"]

    def test_group_match_is_case_insensitive(self):
        result = apply_navigation_changes(
            nav(Guides=["guides/setup"]),
            [NavigationChange(ADD, "guides/login", "guides")],
        )
        assert len(result) == 1
        assert result[0].pages == ["guides/setup", "guides/login"]

    def test_existing_page_is_not_duplicated(self):
        navigation = nav(Guides=["guides/setup"])
        result = apply_navigation_changes(
            navigation, [NavigationChange(ADD, "guides/setup", "Guides")]
        )
        assert result == navigation

    def test_input_is_not_mutated(self):
        navigation = nav(Guides=["guides/setup"])
        apply_navigation_changes(navigation, [NavigationChange(ADD, "guides/x", "Guides")])
        assert navigation[0].pages == ["guides/setup"]


class TestRemoveChange:
    def test_removes_page(self):
        result = apply_navigation_changes(
            nav(API=["api/auth", "api/users"]),
            [NavigationChange(REMOVE, "api/users", "API")],
        )
        assert result[0].pages == ["api/auth"]

    def test_emptied_group_is_deleted(self):
        result = apply_navigation_changes(
            nav(Guides=["guides/setup"], API=["api/auth"]),
            [NavigationChange(REMOVE, "api/auth", "API")],
        )
        assert [item.group for item in result] == ["Guides"]

    def test_missing_group_is_skipped(self):
        navigation = nav(Guides=["guides/setup"])
        result = apply_navigation_changes(
            navigation, [NavigationChange(REMOVE, "api/auth", "API")]
        )
        assert result == navigation


class TestMoveChange:
    def test_moves_between_groups(self):
        result = apply_navigation_changes(
            nav(Guides=["guides/setup", "guides/auth"], API=["api/users"]),
            [NavigationChange(MOVE, "guides/auth", "API")],
        )
        assert result[0].pages == ["guides/setup"]
        assert result[1].pages == ["api/users", "guides/auth"]

    def test_creates_target_group(self):
        result = apply_navigation_changes(
            nav(Guides=["guides/setup", "guides/auth"]),
            [NavigationChange(MOVE, "guides/auth", "Security")],
        )
        assert [item.group for item in result] == ["Guides", "Security"]
        assert result[1].pages == ["guides/auth"]

    def test_emptied_source_group_is_deleted(self):
        result = apply_navigation_changes(
            nav(Old=["old/page"], New=["new/page"]),
            [NavigationChange(MOVE, "old/page", "New")],
        )
        assert [item.group for item in result] == ["New"]
        assert result[0].pages == ["new/page", "old/page"]

    def test_unknown_page_is_left_alone(self):
        navigation = nav(Guides=["guides/setup"])
        result = apply_navigation_changes(
            navigation, [NavigationChange(MOVE, "nowhere/page", "Guides")]
        )
        assert result == navigation

    @pytest.mark.parametrize("target", ["Guides", "guides", "GUIDES"])
    def test_page_already_in_target_is_unchanged(self, target):
        navigation = nav(Guides=["guides/setup"], API=["api/users"])
        result = apply_navigation_changes(
            navigation, [NavigationChange(MOVE, "guides/setup", target)]
        )
        assert result == navigation
        assert [item.group for item in result] == ["Guides", "API"]


class TestNavigationEquality:
    def test_add_then_remove_is_a_noop(self):
        navigation = nav(Guides=["guides/setup"])
        result = apply_navigation_changes(navigation, [
            NavigationChange(ADD, "guides/tmp", "Guides"),
            NavigationChange(REMOVE, "guides/tmp", "Guides"),
        ])
        assert result == navigation

    def test_extra_keys_survive(self):
        item = NavigationItem.from_dict({"group": "API", "icon": "code", "pages": ["a"]})
        result = apply_navigation_changes([item], [NavigationChange(ADD, "b", "API")])
        assert result[0].to_dict() == {"group": "API", "icon": "code", "pages": ["a", "b"]}


class TestSplitNavigation:
    def test_separates_non_group_entries(self):
        groups, others = split_navigation([{"group": "A", "pages": []}, "loose-page"])
        assert [g.group for g in groups] == ["A"]
        assert others == ["loose-page"]


# ── build_navigation_update ──────────────────────────────────────────────────


DOCS_REPO = DocsRepo(owner="acme", repo="api", branch="main")


class TestBuildNavigationUpdate:
    @pytest.mark.asyncio
    async def test_writes_updated_manifest(self, ctx, github, manifest_contents):
        github.get_contents.return_value = manifest_contents
        changes = [NavigationChange(ADD, "guides/login", "Guides")]

        update = await build_navigation_update(ctx, DOCS_REPO, "docs", changes)

        assert update.path == "docs/mint.json"
        assert update.sha == "mint0001"
        written = json.loads(update.content)
        assert written["name"] == "Acme"
        assert written["navigation"][0]["pages"] == ["guides/setup", "guides/login"]
        assert written["navigation"][1]["icon"] == "code"
        github.get_contents.assert_called_once_with("acme/api", "docs/mint.json", "main")

    @pytest.mark.asyncio
    async def test_no_change_returns_none(self, ctx, github, manifest_contents):
        github.get_contents.return_value = manifest_contents
        changes = [NavigationChange(ADD, "guides/setup", "Guides")]

        assert await build_navigation_update(ctx, DOCS_REPO, "docs", changes) is None

    @pytest.mark.asyncio
    async def test_falls_back_to_root_manifest(self, ctx, github, manifest):
        root = file_contents("mint.json", json.dumps(manifest), sha="root01")

        def get_contents(repo, path, ref=None):
            if path == "docs/mint.json":
                raise NotFoundError("Not Found")
            return root

        github.get_contents.side_effect = get_contents
        changes = [NavigationChange(REMOVE, "api/users", "API")]

        update = await build_navigation_update(ctx, DOCS_REPO, "docs", changes)

        assert update.path == "mint.json"
        assert update.sha == "root01"

    @pytest.mark.asyncio
    async def test_missing_manifest_returns_none(self, ctx, github):
        github.get_contents.side_effect = NotFoundError("Not Found")
        changes = [NavigationChange(ADD, "x", "Guides")]

        assert await build_navigation_update(ctx, DOCS_REPO, "docs", changes) is None

    @pytest.mark.asyncio
    async def test_manifest_without_navigation_returns_none(self, ctx, github):
        github.get_contents.return_value = file_contents("docs/mint.json", '{"name": "x"}')
        changes = [NavigationChange(ADD, "x", "Guides")]

        assert await build_navigation_update(ctx, DOCS_REPO, "docs", changes) is None


# ── update_navigation_node ───────────────────────────────────────────────────


class TestUpdateNavigationNode:
    @pytest.mark.asyncio
    async def test_requires_plan(self, ctx, base_state, doc_structure):
        state = {**base_state, "doc_structure": doc_structure}
        with pytest.raises(PreconditionError) as exc:
            await update_navigation_node(state, ctx)
        assert exc.value.missing == "update_plan"

    @pytest.mark.asyncio
    async def test_no_changes_skips_manifest(self, ctx, github, base_state, doc_structure):
        state = {
            **base_state,
            "doc_structure": doc_structure,
            "update_plan": UpdatePlan(summary="nothing"),
            "generated_content": GeneratedContent(),
        }

        delta = await update_navigation_node(state, ctx)

        assert delta["generated_content"].navigation_update is None
        github.get_contents.assert_not_called()

    @pytest.mark.asyncio
    async def test_keeps_generated_files(
        self, ctx, github, base_state, doc_structure, manifest_contents
    ):
        github.get_contents.return_value = manifest_contents
        plan = UpdatePlan(navigation_changes=[
            NavigationChangeGroup("Guides", [NavigationChange(ADD, "guides/login")]),
        ])
        generated = GeneratedContent()
        state = {
            **base_state,
            "doc_structure": doc_structure,
            "update_plan": plan,
            "generated_content": generated,
        }

        delta = await update_navigation_node(state, ctx)

        assert delta["generated_content"].navigation_update is not None
        assert delta["generated_content"].navigation_update.changes[0].group == "Guides"
        assert state["generated_content"] is generated
        assert generated.navigation_update is None
