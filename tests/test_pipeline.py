"""End-to-end tests for the LangGraph documentation pipeline."""

import json

import pytest

from docs_updater.config import ConfigurationError, DocsRepo
from docs_updater.engine.errors import PipelineError, PreconditionError
from docs_updater.engine.pipeline import (
    STAGES,
    DocsUpdatePipeline,
    create_docs_update_pipeline,
)
from docs_updater.engine.state import Stage
from docs_updater.github.client import NotFoundError
from tests.conftest import llm_reply

ANALYSIS = {
    "summary": "Adds a login endpoint",
    "impactedAreas": ["auth"],
    "significantChanges": True,
    "relatedFiles": [],
}

PLAN = {
    "summary": "Document the login endpoint",
    "updates": [{
        "path": "docs/api/login.mdx",
        "type": "create",
        "priority": "high",
        "reason": "New endpoint",
        "sourceFiles": ["src/auth/login.ts"],
    }],
}


@pytest.fixture
def pipeline(ctx, github):
    github.list_pull_files.return_value = []
    github.get_contents.return_value = []
    github.get_file_text.side_effect = NotFoundError("Not Found")
    return DocsUpdatePipeline(ctx)


# ── graph ────────────────────────────────────────────────────────────────────


class TestGraph:
    def test_stage_order(self):
        assert [name for name, _ in STAGES] == [stage.value for stage in Stage]

    def test_create_state_merges_overrides(self, ctx):
        pipeline = DocsUpdatePipeline(ctx)
        pipeline.config.docs_path = "site"

        state = pipeline.create_state("acme", "api", 42, {"prConfig": {"labels": ["docs"]}})

        assert state["config"].docs_path == "site"
        assert state["config"].pr.labels == ["docs"]
        assert state["docs_repo"] is None
        assert state["history"] == []

    def test_create_state_with_docs_repo(self, ctx):
        state = DocsUpdatePipeline(ctx).create_state(
            "acme", "api", 42, {"docsRepo": {"owner": "acme", "repo": "docs"}}
        )
        assert state["docs_repo"] == DocsRepo("acme", "docs")


# ── runs ─────────────────────────────────────────────────────────────────────


class TestRun:
    @pytest.mark.asyncio
    async def test_noop_run(self, pipeline, github, metrics):
        final = await pipeline.run(pipeline.create_state("acme", "api", 42))

        assert final["publish_result"].is_noop
        assert final["generated_content"].files == []
        assert [h["node"] for h in final["history"]] == [name for name, _ in STAGES]
        github.create_ref.assert_not_called()
        github.create_pull_request.assert_not_called()
        assert metrics.get_value("docs_updater_pipeline_runs_total", {"result": "noop"}) == 1
        assert metrics.get_value("docs_updater_pipelines_active") == 0

    @pytest.mark.asyncio
    async def test_full_run_opens_pull_request(self, pipeline, github, llm, metrics):
        github.list_pull_files.return_value = [
            {"filename": "src/auth/login.ts", "status": "added", "patch": "+export function login() {}"},
        ]
        llm.complete.side_effect = [
            llm_reply(json.dumps(ANALYSIS)),
            llm_reply(json.dumps(PLAN)),
            llm_reply("---\ntitle: Login\n---\n\n# Login"),
        ]

        final = await pipeline.run(pipeline.create_state("acme", "api", 42))

        result = final["publish_result"]
        assert result.pr_number == 7
        assert result.branch.startswith("docs/update-pr-42-")
        assert result.files == ["docs/api/login.mdx"]
        assert final["code_analysis"].summary == "Adds a login endpoint"
        assert final["update_plan"].summary == "Document the login endpoint"
        github.create_ref.assert_called_once_with(
            "acme/api", f"refs/heads/{result.branch}", "base0000sha"
        )
        assert metrics.get_value("docs_updater_pipeline_runs_total", {"result": "success"}) == 1

    @pytest.mark.asyncio
    async def test_stage_durations_are_recorded(self, pipeline, metrics):
        await pipeline.run(pipeline.create_state("acme", "api", 42))

        for name, _ in STAGES:
            count = metrics.get_value(
                "docs_updater_stage_duration_seconds_count", {"stage": name}
            )
            assert count == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self, pipeline, github, metrics):
        github.list_pull_files.side_effect = RuntimeError("socket closed")

        with pytest.raises(PipelineError, match="Pipeline failed: socket closed"):
            await pipeline.run(pipeline.create_state("acme", "api", 42))

        assert metrics.get_value("docs_updater_pipeline_runs_total", {"result": "error"}) == 1

    @pytest.mark.asyncio
    async def test_pipeline_errors_pass_through(self, pipeline, github):
        github.list_pull_files.side_effect = PreconditionError("analyze_code_changes", "owner")

        with pytest.raises(PreconditionError):
            await pipeline.run(pipeline.create_state("acme", "api", 42))


# ── factory ──────────────────────────────────────────────────────────────────


class TestFactory:
    def test_requires_github_token(self):
        with pytest.raises(ConfigurationError, match="GitHub token"):
            create_docs_update_pipeline(settings={"llm": {"api_key": "sk-test"}})

    def test_requires_llm_key(self):
        with pytest.raises(ConfigurationError, match="openai"):
            create_docs_update_pipeline(settings={"github": {"token": "ghp_test"}})

    def test_ollama_needs_no_key(self, metrics):
        pipeline = create_docs_update_pipeline(
            config={"docsPath": "documentation"},
            settings={
                "github": {"token": "ghp_test"},
                "llm": {"provider": "ollama", "model": "llama3.2"},
                "retry": {"max_attempts": 2},
            },
            metrics=metrics,
        )

        assert pipeline.config.docs_path == "documentation"
        assert pipeline.ctx.llm_client.provider_name == "ollama"
        assert pipeline.ctx.llm_client.retry_policy.max_attempts == 2
        assert pipeline.ctx.metrics is metrics
        pipeline.ctx.github_client.close()
