"""Tests for docs_updater.config: settings loading and doc config merging."""

import pytest

from docs_updater.config import (
    DEFAULT_TITLE_TEMPLATE,
    DocConfig,
    DocsRepo,
    create_full_config,
    deep_merge,
    load_config,
    normalize_keys,
)


# ── create_full_config ───────────────────────────────────────────────────────


class TestCreateFullConfig:
    def test_defaults(self):
        config = create_full_config()
        assert config.docs_path == "docs"
        assert config.docs_repo is None
        assert config.pr.title_template == DEFAULT_TITLE_TEMPLATE
        assert config.pr.branch_prefix == "docs/update-pr-"
        assert config.pr.labels == ["documentation"]
        assert config.pr.update_original_pr is False
        assert config.llm.temperature == 0.3
        assert config.llm.style_guide is None

    def test_camel_case_overrides(self):
        config = create_full_config({
            "docsPath": "/documentation/",
            "docsRepo": {"owner": "acme", "repo": "docs"},
            "prConfig": {"titleTemplate": "Docs for #{{PR_NUMBER}}", "labels": ["docs", "bot"]},
            "llmConfig": {"styleGuide": "Be brief"},
        })
        assert config.docs_path == "documentation"
        assert config.docs_repo == DocsRepo("acme", "docs", "main")
        assert config.pr.title_template == "Docs for #{{PR_NUMBER}}"
        assert config.pr.labels == ["docs", "bot"]
        assert config.pr.branch_prefix == "docs/update-pr-"
        assert config.llm.style_guide == "Be brief"
        assert config.llm.temperature == 0.3

    def test_base_then_overrides(self):
        config = create_full_config(
            {"llm": {"temperature": 0.9}},
            base={"docs_path": "site", "llm": {"style_guide": "House style"}},
        )
        assert config.docs_path == "site"
        assert config.llm.temperature == 0.9
        assert config.llm.style_guide == "House style"

    def test_round_trip_through_dict(self):
        config = create_full_config({"docsPath": "site"})
        assert DocConfig.from_dict(config.to_dict()) == config

    def test_title_prefix(self):
        assert create_full_config().pr.title_prefix == "📚 Update documentation for PR #"


class TestMergeHelpers:
    def test_normalize_keys(self):
        assert normalize_keys({"prConfig": {"updateOriginalPr": True}}) == {
            "pr": {"update_original_pr": True}
        }

    def test_deep_merge_does_not_mutate(self):
        base = {"a": {"b": 1, "c": 2}}
        merged = deep_merge(base, {"a": {"b": 3}})
        assert merged == {"a": {"b": 3, "c": 2}}
        assert base == {"a": {"b": 1, "c": 2}}


# ── load_config ──────────────────────────────────────────────────────────────


ENV_VARS = [
    "GITHUB_TOKEN", "GITHUB_API_URL", "LLM_PROVIDER", "LLM_MODEL", "LLM_API_KEY",
    "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "OLLAMA_BASE_URL", "WEBHOOK_SECRET",
    "WEBHOOK_HOST", "WEBHOOK_PORT", "LOG_LEVEL", "LOG_FORMAT", "LOG_FILE", "DOCS_PATH",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestLoadConfig:
    def test_defaults_without_file(self, clean_env, tmp_path):
        settings = load_config(str(tmp_path / "missing.yaml"))
        assert settings["github"]["api_url"] == "https://api.github.com"
        assert settings["llm"]["provider"] == "openai"
        assert settings["webhook"]["port"] == 8080
        assert settings["retry"]["max_attempts"] == 3

    def test_yaml_then_env(self, clean_env, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "llm:\n  provider: anthropic\n  model: claude-sonnet-4-20250514\n"
            "webhook:\n  port: 9000\n"
            "docs:\n  docs_path: site\n"
        )
        clean_env.setenv("WEBHOOK_PORT", "9100")
        clean_env.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        clean_env.setenv("GITHUB_TOKEN", "ghp_test")

        settings = load_config(str(path))

        assert settings["llm"]["provider"] == "anthropic"
        assert settings["llm"]["model"] == "claude-sonnet-4-20250514"
        assert settings["llm"]["api_key"] == "sk-ant-test"
        assert settings["webhook"]["port"] == 9100
        assert settings["github"]["token"] == "ghp_test"
        assert settings["docs"]["docs_path"] == "site"

    def test_generic_key_wins_over_provider_key(self, clean_env):
        clean_env.setenv("LLM_API_KEY", "generic")
        clean_env.setenv("OPENAI_API_KEY", "specific")
        assert load_config()["llm"]["api_key"] == "generic"

    def test_numeric_secrets_stay_strings(self, clean_env):
        clean_env.setenv("WEBHOOK_SECRET", "20240501")
        clean_env.setenv("GITHUB_TOKEN", "1234567890")
        clean_env.setenv("WEBHOOK_PORT", "9100")

        settings = load_config()

        assert settings["webhook"]["secret"] == "20240501"
        assert settings["github"]["token"] == "1234567890"
        assert settings["webhook"]["port"] == 9100
