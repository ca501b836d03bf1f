"""Shared test fixtures for the docs updater test suite."""

import base64
import json
from unittest.mock import MagicMock

import pytest

from docs_updater.config import create_full_config
from docs_updater.engine.state import (
    ChangeSignificance,
    ChangeType,
    CodeAnalysis,
    CodeChange,
    DocFile,
    DocStructure,
    NavigationItem,
    create_initial_state,
)
from docs_updater.github.client import GitHubClient
from docs_updater.llm.client import LLMClient, LLMResponse
from docs_updater.nodes import NodeContext
from monitoring.metrics import MetricsCollector


def file_contents(path, text, sha="abc123"):
    """Contents API response for a file holding ``text``."""
    return {
        "type": "file",
        "path": path,
        "name": path.rsplit("/", 1)[-1],
        "sha": sha,
        "encoding": "base64",
        "content": base64.b64encode(text.encode("utf-8")).decode("ascii"),
    }


def llm_reply(content, model="gpt-4o"):
    return LLMResponse(content=content, model=model, tokens_input=10, tokens_output=5)


@pytest.fixture
def github():
    """GitHubClient double; every call is recorded."""
    client = MagicMock(spec=GitHubClient)
    client.get_file_sha.return_value = None
    client.get_branch_sha.return_value = "base0000sha"
    client.create_pull_request.return_value = {
        "number": 7,
        "html_url": "https://github.com/acme/api/pull/7",
    }
    return client


@pytest.fixture
def llm():
    """LLMClient double answering with an empty JSON object."""
    client = MagicMock(spec=LLMClient)
    client.complete.return_value = llm_reply("{}")
    return client


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def ctx(github, llm, metrics):
    return NodeContext(github_client=github, llm_client=llm, metrics=metrics)


@pytest.fixture
def doc_config():
    return create_full_config()


@pytest.fixture
def base_state(doc_config):
    return create_initial_state("acme", "api", 42, doc_config)


@pytest.fixture
def code_analysis():
    return CodeAnalysis(
        changes=[
            CodeChange(
                file="src/auth/login.ts",
                patch="+export function login() {}",
                type=ChangeType.MODIFIED,
                significance=ChangeSignificance(has_exports=True),
                category="auth",
            ),
        ],
        impacted_areas=["auth"],
        significant_changes=True,
        summary="Adds a login function",
    )


@pytest.fixture
def doc_structure():
    return DocStructure(
        files=[
            DocFile(path="docs/guides/setup.mdx", category="guides"),
            DocFile(path="docs/api/auth.mdx", category="api"),
        ],
        categories=["guides", "api"],
        navigation=[
            NavigationItem(group="Guides", pages=["guides/setup"]),
            NavigationItem(group="API", pages=["api/auth"]),
        ],
        file_tree="📁 docs/guides\n  📄 docs/guides/setup.mdx\n",
    )


@pytest.fixture
def manifest():
    return {
        "name": "Acme",
        "navigation": [
            {"group": "Guides", "pages": ["guides/setup"]},
            {"group": "API", "icon": "code", "pages": ["api/auth", "api/users"]},
        ],
    }


@pytest.fixture
def manifest_contents(manifest):
    return file_contents("docs/mint.json", json.dumps(manifest), sha="mint0001")
