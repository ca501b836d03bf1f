# =============================================================================
# DOCS UPDATER - CONFIGURATION
# =============================================================================
"""
Configuration Module

Two layers of configuration:

1. Service settings (``load_config``): YAML file + environment variables +
   defaults. Credentials, LLM provider, webhook server, logging.
2. Documentation settings (``DocConfig``): a partial override merged over
   defaults for each pipeline run. Webhook payloads may carry their own
   overrides in either snake_case or the camelCase used by the Mintlify
   templates (``docsPath``, ``prConfig``, ``llmConfig``...).

Usage:
    settings = load_config("config/docs_updater.yaml")
    doc_config = create_full_config({"docsPath": "documentation"})
"""

from __future__ import annotations

import copy
import logging
import os
import re
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class ConfigurationError(Exception):
    """Raised when required configuration or credentials are missing."""
    pass


# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_TITLE_TEMPLATE = "📚 Update documentation for PR #{{PR_NUMBER}}"

DEFAULT_BODY_TEMPLATE = (
    "This PR updates the documentation to reflect the changes made in "
    "#{{PR_NUMBER}}.\n\n"
    "## Summary\n\n"
    "{{SUMMARY}}\n\n"
    "_Generated on {{TIMESTAMP}} by the documentation update pipeline._"
)

DEFAULT_DOC_CONFIG: Dict[str, Any] = {
    "docs_path": "docs",
    "docs_repo": None,
    "pr": {
        "title_template": DEFAULT_TITLE_TEMPLATE,
        "body_template": DEFAULT_BODY_TEMPLATE,
        "branch_prefix": "docs/update-pr-",
        "labels": ["documentation"],
        "update_original_pr": False,
    },
    "llm": {
        "temperature": 0.3,
        "style_guide": None,
    },
}

DEFAULT_SETTINGS: Dict[str, Dict[str, Any]] = {
    "github": {
        "token": "",
        "api_url": "https://api.github.com",
        "timeout": 30,
    },
    "llm": {
        "provider": "openai",
        "model": None,
        "api_key": "",
        "base_url": None,
        "max_tokens": 4096,
    },
    "retry": {
        "max_attempts": 3,
        "backoff_factor": 0.5,
        "max_backoff": 8.0,
    },
    "webhook": {
        "host": "0.0.0.0",
        "port": 8080,
        "path": "/webhooks/github",
        "secret": "",
    },
    "logging": {
        "level": "INFO",
        "format": "json",
        "file": None,
    },
    "docs": {},
}

# Aliases accepted in override dicts (camelCase from webhook payloads)
_KEY_ALIASES = {
    "prConfig": "pr",
    "pr_config": "pr",
    "llmConfig": "llm",
    "llm_config": "llm",
    "docsRepo": "docs_repo",
}


# =============================================================================
# DOC CONFIG DATA STRUCTURES
# =============================================================================


@dataclass
class DocsRepo:
    """Repository holding the documentation (may differ from the source repo)."""
    owner: str
    repo: str
    branch: str = "main"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocsRepo":
        return cls(
            owner=data["owner"],
            repo=data["repo"],
            branch=data.get("branch") or "main",
        )


@dataclass
class PRConfig:
    """How the documentation PR is titled, labelled and branched."""
    title_template: str = DEFAULT_TITLE_TEMPLATE
    body_template: str = DEFAULT_BODY_TEMPLATE
    branch_prefix: str = "docs/update-pr-"
    labels: List[str] = field(default_factory=lambda: ["documentation"])
    update_original_pr: bool = False

    @property
    def title_prefix(self) -> str:
        """Static part of the title before the first placeholder."""
        return self.title_template.split("{{", 1)[0].strip()


@dataclass
class LLMSettings:
    """Generation settings applied to content generation."""
    temperature: float = 0.3
    style_guide: Optional[str] = None


@dataclass
class DocConfig:
    """Per-run documentation configuration."""
    docs_path: str = "docs"
    docs_repo: Optional[DocsRepo] = None
    pr: PRConfig = field(default_factory=PRConfig)
    llm: LLMSettings = field(default_factory=LLMSettings)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocConfig":
        pr = data.get("pr") or {}
        llm = data.get("llm") or {}
        docs_repo = data.get("docs_repo")
        return cls(
            docs_path=(data.get("docs_path") or "docs").strip("/"),
            docs_repo=DocsRepo.from_dict(docs_repo) if docs_repo else None,
            pr=PRConfig(
                title_template=pr.get("title_template", DEFAULT_TITLE_TEMPLATE),
                body_template=pr.get("body_template", DEFAULT_BODY_TEMPLATE),
                branch_prefix=pr.get("branch_prefix", "docs/update-pr-"),
                labels=list(pr.get("labels") or []),
                update_original_pr=bool(pr.get("update_original_pr", False)),
            ),
            llm=LLMSettings(
                temperature=float(llm.get("temperature", 0.3)),
                style_guide=llm.get("style_guide"),
            ),
        )


# =============================================================================
# MERGING
# =============================================================================


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def normalize_keys(data: Any) -> Any:
    """Recursively convert camelCase keys (and known aliases) to snake_case."""
    if not isinstance(data, dict):
        return data
    normalized = {}
    for key, value in data.items():
        key = _KEY_ALIASES.get(key, key)
        normalized[_snake_case(key)] = normalize_keys(value)
    return normalized


def deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``overrides`` into a copy of ``base``; nested dicts merge, rest replaces."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def create_full_config(
    overrides: Optional[Dict[str, Any]] = None,
    base: Optional[Dict[str, Any]] = None,
) -> DocConfig:
    """
    Build a complete DocConfig from a partial override.

    Args:
        overrides: Partial config (snake_case or camelCase keys)
        base: Service-level defaults applied before ``overrides``

    Returns:
        DocConfig with every field populated
    """
    merged = deep_merge(DEFAULT_DOC_CONFIG, normalize_keys(base or {}))
    merged = deep_merge(merged, normalize_keys(overrides or {}))
    return DocConfig.from_dict(merged)


# =============================================================================
# SERVICE SETTINGS
# =============================================================================

ENV_MAPPINGS = {
    # GitHub
    "GITHUB_TOKEN": ("github", "token"),
    "GITHUB_API_URL": ("github", "api_url"),
    # LLM
    "LLM_PROVIDER": ("llm", "provider"),
    "LLM_MODEL": ("llm", "model"),
    "LLM_API_KEY": ("llm", "api_key"),
    "OLLAMA_BASE_URL": ("llm", "base_url"),
    # Webhook
    "WEBHOOK_SECRET": ("webhook", "secret"),
    "WEBHOOK_HOST": ("webhook", "host"),
    "WEBHOOK_PORT": ("webhook", "port"),
    # Logging
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
    "LOG_FILE": ("logging", "file"),
    # Docs
    "DOCS_PATH": ("docs", "docs_path"),
}

# Settings parsed as integers; everything else stays a string
INTEGER_SETTINGS = frozenset([("webhook", "port")])

# Provider-specific key variables, consulted when LLM_API_KEY is unset
PROVIDER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load service settings from YAML and environment variables.

    Environment variables override YAML values; defaults fill the gaps.

    Args:
        config_path: Path to a YAML settings file (optional)

    Returns:
        Merged settings dictionary
    """
    config: Dict[str, Any] = {}

    if config_path:
        config_file = Path(config_path)
        if config_file.exists():
            with open(config_file, encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
            logger.info(f"Loaded config from {config_path}")
        else:
            logger.warning(f"Config file not found: {config_path}, using defaults")

    for env_var, (section, key) in ENV_MAPPINGS.items():
        value = os.environ.get(env_var)
        if value is not None:
            config.setdefault(section, {})
            if (section, key) in INTEGER_SETTINGS and value.isdigit():
                value = int(value)
            config[section][key] = value

    for section, section_defaults in DEFAULT_SETTINGS.items():
        config.setdefault(section, {})
        for key, default_value in section_defaults.items():
            if config[section].get(key) is None:
                config[section][key] = default_value

    llm = config["llm"]
    if not llm.get("api_key"):
        env_var = PROVIDER_KEY_ENV.get(str(llm.get("provider", "")).lower())
        if env_var:
            llm["api_key"] = os.environ.get(env_var, "")

    return config


__all__ = [
    "ConfigurationError",
    "DocsRepo",
    "PRConfig",
    "LLMSettings",
    "DocConfig",
    "DEFAULT_DOC_CONFIG",
    "DEFAULT_SETTINGS",
    "DEFAULT_TITLE_TEMPLATE",
    "DEFAULT_BODY_TEMPLATE",
    "create_full_config",
    "deep_merge",
    "normalize_keys",
    "load_config",
]
