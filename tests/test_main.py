"""Tests for the command line entry point."""

import pytest

from docs_updater.config import DEFAULT_SETTINGS, deep_merge
from docs_updater.main import apply_cli_overrides, parse_args, parse_pr_reference


class TestPrReference:
    def test_valid(self):
        assert parse_pr_reference("acme/api-server#42") == ("acme", "api-server", 42)

    @pytest.mark.parametrize("reference", ["acme/api", "acme#42", "acme/api#", "acme/api#x"])
    def test_invalid(self, reference):
        with pytest.raises(ValueError, match="owner/repo#NUMBER"):
            parse_pr_reference(reference)


class TestArguments:
    def test_defaults(self):
        args = parse_args([])
        assert args.config == "config/docs_updater.yaml"
        assert args.pr is None
        assert not args.debug

    def test_overrides(self):
        settings = deep_merge(DEFAULT_SETTINGS, {})
        args = parse_args(["--host", "127.0.0.1", "--port", "9000", "--debug"])

        settings = apply_cli_overrides(settings, args)

        assert settings["webhook"]["host"] == "127.0.0.1"
        assert settings["webhook"]["port"] == 9000
        assert settings["logging"]["level"] == "DEBUG"
        assert DEFAULT_SETTINGS["webhook"]["port"] == 8080
