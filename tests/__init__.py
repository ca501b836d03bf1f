# =============================================================================
# DOCS UPDATER - TEST PACKAGE
# =============================================================================
"""
Test Package

This package contains tests for the documentation updater.

Test Structure:
    tests/
    ├── __init__.py              # This file
    ├── conftest.py              # GitHub/LLM doubles and shared records
    ├── test_config.py           # Settings loading and doc config merging
    ├── test_retry.py            # Backoff schedule
    ├── test_parsing.py          # LLM response validation
    ├── test_github_client.py    # REST client with a mocked session
    ├── test_llm_client.py       # Provider retries and metrics
    ├── test_nodes.py            # Analysis, planning and generation stages
    ├── test_navigation.py       # mint.json editing
    ├── test_publisher.py        # Branch, commits and pull request
    ├── test_pipeline.py         # LangGraph runs end to end
    ├── test_webhook.py          # Webhook handler and aiohttp server
    ├── test_monitoring.py       # Logging and metrics
    └── test_main.py             # Command line

Running Tests:
    # Run all tests
    pytest

    # Run specific test file
    pytest tests/test_pipeline.py -v

    # Run with coverage
    pytest tests/ --cov=docs_updater --cov=monitoring

Test Categories:
    - Unit tests: Parsing, navigation and config in isolation
    - Integration tests: Stages against client doubles
    - End-to-end tests: Full pipeline and HTTP surface with mocks
"""
