# =============================================================================
# DOCS UPDATER - PACKAGE
# =============================================================================
"""
Docs Updater Package

Keeps a Mintlify documentation site in sync with code changes. When a pull
request is opened or updated, a webhook triggers a pipeline that:

1. Analyzes the code changes of the pull request
2. Scans the documentation tree and its navigation manifest
3. Plans documentation updates with an LLM
4. Generates the new page contents
5. Updates the navigation structure in mint.json
6. Opens a documentation pull request (or updates the original one)

Package Structure:
    - main.py: Entry point (webhook server, one-shot runs)
    - config.py: Service settings and per-run documentation config
    - engine/: Pipeline state, LangGraph pipeline, parsing, retries
    - nodes/: One module per pipeline stage
    - github/: GitHub API client and webhook handling
    - llm/: LLM provider client

Usage:
    ```python
    from docs_updater.engine.pipeline import create_docs_update_pipeline

    pipeline = create_docs_update_pipeline({"docsPath": "docs"})
    state = pipeline.create_state("acme", "api", 42)
    final_state = await pipeline.run(state)
    ```

Environment Variables Required:
    - GITHUB_TOKEN: GitHub API token
    - OPENAI_API_KEY (or ANTHROPIC_API_KEY with LLM_PROVIDER=anthropic)

For detailed configuration, see config/docs_updater.yaml
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
