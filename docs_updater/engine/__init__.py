# =============================================================================
# DOCS UPDATER - ENGINE PACKAGE
# =============================================================================
"""
Engine Package

Core pieces of the documentation pipeline:

1. state: Records produced by each stage and the graph state
2. parsing: Validation of LLM JSON answers
3. retry: Retry schedule shared by the GitHub and LLM clients
4. errors: Pipeline exceptions
5. pipeline: The LangGraph pipeline (import from
   ``docs_updater.engine.pipeline``; it depends on the node modules)
"""

from docs_updater.engine.errors import (
    PipelineError,
    PreconditionError,
    ContentGenerationError,
)
from docs_updater.engine.retry import RetryPolicy
from docs_updater.engine.state import (
    ReviewState,
    Stage,
    CodeAnalysis,
    DocStructure,
    UpdatePlan,
    GeneratedContent,
    PublishResult,
    create_initial_state,
)
from docs_updater.engine.parsing import (
    ParseResult,
    extract_json,
    parse_code_analysis_response,
    parse_references,
    parse_update_plan,
)


__all__ = [
    # Errors
    "PipelineError",
    "PreconditionError",
    "ContentGenerationError",
    # Retry
    "RetryPolicy",
    # State
    "ReviewState",
    "Stage",
    "CodeAnalysis",
    "DocStructure",
    "UpdatePlan",
    "GeneratedContent",
    "PublishResult",
    "create_initial_state",
    # Parsing
    "ParseResult",
    "extract_json",
    "parse_code_analysis_response",
    "parse_references",
    "parse_update_plan",
]
