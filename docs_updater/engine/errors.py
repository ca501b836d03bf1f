# =============================================================================
# DOCS UPDATER - PIPELINE ERRORS
# =============================================================================
"""Exceptions raised by pipeline stages and the pipeline runner."""


class PipelineError(Exception):
    """Base exception for pipeline errors."""
    pass


class PreconditionError(PipelineError):
    """A stage ran without the upstream state it depends on."""

    def __init__(self, stage: str, missing: str):
        super().__init__(f"{stage}: required state '{missing}' is missing")
        self.stage = stage
        self.missing = missing


class ContentGenerationError(PipelineError):
    """The model returned no usable content for a planned update."""

    def __init__(self, path: str, message: str = "No content generated"):
        super().__init__(f"{message} for {path}")
        self.path = path


__all__ = ["PipelineError", "PreconditionError", "ContentGenerationError"]
