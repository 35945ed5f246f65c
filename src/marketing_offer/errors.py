class MarketingPipelineError(Exception):
    """Base class for all errors raised by the pipeline."""


class SchemaMismatchError(MarketingPipelineError):
    """Raised when a frame does not carry the columns a stage expects."""


class ConfigurationError(MarketingPipelineError, ValueError):
    """Raised for invalid user-provided configuration (folds, grids, policies)."""


class StratificationError(ConfigurationError):
    """Raised when a label stratum is too small to be split."""


class ConvergenceFailure(MarketingPipelineError):
    """
    Raised when a single fit does not converge or cannot be scored.
    Caught per sweep cell; never aborts a sweep.
    """


class DataValidationError(MarketingPipelineError):
    """Raised when the data itself leaves no valid continuation (e.g. empty after cleaning)."""


class StageError(MarketingPipelineError):
    """Fatal error annotated with the pipeline stage and configuration that triggered it."""

    def __init__(self, stage: str, detail: str, config: dict | None = None):
        self.stage = stage
        self.detail = detail
        self.config = dict(config or {})
        message = f"[{stage}] {detail}"
        if self.config:
            message += f" (config: {self.config})"
        super().__init__(message)
