class PipelineError(Exception):
    """Base pipeline exception."""


class SourceFetchError(PipelineError):
    """Raised when the record source could not deliver a complete result set."""


class SourceTemporaryError(SourceFetchError):
    """Raised when a source request can be retried."""


class SourceDataError(SourceFetchError):
    """Raised when source rows are malformed, inconsistent or outside the requested window."""


class ValidationError(PipelineError):
    """Raised when report parameters are invalid."""
