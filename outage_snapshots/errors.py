"""Error taxonomy for the extraction and render paths.

Extraction errors carry the numeric ``code`` written into a record's
``lastUpdateStatus``; render errors are counted per task by the scheduler.
"""


class SnapshotError(Exception):
    """Base class for all project errors."""

    code: int = 500

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)


class NotFoundError(SnapshotError):
    """Marker or input file is absent."""

    code = 404


class LiteralSyntaxError(SnapshotError):
    """The first character after a marker is neither '{' nor '['."""

    code = 422


class UnbalancedError(SnapshotError):
    """End of input reached before the literal's delimiters closed."""

    code = 422


class ParseError(SnapshotError):
    """Neither strict nor permissive decoding accepted the literal."""

    code = 422

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class UpstreamError(SnapshotError):
    """Fetching the source page failed."""

    code = 502


class RenderError(SnapshotError):
    """Base class for render-path failures."""


class TemplateNotFoundError(RenderError):
    code = 404


class RenderTimeoutError(RenderError):
    """No completion marker appeared within the wait window."""

    code = 504


class MeasurementError(RenderError):
    """The capture container could not be measured."""
