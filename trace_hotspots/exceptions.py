"""Exceptions raised by the trace hotspot engine."""


class TraceHotspotsError(Exception):
    """Base exception for the trace hotspot engine."""

    def __init__(self, message: str):
        """Initialize the error.

        Args:
            message: The error message.
        """
        super().__init__(message)
        self.message = message


class ConfigurationError(TraceHotspotsError):
    """Raised when settings are missing, malformed or name an unknown backend."""


class SpanSourceError(TraceHotspotsError):
    """Raised when a span source fails to produce spans."""

    def __init__(self, message: str, backend: str | None = None):
        """Initialize a span source error.

        Args:
            message: The error message.
            backend: Name of the backend that failed.
        """
        super().__init__(message)
        self.backend = backend
