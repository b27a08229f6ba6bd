"""
exceptions.py - Error taxonomy for the compression pipeline.

Every stage wraps library failures into one of these so callers can
tell a bad input from a render failure from a user cancellation.
"""


class SqueezeError(Exception):
    """Base exception for all pdf_squeeze errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "PDF compression failed."


class LoadError(SqueezeError):
    """Raised when the source document cannot be opened or a page decoded."""

    @property
    def default_message(self) -> str:
        return "Source document is unreadable, corrupt or unsupported."


class RenderError(SqueezeError):
    """Raised when a page cannot be rasterized."""

    @property
    def default_message(self) -> str:
        return "Page rendering failed."


class EncodeError(SqueezeError):
    """Raised when a rendered page cannot be compressed."""

    @property
    def default_message(self) -> str:
        return "Image compression failed."


class ResourceError(SqueezeError):
    """Raised when a page is too large to allocate despite scale capping."""

    @property
    def default_message(self) -> str:
        return "Not enough memory to process page."


class AssemblyError(SqueezeError):
    """Raised when the output document cannot be written."""

    @property
    def default_message(self) -> str:
        return "Output document could not be assembled."


class Cancelled(SqueezeError):
    """Raised when the caller cancels a run."""

    @property
    def default_message(self) -> str:
        return "Compression cancelled."
