"""Exception classes raised by ghclone."""


class GhcloneError(RuntimeError):
    """Base exception for all ghclone errors."""


class PreconditionError(GhcloneError):
    """Raised before any work starts (missing token, run already active)."""


class TransportError(GhcloneError):
    """Raised when a page request fails at the network/HTTP level."""


class ApiError(GhcloneError):
    """Raised when the API reports errors or returns a malformed page."""

    def __init__(self, message: str, messages: list[str] | None = None) -> None:
        super().__init__(message)
        self.messages = messages or []


class CancellationError(GhcloneError):
    """Raised when a run was cancelled on request. Not a failure."""
