from __future__ import annotations


class BookmarkError(Exception):
    """Base class for per-event failures. None of these is fatal to the process."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = str(code)
        self.message = str(message)


class TransientExternalFailure(BookmarkError):
    """A Discord API call failed or timed out. The event is dropped, nothing is retried."""

    def __init__(self, operation: str, message: str):
        super().__init__("transient_external", f"{operation}: {message}")
        self.operation = str(operation)


class MalformedInput(BookmarkError):
    """A link or private copy did not have the structure needed to recover the origin message."""

    def __init__(self, message: str):
        super().__init__("malformed_input", message)
