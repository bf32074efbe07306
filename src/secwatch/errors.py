from __future__ import annotations


class SecwatchError(Exception):
    """Base error; ``code`` is what a caller sees in a fix response."""

    code = "error"

    def __init__(self, message: str, file_path: str | None = None):
        super().__init__(message)
        self.file_path = file_path


class FixValidationError(SecwatchError):
    code = "validation"


class FileAccessError(SecwatchError):
    code = "io"


class StaleContentError(SecwatchError):
    """The file on disk no longer matches the content the alert was computed from."""

    code = "stale"
