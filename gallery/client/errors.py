"""
    Errors raised or reported by the upload client. File level errors are
    collected and reported; they never abort sibling files.
"""
from typing import List, Optional


class UploadError(Exception):
    """Base class for upload client errors."""
    def __init__(self, message: str, filename: Optional[str] = None):
        self.message = message
        self.filename = filename
        super().__init__(message)

    def __str__(self):
        if self.filename:
            return f'File "{self.filename}": {self.message}'
        return self.message


class ValidationError(UploadError):
    """One file or its metadata broke one or more constraints."""
    def __init__(self, messages: List[str], filename: Optional[str] = None):
        self.messages = list(messages)
        super().__init__(", ".join(self.messages), filename)


class DuplicateFileError(UploadError):
    def __init__(self, filename: str):
        super().__init__("already selected", filename)


class CapacityError(UploadError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"You cannot upload more than {limit} files in total")


class NetworkError(UploadError):
    """The request never produced an HTTP response."""


class HttpError(UploadError):
    def __init__(self, status_code: int, detail: str, filename: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(detail or f"HTTP {status_code}", filename)


class UploadInProgressError(UploadError):
    def __init__(self):
        super().__init__("An upload is already running")
