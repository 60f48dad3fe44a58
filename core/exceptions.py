from typing import Any


class AppError(Exception):
    """Base application error."""


class ValidationError(AppError):
    """Raised when CLI arguments are invalid."""


class ConfigurationError(AppError):
    """Raised when required credentials or settings are missing."""


class HttpRequestError(AppError):
    """Raised when an HTTP request fails.

    Args:
        message: Error summary.
        status_code: HTTP status code, 0 for network level failures.
    """

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


class ApiResponseError(AppError):
    """Raised when the Feishu open API returns an invalid or failed payload.

    Args:
        message: Error summary.
        code: Feishu response code when available.
    """

    def __init__(self, message: str, code: Any = None) -> None:
        super().__init__(message)
        self.code = code


class DocumentNotFoundError(ApiResponseError):
    """Raised when a document or its page block cannot be found."""


class PartialAppendError(ApiResponseError):
    """Raised when a chunked append stops after some batches were written.

    Args:
        message: Error summary.
        inserted: Number of blocks committed before the failure.
        batches_done: Number of batches committed before the failure.
        code: Feishu response code of the failing call when available.
    """

    def __init__(
        self,
        message: str,
        inserted: int,
        batches_done: int,
        code: Any = None
    ) -> None:
        super().__init__(message, code = code)
        self.inserted = inserted
        self.batches_done = batches_done
