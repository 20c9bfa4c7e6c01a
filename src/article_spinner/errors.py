from __future__ import annotations

from typing import Optional


class SpinnerError(Exception):
    """Base class for article-spinner errors."""


class ValidationError(SpinnerError):
    pass


class AuthError(SpinnerError):
    pass


class NetworkError(SpinnerError):
    pass


class ProviderError(SpinnerError):
    pass


class NoResultsError(ProviderError):
    pass


class StageError(SpinnerError):
    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage


class PersistError(SpinnerError):
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
