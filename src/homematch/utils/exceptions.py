"""Application exception hierarchy."""
from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.original_error = original_error


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""


class DataSourceError(AppError):
    """Raised when the entity store cannot be read."""


class GenerationError(AppError):
    """Raised when a vibes generation call fails."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message, original_error)
        self.status = status


class ImageSourceError(AppError):
    """Raised when the image source cannot be fetched."""
