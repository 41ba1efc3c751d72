"""Custom exception hierarchy for the file storage layer."""

from __future__ import annotations

from typing import Any


class FileStoreError(Exception):
    """Base exception for all filestore-specific errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(FileStoreError):
    """Raised when configuration is invalid or missing."""
    pass


class UnsupportedFolderError(ConfigurationError):
    """Raised when a folder name has no content-type mapping."""
    pass


class ValidationError(FileStoreError):
    """Base class for caller input errors."""
    pass


class InvalidArgumentError(ValidationError, ValueError):
    """Raised when a required argument is missing or blank."""
    pass


class InvalidStateError(FileStoreError):
    """Raised when an operation is not valid for the object's current state."""
    pass


class StorageError(FileStoreError):
    """Raised when storage operations fail."""
    pass


class NotFoundError(StorageError):
    """Raised when the backend reports that an object does not exist."""
    pass


class FileAlreadyExistsError(StorageError):
    """Raised when a write without overwrite hits an existing object."""
    pass


class BackendError(StorageError):
    """Raised for any other backend-reported failure or transport fault."""
    pass
