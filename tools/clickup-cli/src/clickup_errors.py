"""Exceptions shared by the clickup-cli modules."""

from typing import Optional


class ClickUpError(Exception):
    """Base class for errors the CLI reports to the user."""
    pass


class NotConfigured(ClickUpError):
    """No API token on file."""

    def __init__(self, message: str = "Not configured. Run `clickup configure` first."):
        super().__init__(message)


class StorageError(ClickUpError):
    """Preferences file could not be read, parsed or written."""
    pass


class RemoteApiError(ClickUpError):
    """Non-2xx response (or network failure) from the ClickUp API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteNotFound(RemoteApiError):
    """The requested resource does not exist or is not accessible."""
    pass
