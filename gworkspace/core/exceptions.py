"""Custom exceptions for the Google Workspace plugin host."""

from typing import Any


class GWorkspaceException(Exception):
    """Base exception class for the plugin host."""

    def __init__(
        self,
        message: str,
        error_code: str,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class CredentialsError(GWorkspaceException):
    """Raised when Google credentials cannot be loaded or refreshed."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=f"Unable to obtain Google credentials: {reason}",
            error_code="auth_error",
            details=details or {"reason": reason},
        )


class StorageObjectNotFoundError(GWorkspaceException):
    """Raised when an internal storage URI does not resolve to a file."""

    def __init__(self, uri: str):
        super().__init__(
            message=f"Storage object not found: {uri}",
            error_code="not_found",
            details={"uri": uri},
        )


class InvalidStorageUriError(GWorkspaceException):
    """Raised when a URI is not an internal storage URI."""

    def __init__(self, uri: str):
        super().__init__(
            message=f"Invalid storage URI '{uri}', expected 'storage:///...'",
            error_code="invalid_params",
            details={"uri": uri},
        )


class PluginLoadError(GWorkspaceException):
    """Raised when a plugin module string cannot be imported."""

    def __init__(self, module: str, reason: str):
        super().__init__(
            message=f"Failed to load plugin '{module}': {reason}",
            error_code="plugin_load_error",
            details={"module": module, "reason": reason},
        )
