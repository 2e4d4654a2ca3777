"""Custom exceptions for dependency-inventory."""

from __future__ import annotations


class InventoryError(Exception):
    """Base exception for all inventory errors."""


class InputPathError(InventoryError):
    """Raised when the scan root does not exist or is not a directory."""


class CommandError(InventoryError):
    """Raised when an external tool exits with a non-zero status."""

    def __init__(
        self,
        message: str,
        cmd: list[str] | None = None,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ):
        self.cmd = cmd or []
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message)


class CommandNotFoundError(CommandError):
    """Raised when an external tool cannot be found or spawned."""


class CommandTimeoutError(CommandError):
    """Raised when an external tool exceeds its time budget and was killed."""

    def __init__(self, message: str, cmd: list[str] | None = None, timeout: float = 0.0):
        self.timeout = timeout
        super().__init__(message, cmd=cmd)


class ManifestParseError(InventoryError):
    """Raised when a manifest, lockfile or tool transcript is malformed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"cannot parse {path}: {reason}")


class ExtractionTimeoutError(InventoryError):
    """Raised when a whole project extraction exceeds its time budget."""

    def __init__(self, project_path: str, timeout: float):
        self.project_path = project_path
        self.timeout = timeout
        super().__init__(f"extraction of {project_path} timed out after {timeout:g}s")
