"""Workspace management errors."""


class WorkspaceError(Exception):
    """Base exception for workspace operations."""


class ProjectNotFoundError(WorkspaceError):
    """Raised when a named project has no workspace directory."""


class ProjectExistsError(WorkspaceError):
    """Raised when creating a project whose workspace already exists."""


class InvalidProjectNameError(WorkspaceError):
    """Raised when a project name is not a safe directory name."""


class PersistenceError(WorkspaceError):
    """Raised when a project cannot be written to disk."""


class SourcePathError(WorkspaceError):
    """Raised when a source path does not exist or cannot be accessed."""
