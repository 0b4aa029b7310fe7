"""Exception classes for dotctx - a context-aware dotfiles manager."""

from typing import Dict, List, Optional, TypedDict


# Type definitions for structured data
class _FileEntryRequired(TypedDict):
    src: str
    dst: str
    type: str
    active: bool
    addedAt: str


class FileEntryDict(_FileEntryRequired, total=False):
    """Type definition for a tracked dotfile entry in the index."""

    backupPath: str
    backupCreatedAt: str
    docId: str


class _WorkspaceConfigRequired(TypedDict):
    path: str
    status: str
    files: List[FileEntryDict]


class WorkspaceConfigDict(_WorkspaceConfigRequired, total=False):
    """Type definition for one workspace entry of the dotfiles index."""

    clonedAt: str


DotfilesIndexDict = Dict[str, WorkspaceConfigDict]


class ContextSwitchResultDict(TypedDict):
    """Type definition for the outcome of a context switch."""

    activated: List[str]
    deactivated: List[str]
    skipped: List[str]


class OperationResultDict(TypedDict):
    """Type definition for bulk activate/deactivate results."""

    success: int
    failed: int


class DotctxError(Exception):
    """Base exception for all dotctx-related errors."""

    pass


class DotctxValidationError(DotctxError):
    """Errors related to user input or data validation."""

    pass


class DotctxConfigurationError(DotctxError):
    """Errors related to configuration management."""

    pass


class DotctxFileOperationError(DotctxError):
    """Errors related to file operations."""

    pass


class CloneMissingError(DotctxFileOperationError):
    """Raised when the local clone of a workspace does not exist."""

    pass


class RepoFileMissingError(DotctxFileOperationError):
    """Raised when an indexed entry has no file in the local clone."""

    pass


class DotctxSymlinkError(DotctxFileOperationError):
    """Raised when a source path cannot be replaced by a symlink."""

    pass


class RemoteUnavailableError(DotctxError):
    """Raised when the metadata service cannot be reached or refuses a call."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class VcsError(DotctxError):
    """Raised when the version-control binary exits with a non-zero status."""

    def __init__(
        self, message: str, code: Optional[int] = None, stderr: str = ""
    ) -> None:
        super().__init__(message)
        self.code = code
        self.stderr = stderr


class VcsNotFoundError(VcsError):
    """Raised when the git binary or the working directory cannot be found."""

    pass


class VcsPermissionError(VcsError):
    """Raised when git cannot be executed or the working directory is not accessible."""

    pass
