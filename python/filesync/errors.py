"""
Error Handling - Exception taxonomy and per-file error policies.

Only folder-level failures are surfaced to callers (as the folder's status
and error message). Everything below that, such as unreadable files during a
scan, a failed write chunk or a broken watcher event, is logged and recovered.
"""

import logging
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)

ABORTED_MESSAGE = "Aborted"


class ErrorAction(Enum):
    """What to do when a per-file error occurs."""
    SKIP = auto()    # Skip this item, continue the scan
    ABORT = auto()   # Stop the scan


@dataclass
class ErrorPolicy:
    """Policy for handling a specific error type."""
    action: ErrorAction
    log_level: int
    message_template: str = "{file}: {error}"


# Checked in order, so subclasses must come before OSError
ERROR_POLICIES: dict[type, ErrorPolicy] = {
    PermissionError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.WARNING,
        message_template="Permission denied: {file}"
    ),
    FileNotFoundError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.DEBUG,
        message_template="File not found (possibly deleted): {file}"
    ),
    NotADirectoryError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.DEBUG,
        message_template="Expected directory, got file: {file}"
    ),
    OSError: ErrorPolicy(
        action=ErrorAction.SKIP,
        log_level=logging.WARNING,
        message_template="OS error reading: {file} - {error}"
    ),
}


class FileSyncError(Exception):
    """Base exception for file sync errors."""
    pass


class DuplicateFolderError(FileSyncError):
    """The folder is already attached to the project."""
    def __init__(self, project_path: str, folder_path: str):
        self.project_path = project_path
        self.folder_path = folder_path
        super().__init__(f'Folder "{folder_path}" is already added to this project')


class ScanAbortedError(FileSyncError):
    """A scan was cancelled. Benign, never shown as a folder error."""
    def __init__(self, operation_id: Optional[str] = None):
        self.operation_id = operation_id
        super().__init__(ABORTED_MESSAGE)


class ScanFailedError(FileSyncError):
    """A scan failed; the message becomes the folder's error message."""
    pass


class PersistenceChunkError(FileSyncError):
    """A batch of index entries could not be written in one transaction."""
    def __init__(self, size: int, cause: Exception):
        self.size = size
        self.cause = cause
        super().__init__(f"Failed to persist chunk of {size} entries: {cause}")


class WatchStartError(FileSyncError):
    """The watch service refused a subscription for a folder."""
    def __init__(self, folder_path: str, cause: Exception):
        self.folder_path = folder_path
        self.cause = cause
        super().__init__(f"Failed to watch {folder_path}: {cause}")


def is_abort(error: BaseException) -> bool:
    """True for external cancellation, whichever exception type carried it."""
    return isinstance(error, ScanAbortedError) or str(error) == ABORTED_MESSAGE


def handle_error(
    error: Exception,
    file_path: Optional[Path] = None,
    context: str = ""
) -> ErrorAction:
    """
    Handle a per-file error according to the defined policies.

    Args:
        error: The exception that occurred
        file_path: Path being processed (if applicable)
        context: Additional context for logging

    Returns:
        The action to take
    """
    policy = None
    for error_type, p in ERROR_POLICIES.items():
        if isinstance(error, error_type):
            policy = p
            break

    # Anything that isn't a filesystem error is a bug in the walk itself
    if policy is None:
        policy = ErrorPolicy(
            action=ErrorAction.ABORT,
            log_level=logging.ERROR,
            message_template="Unexpected error: {file} - {error}"
        )

    file_str = str(file_path) if file_path else "<unknown>"
    message = policy.message_template.format(file=file_str, error=str(error))
    if context:
        message = f"[{context}] {message}"

    logger.log(policy.log_level, message)

    return policy.action
