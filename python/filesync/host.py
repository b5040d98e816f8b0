"""
Host Interfaces - Collaborators the sync subsystem drives but doesn't own.

A scanner walks a folder and returns raw file descriptors; a watch service
turns filesystem notifications into FileChange events. FolderScanner and
WatchdogService are the default implementations.
"""

from typing import Callable, List, Optional, Protocol

from .models import FileChange, FileDescriptor, ScanProgress, WatchOptions


ScanProgressCallback = Callable[[ScanProgress], None]
ChangeCallback = Callable[[FileChange], None]


class Scanner(Protocol):
    async def scan(
        self,
        folder_path: str,
        operation_id: str,
        on_progress: Optional[ScanProgressCallback] = None,
    ) -> List[FileDescriptor]:
        """
        Walk a folder.

        Raises:
            ScanAbortedError: the operation was cancelled
            ScanFailedError: the folder could not be scanned
        """
        ...

    async def cancel_scan(self, operation_id: str) -> bool:
        """Request cancellation. Returns False if the operation is unknown."""
        ...


class WatchService(Protocol):
    async def watch(self, path: str, options: WatchOptions, callback: ChangeCallback) -> str:
        """Subscribe to changes below path and return an opaque handle."""
        ...

    async def unwatch(self, handle: str) -> bool:
        """Cancel a subscription. Returns False if the handle is unknown."""
        ...
