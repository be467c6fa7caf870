import asyncio
import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from .errors import LocalAccessError, LocalAccessReason, LocalEntryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalStat:
    """Type and modification time (whole seconds) of a local entry."""
    is_directory: bool
    mtime: int


class LocalFileSystem:
    """Asynchronous access to the local tree being synchronized.

    Paths passed to the public methods are relative to ``root`` and use '/'
    separators. Blocking calls run in a worker thread so every local I/O call
    is a suspension point for the event loop.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def full_path(self, relative_path: str) -> Path:
        """Resolves a root-relative posix path to a local filesystem path."""
        if not relative_path:
            return self.root
        return self.root.joinpath(*relative_path.split('/'))

    async def list_directory(self, relative_path: str) -> List[str]:
        """Lists the names in a local directory.

        Raises:
            LocalAccessError: If the directory is missing, is not a directory or is unreadable.
        """
        full_path = self.full_path(relative_path)
        try:
            names = await asyncio.to_thread(os.listdir, full_path)
        except FileNotFoundError as e:
            raise LocalAccessError(str(full_path), LocalAccessReason.NO_SUCH_DIRECTORY) from e
        except NotADirectoryError as e:
            raise LocalAccessError(str(full_path), LocalAccessReason.NOT_A_DIRECTORY) from e
        except PermissionError as e:
            raise LocalAccessError(str(full_path), LocalAccessReason.PERMISSION_DENIED) from e
        logger.debug(f"Listed local directory {full_path}: {len(names)} entries")
        return names

    async def stat_entry(self, relative_path: str) -> LocalStat:
        """Stats a local entry without following symlinks.

        Raises:
            LocalEntryError: If the entry vanished or cannot be stat'ed.
        """
        full_path = self.full_path(relative_path)
        try:
            st = await asyncio.to_thread(os.lstat, full_path)
        except (FileNotFoundError, PermissionError) as e:
            raise LocalEntryError(str(full_path), e) from e
        return LocalStat(is_directory=stat.S_ISDIR(st.st_mode), mtime=int(st.st_mtime))

    async def read_access_check(self, relative_path: str, is_directory: bool = False) -> None:
        """Checks that an entry can be read (and traversed, for directories).

        Raises:
            LocalEntryError: If access is denied.
        """
        full_path = self.full_path(relative_path)
        mode = os.R_OK | os.X_OK if is_directory else os.R_OK
        allowed = await asyncio.to_thread(os.access, full_path, mode)
        if not allowed:
            raise LocalEntryError(str(full_path))
