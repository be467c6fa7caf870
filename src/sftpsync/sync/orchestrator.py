"""Recursive one-way synchronization of a local tree onto a remote tree.

Each directory level goes through the same steps: build the level's table
from concurrent local and remote listings, execute every entry's task
concurrently (recursing into directories), then report completion. Any
error that is not absorbed into an 'error' status cancels the sibling work
still running and propagates to the root caller.
"""
import asyncio
import logging
import os
import posixpath
import stat
from typing import Awaitable, Iterable, List, Optional, Tuple

from ..config import SyncOptions
from ..errors import (ConfigurationError, LocalAccessError, LocalAccessReason, LocalEntryError,
                      RemoteAccessError, SftpStatus)
from ..local_fs import LocalFileSystem, LocalStat
from ..matcher import is_excluded
from ..reporter import SyncReporter, SyncSummary
from ..transport.gate import RemoteEntry, RemoteOperationGate
from ..transport.session import SessionManager
from .table import EntryStatus, Side, SyncTable, SyncTableEntry, TaskMethod

logger = logging.getLogger(__name__)

# (name, status, mtime) as collected from one side of a level
Listing = List[Tuple[str, EntryStatus, Optional[int]]]


async def gather_or_abort(aws: Iterable[Awaitable]) -> list:
    """Runs awaitables concurrently and returns their results in order.

    On the first failure every sibling still running is cancelled and awaited,
    then the failure is re-raised.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if not tasks:
        return []
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def join_relative(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


class SftpSync:
    """Synchronizes ``local_dir`` onto ``remote_dir`` through one SFTP session.

    Args:
        local_dir: Local root. Resolved to an absolute path.
        remote_dir: Remote root. Trailing slashes are stripped (a bare '/' is kept).
        options: Sync behavior; defaults to ``SyncOptions()``.
        session: Session manager providing the remote operation gate.
        reporter: Progress output and counters; a default console reporter otherwise.
        local_fs: Local filesystem access rooted at ``local_dir``.

    Raises:
        ConfigurationError: If the remote root is empty.
        LocalAccessError: If the local root is missing or not a directory.
    """

    def __init__(self, local_dir: str, remote_dir: str, options: Optional[SyncOptions],
                 session: SessionManager, reporter: Optional[SyncReporter] = None,
                 local_fs: Optional[LocalFileSystem] = None):
        if not remote_dir:
            raise ConfigurationError("Remote directory must not be empty")

        self.local_root = os.path.abspath(os.path.expanduser(local_dir))
        if not os.path.exists(self.local_root):
            raise LocalAccessError(self.local_root, LocalAccessReason.NO_SUCH_DIRECTORY)
        if not os.path.isdir(self.local_root):
            raise LocalAccessError(self.local_root, LocalAccessReason.NOT_A_DIRECTORY)

        self.remote_root = remote_dir.rstrip('/') or '/'
        self.options = options or SyncOptions()
        self.session = session
        self.reporter = reporter or SyncReporter()
        self.local_fs = local_fs or LocalFileSystem(self.local_root)

    def _remote_path(self, relative_path: str) -> str:
        if not relative_path:
            return self.remote_root
        return posixpath.join(self.remote_root, relative_path)

    async def _gate(self) -> RemoteOperationGate:
        return await self.session.gate()

    async def sync(self) -> SyncSummary:
        """Runs the whole synchronization from the root level.

        The session is closed when the run ends, whether it succeeded or not.

        Returns:
            SyncSummary: Counters of everything done (or planned, in dry-run mode).
        """
        mode = 'dry-run' if self.options.dry_run else 'live'
        logger.info(f"Starting {mode} sync {self.local_root} -> {self.remote_root}")
        try:
            await self._sync_level('')
        finally:
            await self.session.close()
        logger.info(f"Sync finished: {self.reporter.summary.as_dict()}")
        return self.reporter.summary

    async def _sync_level(self, relative_path: str, remote_exists: bool = True) -> None:
        table = await self.build_sync_table(relative_path, remote_exists)
        await gather_or_abort(self._execute_entry(entry) for entry in table)
        if not self.options.dry_run:
            self.reporter.sync_completed(relative_path)

    async def build_sync_table(self, relative_path: str, remote_exists: bool = True) -> SyncTable:
        """Lists one level on both sides and returns its sealed table.

        With ``remote_exists`` false the remote side is taken as empty and not listed.
        """
        listings = [self._list_local(relative_path)]
        if remote_exists:
            listings.append(self._list_remote(relative_path))
        local_listing, *rest = await gather_or_abort(listings)
        remote_listing = rest[0] if rest else []

        table = SyncTable(relative_path, self.options)
        for name, status, mtime in local_listing:
            table.set(name, Side.LOCAL, status, mtime)
        for name, status, mtime in remote_listing:
            table.set(name, Side.REMOTE, status, mtime)
        table.seal()
        logger.debug(f"Built sync table for '{relative_path or '/'}' with {len(table)} entries")
        return table

    async def _list_local(self, relative_path: str) -> Listing:
        names = await self.local_fs.list_directory(relative_path)
        return await gather_or_abort(self._inspect_local(join_relative(relative_path, name), name)
                                     for name in names)

    async def _inspect_local(self, child_path: str, name: str) -> Tuple[str, EntryStatus, Optional[int]]:
        try:
            local_stat = await self.local_fs.stat_entry(child_path)
            await self.local_fs.read_access_check(child_path, local_stat.is_directory)
        except LocalEntryError as e:
            logger.warning(f"{e}; marking it as an error")
            return name, EntryStatus.ERROR, None
        if local_stat.is_directory:
            return name, EntryStatus.DIR, None
        return name, EntryStatus.FILE, local_stat.mtime

    async def _list_remote(self, relative_path: str) -> Listing:
        gate = await self._gate()
        remote_path = self._remote_path(relative_path)
        try:
            entries = await gate.list(remote_path)
        except RemoteAccessError as e:
            if e.status is SftpStatus.NO_SUCH_FILE and self.options.dry_run:
                logger.debug(f"Remote directory {remote_path} does not exist yet")
                return []
            raise
        return await gather_or_abort(self._inspect_remote(gate, remote_path, entry) for entry in entries)

    async def _inspect_remote(self, gate: RemoteOperationGate, remote_dir: str,
                              entry: RemoteEntry) -> Tuple[str, EntryStatus, Optional[int]]:
        """Stats one remote child and probes that it can actually be used."""
        remote_path = posixpath.join(remote_dir, entry.name)
        try:
            attrs = await gate.stat(remote_path)
            if stat.S_ISDIR(attrs.st_mode or 0):
                await gate.list(remote_path)
                return entry.name, EntryStatus.DIR, None
            handle = await gate.open(remote_path, 'r+')
            await gate.close(handle)
        except RemoteAccessError as e:
            if e.status is SftpStatus.PERMISSION_DENIED:
                logger.warning(f"Permission denied on remote {remote_path}; marking it as an error")
                return entry.name, EntryStatus.ERROR, None
            raise
        mtime = int(attrs.st_mtime) if attrs.st_mtime is not None else None
        return entry.name, EntryStatus.FILE, mtime

    async def _execute_entry(self, entry: SyncTableEntry) -> None:
        task = entry.get_task()

        if self.options.dry_run:
            self.reporter.dry_run_entry(entry.path, entry.local_status.value, entry.remote_status.value,
                                        task.method.value, task.remove_remote, task.skip, task.has_error)
            if task.method is TaskMethod.SYNC:
                await self._sync_level(entry.path, remote_exists=entry.remote_status is EntryStatus.DIR)
            return

        if task.remove_remote:
            await self.remove_remote(entry.path, entry.remote_status is EntryStatus.DIR)

        if task.method is TaskMethod.SYNC and (task.remove_remote or entry.remote_status is not EntryStatus.DIR):
            gate = await self._gate()
            await gate.create_directory(self._remote_path(entry.path))
            self.reporter.directory_created(entry.path)

        if task.method is TaskMethod.UPLOAD:
            await self.upload(entry.path)
        elif task.method is TaskMethod.SYNC:
            await self._sync_level(entry.path)
        elif task.has_error:
            self.reporter.entry_error(entry.path)
        elif task.skip:
            self.reporter.skipped(entry.path)
        elif entry.local_status is EntryStatus.EXCLUDED:
            self.reporter.ignored(entry.path)

    async def remove_remote(self, relative_path: str, is_directory: bool) -> None:
        """Deletes a remote entry; directories are emptied first, children concurrently."""
        gate = await self._gate()
        remote_path = self._remote_path(relative_path)
        if is_directory:
            children = await gate.list(remote_path)
            await gather_or_abort(self.remove_remote(join_relative(relative_path, child.name), child.is_directory)
                                  for child in children)
            await gate.remove_directory(remote_path)
            self.reporter.remote_dir_removed(relative_path)
        else:
            await gate.remove_file(remote_path)
            self.reporter.remote_file_removed(relative_path)

    async def upload(self, relative_path: str, local_stat: Optional[LocalStat] = None) -> None:
        """Uploads a local file, or a local directory with all its non-excluded contents.

        Directory contents are uploaded without comparing against the remote side.

        Raises:
            RemoteAccessError: If the remote parent is missing or not writable.
        """
        if local_stat is None:
            local_stat = await self.local_fs.stat_entry(relative_path)
        gate = await self._gate()
        remote_path = self._remote_path(relative_path)

        if local_stat.is_directory:
            await gate.create_directory(remote_path)
            names = await self.local_fs.list_directory(relative_path)
            await gather_or_abort(self._upload_child(join_relative(relative_path, name)) for name in names)
            self.reporter.directory_uploaded(relative_path)
            return

        local_path = str(self.local_fs.full_path(relative_path))
        try:
            await gate.transfer_file(local_path, remote_path)
        except RemoteAccessError as e:
            if e.status is SftpStatus.NO_SUCH_FILE:
                raise RemoteAccessError(
                    remote_path, e.status, 'upload',
                    f"Cannot upload {relative_path}: remote directory {posixpath.dirname(remote_path)} does not exist",
                ) from e
            if e.status is SftpStatus.PERMISSION_DENIED:
                raise RemoteAccessError(
                    remote_path, e.status, 'upload',
                    f"Cannot upload {relative_path}: permission denied writing {remote_path}",
                ) from e
            raise
        self.reporter.file_uploaded(relative_path)

    async def _upload_child(self, child_path: str) -> None:
        local_stat = await self.local_fs.stat_entry(child_path)
        if is_excluded(child_path, local_stat.is_directory, self.options.exclude):
            self.reporter.ignored(child_path)
            return
        await self.upload(child_path, local_stat)
