"""Concurrency-bounded funnel for every remote SFTP call.

All remote operations of a run go through one RemoteOperationGate, which owns
the single paramiko SFTPClient of the session. Calls are admitted by an
asyncio semaphore (when a concurrency limit is configured) and executed on a
single worker thread: paramiko multiplexes requests over one channel and its
client must not be driven from several threads at once.
"""
import asyncio
import errno
import functools
import logging
import stat
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import paramiko

from ..errors import RemoteAccessError, RemoteConnectionError, SftpStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteEntry:
    """One name returned by a remote directory listing."""
    name: str
    is_directory: bool


def status_from_error(error: BaseException) -> SftpStatus:
    """Maps an IOError raised by paramiko onto an SFTP status category."""
    code = getattr(error, 'errno', None)
    if code == errno.ENOENT:
        return SftpStatus.NO_SUCH_FILE
    if code == errno.EACCES:
        return SftpStatus.PERMISSION_DENIED
    if code is None:
        return SftpStatus.FAILURE
    return SftpStatus.OTHER


class RemoteOperationGate:
    """Serializes and bounds the remote operations of one SFTP session.

    ``concurrency`` limits how many calls are admitted to the queue at once;
    ``in_flight`` and ``peak_in_flight`` count admitted calls. The single
    worker thread still sends them to the server one at a time.

    Use ``await RemoteOperationGate.init(ssh_manager, concurrency)`` to bind a
    gate to an established session; the constructor only wraps an already
    opened SFTP client.
    """

    def __init__(self, sftp: paramiko.SFTPClient, concurrency: Optional[int] = None):
        self.sftp = sftp
        self.concurrency = concurrency
        self._semaphore = asyncio.Semaphore(concurrency) if concurrency else None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='sftpsync-gate')
        self._closed = False
        self.in_flight = 0
        self.peak_in_flight = 0

    @classmethod
    async def init(cls, ssh_manager, concurrency: Optional[int] = None) -> 'RemoteOperationGate':
        """Opens the SFTP sub-channel of a connected session and wraps it in a gate.

        Raises:
            RemoteConnectionError: If the channel cannot be opened.
        """
        loop = asyncio.get_running_loop()
        sftp = await loop.run_in_executor(None, ssh_manager.open_sftp)
        logger.debug(f"Remote operation gate ready (concurrency={concurrency or 'unbounded'})")
        return cls(sftp, concurrency)

    @property
    def closed(self) -> bool:
        return self._closed

    async def _run(self, operation: str, path: str, func: Callable[..., Any], *args) -> Any:
        """Queues one blocking SFTP call and returns its result to the caller."""
        if self._closed:
            raise RemoteConnectionError(f"Remote session is closed (during {operation} {path})")

        if self._semaphore is not None:
            await self._semaphore.acquire()
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            logger.debug(f"sftp {operation} {path}")
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self._executor, functools.partial(func, *args))
        except (paramiko.SSHException, EOFError, ConnectionError) as e:
            raise RemoteConnectionError(f"Remote session failed during {operation} {path}: {e}") from e
        except OSError as e:
            raise RemoteAccessError(path, status_from_error(e), operation) from e
        finally:
            self.in_flight -= 1
            if self._semaphore is not None:
                self._semaphore.release()

    async def stat(self, path: str) -> paramiko.SFTPAttributes:
        """Stats a remote path without following symlinks."""
        return await self._run('stat', path, self.sftp.lstat, path)

    async def list(self, path: str) -> List[RemoteEntry]:
        """Lists a remote directory."""
        attrs = await self._run('list', path, self.sftp.listdir_attr, path)
        return [RemoteEntry(a.filename, stat.S_ISDIR(a.st_mode or 0))
                for a in attrs if a.filename not in ('.', '..')]

    async def open(self, path: str, mode: str = 'r') -> paramiko.SFTPFile:
        return await self._run('open', path, self.sftp.open, path, mode)

    async def close(self, handle: paramiko.SFTPFile) -> None:
        await self._run('close', getattr(handle, 'filename', '') or '', handle.close)

    async def create_directory(self, path: str) -> None:
        await self._run('mkdir', path, self.sftp.mkdir, path)

    async def remove_directory(self, path: str) -> None:
        await self._run('rmdir', path, self.sftp.rmdir, path)

    async def remove_file(self, path: str) -> None:
        await self._run('unlink', path, self.sftp.remove, path)

    async def transfer_file(self, local_path: str, remote_path: str) -> None:
        """Uploads a local file to a remote path."""
        await self._run('upload', remote_path, self.sftp.put, local_path, remote_path)

    async def shutdown(self) -> None:
        """Closes the SFTP channel and stops the worker thread."""
        if self._closed:
            return
        self._closed = True
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(self._executor, self.sftp.close)
        finally:
            self._executor.shutdown(wait=False)
        logger.debug("Remote operation gate closed")
