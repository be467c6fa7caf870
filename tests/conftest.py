"""Shared fixtures: an SFTP client double backed by a temporary directory."""

import errno
import io
import os
import shutil
from pathlib import Path
from typing import List, Optional, Set, Tuple

import paramiko
import pytest
from rich.console import Console

from sftpsync.config import SyncOptions
from sftpsync.errors import RemoteConnectionError
from sftpsync.reporter import SYNC_THEME, SyncReporter
from sftpsync.sync.orchestrator import SftpSync
from sftpsync.transport.session import SessionManager


class FakeSFTPFile:
    """Handle returned by FakeSFTPClient.open()."""

    def __init__(self, filename: str):
        self.filename = filename
        self.closed = False

    def close(self):
        self.closed = True


class FakeSFTPClient:
    """The paramiko SFTPClient subset used by the gate, served from a local directory.

    Remote absolute paths map onto ``root``. Paths listed in ``denied`` fail
    with EACCES, like a server refusing access.
    """

    def __init__(self, root: Path):
        self.root = root
        self.denied: Set[str] = set()
        self.calls: List[Tuple[str, str]] = []
        self.closed = False

    def _local(self, path: str) -> Path:
        return self.root / path.lstrip('/')

    def _check(self, operation: str, path: str):
        self.calls.append((operation, path))
        if path in self.denied:
            raise PermissionError(errno.EACCES, "Permission denied", path)

    def listdir_attr(self, path: str = '.'):
        self._check('listdir', path)
        local = self._local(path)
        return [paramiko.SFTPAttributes.from_stat(os.lstat(local / name), name)
                for name in sorted(os.listdir(local))]

    def lstat(self, path: str):
        self._check('lstat', path)
        return paramiko.SFTPAttributes.from_stat(os.lstat(self._local(path)))

    def open(self, filename: str, mode: str = 'r', bufsize: int = -1):
        self._check('open', filename)
        local = self._local(filename)
        if 'r' in mode and not local.exists():
            raise FileNotFoundError(errno.ENOENT, "No such file", filename)
        return FakeSFTPFile(filename)

    def mkdir(self, path: str, mode: int = 0o777):
        self._check('mkdir', path)
        os.mkdir(self._local(path))

    def rmdir(self, path: str):
        self._check('rmdir', path)
        os.rmdir(self._local(path))

    def remove(self, path: str):
        self._check('remove', path)
        os.remove(self._local(path))

    def put(self, localpath: str, remotepath: str, callback=None, confirm: bool = True):
        self._check('put', remotepath)
        target = self._local(remotepath)
        if not target.parent.is_dir():
            raise FileNotFoundError(errno.ENOENT, "No such file", remotepath)
        shutil.copyfile(localpath, target)
        return paramiko.SFTPAttributes.from_stat(os.stat(target))

    def close(self):
        self.closed = True

    def operations(self, operation: str) -> List[str]:
        return [path for op, path in self.calls if op == operation]


class FakeSSHManager:
    """Stands in for SSHManager, handing out a FakeSFTPClient."""

    def __init__(self, sftp: FakeSFTPClient, host: str = 'example.org'):
        self.sftp = sftp
        self.host = host
        self.connected = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.connect_error: Optional[Exception] = None

    def connect(self):
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True
        return True

    def open_sftp(self):
        if not self.connected:
            raise RemoteConnectionError("SSH connection not established or active.")
        self.sftp.closed = False
        return self.sftp

    def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False

    @property
    def is_connected(self) -> bool:
        return self.connected


def write_file(path: Path, content: str = 'data', mtime: Optional[int] = None) -> Path:
    """Creates a file (and its parents), optionally with a fixed mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def local_root(tmp_path) -> Path:
    root = tmp_path / 'local'
    root.mkdir()
    return root


@pytest.fixture
def server_root(tmp_path) -> Path:
    """Directory playing the remote server's filesystem root."""
    root = tmp_path / 'server'
    root.mkdir()
    return root


@pytest.fixture
def remote_root(server_root) -> Path:
    """Local view of the remote sync root '/site'."""
    root = server_root / 'site'
    root.mkdir()
    return root


@pytest.fixture
def sftp(server_root) -> FakeSFTPClient:
    return FakeSFTPClient(server_root)


@pytest.fixture
def ssh_manager(sftp) -> FakeSSHManager:
    return FakeSSHManager(sftp)


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def reporter(output) -> SyncReporter:
    return SyncReporter(Console(file=output, theme=SYNC_THEME, width=200, highlight=False))


@pytest.fixture
def make_sync(local_root, ssh_manager, reporter):
    """Builds an SftpSync from local_root onto '/site' with the given options."""

    def _make(**option_values) -> SftpSync:
        options = SyncOptions(**option_values)
        session = SessionManager(ssh_manager, options.concurrency)
        return SftpSync(str(local_root), '/site', options, session, reporter)

    return _make
