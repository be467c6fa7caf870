"""Tests for the remote operation gate."""

import asyncio
import errno
import time
from unittest.mock import Mock

import paramiko
import pytest

from sftpsync.errors import RemoteAccessError, RemoteConnectionError, SftpStatus
from sftpsync.transport.gate import RemoteEntry, RemoteOperationGate, status_from_error


class TestStatusFromError:
    """Tests for mapping paramiko IOErrors onto SFTP statuses."""

    def test_enoent_is_no_such_file(self) -> None:
        assert status_from_error(IOError(errno.ENOENT, "No such file")) is SftpStatus.NO_SUCH_FILE

    def test_eacces_is_permission_denied(self) -> None:
        assert status_from_error(IOError(errno.EACCES, "Denied")) is SftpStatus.PERMISSION_DENIED

    def test_missing_errno_is_failure(self) -> None:
        assert status_from_error(IOError("Failure")) is SftpStatus.FAILURE

    def test_other_errno_is_other(self) -> None:
        assert status_from_error(IOError(errno.EEXIST, "Exists")) is SftpStatus.OTHER


class TestRemoteOperationGate:
    """Tests for gate operations against the SFTP client double."""

    @pytest.mark.asyncio
    async def test_list_reports_names_and_types(self, sftp, remote_root) -> None:
        (remote_root / 'a.txt').write_text('a')
        (remote_root / 'sub').mkdir()
        gate = RemoteOperationGate(sftp)
        try:
            entries = await gate.list('/site')
        finally:
            await gate.shutdown()
        assert sorted(entries, key=lambda e: e.name) == [RemoteEntry('a.txt', False), RemoteEntry('sub', True)]

    @pytest.mark.asyncio
    async def test_missing_path_raises_no_such_file(self, sftp) -> None:
        gate = RemoteOperationGate(sftp)
        try:
            with pytest.raises(RemoteAccessError) as excinfo:
                await gate.stat('/site/missing')
        finally:
            await gate.shutdown()
        assert excinfo.value.status is SftpStatus.NO_SUCH_FILE
        assert excinfo.value.path == '/site/missing'
        assert excinfo.value.operation == 'stat'

    @pytest.mark.asyncio
    async def test_denied_path_raises_permission_denied(self, sftp, remote_root) -> None:
        (remote_root / 'locked').mkdir()
        sftp.denied.add('/site/locked')
        gate = RemoteOperationGate(sftp)
        try:
            with pytest.raises(RemoteAccessError) as excinfo:
                await gate.list('/site/locked')
        finally:
            await gate.shutdown()
        assert excinfo.value.status is SftpStatus.PERMISSION_DENIED

    @pytest.mark.asyncio
    async def test_ssh_failure_becomes_connection_error(self) -> None:
        sftp = Mock()
        sftp.lstat.side_effect = paramiko.SSHException("Server connection dropped")
        gate = RemoteOperationGate(sftp)
        try:
            with pytest.raises(RemoteConnectionError):
                await gate.stat('/site/a.txt')
        finally:
            await gate.shutdown()

    @pytest.mark.asyncio
    async def test_transfer_and_remove(self, sftp, remote_root, tmp_path) -> None:
        source = tmp_path / 'source.txt'
        source.write_text('payload')
        gate = RemoteOperationGate(sftp)
        try:
            await gate.create_directory('/site/sub')
            await gate.transfer_file(str(source), '/site/sub/a.txt')
            assert (remote_root / 'sub' / 'a.txt').read_text() == 'payload'

            await gate.remove_file('/site/sub/a.txt')
            await gate.remove_directory('/site/sub')
        finally:
            await gate.shutdown()
        assert not (remote_root / 'sub').exists()

    @pytest.mark.asyncio
    async def test_open_and_close_handle(self, sftp, remote_root) -> None:
        (remote_root / 'a.txt').write_text('a')
        gate = RemoteOperationGate(sftp)
        try:
            handle = await gate.open('/site/a.txt', 'r+')
            await gate.close(handle)
        finally:
            await gate.shutdown()
        assert handle.closed

    @pytest.mark.asyncio
    async def test_shutdown_closes_client_and_rejects_calls(self, sftp) -> None:
        gate = RemoteOperationGate(sftp)
        await gate.shutdown()
        await gate.shutdown()
        assert sftp.closed
        assert gate.closed
        with pytest.raises(RemoteConnectionError):
            await gate.list('/site')


class TestGateConcurrency:
    """Tests for in-flight admission control."""

    @staticmethod
    def slow_client() -> Mock:
        sftp = Mock()
        sftp.lstat.side_effect = lambda path: time.sleep(0.01) or paramiko.SFTPAttributes()
        return sftp

    @pytest.mark.asyncio
    async def test_limit_caps_in_flight_operations(self) -> None:
        gate = RemoteOperationGate(self.slow_client(), concurrency=2)
        try:
            await asyncio.gather(*(gate.stat(f'/site/{i}') for i in range(10)))
        finally:
            await gate.shutdown()
        assert gate.peak_in_flight == 2
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_unbounded_gate_admits_everything(self) -> None:
        gate = RemoteOperationGate(self.slow_client())
        try:
            await asyncio.gather(*(gate.stat(f'/site/{i}') for i in range(10)))
        finally:
            await gate.shutdown()
        assert gate.peak_in_flight > 2
