"""Tests for the session manager state machine."""

import asyncio
import time

import pytest

from sftpsync.errors import RemoteConnectionError
from sftpsync.transport.session import SessionManager, SessionState


class TestSessionManager:
    """Tests for lazy connection, sharing and teardown."""

    @pytest.mark.asyncio
    async def test_starts_disconnected(self, ssh_manager) -> None:
        session = SessionManager(ssh_manager)
        assert session.state is SessionState.DISCONNECTED
        assert not session.is_active
        assert ssh_manager.connect_calls == 0

    @pytest.mark.asyncio
    async def test_concurrent_first_users_share_one_handshake(self, ssh_manager) -> None:
        session = SessionManager(ssh_manager, concurrency=3)
        gates = await asyncio.gather(*(session.gate() for _ in range(5)))
        try:
            assert all(gate is gates[0] for gate in gates)
            assert ssh_manager.connect_calls == 1
            assert session.state is SessionState.ACTIVE
            assert gates[0].concurrency == 3
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, ssh_manager, sftp) -> None:
        session = SessionManager(ssh_manager)
        await session.gate()
        await session.close()
        await session.close()
        assert session.state is SessionState.CLOSED
        assert sftp.closed
        assert not ssh_manager.connected

    @pytest.mark.asyncio
    async def test_close_without_connecting(self, ssh_manager) -> None:
        session = SessionManager(ssh_manager)
        await session.close()
        assert session.state is SessionState.CLOSED
        assert ssh_manager.connect_calls == 0

    @pytest.mark.asyncio
    async def test_gate_reconnects_after_close(self, ssh_manager) -> None:
        session = SessionManager(ssh_manager)
        first = await session.gate()
        await session.close()
        second = await session.gate()
        try:
            assert second is not first
            assert ssh_manager.connect_calls == 2
            assert session.is_active
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_failed_connect_resets_state(self, ssh_manager) -> None:
        ssh_manager.connect_error = RemoteConnectionError("Connection refused")
        session = SessionManager(ssh_manager)
        with pytest.raises(RemoteConnectionError):
            await session.gate()
        assert session.state is SessionState.DISCONNECTED

        ssh_manager.connect_error = None
        await session.gate()
        assert session.is_active
        await session.close()

    @pytest.mark.asyncio
    async def test_close_reaps_handshake_of_cancelled_caller(self, ssh_manager) -> None:
        original_connect = ssh_manager.connect

        def slow_connect():
            time.sleep(0.2)
            return original_connect()

        ssh_manager.connect = slow_connect
        session = SessionManager(ssh_manager)
        pending = asyncio.ensure_future(session.gate())
        await asyncio.sleep(0.05)
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

        await session.close()

        assert ssh_manager.connect_calls == 1
        assert ssh_manager.disconnect_calls == 1
        assert not ssh_manager.connected
        assert session.state is SessionState.CLOSED
