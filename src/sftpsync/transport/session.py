import asyncio
import enum
import logging
from typing import Optional

from ..errors import RemoteConnectionError
from .gate import RemoteOperationGate

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'
    ACTIVE = 'active'
    CLOSED = 'closed'


class SessionManager:
    """Owns the SSH connection and the remote operation gate of one sync run.

    The connection and the gate are created lazily by the first caller of
    ``gate()``; concurrent first callers share a single handshake. ``close()``
    tears both down and leaves the manager ready to reconnect.

    Args:
        ssh_manager: Object with ``connect()``, ``open_sftp()``, ``disconnect()``
            and ``is_connected``, normally an SSHManager.
        concurrency: Maximum remote operations admitted to the gate at once, None for no limit.
    """

    def __init__(self, ssh_manager, concurrency: Optional[int] = None):
        self.ssh_manager = ssh_manager
        self.concurrency = concurrency
        self.state = SessionState.DISCONNECTED
        self._gate: Optional[RemoteOperationGate] = None
        self._lock: Optional[asyncio.Lock] = None
        self._handshake: Optional[asyncio.Future] = None

    def _get_lock(self) -> asyncio.Lock:
        # Created on first use so the lock belongs to the running loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE and self._gate is not None and not self._gate.closed

    async def connect(self) -> None:
        """Establishes the SSH connection if it is not up yet.

        Raises:
            ConfigurationError: If the credentials cannot be prepared.
            RemoteConnectionError: If the handshake fails.
        """
        if self.state in (SessionState.CONNECTED, SessionState.ACTIVE) and self.ssh_manager.is_connected:
            return
        self.state = SessionState.CONNECTING
        loop = asyncio.get_running_loop()
        # Outlives a cancelled caller; close() waits for it
        self._handshake = loop.run_in_executor(None, self.ssh_manager.connect)
        try:
            await asyncio.shield(self._handshake)
        except Exception:
            self.state = SessionState.DISCONNECTED
            raise
        self.state = SessionState.CONNECTED
        logger.debug("Session connected")

    async def gate(self) -> RemoteOperationGate:
        """Returns the remote operation gate, connecting and initializing it on first use."""
        if self.is_active:
            return self._gate

        async with self._get_lock():
            if self.is_active:
                return self._gate
            await self.connect()
            try:
                self._gate = await RemoteOperationGate.init(self.ssh_manager, self.concurrency)
            except RemoteConnectionError:
                logger.error("Failed to initialize the SFTP channel; closing the connection")
                await self._disconnect()
                raise
            self.state = SessionState.ACTIVE
            logger.info("SFTP session active")
            return self._gate

    async def _disconnect(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.ssh_manager.disconnect)
        finally:
            self.state = SessionState.DISCONNECTED

    async def _await_handshake(self) -> None:
        handshake, self._handshake = self._handshake, None
        if handshake is None:
            return
        try:
            await handshake
        except Exception:
            logger.debug("Pending handshake failed before close", exc_info=True)

    async def close(self) -> None:
        """Closes the gate and the connection. Safe to call repeatedly.

        A handshake still running for a cancelled caller is waited for first,
        so the connection it opens is torn down too.
        """
        gate, self._gate = self._gate, None
        try:
            await self._await_handshake()
            if gate is not None:
                await gate.shutdown()
        finally:
            if self.state is not SessionState.DISCONNECTED or self.ssh_manager.is_connected:
                await self._disconnect()
            self.state = SessionState.CLOSED
            logger.debug("Session closed")
