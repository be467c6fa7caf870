"""Exception hierarchy shared by the sync engine, transport and CLI."""
import enum
from typing import Optional


class SftpStatus(enum.Enum):
    """SFTP status categories a remote operation can fail with."""
    NO_SUCH_FILE = 'no-such-file'
    PERMISSION_DENIED = 'permission-denied'
    FAILURE = 'failure'
    OTHER = 'other'


class LocalAccessReason(enum.Enum):
    """Why a local directory could not be listed."""
    NO_SUCH_DIRECTORY = 'no-such-directory'
    NOT_A_DIRECTORY = 'not-a-directory'
    PERMISSION_DENIED = 'permission-denied'


class SftpSyncError(Exception):
    """Base class for all sftpsync errors."""


class ConfigurationError(SftpSyncError, ValueError):
    """Invalid options, unreadable private key or incomplete connection settings."""


class LocalAccessError(SftpSyncError):
    """A local directory could not be read. Always fatal."""

    def __init__(self, path: str, reason: LocalAccessReason):
        self.path = path
        self.reason = reason
        if reason is LocalAccessReason.NO_SUCH_DIRECTORY:
            message = f"Local directory does not exist: {path}"
        elif reason is LocalAccessReason.NOT_A_DIRECTORY:
            message = f"Local path is not a directory: {path}"
        else:
            message = f"Permission denied while reading local directory: {path}"
        super().__init__(message)


class LocalEntryError(SftpSyncError):
    """A single local entry could not be inspected (captured as an 'error' status)."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        self.path = path
        self.cause = cause
        super().__init__(f"Cannot access local entry: {path}")


class RemoteConnectionError(SftpSyncError, ConnectionError):
    """Handshake, authentication or transport failure."""


class RemoteAccessError(SftpSyncError):
    """A remote SFTP operation failed with a protocol status."""

    def __init__(self, path: str, status: SftpStatus, operation: str = '', message: Optional[str] = None):
        self.path = path
        self.status = status
        self.operation = operation
        if message is None:
            prefix = f"{operation} " if operation else ''
            message = f"Remote {prefix}failed ({status.value}): {path}"
        super().__init__(message)


class SyncTableError(SftpSyncError, RuntimeError):
    """A sync table was used before both sides were populated."""
