"""sftpsync: one-way synchronization of a local directory onto a remote host over SFTP."""
from .config import ExcludeMode, SftpSyncConfig, SyncOptions
from .errors import (ConfigurationError, LocalAccessError, LocalEntryError, RemoteAccessError,
                     RemoteConnectionError, SftpStatus, SftpSyncError, SyncTableError)
from .reporter import SyncReporter, SyncSummary
from .sync import SftpSync

__version__ = "0.1.0"

__all__ = [
    'ExcludeMode',
    'SftpSyncConfig',
    'SyncOptions',
    'ConfigurationError',
    'LocalAccessError',
    'LocalEntryError',
    'RemoteAccessError',
    'RemoteConnectionError',
    'SftpStatus',
    'SftpSyncError',
    'SyncTableError',
    'SyncReporter',
    'SyncSummary',
    'SftpSync',
]
