"""Transport layer for reaching the remote tree over SFTP.

This package provides functionality for:
- SSH connection management (paramiko)
- Secure credential management (keyring)
- The concurrency-bounded gate every remote SFTP call goes through
- The session manager that lazily connects and tears down the session
"""
from .credentials import CredentialManager
from .gate import RemoteEntry, RemoteOperationGate
from .session import SessionManager, SessionState
from .ssh_manager import SSHManager, load_private_key

__all__ = [
    'CredentialManager',
    'RemoteEntry',
    'RemoteOperationGate',
    'SessionManager',
    'SessionState',
    'SSHManager',
    'load_private_key',
]
