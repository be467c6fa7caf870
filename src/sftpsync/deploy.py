import asyncio
import logging
from typing import Any, Dict, Optional

from rich.console import Console

from .config import SyncOptions
from .reporter import SYNC_THEME, SyncReporter, SyncSummary
from .sync.orchestrator import SftpSync
from .transport.credentials import CredentialManager
from .transport.session import SessionManager
from .transport.ssh_manager import SSHManager

logger = logging.getLogger(__name__)


def deploy(ssh_config: Dict[str, Any], local_dir: str, remote_dir: str,
           options: Optional[SyncOptions] = None, console: Optional[Console] = None,
           credential_manager: Optional[CredentialManager] = None) -> SyncSummary:
    """Synchronizes a local directory onto a remote host in one blocking call.

    Args:
        ssh_config: Connection settings as returned by ``SftpSyncConfig.get_ssh_config()``.
        local_dir: Local directory to upload from.
        remote_dir: Remote directory to mirror into.
        options: Sync behavior; defaults to ``SyncOptions()``.
        console: Console for progress output.
        credential_manager: Keyring access for password authentication.

    Returns:
        SyncSummary: What was uploaded, removed and skipped.

    Raises:
        ConfigurationError: If the connection settings or options are invalid.
        LocalAccessError: If a local directory cannot be read.
        RemoteConnectionError: If the SSH session cannot be established or drops.
        RemoteAccessError: If a remote operation fails fatally.
    """
    options = options or SyncOptions()
    console = console or Console(theme=SYNC_THEME, highlight=False)
    reporter = SyncReporter(console)

    ssh_manager = SSHManager(ssh_config, credential_manager)
    session = SessionManager(ssh_manager, options.concurrency)
    syncer = SftpSync(local_dir, remote_dir, options, session, reporter)

    reporter.header(ssh_manager.host, syncer.local_root, syncer.remote_root)
    logger.info(f"Deploying {syncer.local_root} to {ssh_manager.host}:{syncer.remote_root}")
    return asyncio.run(syncer.sync())
