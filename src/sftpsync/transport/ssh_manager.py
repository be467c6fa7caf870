import os
import getpass
import logging
import socket
from typing import Optional, Dict, Any

import paramiko

from ..errors import ConfigurationError, RemoteConnectionError
from .credentials import CredentialManager

logger = logging.getLogger(__name__)

# Key classes tried in order when loading a private key file
KEY_CLASSES = (paramiko.Ed25519Key, paramiko.RSAKey, paramiko.ECDSAKey)


def load_private_key(key_file: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    """Loads a private key, trying each supported key type in turn.

    Raises:
        ConfigurationError: If the file is missing, unreadable or not a supported key.
    """
    if not os.path.exists(key_file):
        raise ConfigurationError(f"SSH key file not found: {key_file}")

    last_error: Optional[Exception] = None
    for key_class in KEY_CLASSES:
        try:
            private_key = key_class.from_private_key_file(key_file, password=passphrase)
            logger.debug(f"Loaded {key_class.__name__} from {key_file}")
            return private_key
        except paramiko.PasswordRequiredException as e:
            raise ConfigurationError(f"SSH key {key_file} is encrypted and no passphrase was given") from e
        except paramiko.SSHException as e:
            last_error = e # Wrong key type, try the next one
        except OSError as e:
            raise ConfigurationError(f"Cannot read SSH key file {key_file}: {e}") from e

    raise ConfigurationError(f"Failed to load private key ({key_file}): {last_error}")


class SSHManager:
    """Manages the SSH connection underneath an SFTP session"""

    def __init__(self, ssh_config: Dict[str, Any], credential_manager: Optional[CredentialManager] = None):
        """Initialize SSH connection parameters from a configuration dictionary.

        Args:
            ssh_config: A dictionary containing SSH configuration details like
                        'host', 'port', 'username', 'auth_method', 'ssh_key',
                        'passphrase', 'password', 'known_hosts', 'strict_host_keys',
                        'credential_system' and 'timeout'.
            credential_manager: Keyring access used for password authentication
                        when no password is configured.

        Raises:
            ConfigurationError: If essential configuration keys ('host') are missing.
        """
        self.ssh_config = ssh_config
        self.connection: Optional[paramiko.SSHClient] = None

        self.host: Optional[str] = ssh_config.get('host')
        if not self.host:
            logger.error("SSH configuration dictionary is missing the 'host' key.")
            raise ConfigurationError("SSH configuration must include a 'host'.")

        # Use provided username or fallback to current system user
        self.username: str = ssh_config.get('username') or getpass.getuser()
        self.port: int = int(ssh_config.get('port') or 22)
        self.timeout: float = float(ssh_config.get('timeout') or 10)

        # Authentication details
        self.auth_method: str = (ssh_config.get('auth_method') or 'key').lower()
        self.key_file: Optional[str] = ssh_config.get('ssh_key')
        self.passphrase: Optional[str] = ssh_config.get('passphrase')
        self.password: Optional[str] = ssh_config.get('password')
        self.credentials = credential_manager or CredentialManager(ssh_config.get('credential_system'))

        # Host key checking
        self.known_hosts_file: Optional[str] = ssh_config.get('known_hosts')
        self.strict_host_keys: bool = bool(ssh_config.get('strict_host_keys', False))

        logger.debug(f"SSHManager initialized for host={self.host}, user={self.username}, port={self.port}, auth={self.auth_method}")
        if self.auth_method == 'key' and not self.key_file:
            logger.warning("SSH auth method is 'key', but 'ssh_key' path is missing in config.")

    def _build_connect_args(self) -> Dict[str, Any]:
        """Assembles paramiko connect() arguments for the configured auth method.

        Raises:
            ConfigurationError: If the key cannot be loaded or no password is available.
        """
        connect_args: Dict[str, Any] = {
            'hostname': self.host,
            'port': self.port,
            'username': self.username,
            'timeout': self.timeout,
        }

        if self.auth_method == 'key':
            if not self.key_file:
                raise ConfigurationError("SSH auth method is 'key' but no key file is configured.")
            connect_args['pkey'] = load_private_key(self.key_file, self.passphrase)
            connect_args['look_for_keys'] = False
            connect_args['allow_agent'] = False

        elif self.auth_method == 'password':
            password = self.password or self.credentials.get_password(self.username)
            if not password:
                raise ConfigurationError(
                    f"Password authentication selected, but no password is configured or stored for '{self.username}'.")
            connect_args['password'] = password
            connect_args['look_for_keys'] = False # Don't waste time looking for keys
            connect_args['allow_agent'] = False # Don't use SSH agent if using password

        elif self.auth_method == 'agent':
            connect_args['allow_agent'] = True
            connect_args['look_for_keys'] = True

        else:
            raise ConfigurationError(f"Unsupported authentication method: {self.auth_method}")

        return connect_args

    def connect(self) -> bool:
        """Establish SSH connection using configured authentication method.

        Returns:
            bool: True once the connection is up.

        Raises:
            ConfigurationError: If the credentials cannot be prepared.
            RemoteConnectionError: If the handshake or authentication fails.
        """
        if self.connection and self.is_connected:
            logger.debug("SSH connection already established.")
            return True

        connect_args = self._build_connect_args()
        client = paramiko.SSHClient()

        if self.known_hosts_file and os.path.exists(self.known_hosts_file):
            client.load_host_keys(self.known_hosts_file)
            logger.debug(f"Loaded known host keys from {self.known_hosts_file}")
        else:
            client.load_system_host_keys()
            logger.debug("Loaded default system host keys.")

        if self.strict_host_keys:
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        logger.info(f"Attempting SSH connection to {self.host}:{self.port} as {self.username} using {self.auth_method} auth...")
        try:
            client.connect(**connect_args)
        except paramiko.AuthenticationException as auth_err:
            client.close()
            logger.error(f"SSH authentication failed: {auth_err}")
            raise RemoteConnectionError(f"Authentication failed for {self.username}@{self.host}: {auth_err}") from auth_err
        except (paramiko.SSHException, socket.error, EOFError) as e:
            client.close()
            logger.error(f"SSH connection failed: {type(e).__name__}: {e}")
            raise RemoteConnectionError(f"Cannot connect to {self.host}:{self.port}: {e}") from e

        self.connection = client
        logger.info("SSH connection established successfully.")
        return True

    def open_sftp(self) -> paramiko.SFTPClient:
        """Open the SFTP sub-channel on the established connection.

        Raises:
            RemoteConnectionError: If there is no active connection or the channel is refused.
        """
        if not self.connection or not self.is_connected:
            raise RemoteConnectionError("SSH connection not established or active.")
        try:
            sftp = self.connection.open_sftp()
        except (paramiko.SSHException, EOFError, socket.error) as e:
            logger.error(f"Failed to open SFTP channel on {self.host}: {e}")
            raise RemoteConnectionError(f"Cannot open SFTP channel on {self.host}: {e}") from e
        logger.debug(f"SFTP channel opened on {self.host}")
        return sftp

    def disconnect(self):
        """Close the SSH connection."""
        if self.connection:
            logger.info("Closing SSH connection.")
            try:
                self.connection.close()
            finally:
                self.connection = None
        else:
            logger.debug("No active SSH connection to disconnect.")

    @property
    def is_connected(self) -> bool:
        """Check if the SSH connection is active."""
        if not self.connection:
            return False
        transport = self.connection.get_transport()
        return transport is not None and transport.is_active()

    # Context manager support
    def __enter__(self):
        """Enter context manager, establish connection."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager, close connection."""
        self.disconnect()
