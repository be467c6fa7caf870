import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIAL_SYSTEM = 'sftpsync'


class CredentialManager:
    """Manages secure storage and retrieval of SFTP passwords"""

    def __init__(self, system_name: Optional[str] = None):
        """Initialize credential manager for a specific system

        Args:
            system_name: Name to use for credential storage
        """
        self.system_name = system_name or DEFAULT_CREDENTIAL_SYSTEM

    def store_credentials(self, username: str, password: str):
        """Store credentials securely

        Args:
            username: Remote username
            password: Remote password
        """
        keyring.set_password(self.system_name, username, password)
        logger.info(f"Stored password for '{username}' in keyring service '{self.system_name}'")

    def get_password(self, username: str) -> Optional[str]:
        """Retrieve stored password

        Args:
            username: Remote username

        Returns:
            str: Stored password if found, None otherwise
        """
        try:
            return keyring.get_password(self.system_name, username)
        except KeyringError as e:
            logger.warning(f"Keyring lookup failed for '{username}' ({self.system_name}): {e}")
            return None
