"""Tests for keyring-backed credential storage."""

from unittest.mock import patch

from keyring.errors import KeyringError

from sftpsync.transport.credentials import CredentialManager


class TestCredentialManager:
    """Tests for storing and reading passwords."""

    @patch("sftpsync.transport.credentials.keyring")
    def test_store_and_get(self, mock_keyring) -> None:
        manager = CredentialManager('deploy-box')
        manager.store_credentials('deploy', 'pw')
        mock_keyring.set_password.assert_called_once_with('deploy-box', 'deploy', 'pw')

        mock_keyring.get_password.return_value = 'pw'
        assert manager.get_password('deploy') == 'pw'

    def test_default_system_name(self) -> None:
        assert CredentialManager().system_name == 'sftpsync'

    @patch("sftpsync.transport.credentials.keyring.get_password", side_effect=KeyringError("locked"))
    def test_keyring_failure_returns_none(self, _mock_get) -> None:
        assert CredentialManager().get_password('deploy') is None
