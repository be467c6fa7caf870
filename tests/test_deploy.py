"""Tests for the blocking deploy() entry point."""

import io
from unittest.mock import patch

import pytest
from rich.console import Console

from sftpsync.config import SyncOptions
from sftpsync.deploy import deploy
from sftpsync.errors import ConfigurationError
from sftpsync.reporter import SYNC_THEME

from .conftest import write_file


class TestDeploy:
    """Tests for deploy() wiring the session, orchestrator and reporter together."""

    def test_deploy_runs_full_sync(self, local_root, remote_root, ssh_manager) -> None:
        write_file(local_root / 'index.html', '<html>')
        write_file(remote_root / 'stale.txt')
        output = io.StringIO()

        with patch("sftpsync.deploy.SSHManager", return_value=ssh_manager):
            summary = deploy({'host': 'example.org'}, str(local_root), '/site/',
                             SyncOptions(concurrency=4), Console(file=output, width=200, theme=SYNC_THEME))

        assert (remote_root / 'index.html').read_text() == '<html>'
        assert not (remote_root / 'stale.txt').exists()
        assert summary.uploaded_files == 1
        assert summary.removed_files == 1
        text = output.getvalue()
        assert "* Deploying to host example.org" in text
        assert "* remote dir = /site" in text
        assert not ssh_manager.connected

    def test_missing_host(self, local_root) -> None:
        with pytest.raises(ConfigurationError):
            deploy({}, str(local_root), '/site')
