import dataclasses
import json
import logging
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from ..config import ALLOWED_EXCLUDE_MODES, ALLOWED_LOG_LEVELS, SftpSyncConfig
from ..deploy import deploy as run_deploy
from ..errors import ConfigurationError, SftpSyncError
from ..reporter import SYNC_THEME, render_summary
from ..transport.credentials import CredentialManager

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# --- Rich Console for CLI output ---
console = Console(theme=SYNC_THEME, highlight=False)


def configure_logging(level: str):
    """Applies the log level, installing a basic handler if none is attached yet."""
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


def _fail(ctx: click.Context, message: str) -> NoReturn:
    console.print(f"[error]Error:[/error] {escape(message)}")
    ctx.exit(1)


# --- Click CLI Definition ---

@click.group()
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), default=None,
              help="Configuration file (default: $SFTPSYNC_CONFIG_PATH or ~/.config/sftpsync/sftpsync.cfg).")
@click.option('--log-level', type=click.Choice(ALLOWED_LOG_LEVELS, case_sensitive=False), default=None,
              help="Override the configured log level.")
@click.pass_context
def cli(ctx, config_path: Optional[str], log_level: Optional[str]):
    """sftpsync: mirror a local directory onto a remote host over SFTP."""
    try:
        config = SftpSyncConfig(config_path)
    except ConfigurationError as e:
        _fail(ctx, str(e))
    configure_logging((log_level or config.get_log_level()).upper())
    ctx.obj = config


@cli.command()
@click.argument('local_dir', required=False)
@click.argument('remote_dir', required=False)
@click.option('--host', help="Remote host (overrides [REMOTE] host).")
@click.option('--port', type=click.IntRange(1, 65535), default=None, help="SSH port.")
@click.option('--user', 'username', help="Remote username.")
@click.option('--key', 'ssh_key', type=click.Path(dir_okay=False), default=None,
              help="Private key file; implies key authentication.")
@click.option('--password-auth', is_flag=True, help="Authenticate with a password (config or keyring).")
@click.option('--exclude', multiple=True, help="Glob pattern to exclude, relative to LOCAL_DIR. Repeatable.")
@click.option('--exclude-mode', type=click.Choice(ALLOWED_EXCLUDE_MODES), default=None,
              help="'remove' deletes excluded entries remotely, 'ignore' leaves them alone.")
@click.option('--force-upload', is_flag=True, help="Upload files even if the remote copy is newer.")
@click.option('--remove-extra/--keep-extra', 'remove_extra_files', default=None,
              help="Remove remote entries with no local counterpart.")
@click.option('--concurrency', type=click.IntRange(min=1), default=None,
              help="Maximum number of concurrent remote operations.")
@click.option('--dry-run', is_flag=True, help="Show what would be done without changing anything.")
@click.pass_context
def deploy(ctx, local_dir, remote_dir, host, port, username, ssh_key, password_auth, exclude,
           exclude_mode, force_upload, remove_extra_files, concurrency, dry_run):
    """Synchronize LOCAL_DIR onto REMOTE_DIR on the remote host."""
    config: SftpSyncConfig = ctx.obj

    try:
        ssh_config = config.get_ssh_config()
        if host:
            ssh_config['host'] = host
        if port:
            ssh_config['port'] = port
        if username:
            ssh_config['username'] = username
        if ssh_key:
            ssh_config['auth_method'] = 'key'
            ssh_config['ssh_key'] = ssh_key
        if password_auth:
            ssh_config['auth_method'] = 'password'
            ssh_config['ssh_key'] = None

        local_dir = local_dir or config.get('SYNC', 'local_dir')
        remote_dir = remote_dir or config.get('REMOTE', 'remote_dir')
        if not local_dir:
            raise ConfigurationError("No local directory given (argument or [SYNC] local_dir).")
        if not remote_dir:
            raise ConfigurationError("No remote directory given (argument or [REMOTE] remote_dir).")

        options = config.get_sync_options()
        overrides = {}
        if exclude:
            overrides['exclude'] = options.exclude + list(exclude)
        if exclude_mode:
            overrides['exclude_mode'] = exclude_mode
        if force_upload:
            overrides['force_upload'] = True
        if remove_extra_files is not None:
            overrides['remove_extra_files'] = remove_extra_files
        if concurrency:
            overrides['concurrency'] = concurrency
        if dry_run:
            overrides['dry_run'] = True
        options = dataclasses.replace(options, **overrides)

        summary = run_deploy(ssh_config, local_dir, remote_dir, options, console)
    except SftpSyncError as e:
        logger.debug("Deploy failed", exc_info=True)
        _fail(ctx, str(e))

    console.print()
    console.print(render_summary(summary))


# --- Config subcommands ---

@cli.group('config')
def config_group():
    """Show or change the configuration file."""
    pass


@config_group.command('show')
@click.argument('section', required=False)
@click.pass_context
def config_show(ctx, section: Optional[str]):
    """Show one configuration section, or all of them."""
    config: SftpSyncConfig = ctx.obj
    if section is None or section.lower() == 'all':
        data = config.get_all_config()
        title = f"Configuration ({config.config_path})"
    else:
        data = config.get_section(section)
        if data is None:
            _fail(ctx, f"Unknown configuration section [{section.upper()}].")
        title = f"[{section.upper()}]"
    console.print(Panel(Text(json.dumps(data, indent=2)), title=Text(title), border_style="cyan"))


@config_group.command('set')
@click.argument('section')
@click.argument('key')
@click.argument('value')
@click.pass_context
def config_set(ctx, section: str, key: str, value: str):
    """Set SECTION.KEY to VALUE and save the configuration file."""
    config: SftpSyncConfig = ctx.obj
    try:
        config.set(section, key, value)
    except ConfigurationError as e:
        _fail(ctx, str(e))
    click.echo(f"Config '{section.upper()}.{key.lower()}' saved to {config.config_path}.")


# --- Credential subcommands ---

@cli.group('credentials')
def credentials_group():
    """Manage SFTP passwords stored in the system keyring."""
    pass


def _credential_manager(config: SftpSyncConfig) -> CredentialManager:
    return CredentialManager(config.get('REMOTE', 'credential_system', None))


@credentials_group.command('set')
@click.argument('username')
@click.password_option('--password', prompt="Password", help="Password to store (prompted if omitted).")
@click.pass_context
def credentials_set(ctx, username: str, password: str):
    """Store the password for USERNAME in the keyring."""
    manager = _credential_manager(ctx.obj)
    manager.store_credentials(username, password)
    click.echo(f"Password for '{username}' stored under '{manager.system_name}'.")


@credentials_group.command('check')
@click.argument('username')
@click.pass_context
def credentials_check(ctx, username: str):
    """Check whether a password is stored for USERNAME."""
    manager = _credential_manager(ctx.obj)
    if manager.get_password(username):
        click.echo(f"A password is stored for '{username}' under '{manager.system_name}'.")
    else:
        click.echo(f"No password stored for '{username}' under '{manager.system_name}'.")
        ctx.exit(1)


if __name__ == '__main__':
    cli()
