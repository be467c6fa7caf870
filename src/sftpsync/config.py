import os
import configparser
import enum
import getpass
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional, List, Union

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Define allowed values for configuration options
ALLOWED_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
ALLOWED_AUTH_METHODS = ['key', 'password', 'agent']
ALLOWED_EXCLUDE_MODES = ['remove', 'ignore']

# Keys holding filesystem paths, expanded with ~ on read
PATH_KEYS = {
    'REMOTE': ['ssh_key', 'known_hosts'],
    'SYNC': ['local_dir'],
}
BOOLEAN_KEYS = {
    'REMOTE': ['strict_host_keys'],
    'SYNC': ['force_upload', 'remove_extra_files', 'dry_run'],
}
SECRET_KEYS = ['password', 'passphrase']


class ExcludeMode(str, enum.Enum):
    """What happens to remote entries whose local counterpart is excluded."""
    REMOVE = 'remove'
    IGNORE = 'ignore'


def _parse_boolean(value: Union[str, bool]) -> bool:
    """Lenient boolean parsing shared by the INI converter and option coercion."""
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ('true', 'yes', '1', 'on'):
        return True
    if lowered in ('false', 'no', '0', 'off', ''):
        return False
    raise ValueError(f"Not a boolean value: '{value}'")


def split_patterns(raw: Union[str, List[str], None]) -> List[str]:
    """Splits a comma or newline separated pattern list, dropping blanks."""
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = raw.replace('\n', ',').split(',')
    return [p.strip() for p in raw if p and p.strip()]


@dataclass
class SyncOptions:
    """Options consumed by the sync engine.

    Attributes:
        exclude: Glob patterns matched against root-relative paths.
        exclude_mode: Whether excluded entries are removed remotely or left alone.
        force_upload: Upload files even when the remote copy is as new as the local one.
        remove_extra_files: Remove remote entries with no local counterpart.
        concurrency: Maximum remote operations admitted to the gate at once, None for no limit.
        dry_run: Derive and report tasks without changing anything.
    """
    exclude: List[str] = field(default_factory=list)
    exclude_mode: ExcludeMode = ExcludeMode.REMOVE
    force_upload: bool = False
    remove_extra_files: bool = True
    concurrency: Optional[int] = None
    dry_run: bool = False

    def __post_init__(self):
        self.exclude = split_patterns(self.exclude)
        try:
            self.exclude_mode = ExcludeMode(self.exclude_mode)
        except ValueError:
            raise ConfigurationError(
                f"Invalid exclude_mode '{self.exclude_mode}'. Allowed: {', '.join(ALLOWED_EXCLUDE_MODES)}")
        try:
            self.force_upload = _parse_boolean(self.force_upload)
            self.remove_extra_files = _parse_boolean(self.remove_extra_files)
            self.dry_run = _parse_boolean(self.dry_run)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        if self.concurrency is not None:
            if isinstance(self.concurrency, bool):
                raise ConfigurationError("concurrency must be a positive integer")
            try:
                concurrency = int(self.concurrency)
            except (TypeError, ValueError):
                raise ConfigurationError(f"concurrency must be a positive integer, got '{self.concurrency}'")
            if concurrency < 1:
                raise ConfigurationError(f"concurrency must be a positive integer, got {concurrency}")
            self.concurrency = concurrency


class SftpSyncConfig:
    """INI-file backed configuration for connections and sync defaults"""

    DEFAULT_CONFIG = {
        'DEFAULT': {
            'log_level': 'INFO',
        },
        'REMOTE': {
            'host': '',
            'port': '22',
            'username': '',
            'auth_method': 'key',
            'ssh_key': '~/.ssh/id_rsa',
            'passphrase': '',
            'password': '', # Prefer the keyring, see 'sftpsync credentials set'
            'known_hosts': '~/.ssh/known_hosts',
            'strict_host_keys': 'False',
            'credential_system': 'sftpsync',
            'remote_dir': '',
            'timeout': '10',
        },
        'SYNC': {
            'local_dir': '',
            'exclude': '',
            'exclude_mode': 'remove',
            'force_upload': 'False',
            'remove_extra_files': 'True',
            'concurrency': '', # Empty means unbounded
            'dry_run': 'False',
        },
    }

    def __init__(self, config_path_override: Optional[str] = None):
        self.config = configparser.ConfigParser(
            defaults=self.DEFAULT_CONFIG['DEFAULT'],
            inline_comment_prefixes=('#', ';'),
            interpolation=None,
            converters={'boolean': _parse_boolean}
        )
        self.config_path = self._get_config_path(config_path_override)
        self._load_config()

    def _get_config_path(self, config_path_override: Optional[str] = None) -> Path:
        """Determines the configuration file path, prioritizing override, then env var, then default."""
        if config_path_override:
            path = Path(config_path_override).expanduser()
            logger.debug(f"Using specified config path: {path}")
            return path
        elif 'SFTPSYNC_CONFIG_PATH' in os.environ:
            path = Path(os.environ['SFTPSYNC_CONFIG_PATH']).expanduser()
            logger.debug(f"Using config path from SFTPSYNC_CONFIG_PATH: {path}")
            return path
        else:
            default_path = Path.home() / ".config" / "sftpsync" / "sftpsync.cfg"
            logger.debug(f"Using default config path: {default_path}")
            return default_path

    def _load_config(self):
        """Loads the config file over the defaults; a missing file leaves the defaults in place."""
        self._apply_defaults()
        if self.config_path.exists():
            logger.info(f"Loading configuration from: {self.config_path}")
            try:
                self.config.read(self.config_path)
            except configparser.Error as e:
                raise ConfigurationError(f"Cannot parse configuration file {self.config_path}: {e}") from e
        else:
            logger.debug(f"Configuration file not found at {self.config_path}. Using defaults.")

    def _apply_defaults(self):
        """Populates every non-DEFAULT section with its default keys."""
        for section, defaults in self.DEFAULT_CONFIG.items():
            if section == 'DEFAULT':
                continue # Handled by the parser's own defaults
            if not self.config.has_section(section):
                self.config.add_section(section)
            for key, value in defaults.items():
                self.config.set(section, key, str(value))

    def save_config(self):
        """Save the current configuration to file"""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w') as configfile:
            self.config.write(configfile)
        logger.debug(f"Configuration saved to {self.config_path}")

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get a configuration value, expanding ~ in path-valued keys."""
        section = section.upper()
        if section != 'DEFAULT' and not self.config.has_section(section):
            logger.warning(f"Config section [{section}] not found.")
            return default

        if section == 'DEFAULT':
            value = self.config.defaults().get(key, default)
        else:
            value = self.config.get(section, key, fallback=default)

        if value and isinstance(value, str) and key in PATH_KEYS.get(section, []):
            expanded_value = str(Path(value).expanduser())
            if expanded_value != value:
                logger.debug(f"Expanded path for [{section}].{key}: '{value}' -> '{expanded_value}'")
            return expanded_value

        return value

    def getboolean(self, section: str, key: str, default: bool = False) -> bool:
        """Get a boolean configuration value."""
        try:
            return self.config.getboolean(section.upper(), key, fallback=default)
        except ValueError as e:
            raise ConfigurationError(f"Invalid boolean for [{section.upper()}].{key}: {e}") from e

    def set(self, section: str, key: str, value: Any):
        """Set a configuration value and save.

        Raises:
            ConfigurationError: If the value fails validation.
        """
        section = section.upper()
        key = key.lower()
        if section == 'DEFAULT':
            if key != 'log_level':
                raise ConfigurationError("Only log_level can be set in the [DEFAULT] section.")
        elif section not in self.DEFAULT_CONFIG:
            raise ConfigurationError(
                f"Unknown config section [{section}]. Known: {', '.join(s for s in self.DEFAULT_CONFIG if s != 'DEFAULT')}")

        str_value = str(value)
        validation_error = self._validate(section, key, str_value)
        if validation_error:
            logger.error(f"Config set validation failed for [{section}].{key}: {validation_error}")
            raise ConfigurationError(validation_error)

        if section == 'DEFAULT':
            self.config.defaults()[key] = str_value
        else:
            self.config[section][key] = str_value
        shown = '******' if key in SECRET_KEYS else str_value
        logger.info(f"Config set [{section}].{key} = {shown}")
        self.save_config()

    def _validate(self, section: str, key: str, str_value: str) -> Optional[str]:
        """Returns an error message for an invalid value, None if it is acceptable."""
        if section == 'DEFAULT' and key == 'log_level' and str_value.upper() not in ALLOWED_LOG_LEVELS:
            return f"Invalid log_level '{str_value}'. Allowed: {', '.join(ALLOWED_LOG_LEVELS)}"
        if key in BOOLEAN_KEYS.get(section, []):
            try:
                _parse_boolean(str_value)
            except ValueError:
                return f"Invalid boolean value for {key}: '{str_value}'. Use true/false, yes/no, 1/0."
        if section == 'REMOTE':
            if key == 'auth_method' and str_value not in ALLOWED_AUTH_METHODS:
                return f"Invalid auth_method '{str_value}'. Allowed: {', '.join(ALLOWED_AUTH_METHODS)}"
            if key in ('port', 'timeout') and not str_value.isdigit():
                return f"Invalid {key} '{str_value}'. Must be a positive integer."
        elif section == 'SYNC':
            if key == 'exclude_mode' and str_value not in ALLOWED_EXCLUDE_MODES:
                return f"Invalid exclude_mode '{str_value}'. Allowed: {', '.join(ALLOWED_EXCLUDE_MODES)}"
            if key == 'concurrency' and str_value and (not str_value.isdigit() or int(str_value) < 1):
                return f"Invalid concurrency '{str_value}'. Must be a positive integer or empty."
        return None

    def get_log_level(self) -> str:
        """Gets the configured log level, falling back to INFO when invalid."""
        level = str(self.get('DEFAULT', 'log_level', 'INFO')).upper()
        if level not in ALLOWED_LOG_LEVELS:
            logger.warning(f"Invalid log level '{level}' in config. Falling back to INFO.")
            level = 'INFO'
        return level

    def get_ssh_config(self) -> Dict[str, Any]:
        """Get connection settings from the [REMOTE] section, as consumed by SSHManager."""
        section_name = 'REMOTE'
        ssh_settings: Dict[str, Any] = {}
        ssh_settings['host'] = self.get(section_name, 'host', '')
        ssh_settings['port'] = int(self.get(section_name, 'port', '22') or 22)
        ssh_settings['username'] = self.get(section_name, 'username', '') or getpass.getuser()
        ssh_settings['auth_method'] = (self.get(section_name, 'auth_method', 'key') or 'key').lower()
        ssh_settings['known_hosts'] = self.get(section_name, 'known_hosts', '')
        ssh_settings['strict_host_keys'] = self.getboolean(section_name, 'strict_host_keys', False)
        ssh_settings['credential_system'] = self.get(section_name, 'credential_system', 'sftpsync')
        ssh_settings['timeout'] = int(self.get(section_name, 'timeout', '10') or 10)
        ssh_settings['password'] = self.get(section_name, 'password', '') or None
        ssh_settings['passphrase'] = self.get(section_name, 'passphrase', '') or None

        if ssh_settings['auth_method'] == 'key':
            ssh_settings['ssh_key'] = self.get(section_name, 'ssh_key', '') or None
        else:
            ssh_settings['ssh_key'] = None

        logger.debug(f"Retrieved SSH config from [{section_name}] for host '{ssh_settings['host']}'")
        return ssh_settings

    def get_sync_options(self) -> SyncOptions:
        """Builds SyncOptions from the [SYNC] section.

        Raises:
            ConfigurationError: If a value is invalid.
        """
        section_name = 'SYNC'
        concurrency = self.get(section_name, 'concurrency', '')
        return SyncOptions(
            exclude=split_patterns(self.get(section_name, 'exclude', '')),
            exclude_mode=self.get(section_name, 'exclude_mode', 'remove'),
            force_upload=self.getboolean(section_name, 'force_upload', False),
            remove_extra_files=self.getboolean(section_name, 'remove_extra_files', True),
            concurrency=concurrency if concurrency else None,
            dry_run=self.getboolean(section_name, 'dry_run', False),
        )

    def get_section(self, section_name: str) -> Optional[Dict[str, str]]:
        """Get all key-value pairs for a section, secrets masked."""
        section_name = section_name.upper()
        if section_name == 'DEFAULT':
            return {k: str(v) for k, v in self.config.defaults().items()}
        if not self.config.has_section(section_name):
            logger.warning(f"Configuration section [{section_name}] not found.")
            return None
        section_dict = {}
        for key in self.config[section_name]:
            if key in self.config.defaults():
                continue # Shown under [DEFAULT]
            value = self.get(section_name, key, '')
            section_dict[key] = '******' if key in SECRET_KEYS and value else str(value)
        return section_dict

    def get_all_config(self) -> Dict[str, Dict[str, str]]:
        """Get all configuration sections and their key-value pairs."""
        all_config_dict = {'DEFAULT': self.get_section('DEFAULT') or {}}
        for section_name in self.config.sections():
            section_data = self.get_section(section_name)
            if section_data is not None:
                all_config_dict[section_name] = section_data
        return all_config_dict
