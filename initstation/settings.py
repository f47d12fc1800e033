"""Application-wide settings and configuration loading."""

import os
import shutil
import subprocess
from dataclasses import dataclass, replace, asdict

import yaml
from dotenv import load_dotenv

from initstation.errors import ConfigError

VERSION = "1.01.00"

# --- Environment Configuration ---
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))

# Optional .env file with INITSTATION_* overrides
ENV_PATH = os.path.join(BASE_DIR, ".env")

# Default YAML configuration file
DEFAULT_CONFIG_PATH = os.path.join(BASE_DIR, "config", "initstation.yaml")

# --- ILS layout defaults ---
UNICORN_LOCKS_DIR = os.path.join(os.path.expanduser("~"), "Unicorn", "Locks")
STATION_LOCKS_DIR = os.path.join(UNICORN_LOCKS_DIR, "Stations")
LEDGER_DIR = os.path.join(UNICORN_LOCKS_DIR, "Users")
ADMIN_FILE_NAME = "admin"

# --- Logging Configuration ---
LOG_DIR = os.path.join(BASE_DIR, 'logs')
LOG_FILE = "initstation.log"
MAX_LOG_LINES = 10000

# Maps environment variables to Settings fields
ENV_OVERRIDES = {
    "INITSTATION_ADMIN_FILE": "admin_file",
    "INITSTATION_STATION_LOCKS_DIR": "station_locks_dir",
    "INITSTATION_SESSION_DIR": "session_dir",
    "INITSTATION_LEDGER_DIR": "ledger_dir",
    "INITSTATION_LOG_DIR": "log_dir",
    "INITSTATION_DECODE_COMMAND": "decode_command",
    "INITSTATION_ENCODE_COMMAND": "encode_command",
    "ENV_MODE": "env_mode",
}


@dataclass(frozen=True)
class Settings:
    """Immutable run configuration handed to the reconciliation engine."""
    admin_file: str = None
    station_locks_dir: str = STATION_LOCKS_DIR
    session_dir: str = None
    ledger_dir: str = LEDGER_DIR
    log_dir: str = LOG_DIR
    log_file: str = LOG_FILE
    caller_log: str = None
    max_log_lines: int = MAX_LOG_LINES
    max_station_id_length: int = 4
    station_record_type: str = "STAT"
    decrement_on_unknown_pid: bool = True
    decode_command: tuple = None
    encode_command: tuple = None
    env_mode: str = "production"
    debug: bool = False

    @property
    def effective_session_dir(self):
        """Session-ID artifacts live beside the Stations directory unless configured."""
        if self.session_dir:
            return self.session_dir
        return os.path.dirname(os.path.normpath(self.station_locks_dir))

    @property
    def log_path(self):
        if os.path.isabs(self.log_file):
            return self.log_file
        return os.path.join(self.log_dir, self.log_file)

    def with_overrides(self, **overrides):
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    def as_dict(self):
        data = asdict(self)
        data["session_dir"] = self.effective_session_dir
        return data


def _split_command(value):
    if value is None:
        return None
    if isinstance(value, str):
        return tuple(value.split())
    return tuple(str(part) for part in value)


def load_yaml_config(config_path):
    """Load a YAML config file. A missing default file is not an error."""
    if not config_path or not os.path.exists(config_path):
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not load config file {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")
    return data


def find_ils_config_dir():
    """Ask the ILS where its config directory is (`getpathname config`)."""
    getpathname = shutil.which("getpathname")
    if not getpathname:
        return None
    try:
        result = subprocess.run([getpathname, "config"], capture_output=True, text=True, check=True, timeout=30)
    except (OSError, subprocess.SubprocessError):
        return None
    path = result.stdout.strip()
    return path or None


def load_settings(config_path=None, env_path=ENV_PATH, environ=None, **overrides):
    """
    Build Settings from defaults, the YAML config, the environment and overrides.

    Later sources win: defaults < YAML file < environment < keyword overrides.
    :param config_path: YAML file to read; the bundled default is used when None.
    :param env_path: .env file loaded into the environment first.
    :param environ: mapping to read INITSTATION_* variables from (os.environ by default).
    :return: a frozen Settings instance.
    """
    if env_path and os.path.exists(env_path):
        load_dotenv(env_path)
    if environ is None:
        environ = os.environ

    explicit_config = config_path is not None
    config_path = config_path or environ.get("INITSTATION_CONFIG") or DEFAULT_CONFIG_PATH
    if explicit_config and not os.path.exists(config_path):
        raise ConfigError(f"Config file not found: {config_path}")
    config = load_yaml_config(config_path)

    values = {}
    identity = config.pop("identity", None) or {}
    for key in ("decode_command", "encode_command"):
        if identity.get(key) is not None:
            values[key] = identity[key]

    known = set(Settings.__dataclass_fields__)
    for key, value in config.items():
        if key not in known:
            raise ConfigError(f"Unknown setting '{key}' in {config_path}")
        values[key] = value

    for env_name, key in ENV_OVERRIDES.items():
        if environ.get(env_name):
            values[key] = environ[env_name]

    values.update({k: v for k, v in overrides.items() if v is not None})

    for key in ("decode_command", "encode_command"):
        values[key] = _split_command(values.get(key))
    for key in ("station_locks_dir", "session_dir", "ledger_dir", "log_dir", "admin_file", "caller_log"):
        if values.get(key):
            values[key] = os.path.expanduser(values[key])

    if not values.get("admin_file"):
        ils_config_dir = find_ils_config_dir()
        if ils_config_dir:
            values["admin_file"] = os.path.join(ils_config_dir, ADMIN_FILE_NAME)

    try:
        return Settings(**values)
    except TypeError as e:
        raise ConfigError(f"Invalid settings: {e}") from e
