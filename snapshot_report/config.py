"""Settings from a YAML config file, a .env file and the environment."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .errors import InvalidInputError
from .odiff import DEFAULT_ODIFF_BINARY

logger = logging.getLogger(__name__)

DEFAULT_FORMATS = ["json", "junit", "html"]
DEFAULT_OUTPUT_DIR = "snapshot-report-output"
DEFAULT_CONFIG_FILENAME = ".snapshot-report.yml"

CONFIG_ENV_VAR = "SNAPSHOT_REPORT_CONFIG"

# Environment variable -> settings key
ENV_KEYS = {
    "SNAPSHOT_REPORT_OUTPUT_DIR": "output",
    "SNAPSHOT_REPORT_FORMATS": "formats",
    "SNAPSHOT_REPORT_HTML_TEMPLATE": "html_template",
    "SNAPSHOT_REPORT_NAME": "name",
    "SNAPSHOT_REPORT_JOBS": "jobs",
    "SNAPSHOT_REPORT_ODIFF": "odiff",
}

_FALSE_VALUES = {"", "0", "false", "no", "off"}
_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    formats: list[str] = field(default_factory=lambda: list(DEFAULT_FORMATS))
    output: Path = field(default_factory=lambda: Path(DEFAULT_OUTPUT_DIR))
    html_template: Optional[Path] = None
    name: Optional[str] = None
    jobs: Optional[int] = None
    odiff: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)


def load_dotenv(path: Path) -> dict:
    """Parse ``KEY=VALUE`` lines, ignoring blanks and ``#`` comments."""
    values = {}
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        logger.debug(f"Could not read {path}: {e}")
        return values

    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith('#') and '=' in line:
            key, value = line.split('=', 1)
            values[key.strip()] = value.strip().strip('"').strip("'")
    return values


def load_yaml_config(path: Path) -> dict:
    """
    Load a YAML config file.

    Raises:
        InvalidInputError: if the file cannot be read or is not a mapping.
    """
    try:
        with open(path, 'r', encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise InvalidInputError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise InvalidInputError(f"Malformed config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInputError(f"Config file {path} must contain a mapping")
    return data


def find_config_file(config_path: Optional[Path] = None, cwd: Optional[Path] = None) -> Optional[Path]:
    """Explicit path, then ``$SNAPSHOT_REPORT_CONFIG``, then ``./.snapshot-report.yml`` if present."""
    if config_path:
        return Path(config_path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    default = (cwd or Path.cwd()) / DEFAULT_CONFIG_FILENAME
    return default if default.is_file() else None


def load_env_config(cwd: Optional[Path] = None) -> dict:
    """Settings keys from ``./.env``, overridden by the process environment."""
    config = {}
    dotenv = load_dotenv((cwd or Path.cwd()) / '.env')
    for env_key, key in ENV_KEYS.items():
        if env_key in dotenv:
            config[key] = dotenv[env_key]

    for env_key, key in ENV_KEYS.items():
        env_value = os.environ.get(env_key)
        if env_value is not None:
            config[key] = env_value
    return config


def parse_odiff(value) -> Optional[str]:
    """``false``/empty disables, ``true`` selects the default binary, anything else is a path."""
    if value is None or value is False:
        return None
    if value is True:
        return DEFAULT_ODIFF_BINARY
    text = str(value).strip()
    if text.lower() in _FALSE_VALUES:
        return None
    if text.lower() in _TRUE_VALUES:
        return DEFAULT_ODIFF_BINARY
    return text


def parse_jobs(value) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        jobs = int(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"jobs must be an integer, got {value!r}") from None
    if jobs < 1:
        raise InvalidInputError(f"jobs must be at least 1, got {jobs}")
    return jobs


def _parse_formats(value) -> list[str]:
    if isinstance(value, str):
        return [f.strip() for f in value.split(",") if f.strip()]
    if isinstance(value, (list, tuple)):
        return [str(f).strip() for f in value if str(f).strip()]
    raise InvalidInputError(f"formats must be a list or comma separated string, got {value!r}")


def _apply(settings: Settings, values: dict, source: str):
    if values.get("formats"):
        settings.formats = _parse_formats(values["formats"])
    if values.get("output"):
        settings.output = Path(str(values["output"])).expanduser()
    if values.get("html_template"):
        settings.html_template = Path(str(values["html_template"])).expanduser()
    if values.get("name"):
        settings.name = str(values["name"])
    if "jobs" in values:
        settings.jobs = parse_jobs(values["jobs"])
    if "odiff" in values:
        settings.odiff = parse_odiff(values["odiff"])
    if "metadata" in values:
        metadata = values["metadata"] or {}
        if not isinstance(metadata, dict):
            raise InvalidInputError(f"metadata in {source} must be a mapping")
        settings.metadata.update({str(k): str(v) for k, v in metadata.items()})


def load_config(config_path: Optional[Path] = None, cwd: Optional[Path] = None) -> Settings:
    """Load settings from defaults, the YAML config file, ``.env`` and the environment.

    Environment variables take precedence over ``.env`` values, which take
    precedence over the YAML file. Command line flags are applied on top by
    the caller.
    """
    settings = Settings()

    path = find_config_file(config_path, cwd)
    if path is not None:
        logger.debug(f"Loading config from {path}")
        _apply(settings, load_yaml_config(path), str(path))

    _apply(settings, load_env_config(cwd), "environment")
    return settings
