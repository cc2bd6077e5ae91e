"""Configuration management for tab-suspender"""

import logging
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

load_dotenv()

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.yaml"


def get_config_dir(override: str | None = None) -> Path:
    """Get the tab-suspender configuration directory

    Priority (highest to lowest):
    1. override parameter
    2. TAB_SUSPENDER_CONFIG_DIR environment variable
    3. Default: ~/.tab-suspender

    Args:
        override: Optional path to override config directory

    Returns:
        Path to configuration directory (created if it doesn't exist)
    """
    if override:
        config_dir = Path(os.path.expanduser(override))
    else:
        config_dir_str = os.getenv("TAB_SUSPENDER_CONFIG_DIR")
        if config_dir_str:
            config_dir = Path(os.path.expanduser(config_dir_str))
        else:
            config_dir = Path.home() / ".tab-suspender"

    config_dir.mkdir(parents=True, exist_ok=True)

    return config_dir


class SuspenderConfig(BaseModel):
    """Daemon configuration (timer periods, timeouts, host endpoints)"""

    scan_interval_seconds: float = Field(default=30.0, gt=0)
    safety_timeout_seconds: float = Field(default=2.0, gt=0)
    scroll_restore_delay_seconds: float = Field(default=1.0, ge=0)
    snapshot_retention_days: int = Field(default=7, ge=1)
    maintenance_interval_seconds: float = Field(default=3600.0, gt=0)
    event_poll_interval_seconds: float = Field(default=2.0, gt=0)

    placeholder_base_url: str = Field(
        default="http://127.0.0.1:8787/suspended.html",
        description="Page that renders suspended tabs; restore parameters are appended as a query string",
    )
    devtools_url: str = Field(default_factory=lambda: os.getenv("TAB_SUSPENDER_DEVTOOLS_URL", "http://127.0.0.1:9222"))

    # Fixed per-tab estimate, actual process memory is never measured
    average_tab_memory_bytes: int = Field(default=50 * 1024 * 1024, gt=0)

    @classmethod
    def from_file(cls, path: Path | None = None, config_dir: Path | None = None) -> "SuspenderConfig":
        """Load configuration from a YAML file

        A missing file yields the defaults. A malformed file is reported
        and also yields the defaults, so a bad edit never stops the daemon.

        Args:
            path: Optional path to config.yaml
            config_dir: Optional config directory (defaults to get_config_dir())
        """
        if path is None:
            if config_dir is None:
                config_dir = get_config_dir()
            path = config_dir / CONFIG_FILE_NAME

        if not path.exists():
            return cls()

        try:
            with open(path) as f:
                data = yaml.safe_load(f)

            if not data:
                return cls()
            if not isinstance(data, dict):
                raise ValueError("top-level value must be a mapping")

            return cls(**data)

        except yaml.YAMLError as e:
            logger.warning("Error parsing %s: %s. Using defaults", path, e)
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning("Invalid configuration in %s: %s. Using defaults", path, e)
        except OSError as e:
            logger.warning("Could not read %s: %s. Using defaults", path, e)

        return cls()
