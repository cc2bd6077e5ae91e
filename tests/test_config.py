"""Tests for daemon configuration loading"""

import os
import tempfile
from pathlib import Path
from unittest.mock import patch

from tab_suspender.config import CONFIG_FILE_NAME, SuspenderConfig, get_config_dir


def test_config_dir_override():
    with tempfile.TemporaryDirectory() as tmpdir:
        custom = Path(tmpdir) / "custom"
        assert get_config_dir(str(custom)) == custom
        assert custom.is_dir()


def test_config_dir_from_environment():
    with tempfile.TemporaryDirectory() as tmpdir:
        with patch.dict(os.environ, {"TAB_SUSPENDER_CONFIG_DIR": tmpdir}):
            assert get_config_dir() == Path(tmpdir)


def test_config_dir_default():
    with tempfile.TemporaryDirectory() as tmpdir:
        with patch.dict(os.environ, {}, clear=True), patch("pathlib.Path.home", return_value=Path(tmpdir)):
            assert get_config_dir() == Path(tmpdir) / ".tab-suspender"


def test_defaults():
    config = SuspenderConfig()
    assert config.scan_interval_seconds == 30
    assert config.safety_timeout_seconds == 2
    assert config.snapshot_retention_days == 7
    assert config.average_tab_memory_bytes == 50 * 1024 * 1024
    assert config.placeholder_base_url == "http://127.0.0.1:8787/suspended.html"


def test_devtools_url_from_environment():
    with patch.dict(os.environ, {"TAB_SUSPENDER_DEVTOOLS_URL": "http://10.0.0.2:9333"}):
        assert SuspenderConfig().devtools_url == "http://10.0.0.2:9333"


def test_missing_file_gives_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        assert SuspenderConfig.from_file(config_dir=Path(tmpdir)) == SuspenderConfig()


def test_load_from_yaml():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_file = Path(tmpdir) / CONFIG_FILE_NAME
        config_file.write_text("scan_interval_seconds: 10\nsafety_timeout_seconds: 0.5\n")

        config = SuspenderConfig.from_file(config_file)

        assert config.scan_interval_seconds == 10
        assert config.safety_timeout_seconds == 0.5
        assert config.snapshot_retention_days == 7


def test_empty_file_gives_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_file = Path(tmpdir) / CONFIG_FILE_NAME
        config_file.write_text("")
        assert SuspenderConfig.from_file(config_file) == SuspenderConfig()


def test_malformed_yaml_gives_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_file = Path(tmpdir) / CONFIG_FILE_NAME
        config_file.write_text("scan_interval_seconds: [unclosed\n")
        assert SuspenderConfig.from_file(config_file) == SuspenderConfig()


def test_invalid_values_give_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_file = Path(tmpdir) / CONFIG_FILE_NAME
        config_file.write_text("scan_interval_seconds: -1\n")
        assert SuspenderConfig.from_file(config_file).scan_interval_seconds == 30


def test_non_mapping_gives_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_file = Path(tmpdir) / CONFIG_FILE_NAME
        config_file.write_text("- just\n- a list\n")
        assert SuspenderConfig.from_file(config_file) == SuspenderConfig()
