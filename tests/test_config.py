"""Tests for configuration loading."""

import json
import tempfile
from pathlib import Path

from runlog_sync.config import DRIVE_FILE_NAME, Config


class TestConfig:
    """Tests for Config."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config_file = self.temp_dir / "config.json"

    def test_defaults_when_missing(self):
        config = Config.load(self.config_file)

        assert config.sync.interval_minutes == 5
        assert config.drive.file_name == DRIVE_FILE_NAME
        assert config.drive.api_base_url == "https://www.googleapis.com"
        assert config.debug_mode is False

    def test_save_and_load(self):
        config = Config()
        config.sync.interval_minutes = 15
        config.drive.callback_port = 8765
        config.data_dir = str(self.temp_dir / "data")
        config.save(self.config_file)

        loaded = Config.load(self.config_file)

        assert loaded.sync.interval_minutes == 15
        assert loaded.drive.callback_port == 8765
        assert loaded.resolved_data_dir == self.temp_dir / "data"

    def test_invalid_file_falls_back_to_defaults(self):
        self.config_file.write_text("{not json", encoding="utf-8")
        assert Config.load(self.config_file).sync.interval_minutes == 5

    def test_unknown_keys_are_ignored(self):
        self.config_file.write_text(json.dumps({"debug_mode": True, "legacy": 1}), encoding="utf-8")

        config = Config.load(self.config_file)

        assert config.debug_mode is True
        assert not hasattr(config, "legacy")
