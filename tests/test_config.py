"""Tests for configuration loading."""

from pathlib import Path
from unittest.mock import patch

import pytest
from navstage.config import (
    Config,
    DndConfig,
    PersistenceConfig,
    ServerConfig,
    StoreConfig,
)
from navstage.core.projector import ProjectorSettings


class TestConfigLoad:
    """Tests for Config.load()."""

    def test__explicit_path__loads_config(self, tmp_path: Path) -> None:
        """Load config from explicit path."""
        config_file = tmp_path / "navstage.toml"
        config_file.write_text("""
[server]
host = "0.0.0.0"
port = 3000

[store]
data_file = "data/menus.json"
languages = ["en", "fr"]

[dnd]
indent_width = 32
gesture_threshold_ratio = 0.5
gesture_max_y_drift = 8

[persistence]
timeout = 2.5
""")

        config = Config.load(config_file)

        assert config.server.host == "0.0.0.0"
        assert config.server.port == 3000
        assert config.store.data_file == tmp_path / "data" / "menus.json"
        assert config.store.languages == ["en", "fr"]
        assert config.dnd.indent_width == 32
        assert config.dnd.gesture_threshold_ratio == 0.5
        assert config.dnd.gesture_max_y_drift == 8
        assert config.persistence.timeout == 2.5
        assert config.config_path == config_file

    def test__minimal_config__uses_defaults(self, tmp_path: Path) -> None:
        """Load minimal config with defaults relative to config file."""
        config_file = tmp_path / "navstage.toml"
        config_file.write_text("")

        config = Config.load(config_file)

        assert config.server.host == "127.0.0.1"
        assert config.server.port == 8080
        assert config.store.data_file == tmp_path / "navigation.json"
        assert config.dnd == DndConfig()
        assert config.persistence.timeout == 10.0

    def test__missing_explicit_path__raises_error(self, tmp_path: Path) -> None:
        """Raise FileNotFoundError for missing explicit path."""
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            Config.load(tmp_path / "missing.toml")

    def test__invalid_toml__raises_error(self, tmp_path: Path) -> None:
        """Raise ValueError for unparsable TOML."""
        config_file = tmp_path / "navstage.toml"
        config_file.write_text("[server\nport = ")

        with pytest.raises(ValueError, match="Invalid TOML"):
            Config.load(config_file)

    def test__no_path_no_discovery__returns_defaults(self) -> None:
        """Return defaults when no config file is found."""
        with patch.object(Config, "_discover_config", return_value=None):
            config = Config.load()

        assert config.server == ServerConfig()
        assert config.store == StoreConfig()
        assert config.config_path is None


class TestConfigDiscovery:
    """Tests for config file auto-discovery."""

    def test__config_in_current_dir__found(self, tmp_path: Path) -> None:
        """Find config in current directory."""
        config_file = tmp_path / "navstage.toml"
        config_file.write_text("")

        with patch("pathlib.Path.cwd", return_value=tmp_path):
            assert Config._discover_config() == config_file

    def test__config_in_parent_dir__found(self, tmp_path: Path) -> None:
        """Find config in a parent directory."""
        config_file = tmp_path / "navstage.toml"
        config_file.write_text("")
        subdir = tmp_path / "site" / "content"
        subdir.mkdir(parents=True)

        with patch("pathlib.Path.cwd", return_value=subdir):
            assert Config._discover_config() == config_file


class TestConfigValidation:
    """Tests for invalid configuration values."""

    @pytest.mark.parametrize(
        ("content", "message"),
        [
            ('server = "x"', "server section must be a dictionary"),
            ("[server]\nhost = 1", "server.host must be a string"),
            ('[server]\nport = "80"', "server.port must be an integer"),
            ("[store]\ndata_file = 3", "store.data_file must be a string"),
            ('[store]\nlanguages = "en"', "store.languages must be a list of strings"),
            ("[store]\nlanguages = [1]", "store.languages must be a list of strings"),
            ("[dnd]\nindent_width = 0", "dnd.indent_width must be a positive integer"),
            ("[dnd]\nindent_width = 2.5", "dnd.indent_width must be a positive integer"),
            (
                "[dnd]\ngesture_threshold_ratio = -1",
                "dnd.gesture_threshold_ratio must be a non-negative number",
            ),
            (
                '[dnd]\ngesture_max_y_drift = "far"',
                "dnd.gesture_max_y_drift must be a non-negative number",
            ),
            ("[persistence]\ntimeout = -5", "persistence.timeout must be a non-negative number"),
        ],
    )
    def test__invalid_value__raises_error(
        self,
        tmp_path: Path,
        content: str,
        message: str,
    ) -> None:
        """Reject invalid values with a message naming the key."""
        config_file = tmp_path / "navstage.toml"
        config_file.write_text(content)

        with pytest.raises(ValueError, match=message):
            Config.load(config_file)

    def test__zero_timeout__disables_timeout(self, tmp_path: Path) -> None:
        """A timeout of 0 waits for the store forever."""
        config_file = tmp_path / "navstage.toml"
        config_file.write_text("[persistence]\ntimeout = 0")

        assert Config.load(config_file).persistence.timeout is None


class TestConfigOverrides:
    """Tests for Config.with_overrides()."""

    def test__overrides_applied(self, test_config: Config, tmp_path: Path) -> None:
        """Non-None values replace config values."""
        config = test_config.with_overrides(
            host="0.0.0.0",
            port=9000,
            data_file=tmp_path / "other.json",
            indent_width=40,
        )

        assert config.server.host == "0.0.0.0"
        assert config.server.port == 9000
        assert config.store.data_file == tmp_path / "other.json"
        assert config.dnd.indent_width == 40

    def test__none_values__keep_config(self, test_config: Config) -> None:
        """None values leave the config unchanged."""
        assert test_config.with_overrides() == test_config

    def test__original_not_modified(self, test_config: Config) -> None:
        """Overrides return a new Config."""
        test_config.with_overrides(port=9000)

        assert test_config.server.port == 8080


class TestDndConfig:
    """Tests for DndConfig.to_settings()."""

    def test__to_settings(self) -> None:
        """Convert to projector settings."""
        settings = DndConfig(indent_width=30, gesture_threshold_ratio=0.5).to_settings()

        assert settings == ProjectorSettings(
            indent_width=30,
            gesture_threshold_ratio=0.5,
            gesture_max_y_drift=12,
        )

    def test__persistence_default(self) -> None:
        """Persistence waits ten seconds by default."""
        assert PersistenceConfig().timeout == 10.0
