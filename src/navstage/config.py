"""Configuration management for Navstage.

Supports TOML configuration format with auto-discovery.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path

from navstage.core.projector import ProjectorSettings
from navstage.core.types import is_int, is_number

CONFIG_FILENAME = "navstage.toml"


@dataclass
class ServerConfig:
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class StoreConfig:
    """Navigation store configuration."""

    data_file: Path = field(default_factory=lambda: Path("navigation.json"))
    languages: list[str] = field(default_factory=list)


@dataclass
class DndConfig:
    """Drag-and-drop projection configuration."""

    indent_width: int = 25
    gesture_threshold_ratio: float = 0.4
    gesture_max_y_drift: float = 12

    def to_settings(self) -> ProjectorSettings:
        return ProjectorSettings(
            indent_width=self.indent_width,
            gesture_threshold_ratio=self.gesture_threshold_ratio,
            gesture_max_y_drift=self.gesture_max_y_drift,
        )


@dataclass
class PersistenceConfig:
    """Persistence configuration."""

    timeout: float | None = 10.0


@dataclass
class Config:
    """Application configuration."""

    server: ServerConfig
    store: StoreConfig
    dnd: DndConfig
    persistence: PersistenceConfig
    config_path: Path | None = None

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from file.

        If config_path is provided, loads from that file.
        Otherwise, searches for navstage.toml in current directory and parents.

        Args:
            config_path: Optional explicit path to config file

        Returns:
            Config instance with defaults for missing sections

        Raises:
            FileNotFoundError: If explicit config_path doesn't exist
            ValueError: If configuration is invalid
        """
        if config_path is not None:
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return cls._load_from_file(config_path)

        discovered_path = cls._discover_config()
        if discovered_path is None:
            return cls._default()

        return cls._load_from_file(discovered_path)

    @classmethod
    def _discover_config(cls) -> Path | None:
        """Search for config file in current directory and parents."""
        current = Path.cwd()
        while True:
            candidate = current / CONFIG_FILENAME
            if candidate.exists():
                return candidate
            parent = current.parent
            if parent == current:
                return None
            current = parent

    @classmethod
    def _default(cls) -> Config:
        return cls(
            server=ServerConfig(),
            store=StoreConfig(),
            dnd=DndConfig(),
            persistence=PersistenceConfig(),
        )

    @classmethod
    def _load_from_file(cls, path: Path) -> Config:
        """Load configuration from a specific file.

        Args:
            path: Path to TOML configuration file

        Returns:
            Config instance

        Raises:
            ValueError: If configuration is invalid
        """
        with path.open("rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ValueError(f"Invalid TOML in {path}: {e}") from e

        config_dir = path.parent

        return cls(
            server=cls._parse_server(data.get("server")),
            store=cls._parse_store(data.get("store"), config_dir),
            dnd=cls._parse_dnd(data.get("dnd")),
            persistence=cls._parse_persistence(data.get("persistence")),
            config_path=path,
        )

    @classmethod
    def _parse_server(cls, data: object) -> ServerConfig:
        if data is None:
            return ServerConfig()

        if not isinstance(data, dict):
            raise ValueError("server section must be a dictionary")

        host = data.get("host", "127.0.0.1")
        if not isinstance(host, str):
            raise ValueError("server.host must be a string")

        port = data.get("port", 8080)
        if not is_int(port):
            raise ValueError("server.port must be an integer")

        return ServerConfig(host=host, port=port)

    @classmethod
    def _parse_store(cls, data: object, config_dir: Path) -> StoreConfig:
        """Parse store configuration section.

        Args:
            data: Raw store section data
            config_dir: Directory containing config file (for relative paths)

        Returns:
            StoreConfig instance
        """
        if data is None:
            return StoreConfig(data_file=config_dir / "navigation.json")

        if not isinstance(data, dict):
            raise ValueError("store section must be a dictionary")

        data_file = data.get("data_file", "navigation.json")
        if not isinstance(data_file, str):
            raise ValueError("store.data_file must be a string")

        languages = data.get("languages", [])
        if not isinstance(languages, list) or not all(isinstance(lang, str) for lang in languages):
            raise ValueError("store.languages must be a list of strings")

        return StoreConfig(data_file=config_dir / data_file, languages=languages)

    @classmethod
    def _parse_dnd(cls, data: object) -> DndConfig:
        """Parse dnd configuration section.

        Args:
            data: Raw dnd section data

        Returns:
            DndConfig instance
        """
        if data is None:
            return DndConfig()

        if not isinstance(data, dict):
            raise ValueError("dnd section must be a dictionary")

        indent_width = data.get("indent_width", 25)
        if not is_int(indent_width) or indent_width <= 0:
            raise ValueError("dnd.indent_width must be a positive integer")

        ratio = data.get("gesture_threshold_ratio", 0.4)
        if not is_number(ratio) or ratio < 0:
            raise ValueError("dnd.gesture_threshold_ratio must be a non-negative number")

        max_y_drift = data.get("gesture_max_y_drift", 12)
        if not is_number(max_y_drift) or max_y_drift < 0:
            raise ValueError("dnd.gesture_max_y_drift must be a non-negative number")

        return DndConfig(
            indent_width=indent_width,
            gesture_threshold_ratio=float(ratio),
            gesture_max_y_drift=float(max_y_drift),
        )

    @classmethod
    def _parse_persistence(cls, data: object) -> PersistenceConfig:
        if data is None:
            return PersistenceConfig()

        if not isinstance(data, dict):
            raise ValueError("persistence section must be a dictionary")

        timeout = data.get("timeout", 10.0)
        if not is_number(timeout) or timeout < 0:
            raise ValueError("persistence.timeout must be a non-negative number")

        # 0 disables the timeout
        return PersistenceConfig(timeout=float(timeout) or None)

    def with_overrides(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        data_file: Path | None = None,
        indent_width: int | None = None,
    ) -> Config:
        """Create a new Config with CLI overrides applied.

        Only non-None values override the existing config. The original
        Config is not modified.

        Args:
            host: Override server.host
            port: Override server.port
            data_file: Override store.data_file
            indent_width: Override dnd.indent_width

        Returns:
            New Config instance with overrides applied
        """
        server = self.server
        if host is not None or port is not None:
            server = replace(
                self.server,
                host=host if host is not None else self.server.host,
                port=port if port is not None else self.server.port,
            )

        store = self.store
        if data_file is not None:
            store = replace(self.store, data_file=data_file)

        dnd = self.dnd
        if indent_width is not None:
            dnd = replace(self.dnd, indent_width=indent_width)

        return replace(self, server=server, store=store, dnd=dnd)
