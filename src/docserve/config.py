"""Configuration management for docserve.

Supports TOML configuration format with auto-discovery. Values passed on
the command line override whatever the file says.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path

CONFIG_FILENAME = "docserve.toml"


@dataclass(frozen=True)
class ServerConfig:
    """Listener configuration."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass(frozen=True)
class ServeConfig:
    """What gets served and how."""

    root: Path = field(default_factory=lambda: Path("."))
    markdown: bool = False


@dataclass(frozen=True)
class CliOverrides:
    """Settings given on the command line.

    Fields left as None keep the value from the config file (or the default).
    """

    host: str | None = None
    port: int | None = None
    root: Path | None = None
    markdown: bool | None = None


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    server: ServerConfig
    serve: ServeConfig
    config_path: Path | None = None

    @classmethod
    def load(
        cls,
        config_path: Path | None = None,
        overrides: CliOverrides | None = None,
    ) -> Config:
        """Load configuration from file and apply command line overrides.

        If config_path is provided, loads from that file.
        Otherwise, searches for docserve.toml in current directory and parents.

        Args:
            config_path: Optional explicit path to config file
            overrides: Optional command line settings applied on top

        Returns:
            Config instance with defaults for missing sections

        Raises:
            FileNotFoundError: If explicit config_path doesn't exist
            ValueError: If configuration is invalid
        """
        if config_path is not None:
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            config = cls._load_from_file(config_path)
        else:
            discovered_path = cls._discover_config()
            if discovered_path is None:
                config = cls._default()
            else:
                config = cls._load_from_file(discovered_path)

        if overrides is not None:
            config = config._with_overrides(overrides)
        return config

    def resolve_root(self) -> Config:
        """Return a copy whose served root is an absolute, symlink-free path.

        Raises:
            FileNotFoundError: If the root does not exist
            NotADirectoryError: If the root is not a directory
        """
        root = self.serve.root
        if not root.exists():
            raise FileNotFoundError(f"directory does not exist: {str(root)!r}")
        if not root.is_dir():
            raise NotADirectoryError(f"path is not a directory: {str(root)!r}")
        resolved = Path(os.path.realpath(root))
        return replace(self, serve=replace(self.serve, root=resolved))

    def _with_overrides(self, overrides: CliOverrides) -> Config:
        server = self.server
        if overrides.host is not None:
            server = replace(server, host=overrides.host)
        if overrides.port is not None:
            server = replace(server, port=overrides.port)

        serve = self.serve
        if overrides.root is not None:
            serve = replace(serve, root=overrides.root)
        if overrides.markdown is not None:
            serve = replace(serve, markdown=overrides.markdown)

        return replace(self, server=server, serve=serve)

    @classmethod
    def _discover_config(cls) -> Path | None:
        """Search for config file in current directory and parents.

        Returns:
            Path to config file or None if not found
        """
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
        return cls(server=ServerConfig(), serve=ServeConfig())

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
            serve=cls._parse_serve(data.get("serve"), config_dir),
            config_path=path,
        )

    @classmethod
    def _parse_server(cls, data: object) -> ServerConfig:
        """Parse server configuration section.

        Args:
            data: Raw server section data

        Returns:
            ServerConfig instance
        """
        if data is None:
            return ServerConfig()

        if not isinstance(data, dict):
            raise ValueError("server section must be a dictionary")

        host = data.get("host", "127.0.0.1")
        if not isinstance(host, str):
            raise ValueError("server.host must be a string")

        port = data.get("port", 8080)
        # bool is an int subclass
        if not isinstance(port, int) or isinstance(port, bool):
            raise ValueError("server.port must be an integer")
        if not 0 <= port <= 65535:
            raise ValueError("server.port must be between 0 and 65535")

        return ServerConfig(host=host, port=port)

    @classmethod
    def _parse_serve(cls, data: object, config_dir: Path) -> ServeConfig:
        """Parse serve configuration section.

        Relative roots are resolved against the config file's directory.

        Args:
            data: Raw serve section data
            config_dir: Directory containing the config file

        Returns:
            ServeConfig instance
        """
        if data is None:
            return ServeConfig(root=config_dir)

        if not isinstance(data, dict):
            raise ValueError("serve section must be a dictionary")

        root = data.get("root", ".")
        if not isinstance(root, str):
            raise ValueError("serve.root must be a string")

        markdown = data.get("markdown", False)
        if not isinstance(markdown, bool):
            raise ValueError("serve.markdown must be a boolean")

        return ServeConfig(root=config_dir / root, markdown=markdown)
