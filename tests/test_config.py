"""Tests for configuration loading."""

from pathlib import Path
from unittest.mock import patch

import pytest
from docserve.config import CliOverrides, Config, ServeConfig, ServerConfig


class TestConfigLoad:
    """Tests for Config.load()."""

    def test__explicit_path__loads_config(self, tmp_path: Path) -> None:
        """Load config from explicit path."""
        config_file = tmp_path / "docserve.toml"
        config_file.write_text("""
[server]
host = "0.0.0.0"
port = 3000

[serve]
root = "public"
markdown = true
""")

        config = Config.load(config_file)

        assert config.server.host == "0.0.0.0"
        assert config.server.port == 3000
        assert config.serve.root == tmp_path / "public"
        assert config.serve.markdown is True
        assert config.config_path == config_file

    def test__minimal_config__uses_defaults(self, tmp_path: Path) -> None:
        """Load minimal config with the root relative to the config file."""
        config_file = tmp_path / "docserve.toml"
        config_file.write_text("")

        config = Config.load(config_file)

        assert config.server.host == "127.0.0.1"
        assert config.server.port == 8080
        assert config.serve.root == tmp_path
        assert config.serve.markdown is False

    def test__missing_explicit_path__raises_error(self, tmp_path: Path) -> None:
        """Raise FileNotFoundError for missing explicit config file."""
        config_file = tmp_path / "nonexistent.toml"

        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            Config.load(config_file)

    def test__no_path_no_discovery__returns_defaults(self) -> None:
        """Return defaults when no config file found."""
        with patch.object(Config, "_discover_config", return_value=None):
            config = Config.load()

        assert config.server == ServerConfig()
        assert config.serve == ServeConfig()
        assert config.serve.root == Path(".")
        assert config.config_path is None

    def test__invalid_toml__raises_value_error(self, tmp_path: Path) -> None:
        """Raise ValueError for unparsable files."""
        config_file = tmp_path / "docserve.toml"
        config_file.write_text("[server\nport = ")

        with pytest.raises(ValueError, match="Invalid TOML"):
            Config.load(config_file)

    @pytest.mark.parametrize(
        ("content", "message"),
        [
            ("server = 1", "server section must be a dictionary"),
            ('[server]\nhost = 1', "server.host must be a string"),
            ('[server]\nport = "80"', "server.port must be an integer"),
            ("[server]\nport = true", "server.port must be an integer"),
            ("[server]\nport = 70000", "server.port must be between"),
            ("serve = 1", "serve section must be a dictionary"),
            ("[serve]\nroot = 1", "serve.root must be a string"),
            ('[serve]\nmarkdown = "yes"', "serve.markdown must be a boolean"),
        ],
    )
    def test__invalid_values__raise_value_error(
        self,
        tmp_path: Path,
        content: str,
        message: str,
    ) -> None:
        """Reject values of the wrong type."""
        config_file = tmp_path / "docserve.toml"
        config_file.write_text(content)

        with pytest.raises(ValueError, match=message):
            Config.load(config_file)


class TestConfigOverrides:
    """Tests for command line overrides."""

    def test__overrides__replace_file_values(self, tmp_path: Path) -> None:
        """Values given on the command line win."""
        config_file = tmp_path / "docserve.toml"
        config_file.write_text('[server]\nport = 3000\nhost = "0.0.0.0"\n[serve]\nmarkdown = true\n')
        overrides = CliOverrides(port=9000, root=Path("other"), markdown=False)

        config = Config.load(config_file, overrides)

        assert config.server.port == 9000
        assert config.server.host == "0.0.0.0"
        assert config.serve.root == Path("other")
        assert config.serve.markdown is False

    def test__empty_overrides__keep_file_values(self, tmp_path: Path) -> None:
        """None means "not given"."""
        config_file = tmp_path / "docserve.toml"
        config_file.write_text("[server]\nport = 3000\n")

        config = Config.load(config_file, CliOverrides())

        assert config.server.port == 3000


class TestConfigDiscovery:
    """Tests for config file discovery."""

    def test__config_in_current_dir__found(self, tmp_path: Path) -> None:
        """Find config in current directory."""
        config_file = tmp_path / "docserve.toml"
        config_file.write_text("[server]\nport = 9000")

        with patch("pathlib.Path.cwd", return_value=tmp_path):
            discovered = Config._discover_config()

        assert discovered == config_file

    def test__config_in_parent_dir__found(self, tmp_path: Path) -> None:
        """Find config in parent directory."""
        config_file = tmp_path / "docserve.toml"
        config_file.write_text("[server]\nport = 9000")
        subdir = tmp_path / "sub" / "dir"
        subdir.mkdir(parents=True)

        with patch("pathlib.Path.cwd", return_value=subdir):
            discovered = Config._discover_config()

        assert discovered == config_file


class TestResolveRoot:
    """Tests for Config.resolve_root()."""

    def test__existing_directory__becomes_absolute(self, tmp_path: Path) -> None:
        """Resolve the root to an absolute real path."""
        (tmp_path / "sub").mkdir()
        config = Config(server=ServerConfig(), serve=ServeConfig(root=tmp_path / "sub" / ".."))

        resolved = config.resolve_root()

        assert resolved.serve.root == tmp_path.resolve()
        assert resolved.serve.root.is_absolute()

    def test__missing_directory__raises_file_not_found(self, tmp_path: Path) -> None:
        """Refuse to serve a directory that does not exist."""
        config = Config(server=ServerConfig(), serve=ServeConfig(root=tmp_path / "missing"))

        with pytest.raises(FileNotFoundError, match="directory does not exist"):
            config.resolve_root()

    def test__file__raises_not_a_directory(self, tmp_path: Path) -> None:
        """Refuse to serve a regular file."""
        file_path = tmp_path / "file.txt"
        file_path.write_text("x")
        config = Config(server=ServerConfig(), serve=ServeConfig(root=file_path))

        with pytest.raises(NotADirectoryError, match="path is not a directory"):
            config.resolve_root()
