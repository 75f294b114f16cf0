"""
Unit tests for configuration parser.

Tests the YAML configuration parsing, discovery, validation, and error
handling functionality of the ConfigParser class.
"""

import pytest
import tempfile
import os
import yaml
from pathlib import Path
from unittest.mock import patch

from profilekit.config.parser import (
    ConfigParser,
    ConfigParseResult,
    ConfigurationError,
    load_config,
    validate_config_file,
    create_config_template
)
from profilekit.models.config import ToolkitConfig, LogLevel


def _write_yaml(content: str) -> str:
    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        f.write(content)
        return f.name


class TestConfigParser:
    """Test cases for ConfigParser class."""

    def test_init_default(self):
        """Test default initialization."""
        parser = ConfigParser()
        assert parser.strict_mode is False
        assert parser.DEFAULT_CONFIG_NAMES == [
            '.profilekit.yaml',
            '.profilekit.yml',
            'profilekit.yaml',
            'profilekit.yml',
        ]

    def test_load_config_with_valid_file(self):
        """Test loading configuration from valid YAML file."""
        config_data = {
            'renumber': {'padding': 3, 'prefix': 'page_'},
            'cbz': {'compress': True},
            'logging': {'level': 'debug'},
        }
        temp_path = _write_yaml(yaml.safe_dump(config_data))

        try:
            parser = ConfigParser()
            result = parser.load_config(temp_path)

            assert isinstance(result, ConfigParseResult)
            assert isinstance(result.config, ToolkitConfig)
            assert result.config_path == Path(temp_path)
            assert result.is_default is False
            assert result.config.renumber.padding == 3
            assert result.config.renumber.prefix == 'page_'
            assert result.config.cbz.compress is True
            assert result.config.logging.level == LogLevel.DEBUG
        finally:
            os.unlink(temp_path)

    def test_load_config_file_not_found(self):
        """Test loading configuration from non-existent file."""
        parser = ConfigParser()

        with pytest.raises(ConfigurationError, match="Configuration file not found"):
            parser.load_config("/nonexistent/config.yaml")

    def test_load_config_invalid_yaml(self):
        """Test loading configuration with invalid YAML syntax."""
        temp_path = _write_yaml("renumber: [unclosed\n")

        try:
            with pytest.raises(ConfigurationError, match="Invalid YAML syntax"):
                ConfigParser().load_config(temp_path)
        finally:
            os.unlink(temp_path)

    def test_load_config_empty_file(self):
        """Test that an empty file yields the default configuration."""
        temp_path = _write_yaml("")

        try:
            result = ConfigParser().load_config(temp_path)
            assert result.config == ToolkitConfig()
            assert result.is_default is False
        finally:
            os.unlink(temp_path)

    def test_load_config_non_dict_yaml(self):
        """Test loading YAML that is not a mapping."""
        temp_path = _write_yaml("- just\n- a list\n")

        try:
            with pytest.raises(ConfigurationError, match="must contain a YAML object"):
                ConfigParser().load_config(temp_path)
        finally:
            os.unlink(temp_path)

    def test_load_config_unknown_section(self):
        """Test that unknown top-level sections are rejected."""
        temp_path = _write_yaml("renumbr:\n  start: 0\n")

        try:
            with pytest.raises(ConfigurationError, match="Unknown configuration section"):
                ConfigParser().load_config(temp_path)
        finally:
            os.unlink(temp_path)

    def test_load_config_section_not_mapping(self):
        """Test that a section must be a mapping."""
        temp_path = _write_yaml("cbz: true\n")

        try:
            with pytest.raises(ConfigurationError, match="must be a mapping"):
                ConfigParser().load_config(temp_path)
        finally:
            os.unlink(temp_path)

    def test_load_config_validation_error(self):
        """Test that invalid values are reported as ConfigurationError."""
        temp_path = _write_yaml("renumber:\n  padding: 0\n")

        try:
            with pytest.raises(ConfigurationError, match="Configuration validation failed"):
                ConfigParser().load_config(temp_path)
        finally:
            os.unlink(temp_path)

    def test_load_config_no_file_uses_defaults(self):
        """Test loading configuration when no file is found."""
        parser = ConfigParser()

        with patch.object(parser, '_discover', return_value=(None, None)):
            result = parser.load_config()

        assert result.is_default is True
        assert result.config_path is None
        assert "No configuration file found, using default settings" in result.warnings

    def test_load_config_strict_mode_with_warnings(self):
        """Test that strict mode turns warnings into errors."""
        temp_path = _write_yaml("cbz:\n  delete_source: true\n")

        try:
            with pytest.raises(ConfigurationError, match="strict mode"):
                ConfigParser(strict_mode=True).load_config(temp_path)
        finally:
            os.unlink(temp_path)

    def test_discover_current_dir(self):
        """Test discovery of a configuration file in the current directory."""
        with tempfile.TemporaryDirectory() as temp_dir:
            config_file = Path(temp_dir) / '.profilekit.yaml'
            config_file.write_text("renumber:\n  start: 5\n", encoding='utf-8')

            with patch('pathlib.Path.cwd', return_value=Path(temp_dir)):
                result = ConfigParser().load_config()

            assert result.config_path == config_file
            assert result.config.renumber.start == 5
            assert result.is_default is False

    def test_load_config_from_environment(self):
        """Test that PROFILEKIT_CONFIG is used when no path is given."""
        temp_path = _write_yaml("renumber:\n  start: 3\n")

        try:
            with patch.dict(os.environ, {'PROFILEKIT_CONFIG': temp_path}):
                result = ConfigParser().load_config()
            assert result.config_path == Path(temp_path)
            assert result.config.renumber.start == 3
        finally:
            os.unlink(temp_path)

    def test_load_config_environment_missing_file(self):
        """Test that a PROFILEKIT_CONFIG pointing nowhere is an error."""
        with patch.dict(os.environ, {'PROFILEKIT_CONFIG': '/nonexistent/profilekit.yaml'}):
            with pytest.raises(ConfigurationError, match="Configuration file not found"):
                ConfigParser().load_config()

    def test_discover_not_found(self):
        """Test discovery when no directory holds a configuration file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            empty_path = Path(temp_dir)
            with patch('pathlib.Path.cwd', return_value=empty_path), \
                 patch('pathlib.Path.home', return_value=empty_path):
                config_path, config_data = ConfigParser()._discover()

        assert config_path is None
        assert config_data is None

    def test_discover_skips_broken_file(self):
        """Test that an unreadable candidate is skipped in favour of the next."""
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            (root / '.profilekit.yaml').write_text("[broken", encoding='utf-8')
            (root / 'profilekit.yml').write_text("renumber:\n  start: 7\n", encoding='utf-8')

            with patch('pathlib.Path.cwd', return_value=root), \
                 patch('pathlib.Path.home', return_value=root):
                config_path, config_data = ConfigParser()._discover()

        assert config_path == root / 'profilekit.yml'
        assert config_data == {'renumber': {'start': 7}}

    def test_read_yaml_permission_error(self):
        """Test reading a file that cannot be opened."""
        parser = ConfigParser()

        with patch('pathlib.Path.read_text', side_effect=PermissionError("Access denied")):
            with pytest.raises(ConfigurationError, match="Cannot read configuration file"):
                parser._read_yaml(Path("config.yaml"))

    def test_save_config(self):
        """Test saving configuration to a new directory."""
        config = ToolkitConfig.from_dict({'renumber': {'padding': 4}})

        with tempfile.TemporaryDirectory() as temp_dir:
            output = Path(temp_dir) / 'nested' / 'profilekit.yaml'
            ConfigParser().save_config(config, output)

            assert output.exists()
            data = yaml.safe_load(output.read_text(encoding='utf-8'))
            assert data['renumber']['padding'] == 4
            assert ToolkitConfig.from_dict(data) == config

    def test_save_config_permission_error(self):
        """Test saving when the file cannot be written."""
        with patch('pathlib.Path.write_text', side_effect=PermissionError("Access denied")):
            with pytest.raises(ConfigurationError, match="Cannot write configuration file"):
                ConfigParser().save_config(ToolkitConfig(), Path(tempfile.gettempdir()) / 'x.yaml')

    def test_to_yaml_section_comments(self):
        """Test that every section is preceded by a comment."""
        parser = ConfigParser()
        content = parser.to_yaml(ToolkitConfig())

        assert content.startswith("# profilekit configuration")
        for name, comment in parser.SECTIONS:
            assert f"# {comment}" in content
            assert f"\n{name}:" in content

    def test_validate_config_file(self):
        """Test validation of good and bad files."""
        good = _write_yaml("media:\n  use_folder_title: false\n")
        bad = _write_yaml("cbz:\n  image_extensions: []\n")

        try:
            parser = ConfigParser()
            assert parser.validate_config_file(good) == []
            errors = parser.validate_config_file(bad)
            assert len(errors) == 1
            assert "image extension" in errors[0]
            assert parser.validate_config_file("/nonexistent.yaml") == [
                "Configuration file not found: /nonexistent.yaml"
            ]
        finally:
            os.unlink(good)
            os.unlink(bad)


class TestConvenienceFunctions:
    """Test cases for module-level helpers."""

    def test_load_config_function(self):
        """Test the load_config convenience function."""
        temp_path = _write_yaml("walker:\n  include_hidden: true\n")

        try:
            result = load_config(temp_path)
            assert result.config.walker.include_hidden is True
        finally:
            os.unlink(temp_path)

    def test_validate_config_file_function(self):
        """Test the validate_config_file convenience function."""
        temp_path = _write_yaml("logging:\n  level: LOUD\n")

        try:
            errors = validate_config_file(temp_path)
            assert errors and "Invalid log level" in errors[0]
        finally:
            os.unlink(temp_path)

    def test_create_config_template(self):
        """Test that the template loads back into the default configuration."""
        with tempfile.TemporaryDirectory() as temp_dir:
            output = Path(temp_dir) / 'template.yaml'
            create_config_template(output)

            result = load_config(output)

        assert result.config == ToolkitConfig()
