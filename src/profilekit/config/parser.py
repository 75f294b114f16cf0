"""
YAML configuration loading for profilekit.

A configuration file is optional. When ``--config`` is not given, the
``PROFILEKIT_CONFIG`` environment variable is consulted, then the working
directory, the home directory and ``~/.config/profilekit`` are searched for
one of DEFAULT_CONFIG_NAMES. Sections that are omitted keep their defaults.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List, Tuple, Union
import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from ..models.config import ToolkitConfig


logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PROFILEKIT_CONFIG"


@dataclass
class ConfigParseResult:
    """
    Outcome of loading a configuration.

    Attributes:
        config: Validated configuration
        warnings: Problems worth reporting that did not prevent loading
        config_path: File the configuration came from (None for defaults)
        is_default: True when no file was found
    """
    config: ToolkitConfig
    warnings: List[str] = field(default_factory=list)
    config_path: Optional[Path] = None
    is_default: bool = False


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or is invalid."""
    pass


class ConfigParser:
    """
    Finds, reads and validates profilekit configuration files.

    Attributes:
        strict_mode: Raise on warnings instead of returning them
    """

    DEFAULT_CONFIG_NAMES = [
        '.profilekit.yaml',
        '.profilekit.yml',
        'profilekit.yaml',
        'profilekit.yml',
    ]

    SECTIONS = [
        ("walker", "Directory listing and ignore patterns (gitignore-style)"),
        ("renumber", "Sequential renumbering defaults"),
        ("media", "Media file and folder renaming heuristics"),
        ("cbz", "CBZ packaging and ComicInfo.xml generation"),
        ("installer", "Environment bootstrap: profile scripts, packages, font"),
        ("logging", "Diagnostic logging"),
    ]

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def get_search_paths(self) -> List[Path]:
        """Directories searched for a configuration file, in order."""
        return [
            Path.cwd(),
            Path.home(),
            Path.home() / '.config' / 'profilekit',
        ]

    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> ConfigParseResult:
        """
        Load the configuration.

        Args:
            config_path: Explicit file; falls back to $PROFILEKIT_CONFIG, then discovery

        Returns:
            ConfigParseResult with the validated configuration

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid,
                or if strict_mode is set and there are warnings
        """
        explicit = config_path or os.environ.get(CONFIG_ENV_VAR)
        if explicit:
            source: Optional[Path] = Path(explicit).expanduser()
            if not source.exists():
                raise ConfigurationError(f"Configuration file not found: {source}")
            raw: Optional[Dict[str, Any]] = self._read_yaml(source)
        else:
            source, raw = self._discover()

        result = ConfigParseResult(
            config=self._build_config(raw or {}, source),
            config_path=source,
            is_default=raw is None,
        )
        result.warnings = result.config.validate_configuration()
        if result.is_default:
            result.warnings.append("No configuration file found, using default settings")

        if self.strict_mode and result.warnings:
            raise ConfigurationError(f"Configuration warnings in strict mode: {'; '.join(result.warnings)}")

        self.logger.info(f"Configuration loaded from {source or 'defaults'}")
        return result

    def _discover(self) -> Tuple[Optional[Path], Optional[Dict[str, Any]]]:
        """
        Search the default locations.

        A candidate that cannot be parsed is logged and skipped.

        Returns:
            (path, data) of the first usable file, or (None, None)
        """
        candidates = [folder / name for folder in self.get_search_paths() for name in self.DEFAULT_CONFIG_NAMES]
        for candidate in candidates:
            if not candidate.is_file():
                continue
            try:
                data = self._read_yaml(candidate)
            except ConfigurationError as e:
                self.logger.warning(f"Skipping {candidate}: {e}")
                continue
            self.logger.debug(f"Using configuration file {candidate}")
            return candidate, data

        self.logger.debug("No configuration file in any search path")
        return None, None

    def _read_yaml(self, path: Path) -> Dict[str, Any]:
        """
        Parse a YAML file into a mapping; an empty file yields {}.

        Raises:
            ConfigurationError: If the file cannot be read, is not valid YAML,
                or does not hold a mapping
        """
        try:
            text = path.read_text(encoding='utf-8')
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {path}: {e}") from e

        if data is None:
            self.logger.warning(f"Configuration file is empty: {path}")
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a YAML object, not {type(data).__name__}")
        return data

    def _build_config(self, raw: Dict[str, Any], source: Optional[Path]) -> ToolkitConfig:
        """Check section names and shapes, then validate into a ToolkitConfig."""
        known = {name for name, _ in self.SECTIONS}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration section(s): {', '.join(unknown)}")

        sections = {}
        for name, value in raw.items():
            if value is None:
                continue
            if not isinstance(value, dict):
                raise ConfigurationError(f"Configuration section '{name}' must be a mapping")
            sections[name] = value

        try:
            return ToolkitConfig.from_dict(sections)
        except (ValidationError, ValueError) as e:
            raise ConfigurationError(f"Configuration validation failed for {source or 'defaults'}: {e}") from e

    def to_yaml(self, config: ToolkitConfig) -> str:
        """Render a configuration as YAML with one comment line per section."""
        data = config.to_dict()
        blocks = [
            "# profilekit configuration\n"
            "# Every section is optional; omitted values use the built-in defaults.\n"
        ]
        for name, comment in self.SECTIONS:
            if name not in data:
                continue
            body = yaml.safe_dump({name: data[name]}, default_flow_style=False, sort_keys=False)
            blocks.append(f"# {comment}\n{body}")
        return "\n".join(blocks)

    def save_config(self, config: ToolkitConfig, output_path: Union[str, Path]) -> None:
        """
        Write a configuration as commented YAML.

        Raises:
            ConfigurationError: If the file cannot be written
        """
        path = Path(output_path)
        _write_text(path, self.to_yaml(config), "Cannot write configuration file")
        self.logger.info(f"Configuration saved to {path}")

    def validate_config_file(self, config_path: Union[str, Path]) -> List[str]:
        """Validate a file without loading it; returns error messages (empty if valid)."""
        path = Path(config_path)
        if not path.exists():
            return [f"Configuration file not found: {path}"]
        try:
            self._build_config(self._read_yaml(path), path)
        except ConfigurationError as e:
            return [str(e)]
        return []

    def get_config_template(self) -> str:
        """Commented YAML holding every option at its default."""
        return self.to_yaml(ToolkitConfig())


def _write_text(path: Path, text: str, failure: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding='utf-8')
    except OSError as e:
        raise ConfigurationError(f"{failure} {path}: {e}") from e


def load_config(config_path: Optional[Union[str, Path]] = None, strict_mode: bool = False) -> ConfigParseResult:
    """Load the configuration with a fresh ConfigParser."""
    return ConfigParser(strict_mode=strict_mode).load_config(config_path)


def validate_config_file(config_path: Union[str, Path]) -> List[str]:
    """Validate a configuration file; returns error messages."""
    return ConfigParser().validate_config_file(config_path)


def create_config_template(output_path: Union[str, Path]) -> None:
    """
    Write the default configuration template.

    Args:
        output_path: Destination file; parent directories are created

    Raises:
        ConfigurationError: If the template cannot be written
    """
    _write_text(Path(output_path), ConfigParser().get_config_template(), "Cannot create template file")
