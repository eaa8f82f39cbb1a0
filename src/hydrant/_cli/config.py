"""Configuration loading from pyproject.toml."""

import tomllib
from dataclasses import dataclass
from pathlib import Path

from hydrant._enums import Encoding
from hydrant._settings import EngineSettings


class ConfigError(Exception):
    """Error in hydrant configuration."""


@dataclass(slots=True, frozen=True)
class HydrantConfig:
    """Configuration loaded from the `[tool.hydrant]` table of pyproject.toml.

    Unset fields fall back to the engine defaults.
    """

    encoding: Encoding | None = None
    placeholder_prefix: str | None = None
    max_depth: int | None = None
    project_root: Path | None = None

    def to_settings(self) -> EngineSettings:
        defaults = EngineSettings()
        try:
            return EngineSettings(
                placeholder_prefix=self.placeholder_prefix or defaults.placeholder_prefix,
                encoding=self.encoding or defaults.encoding,
                max_depth=self.max_depth or defaults.max_depth,
            )
        except ValueError as e:
            msg = f"Invalid [tool.hydrant] configuration: {e}"
            raise ConfigError(msg) from e


def find_pyproject_toml(start_dir: Path | None = None) -> Path | None:
    """Find pyproject.toml by walking up from start_dir.

    Args:
        start_dir: Starting directory. Defaults to current working directory.

    Returns:
        Path to pyproject.toml if found, None otherwise.

    """
    current = (start_dir or Path.cwd()).resolve()
    while True:
        candidate = current / "pyproject.toml"
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def _parse_encoding(value: object) -> Encoding:
    if not isinstance(value, str):
        msg = "Invalid [tool.hydrant].encoding: expected string"
        raise ConfigError(msg)
    try:
        return Encoding(value)
    except ValueError:
        choices = ", ".join(f"'{e}'" for e in Encoding)
        msg = f"Invalid [tool.hydrant].encoding '{value}'. Expected one of {choices}"
        raise ConfigError(msg) from None


def load_config(pyproject_path: Path) -> HydrantConfig:
    """Load and validate [tool.hydrant] config from pyproject.toml.

    Raises:
        ConfigError: If the configuration is invalid

    """
    project_root = pyproject_path.parent

    with pyproject_path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {pyproject_path}: {e}"
            raise ConfigError(msg) from e

    section = data.get("tool", {}).get("hydrant", {})
    if not section:
        return HydrantConfig(project_root=project_root)

    unknown = sorted(set(section) - {"encoding", "placeholder_prefix", "max_depth"})
    if unknown:
        msg = f"Unknown [tool.hydrant] keys: {', '.join(unknown)}"
        raise ConfigError(msg)

    encoding = _parse_encoding(section["encoding"]) if "encoding" in section else None

    prefix = section.get("placeholder_prefix")
    if prefix is not None and not isinstance(prefix, str):
        msg = "Invalid [tool.hydrant].placeholder_prefix: expected string"
        raise ConfigError(msg)

    max_depth = section.get("max_depth")
    if max_depth is not None and (isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 1):
        msg = "Invalid [tool.hydrant].max_depth: expected a positive integer"
        raise ConfigError(msg)

    config = HydrantConfig(
        encoding=encoding,
        placeholder_prefix=prefix,
        max_depth=max_depth,
        project_root=project_root,
    )
    config.to_settings()
    return config


def get_config() -> HydrantConfig:
    """Get config from pyproject.toml in current directory or parents.

    Returns:
        HydrantConfig (may be empty if no pyproject.toml or no [tool.hydrant] section)

    """
    pyproject_path = find_pyproject_toml()
    if pyproject_path is None:
        return HydrantConfig()
    return load_config(pyproject_path)
