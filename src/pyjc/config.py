"""Tool configuration: defaults, optional jc.json and environment overrides."""

import json
import os
import shlex
from pathlib import Path
from typing import Any, Optional, TypeAlias, TypedDict

from pyjc.console import error

DEFAULT_CONFIG_FILE_NAME = "jc.json"
DEFAULT_MAKE_PROGRAM = "make"
TEMPLATE_SUBDIR = "templates"
INSTALL_PREFIXES = (Path("/usr/local"), Path("/usr"))


class JcConfig(TypedDict):
    data_dir: Optional[Path]
    debugger: Optional[str]
    configure_args: list[str]
    make_args: list[str]
    config_path: Optional[Path]


StringValidationResult: TypeAlias = tuple[int, Optional[str]]
ListValidationResult: TypeAlias = tuple[int, Optional[list[str]]]


class JcConfigManager:
    def __init__(
        self,
        data_dir: Optional[Path] = None,
        debugger: Optional[str] = None,
        configure_args: Optional[list[str]] = None,
        make_args: Optional[list[str]] = None,
        config_path: Optional[Path] = None,
    ):
        self._data_dir = data_dir
        self._debugger = debugger
        self._configure_args = configure_args if configure_args is not None else []
        self._make_args = make_args if make_args is not None else []
        self._config_path = config_path

    @property
    def data_dir(self) -> Optional[Path]:
        return self._data_dir

    @property
    def debugger(self) -> Optional[str]:
        return self._debugger

    @property
    def configure_args(self) -> list[str]:
        return self._configure_args

    @property
    def make_args(self) -> list[str]:
        return self._make_args

    @property
    def config_path(self) -> Optional[Path]:
        return self._config_path

    def set_data_dir(self, value: Optional[Path]) -> None:
        self._data_dir = value

    def set_debugger(self, value: Optional[str]) -> None:
        self._debugger = value

    def set_configure_args(self, value: list[str]) -> None:
        self._configure_args = value

    def set_make_args(self, value: list[str]) -> None:
        self._make_args = value

    def set_config_path(self, value: Optional[Path]) -> None:
        self._config_path = value

    def to_dict(self) -> JcConfig:
        return {
            "data_dir": self._data_dir,
            "debugger": self._debugger,
            "configure_args": self._configure_args,
            "make_args": self._make_args,
            "config_path": self._config_path,
        }

    @classmethod
    def from_dict(cls, config: JcConfig) -> "JcConfigManager":
        return cls(
            data_dir=config["data_dir"],
            debugger=config["debugger"],
            configure_args=config["configure_args"],
            make_args=config["make_args"],
            config_path=config["config_path"],
        )


config_manager = JcConfigManager()


def _validate_non_empty_string(value: Any, field_name: str) -> StringValidationResult:
    """Validate value is a non-empty string.

    Returns (0, stripped_string) if valid, (0, None) if value is None,
    or (1, None) if invalid with error message printed.
    """
    if value is None:
        return (0, None)
    if isinstance(value, str) and value.strip():
        return (0, value.strip())
    error(f"config {field_name} must be a non-empty string")
    return (1, None)


def _validate_string_list(value: Any, field_name: str) -> ListValidationResult:
    """Validate value is a list of non-empty strings. Entries are not stripped."""
    if value is None:
        return (0, None)
    if not isinstance(value, list):
        error(f"config {field_name} must be a list of strings")
        return (1, None)
    for entry in value:
        if not isinstance(entry, str) or not entry.strip():
            error(f"config {field_name} must be a list of non-empty strings")
            return (1, None)
    return (0, list(value))


def apply_config_file(path: Path) -> int:
    """Load and validate a JSON config file into config_manager."""
    manager = globals()["config_manager"]
    try:
        contents = path.read_text(encoding="utf-8")
    except OSError as exc:
        error(f"failed to read config file {path}: {exc}")
        return 1
    try:
        data = json.loads(contents)
    except json.JSONDecodeError as exc:
        error(f"invalid JSON in {path}: {exc}")
        return 1
    if not isinstance(data, dict):
        error(f"config file {path} must contain a JSON object")
        return 1

    unknown = sorted(set(data) - {"data_dir", "debugger", "configure_args", "make_args"})
    if unknown:
        error(f"config file {path} has unknown keys: {', '.join(unknown)}")
        return 1

    result, validated = _validate_non_empty_string(data.get("data_dir"), "data_dir")
    if result:
        return 1
    if validated is not None:
        data_dir = Path(validated).expanduser()
        if not data_dir.is_absolute():
            data_dir = path.parent / data_dir
        manager.set_data_dir(data_dir)

    result, validated = _validate_non_empty_string(data.get("debugger"), "debugger")
    if result:
        return 1
    if validated is not None:
        manager.set_debugger(validated)

    result, validated_list = _validate_string_list(
        data.get("configure_args"), "configure_args"
    )
    if result:
        return 1
    if validated_list is not None:
        manager.set_configure_args(validated_list)

    result, validated_list = _validate_string_list(data.get("make_args"), "make_args")
    if result:
        return 1
    if validated_list is not None:
        manager.set_make_args(validated_list)

    manager.set_config_path(path)
    return 0


def apply_env_overrides() -> int:
    manager = globals()["config_manager"]
    data_dir_override = os.environ.get("JC_DATA_DIR")
    if data_dir_override:
        manager.set_data_dir(Path(data_dir_override).expanduser())
    debugger_override = os.environ.get("JC_DEBUGGER")
    if debugger_override:
        manager.set_debugger(debugger_override.strip())
    configure_args_override = os.environ.get("JC_CONFIGURE_ARGS")
    if configure_args_override:
        try:
            manager.set_configure_args(shlex.split(configure_args_override))
        except ValueError as exc:
            error(f"invalid JC_CONFIGURE_ARGS: {exc}")
            return 1
    return 0


def load_config(project_root: Path) -> int:
    """Apply jc.json (or $JC_CONFIG_FILE) and then the environment."""
    config_env = os.environ.get("JC_CONFIG_FILE")
    if config_env:
        candidate = Path(config_env).expanduser()
        if not candidate.is_absolute():
            candidate = Path.cwd() / candidate
        if not candidate.exists():
            error(f"config file {candidate} not found")
            return 1
    else:
        candidate = project_root / DEFAULT_CONFIG_FILE_NAME
    if candidate.exists():
        result = apply_config_file(candidate)
        if result != 0:
            return result
    return apply_env_overrides()


def template_search_paths(name: str) -> list[Path]:
    """Locations checked, in order, for an on-disk copy of template `name`."""
    manager = globals()["config_manager"]
    candidates = []
    if manager.data_dir is not None:
        candidates.append(manager.data_dir / TEMPLATE_SUBDIR / name)
    for prefix in INSTALL_PREFIXES:
        candidates.append(prefix / "share" / "jc" / TEMPLATE_SUBDIR / name)
    return candidates


def find_template(name: str) -> Optional[Path]:
    for candidate in template_search_paths(name):
        if candidate.is_file():
            return candidate
    return None


def make_program() -> str:
    return os.environ.get("MAKE") or DEFAULT_MAKE_PROGRAM
