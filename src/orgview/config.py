"""Configuration handling for the orgview CLI."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TypeGuard

import typer

from orgview.query_language.settings import DEFAULT_SETTINGS, QuerySettings


DEFAULT_CONFIG_NAME = ".orgview.json"

COMMAND_NAMES = ("query", "eval", "sources")

OUTPUT_CHOICES = {"org", "json", "table"}

# Config key -> command option destination.
COMMAND_OPTIONS: dict[str, str] = {
    "color": "color_flag",
    "out": "out",
    "out_theme": "out_theme",
    "todo_keys": "todo_keys",
    "done_keys": "done_keys",
}

STR_SETTINGS = {
    "render_null_as",
    "date_format",
    "datetime_format",
    "table_id_column",
    "group_id_column",
}
BOOL_SETTINGS = {"display_result_count"}
INT_SETTINGS: dict[str, int] = {"max_recursive_render_depth": 1}


logger = logging.getLogger("orgview")


@dataclass
class LoadedCliConfig:
    """Fully parsed CLI config payload."""

    defaults: dict[str, object]
    settings: QuerySettings
    verbose: bool = False


def load_config(filepath: str) -> tuple[dict[str, object], bool]:
    """Load config from JSON file.

    Args:
        filepath: Path to config file

    Returns:
        Tuple of (config dict, malformed flag)
    """
    try:
        with open(filepath, encoding="utf-8") as f:
            config = json.load(f)
    except FileNotFoundError:
        return ({}, False)
    except PermissionError:
        return ({}, True)
    except OSError:
        return ({}, True)
    except json.JSONDecodeError:
        return ({}, True)

    if not isinstance(config, dict):
        return ({}, True)

    return (config, False)


def is_valid_keys_string(value: str) -> bool:
    """Check that a comma-separated keys string names at least one state without pipes."""
    if "|" in value:
        return False
    return bool([key for key in value.split(",") if key.strip()])


def is_string_list(value: object) -> TypeGuard[list[str]]:
    """Check if value is list[str]."""
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def split_keys(value: str) -> list[str]:
    """Split a comma-separated keys string into stripped keys."""
    return [key.strip() for key in value.split(",") if key.strip()]


def validate_option(key: str, value: object) -> object | None:
    """Validate one command option value, returning None when invalid."""
    result: object | None = None
    if key == "color":
        result = value if isinstance(value, bool) else None
    elif key == "out":
        result = value if isinstance(value, str) and value in OUTPUT_CHOICES else None
    elif key == "out_theme":
        result = value if isinstance(value, str) and value.strip() else None
    elif key in {"todo_keys", "done_keys"}:
        if is_string_list(value):
            value = ",".join(value)
        result = value if isinstance(value, str) and is_valid_keys_string(value) else None
    return result


def validate_setting(key: str, value: object) -> object | None:
    """Validate one rendering setting value, returning None when invalid."""
    if key in STR_SETTINGS:
        if not isinstance(value, str):
            return None
        if key.endswith("_format") and not re.search(r"%[A-Za-z]", value):
            return None
        return value
    if key in BOOL_SETTINGS:
        return value if isinstance(value, bool) else None
    if key in INT_SETTINGS:
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value if value >= INT_SETTINGS[key] else None
    return None


def parse_config(config: dict[str, object]) -> LoadedCliConfig | None:
    """Split a raw config object into command defaults and rendering settings.

    Returns:
        Parsed config, or None when a key is unknown or a value is invalid.
    """
    defaults: dict[str, object] = {}
    settings: dict[str, object] = {}
    verbose = False

    for key, value in config.items():
        if key == "verbose":
            if not isinstance(value, bool):
                return None
            verbose = value
        elif key in COMMAND_OPTIONS:
            validated = validate_option(key, value)
            if validated is None:
                return None
            defaults[COMMAND_OPTIONS[key]] = validated
        else:
            validated = validate_setting(key, value)
            if validated is None:
                return None
            settings[key] = validated

    return LoadedCliConfig(
        defaults=defaults,
        settings=replace(DEFAULT_SETTINGS, **settings),
        verbose=verbose,
    )


def parse_config_argument(argv: list[str]) -> str:
    """Parse only the --config argument from argv."""
    for idx, arg in enumerate(argv[1:], start=1):
        if arg == "--config" and idx + 1 < len(argv):
            return argv[idx + 1]
        if arg.startswith("--config="):
            return arg.split("=", 1)[1]
    return DEFAULT_CONFIG_NAME


def load_cli_config_file(config_name: str) -> LoadedCliConfig:
    """Load and validate the config file, relative paths resolved from the working directory.

    Raises:
        typer.BadParameter: If the file is unreadable or holds invalid values.
    """
    config_path = Path(config_name)
    if not config_path.is_absolute():
        config_path = Path.cwd() / config_name
    config, load_error = load_config(str(config_path))
    if load_error:
        raise typer.BadParameter("Malformed config")

    loaded = parse_config(config)
    if loaded is None:
        raise typer.BadParameter("Malformed config")
    return loaded


def load_cli_config(argv: list[str]) -> LoadedCliConfig:
    """Load config defaults from the path named by ``--config`` in argv."""
    return load_cli_config_file(parse_config_argument(argv))


def build_default_map(defaults: dict[str, object]) -> dict[str, dict[str, object]]:
    """Build Click default_map for Typer commands."""
    default_map: dict[str, dict[str, object]] = {}
    for command in COMMAND_NAMES:
        allowed = {"color_flag", "todo_keys", "done_keys"}
        if command == "query":
            allowed |= {"out", "out_theme"}
        default_map[command] = {key: value for key, value in defaults.items() if key in allowed}
    return default_map


def _format_argument_log_entry(arg_name: str, value: object) -> str:
    """Format one argument/value pair for command argument logging."""
    return f"{arg_name}={value!r}"


def log_command_arguments(args: object, command_name: str) -> None:
    """Log all final argument values used to run a command."""
    if not logger.isEnabledFor(logging.INFO):
        return

    try:
        arg_items = vars(args).items()
    except TypeError:
        return

    entries = [
        _format_argument_log_entry(arg_name, arg_value)
        for arg_name, arg_value in sorted(arg_items, key=lambda item: item[0])
    ]
    logger.info("Command arguments (%s): %s", command_name, ", ".join(entries))
