"""Shared helpers for CLI commands: argument validation and vault loading."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

import typer

from orgview import config as config_module
from orgview.query_language.settings import QuerySettings
from orgview.vault import Vault, load_vault


class VaultLoadArgs(Protocol):
    """Protocol for arguments that select and load a vault."""

    files: list[str] | None
    root: str | None
    todo_keys: str
    done_keys: str


def validate_and_parse_keys(keys_str: str, option_name: str) -> list[str]:
    """Parse and validate comma-separated keys.

    Args:
        keys_str: Comma-separated string of keys
        option_name: Name of the option for error messages

    Returns:
        List of validated keys

    Raises:
        typer.BadParameter: If validation fails
    """
    keys = config_module.split_keys(keys_str)
    if not keys:
        raise typer.BadParameter(f"{option_name} cannot be empty")

    for key in keys:
        if "|" in key:
            raise typer.BadParameter(f"{option_name} cannot contain pipe character: '{key}'")

    return keys


def load_vault_data(args: VaultLoadArgs) -> Vault:
    """Validate todo/done keys, then load the vault for the command inputs."""
    todo_keys = validate_and_parse_keys(args.todo_keys, "--todo-keys")
    done_keys = validate_and_parse_keys(args.done_keys, "--done-keys")
    return load_vault(args.files, args.root, todo_keys, done_keys)


def load_settings(config_name: str) -> QuerySettings:
    """Rendering settings from the command's config file."""
    return config_module.load_cli_config_file(config_name).settings


def _origin_bases(args: VaultLoadArgs) -> list[Path]:
    if args.root is not None:
        return [Path(args.root).resolve()]
    bases = [Path(raw).resolve() for raw in args.files or [] if Path(raw).is_dir()]
    bases.append(Path.cwd().resolve())
    return bases


def resolve_origin(vault: Vault, this: str | None, args: VaultLoadArgs) -> str | None:
    """Map a ``--this`` file argument to its document path in the vault.

    Raises:
        typer.BadParameter: If the file is not part of the loaded vault.
    """
    if this is None:
        return None
    if this in vault:
        return this

    candidate = Path(this).resolve()
    for base in _origin_bases(args):
        try:
            relative = candidate.relative_to(base).as_posix()
        except ValueError:
            continue
        if relative in vault:
            return relative

    normalized = vault.normalize(this)
    if vault.exists(normalized):
        return normalized
    raise typer.BadParameter(f"Document '{this}' is not part of the loaded files")
