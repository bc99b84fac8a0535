"""In-memory index of org documents implementing the query document index."""

from __future__ import annotations

import logging
import os
import posixpath
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import typer

from orgview.parse import (
    OrgDocument,
    day_from_name,
    flatten_tasks,
    infer_value,
    load_org_document,
    parse_org_document,
)
from orgview.query_language.dates import strip_time
from orgview.query_language.values import Link


logger = logging.getLogger("orgview")

ORG_SUFFIX = ".org"


def resolve_input_paths(inputs: list[str] | None) -> list[Path]:
    """Resolve CLI input paths into a sorted list of org files, searching directories recursively.

    Args:
        inputs: Files or directories given on the command line; defaults to the current directory.

    Returns:
        Org files to load.

    Raises:
        typer.BadParameter: If a path does not exist or no org files are found.
    """
    raw_inputs = inputs if inputs else ["."]
    resolved: list[Path] = []
    for raw_path in raw_inputs:
        path = Path(raw_path)
        if not path.exists():
            raise typer.BadParameter(f"Path '{raw_path}' not found")
        if path.is_dir():
            resolved.extend(sorted(p for p in path.rglob(f"*{ORG_SUFFIX}") if p.is_file()))
        else:
            resolved.append(path)

    if not resolved:
        searched = ", ".join(raw_inputs)
        raise typer.BadParameter(f"No {ORG_SUFFIX} files found in: {searched}")
    return resolved


def expand_tags(tags: Iterable[str]) -> list[str]:
    """Prefix tags with ``#`` and add every parent of nested tags like ``#a/b``."""
    expanded: list[str] = []
    for tag in tags:
        parts = tag.lstrip("#").split("/")
        for end in range(1, len(parts) + 1):
            candidate = "#" + "/".join(parts[:end])
            if candidate not in expanded:
                expanded.append(candidate)
    return expanded


@dataclass
class VaultEntry:
    """A document placed in the vault with its file statistics."""

    document: OrgDocument
    size: int = 0
    ctime: datetime | None = None
    mtime: datetime | None = None
    outlinks: list[Link] = field(default_factory=list)
    fields: dict[str, object] = field(default_factory=dict)


class Vault:
    """Read-only snapshot of documents keyed by vault-relative path."""

    def __init__(self, entries: Iterable[VaultEntry]) -> None:
        self._entries: dict[str, VaultEntry] = {entry.document.path: entry for entry in entries}
        for entry in self._entries.values():
            entry.outlinks = self._resolve_outlinks(entry.document)
        inlinks = self._inlinks()
        for path, entry in self._entries.items():
            entry.fields = self._build_fields(entry, inlinks.get(path, []))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def all_paths(self) -> Iterable[str]:
        return sorted(self._entries)

    def tagged(self, tag: str) -> Iterable[str]:
        wanted = ("#" + tag.lstrip("#")).lower()
        return [
            path
            for path, entry in sorted(self._entries.items())
            if wanted in {tag.lower() for tag in _file_tags(entry.fields)}
        ]

    def in_folder(self, prefix: str) -> Iterable[str]:
        """Documents whose path is the prefix itself or lies below it."""
        folder = prefix.strip("/")
        if not folder:
            return self.all_paths()
        return [
            path
            for path in sorted(self._entries)
            if path == folder
            or path == folder + ORG_SUFFIX
            or path.startswith(folder + "/")
        ]

    def outgoing(self, path: str) -> Iterable[str]:
        entry = self._entries.get(path)
        if entry is None:
            return []
        return sorted({link.path for link in entry.outlinks if link.path in self._entries})

    def normalize(self, path: str, origin: str | None = None) -> str:
        """Resolve link text to a document path, relative to origin when given."""
        target = path.removeprefix("file:").removeprefix("./")
        candidates = [target]
        if origin is not None:
            base = posixpath.dirname(origin)
            candidates.insert(0, posixpath.normpath(posixpath.join(base, target)))
        for candidate in candidates:
            for option in (candidate, candidate + ORG_SUFFIX):
                if option in self._entries:
                    return option

        stem = posixpath.basename(target).removesuffix(ORG_SUFFIX)
        for known in sorted(self._entries):
            if posixpath.basename(known).removesuffix(ORG_SUFFIX) == stem:
                return known
        return target

    def exists(self, path: str) -> bool:
        return path in self._entries

    def resolve_link(self, path: str) -> Mapping[str, object] | None:
        return self.document_fields(self.normalize(path))

    def document_fields(self, path: str) -> Mapping[str, object] | None:
        entry = self._entries.get(path)
        return entry.fields if entry is not None else None

    def _resolve_outlinks(self, document: OrgDocument) -> list[Link]:
        links: list[Link] = []
        for target, display in document.link_targets:
            link = Link.file(self.normalize(target, document.path), display=display)
            if link not in links:
                links.append(link)
        return links

    def _inlinks(self) -> dict[str, list[Link]]:
        inlinks: dict[str, list[Link]] = {}
        for path, entry in sorted(self._entries.items()):
            for link in entry.outlinks:
                sources = inlinks.setdefault(link.path, [])
                if all(source.path != path for source in sources):
                    sources.append(Link.file(path))
        return inlinks

    def _build_fields(self, entry: VaultEntry, inlinks: list[Link]) -> dict[str, object]:
        document = entry.document
        name = posixpath.basename(document.path)
        stem, ext = posixpath.splitext(name)
        keywords = document.keywords
        day = infer_value(keywords["DATE"]) if "DATE" in keywords else day_from_name(stem)
        aliases = [
            alias.strip()
            for key in ("ALIASES", "ALIAS")
            for alias in keywords.get(key, "").split(",")
            if alias.strip()
        ]

        file_fields: dict[str, object] = {
            "path": document.path,
            "name": stem,
            "folder": posixpath.dirname(document.path),
            "ext": ext.lstrip("."),
            "link": Link.file(document.path),
            "size": entry.size,
            "ctime": entry.ctime,
            "mtime": entry.mtime,
            "cday": strip_time(entry.ctime) if entry.ctime is not None else None,
            "mday": strip_time(entry.mtime) if entry.mtime is not None else None,
            "day": day if isinstance(day, datetime) else None,
            "tags": expand_tags(document.tags),
            "etags": ["#" + tag.lstrip("#") for tag in document.tags],
            "aliases": aliases,
            "outlinks": list(entry.outlinks),
            "inlinks": list(inlinks),
            "tasks": flatten_tasks(document.tasks),
        }
        if document.title:
            file_fields["title"] = document.title

        fields: dict[str, object] = {}
        for key, value in document.keywords.items():
            fields[key.lower()] = infer_value(value)
        for key, value in document.properties.items():
            fields[key.lower()] = infer_value(value)
        fields["file"] = file_fields
        return fields


def _file_tags(fields: Mapping[str, object]) -> list[str]:
    file_fields = fields.get("file")
    if isinstance(file_fields, dict):
        tags = file_fields.get("tags")
        if isinstance(tags, list):
            return [tag for tag in tags if isinstance(tag, str)]
    return []


def _vault_path(filename: Path, root: Path) -> str:
    absolute = filename.resolve()
    try:
        return absolute.relative_to(root).as_posix()
    except ValueError:
        return absolute.as_posix()


def load_vault(
    inputs: list[str] | None,
    root: str | None = None,
    todo_keys: list[str] | None = None,
    done_keys: list[str] | None = None,
) -> Vault:
    """Load org files from the given inputs into a vault.

    Document paths are relative to root, which defaults to the single input
    directory or the current directory.
    """
    filenames = resolve_input_paths(inputs)
    if root is not None:
        base = Path(root).resolve()
    elif inputs and len(inputs) == 1 and Path(inputs[0]).is_dir():
        base = Path(inputs[0]).resolve()
    else:
        base = Path.cwd().resolve()

    entries: list[VaultEntry] = []
    for filename in filenames:
        path = _vault_path(filename, base)
        document = load_org_document(str(filename), path, todo_keys, done_keys)
        stat = os.stat(filename)
        entries.append(
            VaultEntry(
                document=document,
                size=stat.st_size,
                ctime=datetime.fromtimestamp(stat.st_ctime),
                mtime=datetime.fromtimestamp(stat.st_mtime),
            )
        )
    logger.info("Loaded %d documents", len(entries))
    return Vault(entries)


def vault_from_texts(texts: Mapping[str, str]) -> Vault:
    """Build a vault from in-memory org texts keyed by path."""
    return Vault(
        VaultEntry(document=parse_org_document(path, text)) for path, text in sorted(texts.items())
    )
