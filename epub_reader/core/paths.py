from __future__ import annotations

"""Path normalization and lookup inside an EPUB archive.

Publishers regularly ship manifests whose hrefs differ in case from the
actual ZIP entries, so every lookup tries an exact match first and then
falls back to the first case-insensitive match in the same directory.
"""

import logging
from typing import TYPE_CHECKING, Optional
from urllib.parse import unquote

from epub_reader.core.exceptions import ResourceNotFoundError

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from epub_reader.core.archive import ArchiveDirectory, ArchiveEntry, ArchiveFile

__all__ = [
    "clean_path",
    "containing_folder",
    "resolve_href",
    "find_entry",
    "resolve",
]

logger = logging.getLogger(__name__)


def clean_path(path: str) -> str:
    """Collapse ``.``/``..`` segments and redundant separators in *path*.

    Follows POSIX ``cleanpath`` semantics: no trailing slash, no double
    slash, and ``..`` never climbs above the (empty) archive root.

    Examples:
        >>> clean_path("OEBPS/text/../images/./cover.jpg")
        'OEBPS/images/cover.jpg'
        >>> clean_path("../../a//b/")
        'a/b'
    """
    if not path:
        return ""

    absolute = path.startswith("/")
    parts: list[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if parts:
                parts.pop()
            continue
        parts.append(segment)

    cleaned = "/".join(parts)
    return f"/{cleaned}" if absolute else cleaned


def containing_folder(path: str) -> str:
    """Return the folder part of *path* (without trailing slash), or ``""``."""
    index = path.rfind("/")
    if index <= 0:
        return ""
    return path[:index]


def resolve_href(base_path: str, href: str) -> str:
    """Resolve *href* relative to the resource stored at *base_path*.

    Fragments and query strings are dropped and percent-escapes decoded,
    since neither has a counterpart in archive entry names.
    """
    for marker in ("#", "?"):
        index = href.find(marker)
        if index != -1:
            href = href[:index]
    href = unquote(href)

    folder = containing_folder(base_path)
    joined = f"{folder}/{href}" if folder else href
    return clean_path(joined)


def find_entry(directory: "ArchiveDirectory", name: str) -> Optional["ArchiveEntry"]:
    entry = directory.entry(name)
    if entry is not None:
        return entry

    lowered = name.lower()
    for candidate in directory.names():
        if candidate.lower() == lowered:
            logger.debug("Case-insensitive match %s -> %s", name, candidate)
            return directory.entry(candidate)
    return None


def resolve(root: "ArchiveDirectory", path: str) -> "ArchiveFile":
    """Walk *path* from *root* and return the file entry it names.

    Raises:
        ResourceNotFoundError: if the path is empty, a segment is missing,
            an intermediate segment is a file, or the last one is a directory.
    """
    if not path:
        raise ResourceNotFoundError("Empty resource path")

    parts = [part for part in path.split("/") if part]
    if not parts:
        raise ResourceNotFoundError("Resource path has no segments", path)

    folder = root
    for folder_name in parts[:-1]:
        entry = find_entry(folder, folder_name)
        if entry is None:
            logger.warning("Unable to find folder %s in %s", folder_name, path[:100])
            raise ResourceNotFoundError(f"Folder '{folder_name}' not found", path)
        if not entry.is_directory:
            logger.warning("Expected %s to be a directory in path %s", folder_name, path[:100])
            raise ResourceNotFoundError(f"'{folder_name}' is not a directory", path)
        folder = entry

    filename = parts[-1]
    entry = find_entry(folder, filename)
    if entry is None or entry.is_directory:
        logger.warning("Unable to find file %s in %s", filename, folder.name or "/")
        raise ResourceNotFoundError(f"File '{filename}' not found", path)
    return entry
