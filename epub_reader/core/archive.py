from __future__ import annotations

"""Read-only, tree-shaped view over a ZIP container.

The flat member list of :class:`zipfile.ZipFile` is turned into a strict tree
of :class:`ArchiveDirectory` and :class:`ArchiveFile` nodes rooted at the
archive, so path lookups can walk one directory at a time.
"""

import logging
import zipfile
import zlib
from pathlib import Path
from typing import IO, Dict, List, Optional, Union

from epub_reader.core import paths
from epub_reader.core.exceptions import (
    ArchiveOpenError,
    ArchiveReadError,
    ResourceNotFoundError,
)

logger = logging.getLogger(__name__)

__all__ = ["Archive", "ArchiveDirectory", "ArchiveFile", "ArchiveEntry"]


class ArchiveFile:
    """A file node; reads its member fully into memory on demand."""

    is_directory = False

    def __init__(self, name: str, member: str, zip_file: zipfile.ZipFile) -> None:
        self.name = name
        self.member = member
        self._zip = zip_file

    def read(self) -> bytes:
        return self._zip.read(self.member)

    def __repr__(self) -> str:
        return f"ArchiveFile({self.member!r})"


class ArchiveDirectory:
    """A directory node owning its child entries."""

    is_directory = True

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._entries: Dict[str, "ArchiveEntry"] = {}

    def names(self) -> List[str]:
        return list(self._entries)

    def entry(self, name: str) -> Optional["ArchiveEntry"]:
        return self._entries.get(name)

    def directory(self, name: str) -> "ArchiveDirectory":
        """Return child directory *name*, creating it when absent."""
        existing = self._entries.get(name)
        if isinstance(existing, ArchiveDirectory):
            return existing
        if existing is not None:
            raise ValueError(f"'{name}' is both a file and a directory")
        created = ArchiveDirectory(name)
        self._entries[name] = created
        return created

    def add_file(self, node: ArchiveFile) -> None:
        if isinstance(self._entries.get(node.name), ArchiveDirectory):
            raise ValueError(f"'{node.name}' is both a file and a directory")
        self._entries[node.name] = node

    def __repr__(self) -> str:
        return f"ArchiveDirectory({self.name!r}, entries={len(self._entries)})"


ArchiveEntry = Union[ArchiveDirectory, ArchiveFile]


class Archive:
    """An opened EPUB (ZIP) container.

    Use :meth:`open` to create one. The archive owns the underlying ZIP
    handle until :meth:`close` is called; it is also a context manager.
    """

    def __init__(self, zip_file: zipfile.ZipFile, root: ArchiveDirectory, source: str) -> None:
        self._zip = zip_file
        self.root = root
        self.source = source

    @classmethod
    def open(cls, source: Union[str, Path, IO[bytes]]) -> "Archive":
        """Open *source* (a path or binary file object) as an archive.

        Raises:
            ArchiveOpenError: if the file is missing or not a valid ZIP.
            ArchiveReadError: if the directory tree cannot be built.
        """
        label = str(source) if isinstance(source, (str, Path)) else getattr(source, "name", "<stream>")
        try:
            zip_file = zipfile.ZipFile(source, "r")
        except (zipfile.BadZipFile, OSError) as exc:
            raise ArchiveOpenError(f"Failed to open {label}: {exc}", label, exc) from exc

        try:
            root = cls._build_tree(zip_file)
        except (zipfile.BadZipFile, OSError) as exc:
            zip_file.close()
            raise ArchiveReadError(f"Failed to read {label}: {exc}", label, exc) from exc

        logger.debug("Opened archive %s with %d members", label, len(zip_file.infolist()))
        return cls(zip_file, root, label)

    @staticmethod
    def _build_tree(zip_file: zipfile.ZipFile) -> ArchiveDirectory:
        root = ArchiveDirectory()
        for info in zip_file.infolist():
            parts = [part for part in info.filename.split("/") if part]
            if not parts:
                continue
            folder = root
            folder_parts = parts if info.is_dir() else parts[:-1]
            try:
                for part in folder_parts:
                    folder = folder.directory(part)
                if not info.is_dir():
                    folder.add_file(ArchiveFile(parts[-1], info.filename, zip_file))
            except ValueError as exc:
                logger.warning("Skipping archive member %s: %s", info.filename[:100], exc)
        return root

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def list_directory(self, path: str = "") -> List[str]:
        """Return entry names of the directory at *path* in archive order."""
        folder = self.root
        for part in (p for p in path.split("/") if p):
            entry = paths.find_entry(folder, part)
            if entry is None or not entry.is_directory:
                raise ResourceNotFoundError(f"Directory '{part}' not found", path)
            folder = entry
        return folder.names()

    def find_file(self, path: str) -> ArchiveFile:
        """Resolve *path* with case-insensitive fallback; see :func:`paths.resolve`."""
        return paths.resolve(self.root, path)

    def read_file(self, path: str) -> bytes:
        """Return the full contents of the file at *path*.

        Raises:
            ResourceNotFoundError: if the path does not resolve or the member
                cannot be decompressed.
        """
        node = self.find_file(path)
        try:
            return node.read()
        except (zipfile.BadZipFile, zlib.error, OSError, RuntimeError) as exc:
            # RuntimeError covers encrypted members
            raise ResourceNotFoundError(f"Unable to read {path[:100]}: {exc}", path, exc) from exc

    def close(self) -> None:
        self._zip.close()

    def __enter__(self) -> "Archive":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
