from __future__ import annotations

"""Exception classes for EPUB container handling.

Archive- and container-level failures abort a whole open operation and are
raised to the caller. Problems with individual manifest, spine or guide
entries are never raised: they are logged and the entry is skipped.
"""

from typing import Optional

__all__ = [
    "EpubError",
    "ArchiveOpenError",
    "ArchiveReadError",
    "ContainerError",
    "ContainerMissingError",
    "RootfileNotFoundError",
    "PackageMalformedError",
    "ResourceNotFoundError",
]


class EpubError(Exception):
    """Base exception for all EPUB reading errors.

    Carries the offending archive or entry path (when known) and the
    low-level exception that triggered the failure.
    """

    def __init__(self, message: str, path: Optional[str] = None,
                 cause: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.path = path
        self.cause = cause

    def __str__(self) -> str:
        if self.path:
            return f"[{self.path}] {super().__str__()}"
        return super().__str__()


class ArchiveOpenError(EpubError):
    """Raised when the container file is missing, unreadable or not a ZIP."""
    pass


class ArchiveReadError(EpubError):
    """Raised when the root directory of an opened archive cannot be listed."""
    pass


class ContainerError(EpubError):
    """Base class for failures while locating the package document."""
    pass


class ContainerMissingError(ContainerError):
    """Raised when ``META-INF/container.xml`` is absent or unreadable."""
    pass


class RootfileNotFoundError(ContainerError):
    """Raised when no ``rootfile`` candidate yields a usable package."""

    def __init__(self, message: str, path: Optional[str] = None,
                 candidates: Optional[list[str]] = None,
                 cause: Optional[Exception] = None) -> None:
        super().__init__(message, path, cause)
        self.candidates = candidates or []


class PackageMalformedError(EpubError):
    """Raised when a package document cannot be used.

    The container locator treats this as a signal to try the next root file.
    """
    pass


class ResourceNotFoundError(EpubError):
    """Raised when a path or manifest id does not resolve to an archive file."""
    pass
