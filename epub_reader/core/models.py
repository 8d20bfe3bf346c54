from __future__ import annotations

"""Shared data structures used across the EPUB reader core.

This module is intentionally free of I/O code so that the contained objects
can be reused in any context (unit-tests, CLI, renderers, etc.).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

__all__ = [
    "DOCUMENT_MEDIA_TYPES",
    "MediaKind",
    "StandardType",
    "ManifestItem",
    "PageReference",
    "PackageDocument",
    "NormalizedContent",
    "PageSize",
]


class MediaKind(Enum):
    """Coarse classification of a manifest item's media type."""

    DOCUMENT = "document"
    IMAGE = "image"
    VECTOR = "vector"
    STYLESHEET = "stylesheet"
    FONT = "font"
    NAVIGATION = "navigation"
    OTHER = "other"

    @classmethod
    def from_media_type(cls, media_type: str) -> "MediaKind":
        media_type = (media_type or "").strip().lower()
        kind = _MEDIA_KINDS.get(media_type)
        if kind is not None:
            return kind
        if media_type.startswith("image/"):
            return cls.IMAGE
        if media_type.startswith("font/"):
            return cls.FONT
        return cls.OTHER


# Media types whose items carry readable content; they are held as unordered
# until the spine confirms a position for them.
DOCUMENT_MEDIA_TYPES = frozenset({
    "application/xhtml+xml",
    "application/x-dtbook+xml",
    "text/x-oeb1-document",
})

_MEDIA_KINDS: Dict[str, MediaKind] = {
    **{mt: MediaKind.DOCUMENT for mt in DOCUMENT_MEDIA_TYPES},
    "image/svg+xml": MediaKind.VECTOR,
    "text/css": MediaKind.STYLESHEET,
    "application/x-dtbncx+xml": MediaKind.NAVIGATION,
    "application/vnd.ms-opentype": MediaKind.FONT,
    "application/font-woff": MediaKind.FONT,
    "application/x-font-ttf": MediaKind.FONT,
    "application/x-font-truetype": MediaKind.FONT,
}


class StandardType(Enum):
    """Landmark kinds defined for the OPF ``guide`` element."""

    COVER_PAGE = "cover"
    TITLE_PAGE = "title-page"
    TABLE_OF_CONTENTS = "toc"
    INDEX = "index"
    GLOSSARY = "glossary"
    ACKNOWLEDGEMENTS = "acknowledgements"
    BIBLIOGRAPHY = "bibliography"
    COLOPHON = "colophon"
    COPYRIGHT_PAGE = "copyright-page"
    DEDICATION = "dedication"
    EPIGRAPH = "epigraph"
    FOREWORD = "foreword"
    LIST_OF_ILLUSTRATIONS = "loi"
    LIST_OF_TABLES = "lot"
    NOTES = "notes"
    PREFACE = "preface"
    TEXT = "text"
    OTHER = "other"

    @classmethod
    def from_string(cls, name: str) -> "StandardType":
        """Return the standard type named *name*, or ``OTHER``.

        ``"other"`` itself is not a guide keyword, so it maps to ``OTHER``
        like any unknown string.
        """
        return _STANDARD_TYPES.get(name, cls.OTHER)


_STANDARD_TYPES: Dict[str, StandardType] = {
    member.value: member for member in StandardType if member is not StandardType.OTHER
}


@dataclass(frozen=True)
class ManifestItem:
    """One resource declared in the package manifest.

    Attributes
    ----------
    id
        Unique manifest identifier.
    path
        Archive-relative path, already normalized against the package folder.
    media_type
        Declared media type, verbatim.
    kind
        Classification of *media_type*, fixed when the manifest is parsed.
    """

    id: str
    path: str
    media_type: str
    kind: MediaKind = MediaKind.OTHER


@dataclass(frozen=True)
class PageReference:
    """A named landmark from the guide (or synthesised from the spine)."""

    type: StandardType
    title: str
    target: str


@dataclass
class PackageDocument:
    """Everything extracted from one OPF package document."""

    path: str
    metadata: Dict[str, str] = field(default_factory=dict)
    items: Dict[str, ManifestItem] = field(default_factory=dict)
    ordered_items: List[str] = field(default_factory=list)
    # dict keys keep insertion order, so this doubles as an ordered set
    unordered_items: Dict[str, None] = field(default_factory=dict)
    standard_references: Dict[StandardType, PageReference] = field(default_factory=dict)
    other_references: Dict[str, PageReference] = field(default_factory=dict)


@dataclass(frozen=True)
class PageSize:
    """Dimensions of the rendering surface in pixels."""

    width: int
    height: int
    margin: int = 0

    @property
    def content_width(self) -> int:
        return max(1, self.width - 2 * self.margin)

    @property
    def content_height(self) -> int:
        return max(1, self.height - 2 * self.margin)


@dataclass
class NormalizedContent:
    """A chapter rewritten for the layout engine.

    Attributes
    ----------
    markup
        Serialized chapter markup with placeholders in place of SVG elements.
    vector_graphics
        Placeholder id → raw serialized SVG payload.
    resolved_sizes
        Placeholder id → (width, height) resolved from percentage attributes;
        ``None`` where the SVG attribute was absent or not a percentage.
    """

    markup: str
    vector_graphics: Dict[str, bytes] = field(default_factory=dict)
    resolved_sizes: Dict[str, Tuple[Optional[int], Optional[int]]] = field(default_factory=dict)
