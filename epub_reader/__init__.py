"""Top-level package for the EPUB reader.

Front-ends (renderers, CLI) should only depend on the public API exposed
here rather than importing internal modules directly.
"""

from .core.container import EpubContainer, open_container  # re-export for convenience
from .core.models import ManifestItem, PageReference, PageSize, StandardType
from .core.services import DocumentService, LoadResult

__all__: list[str] = [
    "EpubContainer",
    "open_container",
    "ManifestItem",
    "PageReference",
    "PageSize",
    "StandardType",
    "DocumentService",
    "LoadResult",
]
