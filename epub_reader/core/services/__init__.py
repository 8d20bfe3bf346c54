from __future__ import annotations

"""High-level orchestration services.

Services sit between front-ends and the core parsing modules; they follow a
non-raising pattern and report failures through result objects.
"""

from .document_service import Chapter, DocumentService, LoadResult  # noqa: F401

__all__: list[str] = [
    "DocumentService",
    "LoadResult",
    "Chapter",
]
