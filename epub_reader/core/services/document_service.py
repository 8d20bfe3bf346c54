from __future__ import annotations

"""Document session: loads an EPUB and serves it to a layout engine.

A :class:`DocumentService` is one reading session. It owns the
:class:`EpubContainer`, the normalized chapters, the SVG side-table with its
rasterization cache and the placeholder id counter. Front-ends call
:meth:`DocumentService.open_document` (or its threaded variant), hand
:attr:`Chapter.markup` to their layout engine, and route every resource
request of that engine through :meth:`DocumentService.load_resource`.
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from lxml import etree as ET

from epub_reader.config import ConfigManager
from epub_reader.core.container import EpubContainer
from epub_reader.core.exceptions import EpubError, ResourceNotFoundError
from epub_reader.core.models import NormalizedContent, PageSize
from epub_reader.core.normalizer import PlaceholderIds, normalize, parse_placeholder_address
from epub_reader.core.paths import clean_path, resolve_href
from epub_reader.core.rasterizer import Renderer, SvgRasterizer

logger = logging.getLogger(__name__)

__all__ = ["DocumentService", "LoadResult", "Chapter"]


@dataclass
class LoadResult:
    """Outcome of a document load.

    Attributes
    ----------
    success : bool
        Whether a catalog is available.
    message : str
        Single human-readable diagnostic; empty on success.
    details : Optional[Dict[str, Any]]
        Structured extras (error kind, chapter counts, skipped items).
    """
    success: bool
    message: str
    details: Optional[Dict[str, Any]] = None


@dataclass
class Chapter:
    """A normalized chapter ready for the layout engine."""
    item_id: str
    path: str
    content: NormalizedContent

    @property
    def markup(self) -> str:
        return self.content.markup


class DocumentService:
    """One reading session over an EPUB file.

    Not reentrant: a load started while another is running is refused, and a
    new load discards everything the previous one produced.
    """

    def __init__(
        self,
        page_size: Optional[PageSize] = None,
        *,
        honor_linear: Optional[bool] = None,
        renderer: Optional[Renderer] = None,
    ) -> None:
        config = ConfigManager()
        page_cfg = config.get_page_config()
        normalizer_cfg = config.get_normalizer_config()

        if page_size is None:
            page_size = PageSize(
                width=int(page_cfg.get("width", 600)),
                height=int(page_cfg.get("height", 800)),
                margin=int(page_cfg.get("margin", 0)),
            )
        if honor_linear is None:
            honor_linear = bool(config.get_spine_config().get("honor_linear", False))

        self.scheme: str = normalizer_cfg.get("placeholder_scheme") or "svgimage"
        self.inline_media_type: str = normalizer_cfg.get("inline_media_type") or "image/jpeg"

        self.container = EpubContainer(honor_linear=honor_linear)
        self._rasterizer = SvgRasterizer(page_size, renderer)
        self._next_id = PlaceholderIds()
        self._chapters: Dict[str, Chapter] = {}
        self._order: List[str] = []
        self._current: Optional[Chapter] = None
        self._lock = threading.Lock()
        self.loaded = False

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def open_document(self, source: Union[str, Path]) -> LoadResult:
        """Open *source* and normalize every chapter in reading order.

        Never raises for routine failures; see :class:`LoadResult`.
        """
        if not self._lock.acquire(blocking=False):
            logger.warning("Load of %s refused: another load is running", source)
            return LoadResult(False, "A document is already being loaded.", {"reason": "busy"})
        try:
            return self._load(source)
        finally:
            self._lock.release()

    def open_document_async(
        self,
        source: Union[str, Path],
        on_complete: Optional[Callable[[LoadResult], None]] = None,
    ) -> threading.Thread:
        """Run :meth:`open_document` on a worker thread.

        *on_complete* is called from the worker thread with the result.
        """
        def _worker() -> None:
            result = self.open_document(source)
            if on_complete is not None:
                on_complete(result)

        thread = threading.Thread(target=_worker, name="epub-load", daemon=True)
        thread.start()
        return thread

    def _reset(self) -> None:
        self.loaded = False
        self.container.close()
        self._rasterizer.clear()
        self._chapters.clear()
        self._order.clear()
        self._current = None

    def _load(self, source: Union[str, Path]) -> LoadResult:
        self._reset()
        logger.info("Loading document %s", source)

        try:
            self.container.open_file(source)
        except EpubError as exc:
            logger.error("Failed to open %s: %s", source, exc)
            return LoadResult(False, str(exc), {"reason": type(exc).__name__})

        skipped: List[str] = []
        for item_id in self.container.reading_order():
            chapter = self._build_chapter(item_id)
            if chapter is None:
                skipped.append(item_id)
                continue
            self._chapters[item_id] = chapter
            self._order.append(item_id)

        if self._order:
            self._current = self._chapters[self._order[0]]
        self.loaded = True
        logger.info("Loaded %s: %d chapters, %d skipped", source, len(self._order), len(skipped))
        return LoadResult(True, "", {"chapters": len(self._order), "skipped": skipped})

    def _build_chapter(self, item_id: str) -> Optional[Chapter]:
        item = self.container.item(item_id)
        if item is None:
            return None
        try:
            data = self.container.resource_bytes(item_id)
        except ResourceNotFoundError:
            logger.warning("Unable to get content for chapter %s", item_id)
            return None

        try:
            content = normalize(
                data,
                item.path,
                self.container.fetch,
                page_size=self._rasterizer.page_size,
                next_id=self._next_id,
                scheme=self.scheme,
                inline_media_type=self.inline_media_type,
            )
        except (ValueError, ET.XMLSyntaxError) as exc:
            logger.warning("Unable to normalize chapter %s: %s", item_id, exc)
            return None

        self._rasterizer.add(content.vector_graphics)
        return Chapter(item_id=item_id, path=item.path, content=content)

    def close(self) -> None:
        self._reset()

    # ------------------------------------------------------------------
    # Chapters
    # ------------------------------------------------------------------
    def chapters(self) -> List[str]:
        return list(self._order)

    @property
    def current_chapter(self) -> Optional[Chapter]:
        return self._current

    def chapter(self, item_id: str) -> Optional[Chapter]:
        """Return the normalized chapter *item_id*, normalizing it on first use.

        Items outside the reading order (unordered documents, the cover
        page...) are normalized lazily and then kept with the others.
        """
        chapter = self._chapters.get(item_id)
        if chapter is None and self.loaded:
            chapter = self._build_chapter(item_id)
            if chapter is not None:
                self._chapters[item_id] = chapter
        return chapter

    def set_chapter(self, item_id: str) -> Optional[Chapter]:
        chapter = self.chapter(item_id)
        if chapter is None:
            logger.warning("Unable to set chapter %s", item_id)
            return None
        self._current = chapter
        return chapter

    def _step(self, offset: int) -> Optional[Chapter]:
        if self._current is None or self._current.item_id not in self._order:
            return None
        index = self._order.index(self._current.item_id) + offset
        if index < 0 or index >= len(self._order):
            return None
        self._current = self._chapters[self._order[index]]
        return self._current

    def next_chapter(self) -> Optional[Chapter]:
        return self._step(1)

    def previous_chapter(self) -> Optional[Chapter]:
        return self._step(-1)

    # ------------------------------------------------------------------
    # Layout engine callbacks
    # ------------------------------------------------------------------
    @property
    def page_size(self) -> PageSize:
        return self._rasterizer.page_size

    def resize(self, page_size: PageSize) -> None:
        """Report a new rendering surface size; stale SVG bitmaps are dropped."""
        if self._rasterizer.set_page_size(page_size):
            logger.debug("Page resized to %dx%d", page_size.width, page_size.height)

    def is_placeholder(self, name: str) -> bool:
        return parse_placeholder_address(name, self.scheme) is not None

    def load_resource(self, name: str) -> Optional[bytes]:
        """Resource callback for the layout engine.

        Placeholder addresses are rasterized from the SVG side-table; any
        other name is a path relative to the current chapter. Returns None
        when the resource does not exist.
        """
        placeholder_id = parse_placeholder_address(name, self.scheme)
        if placeholder_id is not None:
            return self._rasterizer.rasterize(placeholder_id)

        if not self.container.is_open:
            return None
        if self._current is not None:
            path = resolve_href(self._current.path, name)
        else:
            path = clean_path(name)

        data = self.container.fetch(path)
        if data is None:
            logger.warning("Unable to load resource %s", path[:100])
        return data

    def svg_payload(self, placeholder_id: str) -> Optional[bytes]:
        return self._rasterizer.payload(placeholder_id)

    def is_rasterized(self, placeholder_id: str) -> bool:
        return self._rasterizer.is_cached(placeholder_id)
