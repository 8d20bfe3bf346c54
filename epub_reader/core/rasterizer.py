from __future__ import annotations

"""On-demand rasterization of extracted SVG graphics.

The normalizer leaves ``svgimage:<id>`` placeholders in chapter markup. When
the layout engine asks for such an address, :class:`SvgRasterizer` renders
the stored payload to PNG at a size derived from the current page and keeps
the result until the page size changes.
"""

import logging
import math
from typing import Callable, Dict, Optional, Tuple

from lxml import etree as ET

from epub_reader.core.models import PageSize

logger = logging.getLogger(__name__)

__all__ = ["SvgRasterizer", "intrinsic_size", "render_size", "render_svg_png"]

Renderer = Callable[[bytes, int, int], bytes]


def render_svg_png(payload: bytes, width: int, height: int) -> bytes:
    """Render *payload* to a PNG of *width* x *height* pixels with CairoSVG."""
    import cairosvg  # needs libcairo at import time

    return cairosvg.svg2png(bytestring=payload, output_width=width, output_height=height)


def _number(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    value = value.strip()
    if value.endswith("px"):
        value = value[:-2]
    try:
        number = float(value)
    except ValueError:
        return None
    return number if number > 0 else None


def intrinsic_size(payload: bytes) -> Optional[Tuple[float, float]]:
    """Return the declared (width, height) of an SVG payload, if any.

    Numeric ``width``/``height`` attributes (optionally in ``px``) win over
    the ``viewBox`` extent. Percentages count as undeclared.
    """
    parser = ET.XMLParser(recover=True, resolve_entities=False, no_network=True, huge_tree=True)
    try:
        svg = ET.fromstring(payload, parser)
    except ET.XMLSyntaxError:
        return None
    if svg is None:
        return None

    width, height = _number(svg.get("width")), _number(svg.get("height"))
    if width and height:
        return width, height

    view_box = (svg.get("viewBox") or "").replace(",", " ").split()
    if len(view_box) == 4:
        box_width, box_height = _number(view_box[2]), _number(view_box[3])
        if box_width and box_height:
            return box_width, box_height
    return None


def render_size(payload: bytes, page_size: PageSize) -> Tuple[int, int]:
    """Pick the bitmap size for *payload* on a page of *page_size*.

    A graphic with an intrinsic size keeps its aspect ratio and is scaled to
    fit the page minus its margins; otherwise the whole page is used.
    """
    size = intrinsic_size(payload)
    if size is None:
        return page_size.width, page_size.height

    width, height = size
    scale = min(page_size.content_width / width, page_size.content_height / height)
    return max(1, math.floor(width * scale)), max(1, math.floor(height * scale))


class SvgRasterizer:
    """Side-table of SVG payloads plus a cache of their rasterizations.

    Owned by a single document session. :meth:`invalidate` drops every
    cached bitmap; it runs automatically when :meth:`set_page_size` changes
    the page.
    """

    def __init__(self, page_size: PageSize, renderer: Optional[Renderer] = None) -> None:
        self._page_size = page_size
        self._renderer = renderer or render_svg_png
        self._payloads: Dict[str, bytes] = {}
        self._cache: Dict[str, bytes] = {}

    @property
    def page_size(self) -> PageSize:
        return self._page_size

    def set_page_size(self, page_size: PageSize) -> bool:
        """Switch to *page_size*; returns True if cached bitmaps were dropped."""
        if page_size == self._page_size:
            return False
        self._page_size = page_size
        self.invalidate()
        return True

    def add(self, payloads: Dict[str, bytes]) -> None:
        self._payloads.update(payloads)

    def payload(self, placeholder_id: str) -> Optional[bytes]:
        return self._payloads.get(placeholder_id)

    def __contains__(self, placeholder_id: str) -> bool:
        return placeholder_id in self._payloads

    def __len__(self) -> int:
        return len(self._payloads)

    def is_cached(self, placeholder_id: str) -> bool:
        return placeholder_id in self._cache

    def rasterize(self, placeholder_id: str) -> Optional[bytes]:
        """Return PNG bytes for *placeholder_id*, rendering on first request.

        Returns None for unknown ids or when rendering fails.
        """
        cached = self._cache.get(placeholder_id)
        if cached is not None:
            return cached

        payload = self._payloads.get(placeholder_id)
        if payload is None:
            logger.warning("Asked for unknown SVG %s", placeholder_id)
            return None

        width, height = render_size(payload, self._page_size)
        try:
            image = self._renderer(payload, width, height)
        except Exception:  # noqa: BLE001
            logger.error("Rasterizing SVG %s failed", placeholder_id, exc_info=True)
            return None

        logger.debug("Rasterized SVG %s at %dx%d", placeholder_id, width, height)
        self._cache[placeholder_id] = image
        return image

    def invalidate(self) -> None:
        if self._cache:
            logger.debug("Dropping %d cached SVG rasterizations", len(self._cache))
        self._cache.clear()

    def clear(self) -> None:
        """Forget payloads and bitmaps; used when a new document is loaded."""
        self._payloads.clear()
        self._cache.clear()
