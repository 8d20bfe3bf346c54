from __future__ import annotations

"""Chapter markup normalization for generic rich-text layout engines.

Layout engines that only understand HTML cannot draw inline SVG. Before a
chapter is handed over, two passes rewrite its markup tree:

1. Raster inlining: every ``image`` element inside an SVG that points to an
   archive resource is replaced by a ``data:`` URI, so the SVG payload is
   self-contained once it leaves the archive.
2. Vector extraction: every top-level ``svg`` element is serialized into a
   side-table and replaced by an ``<img>`` whose ``src`` is an opaque
   placeholder address (``svgimage:<id>``). The layout engine asks for that
   address later and gets a rasterized bitmap back.

Inlining must run first; extraction mutates the tree and runs once.
"""

import base64
import itertools
import logging
import math
from typing import Callable, Optional, Union

from lxml import etree as ET

from epub_reader.core.models import NormalizedContent, PageSize
from epub_reader.core.paths import resolve_href

logger = logging.getLogger(__name__)

__all__ = [
    "PlaceholderIds",
    "normalize",
    "inline_svg_images",
    "extract_vector_graphics",
    "resolve_percentage",
    "placeholder_address",
    "parse_placeholder_address",
    "DEFAULT_SCHEME",
]

XHTML_NAMESPACE = "http://www.w3.org/1999/xhtml"
XLINK_HREF = "{http://www.w3.org/1999/xlink}href"
DEFAULT_SCHEME = "svgimage"
DEFAULT_INLINE_MEDIA_TYPE = "image/jpeg"

_SVG_IMAGES = ET.XPath("//*[local-name()='svg']//*[local-name()='image']")
_TOP_LEVEL_SVGS = ET.XPath("//*[local-name()='svg'][not(ancestor::*[local-name()='svg'])]")

Fetcher = Callable[[str], Optional[bytes]]


class PlaceholderIds:
    """Monotonic placeholder id source; one per document session, never reused."""

    def __init__(self, start: int = 0) -> None:
        self._counter = itertools.count(start)

    def __call__(self) -> str:
        return str(next(self._counter))


def placeholder_address(placeholder_id: str, scheme: str = DEFAULT_SCHEME) -> str:
    return f"{scheme}:{placeholder_id}"


def parse_placeholder_address(address: str, scheme: str = DEFAULT_SCHEME) -> Optional[str]:
    """Return the placeholder id of *address*, or None for ordinary paths."""
    prefix = f"{scheme}:"
    if address.startswith(prefix):
        return address[len(prefix):]
    return None


def resolve_percentage(value: Optional[str], dimension: int) -> Optional[int]:
    """Resolve a percentage attribute such as ``"50%"`` against *dimension*.

    Returns None when *value* is missing or not a percentage.

    Examples:
        >>> resolve_percentage("50%", 600)
        300
        >>> resolve_percentage("120", 600) is None
        True
    """
    if not value:
        return None
    value = value.strip()
    if not value.endswith("%"):
        return None
    try:
        percent = float(value[:-1])
    except ValueError:
        return None
    return math.floor(dimension * percent / 100)


def _parse_markup(markup: Union[str, bytes]) -> ET._Element:
    if isinstance(markup, str):
        markup = markup.encode("utf-8")
    parser = ET.XMLParser(recover=True, resolve_entities=False, no_network=True, huge_tree=True)
    try:
        root = ET.fromstring(markup, parser)
    except ET.XMLSyntaxError as exc:
        raise ValueError(f"Chapter markup is not XML: {exc}") from exc
    if root is None:
        raise ValueError("Chapter markup contains no element")
    return root


def inline_svg_images(
    root: ET._Element,
    base_path: str,
    fetch: Fetcher,
    media_type: str = DEFAULT_INLINE_MEDIA_TYPE,
) -> int:
    """Replace archive references of SVG ``image`` elements with ``data:`` URIs.

    Unresolvable references are left untouched. Returns the number of
    rewritten elements.
    """
    rewritten = 0
    for image in _SVG_IMAGES(root):
        attribute = XLINK_HREF if image.get(XLINK_HREF) else "href"
        href = image.get(attribute)
        if not href or href.startswith("data:") or "://" in href:
            continue

        path = resolve_href(base_path, href)
        data = fetch(path)
        if data is None:
            logger.warning("Unable to inline SVG image %s", path[:100])
            continue

        encoded = base64.b64encode(data).decode("ascii")
        image.set(attribute, f"data:{media_type};base64,{encoded}")
        rewritten += 1
    return rewritten


def _placeholder_for(svg: ET._Element, src: str) -> ET._Element:
    parent = svg.getparent()
    namespace = ET.QName(parent).namespace if parent is not None else None
    tag = f"{{{XHTML_NAMESPACE}}}img" if namespace == XHTML_NAMESPACE else "img"
    placeholder = ET.Element(tag, nsmap=None)
    placeholder.set("src", src)
    placeholder.tail = svg.tail
    return placeholder


def extract_vector_graphics(
    root: ET._Element,
    content: NormalizedContent,
    *,
    page_size: PageSize,
    next_id: Callable[[], str],
    scheme: str = DEFAULT_SCHEME,
) -> ET._Element:
    """Move top-level SVG elements of *root* into *content*'s side-table.

    Returns the (possibly replaced) root element.
    """
    for svg in _TOP_LEVEL_SVGS(root):
        placeholder_id = next_id()

        width = resolve_percentage(svg.get("width"), page_size.width)
        height = resolve_percentage(svg.get("height"), page_size.height)
        content.resolved_sizes[placeholder_id] = (width, height)
        if width is not None or height is not None:
            logger.debug("SVG %s percentage size resolved to %sx%s", placeholder_id, width, height)

        content.vector_graphics[placeholder_id] = ET.tostring(svg, encoding="utf-8", with_tail=False)

        placeholder = _placeholder_for(svg, placeholder_address(placeholder_id, scheme))
        parent = svg.getparent()
        if parent is None:
            root = placeholder
        else:
            parent.replace(svg, placeholder)
    return root


def normalize(
    markup: Union[str, bytes],
    base_path: str,
    fetch: Fetcher,
    *,
    page_size: PageSize,
    next_id: Callable[[], str],
    scheme: str = DEFAULT_SCHEME,
    inline_media_type: str = DEFAULT_INLINE_MEDIA_TYPE,
) -> NormalizedContent:
    """Rewrite chapter *markup* stored at *base_path* for the layout engine.

    Parameters
    ----------
    markup
        Raw chapter markup (XHTML).
    base_path
        Archive path of the chapter, used to resolve relative references.
    fetch
        Returns the bytes of an archive path, or None when it does not resolve.
    page_size
        Current rendering surface, used to resolve percentage dimensions.
    next_id
        Placeholder id source owned by the document session.
    """
    root = _parse_markup(markup)
    content = NormalizedContent(markup="")

    inlined = inline_svg_images(root, base_path, fetch, inline_media_type)
    root = extract_vector_graphics(root, content, page_size=page_size, next_id=next_id, scheme=scheme)

    content.markup = ET.tostring(root, encoding="unicode")
    logger.debug(
        "Normalized %s: %d inlined images, %d vector graphics",
        base_path, inlined, len(content.vector_graphics),
    )
    return content
