from __future__ import annotations

"""OPF package document parser.

Turns the package document of an EPUB into a :class:`PackageDocument`:
metadata, manifest, spine (reading order) and guide (landmarks).

Elements are matched by local name so that packages mixing namespaced and
un-namespaced markup are read the same way. Each section is parsed
independently; a bad entry in one of them is logged and skipped without
affecting the others.
"""

import logging
from typing import Iterator

from lxml import etree as ET

from epub_reader.core.archive import Archive
from epub_reader.core.exceptions import PackageMalformedError, ResourceNotFoundError
from epub_reader.core.models import (
    ManifestItem,
    MediaKind,
    PackageDocument,
    PageReference,
    StandardType,
)
from epub_reader.core.paths import resolve_href

logger = logging.getLogger(__name__)

__all__ = ["parse_package", "parse_package_bytes", "DC_NAMESPACES"]

DC_NAMESPACES = frozenset({
    "http://purl.org/dc/elements/1.1/",
    "http://purl.org/dc/elements/1.0/",
})

TOC_TITLE = "Table of Contents"


def _local_name(element: ET._Element) -> str:
    return ET.QName(element).localname


def _descendants(parent: ET._Element, local_name: str) -> Iterator[ET._Element]:
    """Yield element descendants of *parent* (document order) named *local_name*."""
    for element in parent.iterdescendants():
        if isinstance(element.tag, str) and _local_name(element) == local_name:
            yield element


def _elements(root: ET._Element, local_name: str) -> Iterator[ET._Element]:
    if _local_name(root) == local_name:
        yield root
    yield from _descendants(root, local_name)


def _text(element: ET._Element) -> str:
    return "".join(element.itertext()).strip()


def _attribute(element: ET._Element, local_name: str) -> str:
    """Return attribute *local_name* whether or not the publisher prefixed it."""
    value = element.get(local_name)
    if value is not None:
        return value
    for key, value in element.attrib.items():
        if ET.QName(key).localname == local_name:
            return value
    return ""


def parse_package(archive: Archive, package_path: str, *, honor_linear: bool = False) -> PackageDocument:
    """Read and parse the package document stored at *package_path*.

    Raises:
        PackageMalformedError: if the document is missing, is not XML or
            declares no usable manifest item.
    """
    try:
        data = archive.read_file(package_path)
    except ResourceNotFoundError as exc:
        raise PackageMalformedError(
            "Malformed metadata, unable to get content metadata path", package_path, exc
        ) from exc
    return parse_package_bytes(data, package_path, honor_linear=honor_linear)


def parse_package_bytes(data: bytes, package_path: str, *, honor_linear: bool = False) -> PackageDocument:
    """Parse package document *data* located at *package_path* in the archive."""
    parser = ET.XMLParser(recover=True, resolve_entities=False, no_network=True, remove_blank_text=True)
    try:
        root = ET.fromstring(data, parser)
    except (ET.XMLSyntaxError, ValueError) as exc:
        raise PackageMalformedError(f"Package document is not XML: {exc}", package_path, exc) from exc
    if root is None:
        raise PackageMalformedError("Package document is empty", package_path)

    package = PackageDocument(path=package_path)

    for metadata_element in _elements(root, "metadata"):
        for child in metadata_element:
            if isinstance(child.tag, str):
                _parse_metadata_item(package, child)

    for manifest in _elements(root, "manifest"):
        for item in _descendants(manifest, "item"):
            _parse_manifest_item(package, item)

    if not package.items:
        raise PackageMalformedError("Package declares no usable manifest items", package_path)

    for spine in _elements(root, "spine"):
        toc_id = _attribute(spine, "toc")
        if toc_id and toc_id in package.items:
            package.standard_references[StandardType.TABLE_OF_CONTENTS] = PageReference(
                type=StandardType.TABLE_OF_CONTENTS, title=TOC_TITLE, target=toc_id
            )
        for itemref in _descendants(spine, "itemref"):
            _parse_spine_item(package, itemref, honor_linear)

    for guide in _elements(root, "guide"):
        for reference in _descendants(guide, "reference"):
            _parse_guide_item(package, reference)

    logger.info(
        "Parsed package %s: %d metadata, %d items, %d ordered, %d unordered",
        package_path,
        len(package.metadata),
        len(package.items),
        len(package.ordered_items),
        len(package.unordered_items),
    )
    return package


def _parse_metadata_item(package: PackageDocument, element: ET._Element) -> bool:
    tag_name = _local_name(element)

    if tag_name == "meta":
        name = _attribute(element, "name")
        value = _attribute(element, "content")
    elif ET.QName(element).namespace not in DC_NAMESPACES:
        logger.warning("Unsupported metadata tag %s", tag_name)
        return False
    elif tag_name == "date":
        name = _attribute(element, "event")
        value = _text(element)
    else:
        name = tag_name
        value = _text(element)

    if not name or not value:
        return False
    package.metadata[name] = value
    return True


def _parse_manifest_item(package: PackageDocument, element: ET._Element) -> bool:
    item_id = _attribute(element, "id")
    href = _attribute(element, "href")
    media_type = _attribute(element, "media-type")

    if not item_id or not href:
        logger.warning("Invalid manifest item at line %s", element.sourceline)
        return False

    item = ManifestItem(
        id=item_id,
        path=resolve_href(package.path, href),
        media_type=media_type,
        kind=MediaKind.from_media_type(media_type),
    )
    package.items[item_id] = item

    if item.kind is MediaKind.DOCUMENT:
        package.unordered_items[item_id] = None
    return True


def _parse_spine_item(package: PackageDocument, element: ET._Element, honor_linear: bool) -> bool:
    idref = _attribute(element, "idref")
    if not idref:
        logger.warning("Invalid spine item at line %s", element.sourceline)
        return False

    if idref not in package.items:
        logger.warning("Unable to find %s in items", idref)
        return False

    if honor_linear and _attribute(element, "linear").strip().lower() == "no":
        logger.debug("Keeping non-linear item %s out of the reading order", idref)
        package.unordered_items.setdefault(idref, None)
        return True

    if idref in package.ordered_items:
        logger.warning("Spine references %s more than once", idref)
        return False

    package.unordered_items.pop(idref, None)
    package.ordered_items.append(idref)
    return True


def _parse_guide_item(package: PackageDocument, element: ET._Element) -> bool:
    target = _attribute(element, "href")
    title = _attribute(element, "title")
    type_name = _attribute(element, "type")

    if not target or not title or not type_name:
        logger.warning("Invalid guide item %s %s %s", target, title, type_name)
        return False

    standard_type = StandardType.from_string(type_name)
    reference = PageReference(type=standard_type, title=title, target=target)
    if standard_type is StandardType.OTHER:
        package.other_references[type_name] = reference
    else:
        package.standard_references[standard_type] = reference
    return True
