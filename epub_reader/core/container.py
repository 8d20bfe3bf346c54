from __future__ import annotations

"""EPUB container: locating the package document and serving its resources.

:func:`locate_package` implements the OCF lookup through
``META-INF/container.xml``. :class:`EpubContainer` is the catalog handed to
front-ends: it owns the opened archive and answers metadata, reading-order,
landmark and resource queries.
"""

import io
import logging
from pathlib import Path
from typing import IO, Callable, Dict, List, Optional, Union

from lxml import etree as ET
from PIL import Image, UnidentifiedImageError

from epub_reader.core.archive import Archive
from epub_reader.core.exceptions import (
    ContainerMissingError,
    EpubError,
    PackageMalformedError,
    ResourceNotFoundError,
    RootfileNotFoundError,
)
from epub_reader.core.models import ManifestItem, MediaKind, PackageDocument, PageReference, StandardType
from epub_reader.core.package_parser import parse_package
from epub_reader.core.paths import clean_path

logger = logging.getLogger(__name__)

__all__ = ["EpubContainer", "locate_package", "open_container"]

MIMETYPE_FILE = "mimetype"
CONTAINER_FILE = "META-INF/container.xml"
EPUB_MIMETYPE = b"application/epub+zip"


def check_mimetype(archive: Archive) -> bool:
    """Return True when the ``mimetype`` entry carries the EPUB media type.

    Absence or mismatch is only logged: plenty of readable files get it wrong.
    """
    try:
        mimetype = archive.read_file(MIMETYPE_FILE).strip()
    except ResourceNotFoundError:
        logger.warning("No mimetype entry in %s", archive.source)
        return False

    if mimetype != EPUB_MIMETYPE:
        logger.warning("Unexpected mimetype %r", mimetype[:100])
        return False
    return True


def locate_package(
    archive: Archive,
    parse: Callable[[Archive, str], PackageDocument] = parse_package,
) -> PackageDocument:
    """Find the first root file listed in the container that parses.

    Only one rendition is used; alternate root files are ignored.

    Raises:
        ContainerMissingError: if ``META-INF/container.xml`` is absent or unreadable.
        RootfileNotFoundError: if no candidate root file yields a package.
    """
    check_mimetype(archive)

    try:
        data = archive.read_file(CONTAINER_FILE)
    except ResourceNotFoundError as exc:
        logger.warning("No container file in %s", archive.source)
        raise ContainerMissingError("Unable to find container information", archive.source, exc) from exc

    parser = ET.XMLParser(recover=True, resolve_entities=False, no_network=True)
    try:
        root = ET.fromstring(data, parser)
    except ET.XMLSyntaxError as exc:
        raise ContainerMissingError(f"Unreadable container information: {exc}", CONTAINER_FILE, exc) from exc
    if root is None:
        raise ContainerMissingError("Empty container information", CONTAINER_FILE)

    candidates: List[str] = []
    for element in root.iter():
        if not isinstance(element.tag, str) or ET.QName(element).localname != "rootfile":
            continue
        rootfile_path = clean_path(element.get("full-path", ""))
        if not rootfile_path:
            logger.warning("Invalid root file entry at line %s", element.sourceline)
            continue
        candidates.append(rootfile_path)
        try:
            return parse(archive, rootfile_path)
        except PackageMalformedError as exc:
            logger.warning("Skipping root file %s: %s", rootfile_path, exc)

    raise RootfileNotFoundError(
        "Unable to find and use any content files", archive.source, candidates=candidates
    )


class EpubContainer:
    """Resource catalog for one opened EPUB file.

    Opening a new file discards everything loaded from the previous one.

    Examples
    --------
    >>> container = EpubContainer()
    >>> container.open_file("book.epub")
    >>> container.metadata("title")
    'A Book'
    >>> container.reading_order()
    ['ch1', 'ch2']
    """

    def __init__(self, *, honor_linear: bool = False) -> None:
        self.honor_linear = honor_linear
        self._archive: Optional[Archive] = None
        self._package: Optional[PackageDocument] = None

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------
    def open_file(self, source: Union[str, Path, IO[bytes]]) -> None:
        """Open *source* and parse its package document.

        Raises:
            EpubError: one of the archive or container level errors; the
                container is left empty.
        """
        self.close()

        archive = Archive.open(source)
        try:
            package = locate_package(
                archive, lambda a, p: parse_package(a, p, honor_linear=self.honor_linear)
            )
        except EpubError:
            archive.close()
            raise

        self._archive = archive
        self._package = package
        logger.info("Opened %s (package %s)", archive.source, package.path)

    def close(self) -> None:
        if self._archive is not None:
            self._archive.close()
        self._archive = None
        self._package = None

    @property
    def is_open(self) -> bool:
        return self._package is not None

    @property
    def package_path(self) -> str:
        return self._require_package().path

    def _require_package(self) -> PackageDocument:
        if self._package is None:
            raise EpubError("No EPUB file is open")
        return self._package

    # ------------------------------------------------------------------
    # Catalog queries
    # ------------------------------------------------------------------
    def metadata(self, key: str) -> Optional[str]:
        return self._require_package().metadata.get(key)

    def all_metadata(self) -> Dict[str, str]:
        return dict(self._require_package().metadata)

    def item(self, item_id: str) -> Optional[ManifestItem]:
        return self._require_package().items.get(item_id)

    def items(self) -> Dict[str, ManifestItem]:
        return dict(self._require_package().items)

    def reading_order(self) -> List[str]:
        return list(self._require_package().ordered_items)

    def unordered_items(self) -> List[str]:
        return list(self._require_package().unordered_items)

    def standard_page(self, page_type: StandardType) -> Optional[str]:
        reference = self._require_package().standard_references.get(page_type)
        return reference.target if reference is not None else None

    def standard_reference(self, page_type: StandardType) -> Optional[PageReference]:
        return self._require_package().standard_references.get(page_type)

    def other_page(self, type_name: str) -> Optional[str]:
        reference = self._require_package().other_references.get(type_name)
        return reference.target if reference is not None else None

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------
    def read_file(self, path: str) -> bytes:
        """Return the bytes of the archive file at *path* (case-insensitive fallback)."""
        if self._archive is None:
            raise EpubError("No EPUB file is open")
        return self._archive.read_file(path)

    def resource_bytes(self, id_or_path: str) -> bytes:
        """Return the bytes for a manifest id, or for an archive path.

        Raises:
            ResourceNotFoundError: if neither resolves to an archive file.
        """
        item = self._require_package().items.get(id_or_path)
        path = item.path if item is not None else id_or_path
        try:
            return self.read_file(path)
        except ResourceNotFoundError:
            logger.warning("Unable to open file %s", path[:100])
            raise

    def fetch(self, path: str) -> Optional[bytes]:
        """Non-raising variant of :meth:`read_file` used as a resource fetcher."""
        try:
            return self.read_file(path)
        except ResourceNotFoundError:
            return None

    def get_image(self, item_id: str) -> Optional[Image.Image]:
        """Decode the image item *item_id* with Pillow.

        Returns None for unknown ids, items that are not raster images, or
        data Pillow cannot decode.
        """
        item = self.item(item_id)
        if item is None:
            logger.warning("Asked for unknown item %s", item_id)
            return None

        if item.kind is not MediaKind.IMAGE:
            logger.warning("Asked for unsupported type %s", item.media_type)
            return None

        try:
            data = self.read_file(item.path)
        except ResourceNotFoundError:
            return None

        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as exc:
            logger.warning("Unable to decode image %s: %s", item.path, exc)
            return None
        return image


def open_container(source: Union[str, Path, IO[bytes]], *, honor_linear: bool = False) -> EpubContainer:
    """Open *source* and return a ready :class:`EpubContainer`."""
    container = EpubContainer(honor_linear=honor_linear)
    container.open_file(source)
    return container
