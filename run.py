# -*- coding: utf-8 -*-

"""
Main entry point: open an EPUB and print what the reader sees in it.

Usage: python run.py book.epub
"""

import logging
import sys

from epub_reader.core.models import StandardType
from epub_reader.core.services import DocumentService
from epub_reader.logging_config import setup_logging


def main(argv=None) -> int:
    """
    Configure logging, load the document and print a short summary.
    """
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("Usage: run.py <file.epub>")
        return 1

    setup_logging()

    service = DocumentService()
    result = service.open_document(argv[0])
    if not result.success:
        print(f"Failed to load {argv[0]}: {result.message}")
        return 1

    container = service.container
    print(f"Title:    {container.metadata('title') or '(untitled)'}")
    print(f"Creator:  {container.metadata('creator') or '(unknown)'}")
    print(f"Chapters: {len(service.chapters())}")
    for item_id in service.chapters():
        print(f"  - {item_id}")

    cover_id = container.metadata("cover")
    if cover_id:
        cover = container.get_image(cover_id)
        if cover is not None:
            print(f"Cover:    {cover.width}x{cover.height} ({cover.format})")

    toc = container.standard_page(StandardType.TABLE_OF_CONTENTS)
    if toc:
        print(f"TOC:      {toc}")

    service.close()
    logging.getLogger("epub_reader").info("===== Application terminated =====")
    return 0


if __name__ == '__main__':
    sys.exit(main())
