"""Test configuration and fixtures for the EPUB reader tests.

EPUB files are assembled on the fly from dictionaries of archive paths to
contents, so every test states exactly which entries its container holds.
"""

import logging
import sys
import zipfile
from pathlib import Path
from typing import Dict, Union

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from epub_reader.config import ConfigManager

# Configure test logging
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


CONTAINER_XML = '''<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="{path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>'''

CONTENT_OPF = '''<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="2.0" unique-identifier="uid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/" xmlns:opf="http://www.idpf.org/2007/opf">
    <dc:title>A Sample Book</dc:title>
    <dc:creator>Jane Writer</dc:creator>
    <dc:date opf:event="publication">2011-05-01</dc:date>
    <meta name="cover" content="cover"/>
  </metadata>
  <manifest>
    <item id="ncx" href="toc.ncx" media-type="application/x-dtbncx+xml"/>
    <item id="ch1" href="chapter1.xhtml" media-type="application/xhtml+xml"/>
    <item id="cover" href="images/cover.jpg" media-type="image/jpeg"/>
  </manifest>
  <spine toc="ncx">
    <itemref idref="ch1"/>
  </spine>
  <guide>
    <reference type="cover" title="Cover" href="cover.xhtml"/>
  </guide>
</package>'''

CHAPTER_XHTML = '''<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
  <head><title>Chapter 1</title></head>
  <body><p>Hello <b>world</b>.</p></body>
</html>'''

FAKE_JPEG = b"\xff\xd8\xff\xe0fake-jpeg-bytes"


def write_epub(path: Path, files: Dict[str, Union[str, bytes]], *, mimetype: Union[str, None] = "application/epub+zip") -> Path:
    """Write an EPUB (ZIP) to *path* with the given entries."""
    with zipfile.ZipFile(path, "w") as zf:
        if mimetype is not None:
            zf.writestr("mimetype", mimetype, compress_type=zipfile.ZIP_STORED)
        for name, data in files.items():
            zf.writestr(name, data, compress_type=zipfile.ZIP_DEFLATED)
    return path


def container_xml(*paths: str) -> str:
    rootfiles = "\n".join(
        f'    <rootfile full-path="{p}" media-type="application/oebps-package+xml"/>' for p in paths
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">\n'
        f'  <rootfiles>\n{rootfiles}\n  </rootfiles>\n</container>'
    )


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point user overrides at an empty folder and reload config per test."""
    config_dir = tmp_path / "user_config"
    config_dir.mkdir()
    monkeypatch.setenv("EPUB_READER_CONFIG_DIR", str(config_dir))
    ConfigManager.reset()
    yield config_dir
    ConfigManager.reset()


@pytest.fixture
def build_epub(tmp_path):
    """Factory building an EPUB file from a mapping of entries."""
    counter = {"n": 0}

    def _build(files: Dict[str, Union[str, bytes]], **kwargs) -> Path:
        counter["n"] += 1
        return write_epub(tmp_path / f"book{counter['n']}.epub", files, **kwargs)

    return _build


@pytest.fixture
def sample_files() -> Dict[str, Union[str, bytes]]:
    return {
        "META-INF/container.xml": CONTAINER_XML.format(path="OEBPS/content.opf"),
        "OEBPS/content.opf": CONTENT_OPF,
        "OEBPS/chapter1.xhtml": CHAPTER_XHTML,
        "OEBPS/images/cover.jpg": FAKE_JPEG,
        "OEBPS/toc.ncx": "<ncx/>",
    }


@pytest.fixture
def sample_epub(build_epub, sample_files) -> Path:
    return build_epub(sample_files)
