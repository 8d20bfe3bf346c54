import io
import zipfile

import pytest

from epub_reader.core.archive import Archive, ArchiveDirectory, ArchiveFile
from epub_reader.core.exceptions import ArchiveOpenError, EpubError, ResourceNotFoundError


@pytest.fixture
def zip_bytes():
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip")
        zf.writestr("META-INF/", "")
        zf.writestr("META-INF/container.xml", "<container/>")
        zf.writestr("OEBPS/text/ch1.xhtml", "<html/>")
        zf.writestr("OEBPS/images/a.png", b"\x89PNG")
    buffer.seek(0)
    return buffer


def test_open_missing_file_raises(tmp_path):
    with pytest.raises(ArchiveOpenError) as info:
        Archive.open(tmp_path / "nope.epub")
    assert isinstance(info.value, EpubError)
    assert "nope.epub" in str(info.value)


def test_open_non_zip_raises(tmp_path):
    bogus = tmp_path / "bogus.epub"
    bogus.write_bytes(b"this is not a zip file")
    with pytest.raises(ArchiveOpenError) as info:
        Archive.open(bogus)
    assert info.value.cause is not None


def test_tree_is_built_from_member_names(zip_bytes):
    archive = Archive.open(zip_bytes)
    assert archive.list_directory() == ["mimetype", "META-INF", "OEBPS"]
    assert archive.list_directory("OEBPS") == ["text", "images"]
    assert archive.list_directory("OEBPS/images") == ["a.png"]

    oebps = archive.root.entry("OEBPS")
    assert isinstance(oebps, ArchiveDirectory)
    assert isinstance(oebps.entry("text").entry("ch1.xhtml"), ArchiveFile)


def test_list_directory_missing_raises(zip_bytes):
    archive = Archive.open(zip_bytes)
    with pytest.raises(ResourceNotFoundError):
        archive.list_directory("OEBPS/fonts")
    with pytest.raises(ResourceNotFoundError):
        archive.list_directory("mimetype")


def test_read_file_reads_whole_member(zip_bytes):
    archive = Archive.open(zip_bytes)
    assert archive.read_file("OEBPS/images/a.png") == b"\x89PNG"
    assert archive.read_file("META-INF/container.xml") == b"<container/>"


def test_read_missing_file_raises(zip_bytes):
    archive = Archive.open(zip_bytes)
    with pytest.raises(ResourceNotFoundError):
        archive.read_file("OEBPS/images/b.png")


def test_context_manager_closes(zip_bytes):
    with Archive.open(zip_bytes) as archive:
        assert archive.read_file("mimetype") == b"application/epub+zip"
    with pytest.raises(ValueError):
        # zipfile refuses reads once closed
        archive.root.entry("mimetype").read()


@pytest.mark.parametrize("names", [
    ["OEBPS/X", "OEBPS/X/a.txt", "OEBPS/ch1.xhtml"],
    ["OEBPS/X/a.txt", "OEBPS/X", "OEBPS/ch1.xhtml"],
])
def test_file_and_directory_name_clash_skips_member(names):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name in names:
            zf.writestr(name, name.encode("utf-8"))
    buffer.seek(0)

    archive = Archive.open(buffer)
    assert archive.list_directory("OEBPS") == ["X", "ch1.xhtml"]
    assert archive.read_file("OEBPS/ch1.xhtml") == b"OEBPS/ch1.xhtml"
    # whichever of the two came first is kept
    first = names[0]
    if first == "OEBPS/X":
        assert archive.read_file("OEBPS/X") == b"OEBPS/X"
    else:
        assert archive.read_file("OEBPS/X/a.txt") == b"OEBPS/X/a.txt"
