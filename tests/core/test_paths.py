import io
import zipfile

import pytest

from epub_reader.core.archive import Archive
from epub_reader.core.exceptions import ResourceNotFoundError
from epub_reader.core.paths import clean_path, containing_folder, resolve, resolve_href


class TestCleanPath:
    """Test cases for clean_path function."""

    def test_collapses_dot_segments(self):
        assert clean_path("OEBPS/./text/chapter.xhtml") == "OEBPS/text/chapter.xhtml"
        assert clean_path("OEBPS/text/../images/cover.jpg") == "OEBPS/images/cover.jpg"

    def test_removes_redundant_separators(self):
        assert clean_path("OEBPS//images///cover.jpg") == "OEBPS/images/cover.jpg"
        assert clean_path("OEBPS/images/") == "OEBPS/images"

    def test_parent_cannot_escape_root(self):
        assert clean_path("../cover.jpg") == "cover.jpg"
        assert clean_path("a/../../b") == "b"
        assert clean_path("..") == ""

    def test_absolute_paths_stay_absolute(self):
        assert clean_path("/OEBPS/../a.xhtml") == "/a.xhtml"

    def test_edge_cases(self):
        assert clean_path("") == ""
        assert clean_path(".") == ""
        assert clean_path("content.opf") == "content.opf"


class TestResolveHref:
    """Test cases for relative href resolution."""

    def test_containing_folder(self):
        assert containing_folder("OEBPS/content.opf") == "OEBPS"
        assert containing_folder("OEBPS/text/ch1.xhtml") == "OEBPS/text"
        assert containing_folder("content.opf") == ""

    def test_resolves_against_package_folder(self):
        assert resolve_href("OEBPS/content.opf", "chapter1.xhtml") == "OEBPS/chapter1.xhtml"
        assert resolve_href("OEBPS/content.opf", "images/cover.jpg") == "OEBPS/images/cover.jpg"

    def test_resolves_from_root_package(self):
        assert resolve_href("content.opf", "text/ch1.xhtml") == "text/ch1.xhtml"

    def test_parent_references(self):
        assert resolve_href("OEBPS/text/ch1.xhtml", "../images/a.png") == "OEBPS/images/a.png"

    def test_drops_fragment_and_decodes_escapes(self):
        assert resolve_href("OEBPS/content.opf", "ch1.xhtml#part2") == "OEBPS/ch1.xhtml"
        assert resolve_href("OEBPS/content.opf", "My%20Chapter.xhtml") == "OEBPS/My Chapter.xhtml"


def _archive(names):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name in names:
            zf.writestr(name, name.encode("utf-8"))
    buffer.seek(0)
    return Archive.open(buffer)


class TestResolve:
    """Test cases for archive lookups with case-insensitive fallback."""

    def test_exact_match(self):
        archive = _archive(["OEBPS/images/cover.jpg"])
        assert resolve(archive.root, "OEBPS/images/cover.jpg").member == "OEBPS/images/cover.jpg"

    def test_case_insensitive_fallback(self):
        archive = _archive(["OEBPS/images/cover.jpg"])
        node = resolve(archive.root, "OEBPS/Images/Cover.JPG")
        assert node.member == "OEBPS/images/cover.jpg"
        assert archive.read_file("oebps/IMAGES/cover.jpg") == b"OEBPS/images/cover.jpg"

    def test_exact_match_preferred_over_case_variant(self):
        archive = _archive(["a/File.txt", "a/file.txt"])
        assert resolve(archive.root, "a/file.txt").member == "a/file.txt"
        assert resolve(archive.root, "a/File.txt").member == "a/File.txt"

    def test_ignores_empty_segments(self):
        archive = _archive(["OEBPS/ch1.xhtml"])
        assert resolve(archive.root, "/OEBPS//ch1.xhtml").member == "OEBPS/ch1.xhtml"

    def test_empty_path_fails(self):
        archive = _archive(["a.txt"])
        with pytest.raises(ResourceNotFoundError):
            resolve(archive.root, "")

    def test_missing_segment_fails(self):
        archive = _archive(["OEBPS/ch1.xhtml"])
        with pytest.raises(ResourceNotFoundError):
            resolve(archive.root, "OPS/ch1.xhtml")
        with pytest.raises(ResourceNotFoundError):
            resolve(archive.root, "OEBPS/ch2.xhtml")

    def test_file_used_as_directory_fails(self):
        archive = _archive(["OEBPS/ch1.xhtml"])
        with pytest.raises(ResourceNotFoundError):
            resolve(archive.root, "OEBPS/ch1.xhtml/inner.png")

    def test_directory_is_not_a_file(self):
        archive = _archive(["OEBPS/images/a.png"])
        with pytest.raises(ResourceNotFoundError):
            resolve(archive.root, "OEBPS/images")
