"""
Tests for the conversion format catalog.
"""
import pytest

from tabconvert.core.formats import FORMAT_CATALOG, get_formats_by_category


class TestFormatCatalog:
    """Test catalog contents and lookups."""

    def test_has_ten_formats(self):
        assert len(FORMAT_CATALOG) == 10

    def test_categories(self):
        categories = get_formats_by_category()

        assert set(categories) == {"data", "web", "office", "document", "database", "config"}
        assert [f.id for f in categories["data"]] == ["csv", "tsv", "json", "xml"]
        assert [f.id for f in categories["document"]] == ["markdown", "latex"]

    def test_descriptor_fields(self):
        fmt = FORMAT_CATALOG.get_format("markdown")

        assert fmt.display_name == "Markdown"
        assert fmt.file_extension == ".md"
        assert fmt.mime_type == "text/markdown"
        assert fmt.category == "document"

    def test_lookup_is_case_insensitive(self):
        assert FORMAT_CATALOG.get_format("JSON").id == "json"

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown format"):
            FORMAT_CATALOG.get_format("pdf")
        assert FORMAT_CATALOG.find("pdf") is None

    def test_descriptors_are_immutable(self):
        fmt = FORMAT_CATALOG.get_format("csv")
        with pytest.raises(AttributeError):
            fmt.file_extension = ".txt"

    def test_extensions_are_unique(self):
        extensions = [f.file_extension for f in FORMAT_CATALOG]
        assert len(extensions) == len(set(extensions))

    def test_catalog_is_read_only(self):
        with pytest.raises(TypeError):
            FORMAT_CATALOG.formats["pdf"] = FORMAT_CATALOG.get_format("csv")
        assert FORMAT_CATALOG.find("pdf") is None
