"""
Tests for download naming and the file sink.
"""
import tempfile
from pathlib import Path

from tabconvert.core.download import FileDownloadSink, download_filename


class TestDownloadFilename:
    """Test file name construction."""

    def test_uses_catalog_extension(self):
        assert download_filename("sales", "markdown") == "sales.md"
        assert download_filename("sales", "latex") == "sales.tex"

    def test_unknown_format_falls_back_to_txt(self):
        assert download_filename("sales", "pdf") == "sales.txt"

    def test_sanitizes_stem(self):
        assert download_filename("a/b:c", "csv") == "a_b_c.csv"

    def test_empty_stem(self):
        assert download_filename("", "json") == "converted_data.json"


class TestFileDownloadSink:
    """Test writing downloads to disk."""

    def test_writes_exact_content(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            sink = FileDownloadSink(str(Path(temp_dir) / "out"))
            path = sink.save("a,b\r\n1,2", "data", "csv")

            assert path.name == "data.csv"
            assert path.read_bytes() == b"a,b\r\n1,2"

    def test_overwrites_existing(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            sink = FileDownloadSink(temp_dir)
            sink.save("old", "data", "json")
            path = sink.save("[]", "data", "json")

            assert path.read_text(encoding="utf-8") == "[]"
