"""
Download sink for converted content.

Writes the converted text to a file named after the source, using the
catalog extension for the target format.
"""

import logging
import re
from pathlib import Path

from .formats import FORMAT_CATALOG

logger = logging.getLogger(__name__)

FALLBACK_EXTENSION = ".txt"
FALLBACK_STEM = "converted_data"


def download_filename(filename_stem: str, format_id: str) -> str:
    """File name for a download: sanitized stem plus the format extension."""
    fmt = FORMAT_CATALOG.find(format_id)
    extension = fmt.file_extension if fmt else FALLBACK_EXTENSION
    stem = re.sub(r"[\\/:*?\"<>|]+", "_", filename_stem).strip(" .") or FALLBACK_STEM
    return f"{stem}{extension}"


class FileDownloadSink:
    """Saves downloads into a directory."""

    def __init__(self, directory: str = "."):
        self.directory = Path(directory)

    def save(self, content: str, filename_stem: str, format_id: str) -> Path:
        """Write content to ``<directory>/<stem><extension>``.

        Returns:
            Path of the written file
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.directory / download_filename(filename_stem, format_id)
        target.write_text(content, encoding="utf-8", newline="")
        logger.info("Saved %s (%d chars)", target, len(content))
        return target
