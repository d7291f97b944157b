"""
Conversion format catalog.

Static descriptors for every target format the converter knows about.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional


@dataclass(frozen=True)
class ConversionFormat:
    """Immutable descriptor for a target format."""
    id: str
    display_name: str
    description: str
    file_extension: str
    mime_type: str
    category: str


@dataclass(frozen=True)
class FormatCatalog:
    """Fixed catalog of supported target formats."""
    formats: Mapping[str, ConversionFormat]

    def __post_init__(self):
        object.__setattr__(self, "formats", MappingProxyType(dict(self.formats)))

    def get_format(self, format_id: str) -> ConversionFormat:
        """Get the descriptor for a format id.

        Args:
            format_id: Format identifier (case-insensitive)

        Returns:
            ConversionFormat for the id

        Raises:
            ValueError: If the id is not in the catalog
        """
        key = format_id.lower()
        if key not in self.formats:
            raise ValueError(f"Unknown format: {format_id}")
        return self.formats[key]

    def find(self, format_id: str) -> Optional[ConversionFormat]:
        return self.formats.get(format_id.lower())

    def by_category(self) -> Dict[str, List[ConversionFormat]]:
        """Group formats by category, keeping catalog order."""
        categories: Dict[str, List[ConversionFormat]] = {}
        for fmt in self.formats.values():
            categories.setdefault(fmt.category, []).append(fmt)
        return categories

    def __iter__(self):
        return iter(self.formats.values())

    def __len__(self) -> int:
        return len(self.formats)


def _fmt(id, display_name, description, file_extension, mime_type, category):
    return id, ConversionFormat(id, display_name, description, file_extension, mime_type, category)


# Fixed catalog - order is the display order
FORMAT_CATALOG = FormatCatalog(dict([
    _fmt("csv", "CSV", "Comma-Separated Values", ".csv", "text/csv", "data"),
    _fmt("tsv", "TSV", "Tab-Separated Values", ".tsv", "text/tab-separated-values", "data"),
    _fmt("html", "HTML", "HTML Table", ".html", "text/html", "web"),
    _fmt(
        "excel", "Excel", "Microsoft Excel Workbook", ".xlsx",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "office"
    ),
    _fmt("markdown", "Markdown", "Markdown Table", ".md", "text/markdown", "document"),
    _fmt("latex", "LaTeX", "LaTeX Table", ".tex", "application/x-latex", "document"),
    _fmt("sql", "SQL", "SQL Insert Statements", ".sql", "application/sql", "database"),
    _fmt("json", "JSON", "JavaScript Object Notation", ".json", "application/json", "data"),
    _fmt("yaml", "YAML", "YAML Ain't Markup Language", ".yaml", "application/x-yaml", "config"),
    _fmt("xml", "XML", "Extensible Markup Language", ".xml", "application/xml", "data"),
]))


def get_formats_by_category() -> Dict[str, List[ConversionFormat]]:
    """Catalog formats grouped by category."""
    return FORMAT_CATALOG.by_category()
