"""
Tabular format conversion.

Pure serializers from a sequence of row mappings to text documents, plus the
registry that maps a format id to its serializer, default options and
option schema.

Serialization rules shared by every format:
1. Columns are the row keys in order of first appearance across all rows
2. None renders as an empty value, booleans as true/false
3. Empty input yields a well-formed "empty" document, never an exception
"""

import csv
import html
import io
import json
import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from xml.sax.saxutils import escape as xml_escape

from .formats import FORMAT_CATALOG, ConversionFormat

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]
Rows = Sequence[Row]
Serializer = Callable[[Rows, Optional[Mapping[str, Any]]], str]

NO_DATA_MESSAGE = "No data available"


class ConversionFailed(Exception):
    """Raised when a serializer cannot produce output for the given input."""
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class UnsupportedFormat(ValueError):
    """Raised when a format id has no serializer."""


# Default options per format
CSV_DEFAULTS = {"delimiter": ",", "header": True}
TSV_DEFAULTS = {"header": True}
HTML_DEFAULTS = {
    "title": "Data Table",
    "class_name": "data-table",
    "include_styles": True,
    "responsive": False,
}
LATEX_DEFAULTS = {"caption": "Data Table", "label": "tab:data"}
SQL_DEFAULTS = {
    "table_name": "data_table",
    "include_create_table": True,
    "include_drop_table": False,
}
JSON_DEFAULTS = {"pretty": True}
XML_DEFAULTS = {"root_element": "data", "item_element": "item"}


def _with_defaults(defaults: Mapping[str, Any], options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    merged = dict(defaults)
    if options:
        merged.update(options)
    return merged


def _columns(rows: Rows) -> List[str]:
    """Collect column names in order of first appearance.

    Raises:
        TypeError: If any row is not a mapping
    """
    columns: List[str] = []
    seen = set()
    for index, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise TypeError(f"Row {index + 1} is not a mapping of column to value")
        for key in row:
            if key not in seen:
                seen.add(key)
                columns.append(key)
    return columns


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_csv(rows: Rows, options: Optional[Mapping[str, Any]] = None) -> str:
    """Delimiter-separated values with standard quoting."""
    opts = _with_defaults(CSV_DEFAULTS, options)
    delimiter = opts["delimiter"]
    if not isinstance(delimiter, str) or len(delimiter) != 1:
        raise ValueError("delimiter must be a single character")

    columns = _columns(rows)
    if not columns:
        return ""

    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\r\n")
    if opts["header"]:
        writer.writerow(columns)
    for row in rows:
        writer.writerow([_cell_text(row.get(column)) for column in columns])
    content = buffer.getvalue()
    if content.endswith("\r\n"):
        content = content[:-2]
    return content


def to_tsv(rows: Rows, options: Optional[Mapping[str, Any]] = None) -> str:
    opts = _with_defaults(TSV_DEFAULTS, options)
    opts["delimiter"] = "\t"
    return to_csv(rows, opts)


def _html_styles(class_name: str) -> List[str]:
    return [
        "    <style>",
        f"      .{class_name} {{",
        "        border-collapse: collapse;",
        "        width: 100%;",
        "        margin: 20px 0;",
        "        font-family: Arial, sans-serif;",
        "      }",
        f"      .{class_name} th, .{class_name} td {{",
        "        border: 1px solid #ddd;",
        "        padding: 8px;",
        "        text-align: left;",
        "      }",
        f"      .{class_name} th {{",
        "        background-color: #f2f2f2;",
        "        font-weight: bold;",
        "      }",
        f"      .{class_name} tr:nth-child(even) {{",
        "        background-color: #f9f9f9;",
        "      }",
        "    </style>",
    ]


def to_html(rows: Rows, options: Optional[Mapping[str, Any]] = None) -> str:
    """Standalone HTML document holding one table."""
    opts = _with_defaults(HTML_DEFAULTS, options)
    title = html.escape(str(opts["title"]))
    class_name = str(opts["class_name"])
    if not re.fullmatch(r"-?[A-Za-z_][A-Za-z0-9_-]*", class_name):
        raise ValueError(f"Invalid CSS class name: {class_name!r}")

    columns = _columns(rows)

    lines = [
        "<!DOCTYPE html>",
        "<html>",
        "  <head>",
        '    <meta charset="UTF-8">',
    ]
    if opts["responsive"]:
        lines.append('    <meta name="viewport" content="width=device-width, initial-scale=1">')
    lines.append(f"    <title>{title}</title>")
    if opts["include_styles"]:
        lines.extend(_html_styles(class_name))
    lines.extend([
        "  </head>",
        "  <body>",
        f"    <h1>{title}</h1>",
    ])

    if not columns:
        lines.append(f"    <p>{NO_DATA_MESSAGE}</p>")
    else:
        if opts["responsive"]:
            lines.append('    <div style="overflow-x: auto;">')
        lines.extend([
            f'    <table class="{class_name}">',
            "      <thead>",
            "        <tr>" + "".join(f"<th>{html.escape(c)}</th>" for c in columns) + "</tr>",
            "      </thead>",
            "      <tbody>",
        ])
        for row in rows:
            cells = "".join(
                f"<td>{html.escape(_cell_text(row.get(c)))}</td>" for c in columns
            )
            lines.append(f"        <tr>{cells}</tr>")
        lines.extend([
            "      </tbody>",
            "    </table>",
        ])
        if opts["responsive"]:
            lines.append("    </div>")

    lines.extend([
        "  </body>",
        "</html>",
    ])
    return "\n".join(lines)


def _markdown_cell(value: Any) -> str:
    text = _cell_text(value).replace("|", "\\|")
    return text.replace("\r\n", "<br>").replace("\n", "<br>")


def to_markdown(rows: Rows, options: Optional[Mapping[str, Any]] = None) -> str:
    """GitHub-flavored pipe table."""
    columns = _columns(rows)
    if not columns:
        return f"| {NO_DATA_MESSAGE} |\n| --- |"

    header_row = "| " + " | ".join(_markdown_cell(c) for c in columns) + " |"
    separator_row = "| " + " | ".join("---" for _ in columns) + " |"
    data_rows = [
        "| " + " | ".join(_markdown_cell(row.get(c)) for c in columns) + " |"
        for row in rows
    ]
    return "\n".join([header_row, separator_row] + data_rows)


_LATEX_SPECIALS = {
    "\\": r"\textbackslash{}",
    "&": r"\&",
    "%": r"\%",
    "$": r"\$",
    "#": r"\#",
    "_": r"\_",
    "{": r"\{",
    "}": r"\}",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
}
_LATEX_PATTERN = re.compile("|".join(re.escape(ch) for ch in _LATEX_SPECIALS))


def _latex_escape(value: Any) -> str:
    return _LATEX_PATTERN.sub(lambda m: _LATEX_SPECIALS[m.group(0)], _cell_text(value))


def to_latex(rows: Rows, options: Optional[Mapping[str, Any]] = None) -> str:
    """LaTeX table using a tabular environment."""
    opts = _with_defaults(LATEX_DEFAULTS, options)
    columns = _columns(rows)
    if not columns:
        return "\\begin{table}[h]\n\\caption{%s}\n\\end{table}" % NO_DATA_MESSAGE

    column_spec = "l" * len(columns)
    header_row = " & ".join(_latex_escape(c) for c in columns) + " \\\\"
    data_rows = [
        " & ".join(_latex_escape(row.get(c)) for c in columns) + " \\\\"
        for row in rows
    ]
    lines = [
        "\\begin{table}[h]",
        "\\centering",
        f"\\begin{{tabular}}{{{column_spec}}}",
        "\\hline",
        header_row,
        "\\hline",
        *data_rows,
        "\\hline",
        "\\end{tabular}",
        f"\\caption{{{_latex_escape(opts['caption'])}}}",
        f"\\label{{{opts['label']}}}",
        "\\end{table}",
    ]
    return "\n".join(lines)


_SQL_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def _sql_identifier(name: str) -> str:
    if _SQL_IDENTIFIER.fullmatch(name):
        return name
    return '"' + name.replace('"', '""') + '"'


def _sql_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    return "'" + _cell_text(value).replace("'", "''") + "'"


def to_sql(rows: Rows, options: Optional[Mapping[str, Any]] = None) -> str:
    """CREATE TABLE (optional) followed by one INSERT per row."""
    opts = _with_defaults(SQL_DEFAULTS, options)
    table_name = str(opts["table_name"]).strip()
    if not table_name:
        raise ValueError("table_name cannot be empty")

    columns = _columns(rows)
    if not columns:
        return f"-- {NO_DATA_MESSAGE}"

    table = _sql_identifier(table_name)
    column_list = ", ".join(_sql_identifier(c) for c in columns)
    sql = ""

    if opts["include_drop_table"]:
        sql += f"DROP TABLE IF EXISTS {table};\n"
    if opts["include_create_table"]:
        definitions = ",\n".join(f"  {_sql_identifier(c)} VARCHAR(255)" for c in columns)
        sql += f"CREATE TABLE {table} (\n{definitions}\n);\n"
    if sql:
        sql += "\n"

    inserts = [
        f"INSERT INTO {table} ({column_list}) VALUES "
        f"({', '.join(_sql_literal(row.get(c)) for c in columns)});"
        for row in rows
    ]
    return sql + "\n".join(inserts)


def to_json(rows: Rows, options: Optional[Mapping[str, Any]] = None) -> str:
    """Structural JSON dump; ``pretty`` controls indentation.

    Non-finite floats are written as NaN/Infinity, which strict JSON
    parsers reject.
    """
    opts = _with_defaults(JSON_DEFAULTS, options)
    _columns(rows)
    data = [dict(row) for row in rows]
    if opts["pretty"]:
        return json.dumps(data, indent=2, ensure_ascii=False, default=str)
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)


_YAML_PLAIN_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_-]*")


def _yaml_key(key: str) -> str:
    # true/false/null/yes/no read back as non-strings when left plain
    if _YAML_PLAIN_KEY.fullmatch(key) and key.lower() not in (
        "true", "false", "null", "yes", "no", "on", "off", "y", "n"
    ):
        return key
    return json.dumps(key, ensure_ascii=False)


def to_yaml(rows: Rows, options: Optional[Mapping[str, Any]] = None) -> str:
    """Block sequence with one entry per row and JSON-literal scalars.

    Exponent floats such as 1e+20 and non-finite floats read back as
    strings under YAML 1.1 loaders like PyYAML.
    """
    _columns(rows)
    if not rows:
        return "[]"

    entries = []
    for index, row in enumerate(rows, start=1):
        if not row:
            entries.append(f"- {{}} # Item {index}")
            continue
        fields = "\n".join(
            f"  {_yaml_key(str(key))}: {json.dumps(value, ensure_ascii=False, default=str)}"
            for key, value in row.items()
        )
        entries.append(f"- # Item {index}\n{fields}")
    return "\n".join(entries)


def _xml_name(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9_.-]", "_", str(name))
    if not cleaned or not re.match(r"[A-Za-z_]", cleaned) or cleaned.lower().startswith("xml"):
        cleaned = "_" + cleaned
    return cleaned


def to_xml(rows: Rows, options: Optional[Mapping[str, Any]] = None) -> str:
    """XML document with one item element per row; text is escaped."""
    opts = _with_defaults(XML_DEFAULTS, options)
    root = _xml_name(opts["root_element"])
    item = _xml_name(opts["item_element"])
    declaration = '<?xml version="1.0" encoding="UTF-8"?>'

    _columns(rows)
    if not rows:
        return f"{declaration}\n<{root}></{root}>"

    items = []
    for row in rows:
        fields = "\n".join(
            f"    <{_xml_name(key)}>{xml_escape(_cell_text(value))}</{_xml_name(key)}>"
            for key, value in row.items()
        )
        body = f"\n{fields}\n  " if fields else ""
        items.append(f"  <{item}>{body}</{item}>")
    return f"{declaration}\n<{root}>\n" + "\n".join(items) + f"\n</{root}>"


OptionType = Union[type, Tuple[type, ...]]


@dataclass(frozen=True)
class FormatSpec:
    """Registry entry binding a catalog format to its serializer."""
    format: ConversionFormat
    serializer: Serializer
    defaults: Mapping[str, Any]
    options_schema: Mapping[str, OptionType]

    def default_options(self, source_name: Optional[str] = None) -> Dict[str, Any]:
        """Fresh default options; HTML titles follow the source file name."""
        options = dict(self.defaults)
        if source_name and "title" in options:
            options["title"] = source_name
        return options


def _spec(format_id: str, serializer: Serializer, defaults: Mapping[str, Any],
          schema: Mapping[str, OptionType]) -> Tuple[str, FormatSpec]:
    return format_id, FormatSpec(FORMAT_CATALOG.get_format(format_id), serializer, defaults, schema)


FORMAT_REGISTRY: Mapping[str, FormatSpec] = MappingProxyType(dict([
    _spec("csv", to_csv, CSV_DEFAULTS, {"delimiter": str, "header": bool}),
    _spec("tsv", to_tsv, TSV_DEFAULTS, {"header": bool}),
    _spec("html", to_html, HTML_DEFAULTS, {
        "title": str, "class_name": str, "include_styles": bool, "responsive": bool,
    }),
    _spec("markdown", to_markdown, {}, {}),
    _spec("latex", to_latex, LATEX_DEFAULTS, {"caption": str, "label": str}),
    _spec("sql", to_sql, SQL_DEFAULTS, {
        "table_name": str, "include_create_table": bool, "include_drop_table": bool,
    }),
    _spec("json", to_json, JSON_DEFAULTS, {"pretty": bool}),
    _spec("yaml", to_yaml, {}, {}),
    _spec("xml", to_xml, XML_DEFAULTS, {"root_element": str, "item_element": str}),
]))


def get_converter(format_id: str) -> FormatSpec:
    """Look up the registry entry for a format.

    Raises:
        UnsupportedFormat: If the format has no serializer
    """
    key = format_id.lower()
    if key not in FORMAT_REGISTRY:
        fmt = FORMAT_CATALOG.find(key)
        name = fmt.display_name if fmt else format_id
        raise UnsupportedFormat(f"Conversion to {name} is not supported")
    return FORMAT_REGISTRY[key]


def is_supported(format_id: str) -> bool:
    return format_id.lower() in FORMAT_REGISTRY


def validate_options(format_id: str, options: Mapping[str, Any]) -> None:
    """Check option names and value types against the format's schema.

    Raises:
        UnsupportedFormat: If the format has no serializer
        ValueError: If an option is unknown or has the wrong type
    """
    spec = get_converter(format_id)
    unknown = set(options) - set(spec.options_schema)
    if unknown:
        raise ValueError(f"Unknown options for {spec.format.display_name}: {sorted(unknown)}")
    for key, value in options.items():
        expected = spec.options_schema[key]
        # bool is an int subclass; never accept it for anything else
        if isinstance(value, bool) and expected is not bool:
            raise ValueError(f"Option '{key}' must be of type {expected.__name__}")
        if not isinstance(value, expected):
            raise ValueError(f"Option '{key}' must be of type {expected.__name__}")


def convert(rows: Rows, format_id: str, options: Optional[Mapping[str, Any]] = None) -> str:
    """Serialize rows to the given format.

    Args:
        rows: Sequence of row mappings
        format_id: Target format identifier
        options: Format options; missing keys take the format defaults

    Returns:
        Serialized document

    Raises:
        UnsupportedFormat: If the format has no serializer
        ConversionFailed: If options are invalid or serialization fails
    """
    spec = get_converter(format_id)
    merged = _with_defaults(spec.default_options(), options)
    try:
        validate_options(spec.format.id, merged)
        content = spec.serializer(rows, merged)
    except ConversionFailed:
        raise
    except (ValueError, TypeError, KeyError, AttributeError) as e:
        logger.warning("Conversion to %s failed: %s", spec.format.id, e)
        raise ConversionFailed(str(e)) from e
    logger.debug("Converted %d rows to %s (%d chars)", len(rows), spec.format.id, len(content))
    return content


def estimate_size_kb(rows: Rows, format_id: str, options: Optional[Mapping[str, Any]] = None) -> int:
    """Estimate the converted size by extrapolating from the first 10 rows."""
    if not rows:
        return 0
    sample = list(rows[:10])
    content = convert(sample, format_id, options)
    avg_row_size = len(content) / len(sample)
    return round((avg_row_size * len(rows)) / 1024)
