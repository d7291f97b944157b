"""
Unit tests for format serializers and the format registry.
"""

import csv
import io
import json
import xml.etree.ElementTree as ET

import pytest
import yaml

from tabconvert.core.converters import (
    FORMAT_REGISTRY,
    ConversionFailed,
    UnsupportedFormat,
    convert,
    estimate_size_kb,
    get_converter,
    is_supported,
    to_csv,
    to_html,
    to_json,
    to_latex,
    to_markdown,
    to_sql,
    to_tsv,
    to_xml,
    to_yaml,
    validate_options,
)
from tabconvert.core.parsers import from_json

ROWS = [
    {"name": "John", "age": 30},
    {"name": "Jane", "age": 25},
]


class TestColumns:
    """Test shared column and cell rules."""

    def test_columns_are_union_in_first_seen_order(self):
        rows = [{"a": 1}, {"b": 2, "a": 3}]
        assert to_csv(rows) == "a,b\r\n1,\r\n3,2"

    def test_none_and_booleans(self):
        rows = [{"flag": True, "other": False, "missing": None}]
        assert to_markdown(rows).splitlines()[2] == "| true | false |  |"

    def test_zero_is_not_blanked(self):
        assert to_csv([{"n": 0}]) == "n\r\n0"

    def test_non_mapping_row_rejected(self):
        with pytest.raises(TypeError, match="Row 2"):
            to_csv([{"a": 1}, ["not", "a", "row"]])


class TestCSV:
    """Test CSV and TSV output."""

    def test_basic(self):
        assert to_csv(ROWS) == "name,age\r\nJohn,30\r\nJane,25"

    def test_without_header(self):
        assert to_csv(ROWS, {"header": False}) == "John,30\r\nJane,25"

    def test_quotes_embedded_delimiters_and_quotes(self):
        rows = [{"text": 'say "hi", ok', "line": "a\nb"}]
        output = to_csv(rows)

        parsed = list(csv.reader(io.StringIO(output)))
        assert parsed == [["text", "line"], ['say "hi", ok', "a\nb"]]

    def test_custom_delimiter(self):
        assert to_csv(ROWS, {"delimiter": ";"}) == "name;age\r\nJohn;30\r\nJane;25"

    def test_empty_input(self):
        assert to_csv([]) == ""
        assert to_csv([], {"header": False}) == ""

    def test_multi_char_delimiter_rejected(self):
        with pytest.raises(ValueError, match="single character"):
            to_csv(ROWS, {"delimiter": "::"})

    def test_tsv(self):
        assert to_tsv(ROWS) == "name\tage\r\nJohn\t30\r\nJane\t25"

    def test_tsv_ignores_delimiter_option(self):
        assert to_tsv(ROWS, {"delimiter": ","}).startswith("name\tage")


class TestHTML:
    """Test HTML output."""

    def test_standalone_document(self):
        output = to_html(ROWS)

        assert output.startswith("<!DOCTYPE html>")
        assert "<title>Data Table</title>" in output
        assert '<table class="data-table">' in output
        assert "<tr><th>name</th><th>age</th></tr>" in output
        assert "<tr><td>John</td><td>30</td></tr>" in output
        assert output.rstrip().endswith("</html>")

    def test_styles_only_when_requested(self):
        assert "<style>" in to_html(ROWS, {"include_styles": True})
        assert "<style>" not in to_html(ROWS, {"include_styles": False})

    def test_title_and_class(self):
        output = to_html(ROWS, {"title": "Sales", "class_name": "report"})

        assert "<h1>Sales</h1>" in output
        assert '<table class="report">' in output
        assert ".report th" in output

    def test_values_escaped(self):
        output = to_html([{"v": "<b>&</b>"}], {"title": "A & B"})

        assert "<td>&lt;b&gt;&amp;&lt;/b&gt;</td>" in output
        assert "<title>A &amp; B</title>" in output

    def test_responsive_wrapper(self):
        output = to_html(ROWS, {"responsive": True})
        assert 'name="viewport"' in output
        assert "overflow-x: auto" in output

    def test_empty_input(self):
        output = to_html([])

        assert "<p>No data available</p>" in output
        assert "<table" not in output
        assert output.startswith("<!DOCTYPE html>")

    def test_invalid_class_name_rejected(self):
        with pytest.raises(ValueError, match="CSS class"):
            to_html(ROWS, {"class_name": "bad class"})


class TestMarkdown:
    """Test Markdown output."""

    def test_single_row(self):
        rows = [{"name": "John", "age": 30}]
        assert to_markdown(rows) == "| name | age |\n| --- | --- |\n| John | 30 |"

    def test_pipes_escaped(self):
        output = to_markdown([{"expr": "a|b"}])
        assert output.splitlines()[2] == "| a\\|b |"

    def test_newlines_become_breaks(self):
        assert to_markdown([{"v": "a\nb"}]).splitlines()[2] == "| a<br>b |"

    def test_empty_input(self):
        assert to_markdown([]) == "| No data available |\n| --- |"


class TestLaTeX:
    """Test LaTeX output."""

    def test_tabular(self):
        output = to_latex(ROWS)
        lines = output.splitlines()

        assert lines[0] == "\\begin{table}[h]"
        assert "\\begin{tabular}{ll}" in lines
        assert "name & age \\\\" in lines
        assert "John & 30 \\\\" in lines
        assert "\\caption{Data Table}" in lines
        assert "\\label{tab:data}" in lines
        assert lines[-1] == "\\end{table}"

    def test_one_column_spec_per_field(self):
        output = to_latex([{"a": 1, "b": 2, "c": 3}])
        assert "\\begin{tabular}{lll}" in output

    def test_caption_and_label(self):
        output = to_latex(ROWS, {"caption": "Results", "label": "tab:results"})
        assert "\\caption{Results}" in output
        assert "\\label{tab:results}" in output

    def test_special_characters_escaped(self):
        output = to_latex([{"first_name": "50% & $5 #1"}])

        assert "first\\_name \\\\" in output
        assert "50\\% \\& \\$5 \\#1 \\\\" in output

    def test_empty_input(self):
        assert to_latex([]) == "\\begin{table}[h]\n\\caption{No data available}\n\\end{table}"


class TestSQL:
    """Test SQL output."""

    def test_create_and_insert(self):
        output = to_sql(ROWS)

        assert output == (
            "CREATE TABLE data_table (\n"
            "  name VARCHAR(255),\n"
            "  age VARCHAR(255)\n"
            ");\n"
            "\n"
            "INSERT INTO data_table (name, age) VALUES ('John', '30');\n"
            "INSERT INTO data_table (name, age) VALUES ('Jane', '25');"
        )

    def test_without_create_table(self):
        output = to_sql(ROWS, {"include_create_table": False})

        assert "CREATE TABLE" not in output
        assert output.startswith("INSERT INTO data_table")

    def test_drop_table(self):
        output = to_sql(ROWS, {"include_drop_table": True})
        assert output.startswith("DROP TABLE IF EXISTS data_table;\nCREATE TABLE")

    def test_quotes_doubled(self):
        output = to_sql([{"name": "O'Brien"}], {"include_create_table": False})
        assert output == "INSERT INTO data_table (name) VALUES ('O''Brien');"

    def test_none_is_null(self):
        output = to_sql([{"a": None}], {"include_create_table": False})
        assert output.endswith("VALUES (NULL);")

    def test_awkward_identifiers_quoted(self):
        output = to_sql([{"first name": "x"}], {"table_name": "my table"})
        assert 'CREATE TABLE "my table"' in output
        assert '"first name" VARCHAR(255)' in output

    def test_custom_table_name(self):
        assert "INSERT INTO people " in to_sql(ROWS, {"table_name": "people"})

    def test_empty_table_name_rejected(self):
        with pytest.raises(ValueError):
            to_sql(ROWS, {"table_name": "  "})

    def test_empty_input(self):
        assert to_sql([]) == "-- No data available"


class TestJSON:
    """Test JSON output."""

    def test_pretty(self):
        output = to_json(ROWS)
        assert output.startswith('[\n  {\n    "name": "John"')

    def test_compact(self):
        assert to_json(ROWS, {"pretty": False}) == '[{"name":"John","age":30},{"name":"Jane","age":25}]'

    @pytest.mark.parametrize("pretty", [True, False])
    def test_round_trip_through_parser(self, pretty):
        rows = [
            {"name": "Zoë", "age": 30, "score": 1.5, "active": True, "note": None},
            {"name": "Jane", "age": 25, "score": 0.0, "active": False, "note": "x"},
        ]
        assert from_json(to_json(rows, {"pretty": pretty})) == rows

    def test_empty_input(self):
        assert json.loads(to_json([])) == []

    def test_non_finite_floats_written_as_literals(self):
        assert to_json([{"v": float("nan")}], {"pretty": False}) == '[{"v":NaN}]'


class TestYAML:
    """Test YAML output."""

    def test_block_sequence(self):
        assert to_yaml(ROWS) == (
            '- # Item 1\n  name: "John"\n  age: 30\n'
            '- # Item 2\n  name: "Jane"\n  age: 25'
        )

    def test_parses_back(self):
        rows = [{"name": "John", "active": True, "note": None, "ratio": 0.5}]
        assert yaml.safe_load(to_yaml(rows)) == rows

    def test_unusual_keys_quoted(self):
        rows = [{"first name": "a", "yes": "b"}]
        assert yaml.safe_load(to_yaml(rows)) == rows

    def test_empty_row(self):
        assert yaml.safe_load(to_yaml([{}])) == [{}]

    def test_empty_input(self):
        assert yaml.safe_load(to_yaml([])) == []

    def test_exponent_floats_read_back_as_strings(self):
        assert to_yaml([{"v": 1e20}]) == "- # Item 1\n  v: 1e+20"
        assert yaml.safe_load(to_yaml([{"v": 1e20}]))[0]["v"] == "1e+20"


class TestXML:
    """Test XML output."""

    def test_structure(self):
        output = to_xml(ROWS)
        root = ET.fromstring(output.split("\n", 1)[1])

        assert output.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert root.tag == "data"
        assert [item.tag for item in root] == ["item", "item"]
        assert root[0].find("name").text == "John"
        assert root[1].find("age").text == "25"

    def test_custom_element_names(self):
        output = to_xml(ROWS, {"root_element": "people", "item_element": "person"})
        assert "<people>" in output
        assert "<person>" in output

    def test_special_characters_escaped(self):
        output = to_xml([{"v": "a < b & c"}])

        assert "<v>a &lt; b &amp; c</v>" in output
        ET.fromstring(output.split("\n", 1)[1])

    def test_invalid_element_names_sanitized(self):
        output = to_xml([{"first name": "a", "1st": "b"}])
        root = ET.fromstring(output.split("\n", 1)[1])

        assert [child.tag for child in root[0]] == ["first_name", "_1st"]

    def test_empty_input(self):
        assert to_xml([]) == '<?xml version="1.0" encoding="UTF-8"?>\n<data></data>'


class TestRegistry:
    """Test registry lookups and option validation."""

    def test_every_supported_format_handles_empty_input(self):
        for format_id in FORMAT_REGISTRY:
            assert isinstance(convert([], format_id), str)

    def test_excel_is_catalogued_but_unsupported(self):
        assert not is_supported("excel")
        with pytest.raises(UnsupportedFormat, match="Excel"):
            get_converter("excel")

    def test_unknown_format(self):
        with pytest.raises(UnsupportedFormat):
            convert(ROWS, "pdf")

    def test_lookup_is_case_insensitive(self):
        assert get_converter("CSV").format.id == "csv"

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            FORMAT_REGISTRY["pdf"] = FORMAT_REGISTRY["csv"]

    def test_default_options_are_fresh_copies(self):
        spec = get_converter("html")
        options = spec.default_options()
        options["title"] = "changed"
        assert spec.default_options()["title"] == "Data Table"

    def test_html_title_follows_source_name(self):
        assert get_converter("html").default_options("sales")["title"] == "sales"
        assert "title" not in get_converter("csv").default_options("sales")

    def test_validate_rejects_unknown_option(self):
        with pytest.raises(ValueError, match="Unknown options"):
            validate_options("csv", {"colour": "red"})

    def test_validate_rejects_wrong_type(self):
        with pytest.raises(ValueError, match="pretty"):
            validate_options("json", {"pretty": "yes"})

    def test_validate_rejects_bool_for_string(self):
        with pytest.raises(ValueError, match="title"):
            validate_options("html", {"title": True})


class TestConvert:
    """Test the convert entry point."""

    def test_merges_defaults(self):
        assert convert(ROWS, "sql", {"table_name": "people"}).startswith("CREATE TABLE people")

    def test_invalid_options_become_conversion_failed(self):
        with pytest.raises(ConversionFailed) as excinfo:
            convert(ROWS, "csv", {"delimiter": "::"})
        assert "single character" in excinfo.value.reason

    def test_bad_rows_become_conversion_failed(self):
        with pytest.raises(ConversionFailed, match="Row 1"):
            convert(["oops"], "markdown")

    def test_estimate_size(self):
        rows = [{"value": "x" * 100} for _ in range(100)]
        assert estimate_size_kb(rows, "csv") == 10
        assert estimate_size_kb([], "csv") == 0
