# tabconvert/demo/sample_data.py

from pathlib import Path
from typing import Dict

from tabconvert.core.converters import FORMAT_REGISTRY, convert
from tabconvert.core.download import FileDownloadSink

SAMPLE_ROWS = [
    {"region": "North", "product": "Widget", "units": 120, "revenue": 2400.5, "active": True},
    {"region": "South", "product": "Gadget", "units": 75, "revenue": 1875.0, "active": False},
    {"region": "East", "product": "Widget & Co", "units": 0, "revenue": 0.0, "active": True},
    {"region": "West", "product": "O'Brien's \"Deluxe\"", "units": 42, "revenue": None, "active": True},
]


def write_sample_outputs(output_dir: str, stem: str = "sample_sales") -> Dict[str, Path]:
    """Convert the sample rows to every supported format and save them."""
    sink = FileDownloadSink(output_dir)
    written = {}
    for format_id in FORMAT_REGISTRY:
        content = convert(SAMPLE_ROWS, format_id)
        written[format_id] = sink.save(content, stem, format_id)
    return written


if __name__ == "__main__":
    for format_id, path in write_sample_outputs(".").items():
        print(f"{format_id}: {path}")
