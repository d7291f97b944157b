"""
Demo data for tabconvert.

Sample rows and a helper that writes them out in every supported format.
"""

from .sample_data import SAMPLE_ROWS, write_sample_outputs

__all__ = ["SAMPLE_ROWS", "write_sample_outputs"]
