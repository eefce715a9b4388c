"""File adapters: turn upload bytes into numbered rows of cells."""

from .csv_adapter import CsvAdapter
from .excel_adapter import ExcelAdapter

__all__ = ["CsvAdapter", "ExcelAdapter"]
