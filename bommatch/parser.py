"""Tabular parser: upload bytes in, raw BOM records and row errors out.

File-level problems (mime type, size, unreadable container) reject the
whole upload. Everything that goes wrong on a single row is collected as
a "Row <n>: <reason>" message and parsing continues with the next row.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from .adapters.excel_adapter import ZIP_SIGNATURE
from .errors import FileRejectedError, RowParseError
from .models import RawBOMRecord
from .schema import (
    ACCEPTED_MIME_TYPES,
    COLUMN_MAPPINGS,
    MAX_UPLOAD_BYTES,
    MIME_XLSX,
    REQUIRED_COLUMNS,
    TEMPLATE_HEADERS,
)
from .text import clean_cell, fold_key
from .unit_normalizer import UnitNormalizer

logger = logging.getLogger(__name__)

# Compound document container used by legacy binary .xls workbooks
OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

# A header row must name at least this many known columns to replace the positional order
MIN_RECOGNIZED_HEADERS = 3

# Non-blank rows searched for a header row
HEADER_SEARCH_ROWS = 3


def normalize_mime_type(mime_type: Optional[str]) -> str:
    """Strip parameters ("; charset=utf-8") and case from a mime type."""
    if not mime_type:
        return ""
    return mime_type.split(";", 1)[0].strip().lower()


class BomParser:
    """Parser for uploaded BOM files.

    Adapters are tried in registration order; the first whose can_handle()
    accepts the upload reads it.
    """

    def __init__(self, max_bytes: int = MAX_UPLOAD_BYTES, unit_normalizer: Optional[UnitNormalizer] = None):
        """Initialize the BOM parser.

        Args:
            max_bytes: Upload size ceiling in bytes (default: 10 MiB)
            unit_normalizer: Number parser used for the quantity check
        """
        self.adapters = []
        self.max_bytes = max_bytes
        self.units = unit_normalizer or UnitNormalizer()

        # Forward lookup: header variation -> template column
        self._variation_to_standard = {}
        for standard, variations in COLUMN_MAPPINGS.items():
            for variation in variations:
                self._variation_to_standard[fold_key(variation)] = standard

    def register_adapter(self, adapter):
        """Register a file adapter for parsing.

        Args:
            adapter: Adapter instance with can_handle() and read() methods
        """
        self.adapters.append(adapter)

    def check_upload(self, mime_type: Optional[str], size: int) -> str:
        """Apply the file-level mime type and size checks.

        Returns:
            The normalized mime type

        Raises:
            FileRejectedError: If the type is not accepted or the size exceeds the ceiling
        """
        mime = normalize_mime_type(mime_type)
        if mime not in ACCEPTED_MIME_TYPES:
            raise FileRejectedError(f"unsupported file type '{mime_type}'", mime_type=mime_type, size=size)
        if size > self.max_bytes:
            raise FileRejectedError(
                f"file too large: {size} bytes exceeds the {self.max_bytes} byte limit",
                mime_type=mime,
                size=size,
            )
        return mime

    def parse(self, content: bytes, mime_type: Optional[str]) -> Tuple[List[RawBOMRecord], List[str]]:
        """Parse an uploaded BOM file.

        Args:
            content: Raw upload bytes
            mime_type: Declared mime type of the upload

        Returns:
            (records, parse_errors): one RawBOMRecord per good data row, and
            one "Row <n>: <reason>" message per rejected row, in row order

        Raises:
            FileRejectedError: If the upload is rejected before any row is parsed
        """
        mime = self.check_upload(mime_type, len(content))

        if content.startswith(OLE2_SIGNATURE):
            raise FileRejectedError(
                "legacy binary .xls workbooks are not supported, save as .xlsx or .csv",
                mime_type=mime,
                size=len(content),
            )
        if mime == MIME_XLSX and not content.startswith(ZIP_SIGNATURE):
            raise FileRejectedError("content is not an XLSX workbook", mime_type=mime, size=len(content))

        # Find appropriate adapter
        adapter = None
        for a in self.adapters:
            if a.can_handle(mime, content):
                adapter = a
                break

        if adapter is None:
            raise FileRejectedError(f"No adapter found for {mime}", mime_type=mime, size=len(content))

        rows, read_errors = adapter.read(content)
        errors = [RowParseError(row_number, reason) for row_number, reason in read_errors]
        records: List[RawBOMRecord] = []

        filled = [(row_number, cells) for row_number, cells in rows if any(clean_cell(cell) for cell in cells)]
        header_at, columns, width = self.locate_header([cells for _, cells in filled[:HEADER_SEARCH_ROWS]])

        # Rows above the header (titles, project notes) are skipped with it
        for row_number, cells in filled[header_at + 1:]:
            try:
                records.append(self._build_record(row_number, cells, columns, width))
            except RowParseError as e:
                errors.append(e)

        errors.sort(key=lambda e: e.row_index)
        logger.debug(f"Parsed {len(records)} record(s) and {len(errors)} row error(s) with {type(adapter).__name__}")

        return records, [str(e) for e in errors]

    def normalize_column_name(self, column_name: Any) -> Optional[str]:
        """Normalize a header cell to a template column.

        Args:
            column_name: The header cell as read from the file

        Returns:
            Template column name if the header is a known variation, None otherwise
        """
        text = clean_cell(column_name)
        if not text:
            return None

        # Lowercase, drop accents, treat underscores/hyphens as spaces
        key = re.sub(r'[\s_\-]+', ' ', fold_key(text)).strip()
        return self._variation_to_standard.get(key)

    def recognize_header(self, row: List[Any]) -> Optional[Dict[str, int]]:
        """Map a candidate header row to template columns.

        Returns:
            template column -> cell index when the row names enough known
            columns, including every required one; None otherwise
        """
        mapped: Dict[str, int] = {}
        for index, cell in enumerate(row):
            standard = self.normalize_column_name(cell)
            if standard is not None and standard not in mapped:
                mapped[standard] = index

        if len(mapped) >= MIN_RECOGNIZED_HEADERS and all(column in mapped for column in REQUIRED_COLUMNS):
            return mapped
        return None

    def resolve_columns(self, header: List[Any]) -> Tuple[Dict[str, int], int]:
        """Decide how cell positions map to template columns.

        The header row is used when recognize_header() accepts it.
        Otherwise cells are read positionally in template order. A header
        mismatch is never an error.

        Returns:
            (columns, width): template column -> cell index, and the number
            of cells a row may carry
        """
        mapped = self.recognize_header(header)
        if mapped is not None:
            logger.debug(f"Using header mapping: {mapped}")
            return mapped, len(header)

        logger.debug("Header not recognized, using template order")
        return {column: index for index, column in enumerate(TEMPLATE_HEADERS)}, len(TEMPLATE_HEADERS)

    def locate_header(self, leading_rows: List[List[Any]]) -> Tuple[int, Dict[str, int], int]:
        """Find the header among the leading non-blank rows.

        The first recognized row wins. When none is recognized the first
        row is taken as the header and columns are read in template order.

        Returns:
            (position, columns, width): position of the header within
            leading_rows, then the resolve_columns() result
        """
        for position, row in enumerate(leading_rows):
            if self.recognize_header(row) is not None:
                if position:
                    logger.debug(f"Skipping {position} row(s) above the header")
                return (position,) + self.resolve_columns(row)

        if not leading_rows:
            return 0, {}, len(TEMPLATE_HEADERS)
        return (0,) + self.resolve_columns(leading_rows[0])

    def _build_record(self, row_number: int, cells: List[Any], columns: Dict[str, int], width: int) -> RawBOMRecord:
        required_span = max(columns[column] for column in REQUIRED_COLUMNS) + 1
        if len(cells) < required_span:
            raise RowParseError(row_number, f"expected at least {required_span} fields, got {len(cells)}")

        last_filled = max(index for index, cell in enumerate(cells) if clean_cell(cell))
        if last_filled >= width:
            raise RowParseError(row_number, f"too many fields: expected at most {width}, got {last_filled + 1}")

        values = {
            column: cells[index] if index < len(cells) else ""
            for column, index in columns.items()
        }

        quantity = clean_cell(values.get("quantity"))
        if not quantity:
            raise RowParseError(row_number, "missing quantity")
        if self.units.parse_number(values.get("quantity")) is None:
            raise RowParseError(row_number, f"quantity '{quantity}' is not a number")

        return RawBOMRecord(row_index=row_number, values=values)
