"""Result aggregation, matching statistics and the downloadable template."""

import csv
import io
from typing import Iterable, List, Optional

import openpyxl
from openpyxl.utils import get_column_letter

from .models import BOMRow, BOMUploadResult, Confidence, MatchingStats
from .schema import CANONICAL_FIELDS, TEMPLATE_HEADERS, FIELD_SCHEMAS

TEMPLATE_FORMATS = ("csv", "xlsx")

SAMPLE_ROW_COUNT = 3


def compute_stats(rows: Iterable[BOMRow]) -> MatchingStats:
    """
    Count live rows per confidence tier.

    Deleted rows are excluded. match_rate is the percentage of high and
    medium rows, rounded to one decimal.
    """
    counts = {confidence: 0 for confidence in Confidence}
    total = 0
    for row in rows:
        if row.is_deleted:
            continue
        counts[row.confidence] += 1
        total += 1

    matched = counts[Confidence.HIGH] + counts[Confidence.MEDIUM]
    match_rate = round(matched / total * 100, 1) if total else 0.0

    return MatchingStats(
        total_rows=total,
        high=counts[Confidence.HIGH],
        medium=counts[Confidence.MEDIUM],
        low=counts[Confidence.LOW],
        none=counts[Confidence.NONE],
        match_rate=match_rate,
    )


def build_upload_result(
    file_name: str,
    rows: List[BOMRow],
    parse_errors: List[str],
    total_rows: Optional[int] = None,
) -> BOMUploadResult:
    """
    Assemble the outcome of one upload.

    Args:
        file_name: Name of the uploaded file
        rows: Parsed and matched rows, in row order
        parse_errors: One message per rejected row
        total_rows: Data rows in the file (default: good rows plus rejected rows)
    """
    if total_rows is None:
        total_rows = len(rows) + len(parse_errors)

    return BOMUploadResult(
        file_name=file_name,
        total_rows=total_rows,
        rows=list(rows),
        parse_errors=list(parse_errors),
        stats=compute_stats(rows),
    )


def template_labels() -> List[str]:
    """Header labels of the template, in column order."""
    return [FIELD_SCHEMAS[column]["label"] for column in TEMPLATE_HEADERS]


def template_samples() -> List[List[str]]:
    """Sample rows built from the example values of each column."""
    return [
        [FIELD_SCHEMAS[column]["examples"][i] for column in TEMPLATE_HEADERS]
        for i in range(SAMPLE_ROW_COUNT)
    ]


def generate_template(fmt: str = "csv", include_samples: bool = False) -> bytes:
    """
    Generate the downloadable BOM template.

    The header row alone parses to zero rows and zero errors, so an
    untouched template can be uploaded safely.

    Args:
        fmt: 'csv' or 'xlsx'
        include_samples: Add a few filled-in example rows

    Returns:
        The template file contents

    Raises:
        ValueError: If fmt is not supported
    """
    fmt = fmt.lower()
    if fmt not in TEMPLATE_FORMATS:
        raise ValueError(f"Unsupported template format: {fmt}. Supported formats: {', '.join(TEMPLATE_FORMATS)}")

    rows = [template_labels()]
    if include_samples:
        rows.extend(template_samples())

    if fmt == "csv":
        return _template_csv(rows)
    return _template_excel(rows)


def _template_csv(rows: List[List[str]]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerows(rows)
    # BOM so spreadsheet programs open diacritics correctly
    return buffer.getvalue().encode("utf-8-sig")


def _template_excel(rows: List[List[str]]) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "BOM"

    for row_idx, row_data in enumerate(rows, start=1):
        for col_idx, value in enumerate(row_data, start=1):
            # Leave blank sample cells empty instead of writing ''
            if value != "":
                ws.cell(row=row_idx, column=col_idx, value=value)

    # Widen columns to fit the labels
    for col_idx, field in enumerate(CANONICAL_FIELDS, start=1):
        ws.column_dimensions[get_column_letter(col_idx)].width = max(12, len(field["label"]) + 4)

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
