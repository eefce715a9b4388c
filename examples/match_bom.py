#!/usr/bin/env python3
"""Example: Upload a BOM file and auto-match it against a product catalog.

This script walks through the whole buyer flow:
1. Downloads the BOM template (optionally with sample rows)
2. Parses and matches an uploaded BOM file
3. Accepts every high-confidence match
4. Exports the accepted rows as cart lines
"""

import json
import logging
import mimetypes
from pathlib import Path

from bommatch import RowStateMachine, generate_template, ingest_bom, Confidence
from bommatch.ingest import load_catalog

# A few products to match against when no catalog file is given
SAMPLE_CATALOG = [
    {
        "id": "HEA100-S235",
        "title": "HEA 100 S235JR",
        "family": "profiles",
        "grade": "S235JR",
        "dimensions": {"height": 96, "width": 100, "webThickness": 5, "flangeThickness": 8},
    },
    {
        "id": "HEA120-S235",
        "title": "HEA 120 S235JR",
        "family": "profiles",
        "grade": "S235JR",
        "dimensions": {"height": 114, "width": 120, "webThickness": 5, "flangeThickness": 8},
    },
    {
        "id": "PL6-S235",
        "title": "Tabla 6mm S235JR",
        "family": "plates",
        "grade": "S235JR",
        "dimensions": {"thickness": 6, "widthMm": 1500, "lengthMm": 6000},
    },
    {
        "id": "RHS40x20x2",
        "title": "Teava rectangulara 40x20x2",
        "family": "pipes",
        "grade": "S235JRH",
        "dimensions": {"height": 40, "width": 20, "thickness": 2},
    },
    {
        "id": "CHS48.3x3",
        "title": "Teava rotunda 48,3x3",
        "family": "pipes",
        "grade": "S235JRH",
        "dimensions": {"diameter": 48.3, "thickness": 3},
    },
]

MIME_BY_SUFFIX = {
    ".csv": "text/csv",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def write_template(output_file: str):
    """Write the BOM template with sample rows next to the caller."""
    fmt = "xlsx" if output_file.lower().endswith(".xlsx") else "csv"
    Path(output_file).write_bytes(generate_template(fmt, include_samples=True))
    print(f"✓ Template saved to: {output_file}")


def match_bom(input_file: str, catalog_file: str = None):
    """Match a BOM file and print the outcome.

    Args:
        input_file: Path to a CSV or XLSX BOM file
        catalog_file: Optional JSON file with a list of catalog products
    """
    path = Path(input_file)
    mime_type = MIME_BY_SUFFIX.get(path.suffix.lower()) or mimetypes.guess_type(path.name)[0]

    if catalog_file:
        catalog = load_catalog(json.loads(Path(catalog_file).read_text(encoding="utf-8")))
    else:
        catalog = load_catalog(SAMPLE_CATALOG)

    result = ingest_bom(path.read_bytes(), mime_type, catalog, file_name=path.name)

    print(f"✓ Parsed {len(result.rows)} of {result.total_rows} rows from {result.file_name}")
    for error in result.parse_errors:
        print(f"  ✗ {error}")

    print("\nMatches:")
    for row in result.rows:
        product = row.matched_product_id or "-"
        print(f"  Row {row.row_index:3d}  {row.confidence.value:6s}  {product:15s}  {row.reason}")

    stats = result.stats
    print(f"\nMatch rate: {stats.match_rate}% "
          f"(high {stats.high}, medium {stats.medium}, low {stats.low}, none {stats.none})")

    # Accept the confident matches and hand them to the cart
    session = RowStateMachine(result, catalog)
    session.accept_all(Confidence.HIGH)
    cart = session.export_cart_lines()

    print(f"\nCart lines ({len(cart)}):")
    for line in cart:
        print(f"  {line.product_id:15s} {line.quantity:g} {line.unit}  {line.specs or ''}")

    return result


if __name__ == "__main__":
    import sys

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if len(sys.argv) < 2:
        print("Usage: python match_bom.py <bom_file> [catalog.json]")
        print("       python match_bom.py --template <output_file>")
        print("\nExample:")
        print("  python match_bom.py --template bom_template.xlsx")
        print("  python match_bom.py bom_template.xlsx")
        sys.exit(1)

    if sys.argv[1] == "--template":
        if len(sys.argv) < 3:
            print("Usage: python match_bom.py --template <output_file>")
            sys.exit(1)
        write_template(sys.argv[2])
    else:
        match_bom(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None)
