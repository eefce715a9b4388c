"""
Upload ingestion: one file in, one BOMUploadResult out.

    bytes -> BomParser -> RawBOMRecord -> BomNormalizer -> ParsedBOMLine
          -> Matcher -> MatchResult -> initial RowState -> aggregator

Each upload is a single batch with no state shared across uploads. The
catalog is read, never written.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from ..adapters.csv_adapter import CsvAdapter
from ..adapters.excel_adapter import ExcelAdapter
from ..aggregator import build_upload_result
from ..errors import RowParseError
from ..matcher import Matcher
from ..models import BOMRow, BOMUploadResult, Product, RowState
from ..normalizer import BomNormalizer
from ..parser import BomParser

logger = logging.getLogger(__name__)

CatalogInput = Sequence[Union[Product, Dict[str, Any]]]


def default_parser() -> BomParser:
    """A BomParser with the XLSX and CSV adapters registered (XLSX first)."""
    parser = BomParser()
    parser.register_adapter(ExcelAdapter())
    parser.register_adapter(CsvAdapter())
    return parser


def load_catalog(catalog: CatalogInput) -> List[Product]:
    """Accept Product instances or catalog dictionaries."""
    return [
        item if isinstance(item, Product) else Product.from_dict(item)
        for item in catalog
    ]


def ingest_bom(
    content: bytes,
    mime_type: Optional[str],
    catalog: CatalogInput,
    file_name: str = "",
    parser: Optional[BomParser] = None,
    normalizer: Optional[BomNormalizer] = None,
    matcher: Optional[Matcher] = None,
) -> BOMUploadResult:
    """
    Parse, normalize and match one uploaded BOM file.

    Args:
        content: Raw upload bytes
        mime_type: Declared mime type of the upload
        catalog: Products to match against (Product or dict records)
        file_name: Original file name, carried into the result
        parser, normalizer, matcher: Optional pre-configured components

    Returns:
        BOMUploadResult with one BOMRow per good data row

    Raises:
        FileRejectedError: If the upload is rejected at file level
    """
    parser = parser or default_parser()
    normalizer = normalizer or BomNormalizer()
    matcher = matcher or Matcher()
    products = load_catalog(catalog)

    records, parse_errors = parser.parse(content, mime_type)
    total_rows = len(records) + len(parse_errors)

    rows: List[BOMRow] = []
    normalize_errors: List[RowParseError] = []
    for record in records:
        try:
            line = normalizer.normalize(record)
        except RowParseError as e:
            normalize_errors.append(e)
            continue

        match = matcher.match(line, products)
        rows.append(BOMRow(line=line, match=match, state=RowState.initial_for(match.confidence)))

    if normalize_errors:
        # Keep the error list in row order across both stages
        parse_errors = _merge_errors(parse_errors, normalize_errors)

    for error in parse_errors:
        logger.warning(f"{file_name or 'upload'}: {error}")

    result = build_upload_result(file_name, rows, parse_errors, total_rows=total_rows)

    stats = result.stats
    logger.info(
        f"Ingested {file_name or 'upload'}: {result.total_rows} row(s), "
        f"{len(rows)} parsed, {len(parse_errors)} error(s); "
        f"high={stats.high} medium={stats.medium} low={stats.low} none={stats.none} "
        f"match rate {stats.match_rate}%"
    )
    return result


async def ingest_bom_async(
    read: Callable[[], Awaitable[bytes]],
    mime_type: Optional[str],
    catalog: CatalogInput,
    file_name: str = "",
    declared_size: Optional[int] = None,
    parser: Optional[BomParser] = None,
) -> BOMUploadResult:
    """
    Async entry point for upload handlers.

    Awaiting read() is the only suspension point; the rest runs
    synchronously. A declared size over the limit is rejected before
    any byte is read.
    """
    parser = parser or default_parser()
    if declared_size is not None:
        parser.check_upload(mime_type, declared_size)

    content = await read()
    return ingest_bom(content, mime_type, catalog, file_name=file_name, parser=parser)


def _merge_errors(parse_errors: List[str], normalize_errors: List[RowParseError]) -> List[str]:
    keyed = [(_row_of(message), message) for message in parse_errors]
    keyed.extend((error.row_index, str(error)) for error in normalize_errors)
    keyed.sort(key=lambda item: item[0])
    return [message for _, message in keyed]


def _row_of(message: str) -> int:
    # Messages are "Row <n>: <reason>"
    return int(message.split(":", 1)[0].split()[-1])
