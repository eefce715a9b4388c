"""BOM upload ingestion: parse, normalize, match and aggregate one file."""

from .upload_ingest import (
    ingest_bom,
    ingest_bom_async,
    default_parser,
    load_catalog,
)

__all__ = [
    "ingest_bom",
    "ingest_bom_async",
    "default_parser",
    "load_catalog",
]
