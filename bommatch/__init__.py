from .parser import BomParser
from .normalizer import BomNormalizer, normalize_family, normalize_grade
from .unit_normalizer import UnitNormalizer
from .matcher import Matcher, ScoringPolicy, DEFAULT_POLICY
from .session import RowStateMachine
from .aggregator import build_upload_result, compute_stats, generate_template
from .ingest import ingest_bom, ingest_bom_async
from .models import (
    BOMRow,
    BOMUploadResult,
    CartLine,
    Confidence,
    MatchResult,
    MatchingStats,
    ParsedBOMLine,
    Product,
    RawBOMRecord,
    RowState,
)
from .errors import (
    BomError,
    FileRejectedError,
    RowParseError,
    InvalidTransitionError,
    UnknownRowError,
    UnknownProductError,
)
from .schema import TEMPLATE_HEADERS, COLUMN_MAPPINGS, SCHEMA_VERSION

__all__ = [
    "BomParser",
    "BomNormalizer",
    "UnitNormalizer",
    "Matcher",
    "ScoringPolicy",
    "DEFAULT_POLICY",
    "RowStateMachine",
    "build_upload_result",
    "compute_stats",
    "generate_template",
    "ingest_bom",
    "ingest_bom_async",
    "normalize_family",
    "normalize_grade",
    "BOMRow",
    "BOMUploadResult",
    "CartLine",
    "Confidence",
    "MatchResult",
    "MatchingStats",
    "ParsedBOMLine",
    "Product",
    "RawBOMRecord",
    "RowState",
    "BomError",
    "FileRejectedError",
    "RowParseError",
    "InvalidTransitionError",
    "UnknownRowError",
    "UnknownProductError",
    "TEMPLATE_HEADERS",
    "COLUMN_MAPPINGS",
    "SCHEMA_VERSION",
]
