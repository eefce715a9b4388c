"""
Data model for BOM ingestion and matching.

The pure stages (parser, normalizer, matcher) produce frozen records:
- RawBOMRecord: one row as read from the file
- ParsedBOMLine: the canonical, family-aware form of a row
- MatchResult: what the engine decided for a row

BOMRow wraps a line and its match with the only mutable state in the
engine: what the user decided. Mutate it through RowStateMachine only,
so "what the engine decided" and "what the user changed" stay separate.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .schema import FAMILY_FEATURES


# =============================================================================
# ENUMS
# =============================================================================

class Confidence(Enum):
    """
    Match confidence tiers.

    Totally ordered: NONE < LOW < MEDIUM < HIGH.
    """
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank >= other.rank


_CONFIDENCE_RANK = {
    Confidence.NONE: 0,
    Confidence.LOW: 1,
    Confidence.MEDIUM: 2,
    Confidence.HIGH: 3,
}


class RowState(Enum):
    """Lifecycle state of a BOM row within one upload session."""
    AUTO_HIGH = "auto_high"
    AUTO_MEDIUM = "auto_medium"
    AUTO_LOW = "auto_low"
    UNMATCHED = "unmatched"
    MANUAL_MAPPED = "manual_mapped"
    DELETED = "deleted"

    @property
    def is_auto(self) -> bool:
        return self in AUTO_STATES

    @classmethod
    def initial_for(cls, confidence: Confidence) -> "RowState":
        """Initial state for a freshly matched row."""
        return {
            Confidence.HIGH: cls.AUTO_HIGH,
            Confidence.MEDIUM: cls.AUTO_MEDIUM,
            Confidence.LOW: cls.AUTO_LOW,
            Confidence.NONE: cls.UNMATCHED,
        }[confidence]


AUTO_STATES = frozenset({RowState.AUTO_HIGH, RowState.AUTO_MEDIUM, RowState.AUTO_LOW})


# =============================================================================
# PARSED ROWS
# =============================================================================

@dataclass(frozen=True)
class RawBOMRecord:
    """
    One data row as read from the file, keyed by template column.

    row_index is the 1-based row number in the file (the header is row 1).
    """
    row_index: int
    values: Dict[str, Any]

    def get(self, column: str) -> Any:
        return self.values.get(column, "")


@dataclass(frozen=True)
class ParsedBOMLine:
    """
    Canonical representation of one BOM row.

    dimension_features holds every feature of the family's vector;
    unknown fields are None, never zero.
    """
    row_index: int
    family: Optional[str]
    grade: Optional[str]
    dimension_features: Dict[str, Optional[float]]
    quantity: float
    unit: str
    length_m: Optional[float] = None
    finish: Optional[str] = None

    # Carried through untouched
    standard: Optional[str] = None
    notes: Optional[str] = None
    raw_family: Optional[str] = None
    raw_dimension: Optional[str] = None

    # Non-fatal normalization remarks
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "row_index": self.row_index,
            "family": self.family,
            "grade": self.grade,
            "dimension_features": dict(self.dimension_features),
            "quantity": self.quantity,
            "unit": self.unit,
            "length_m": self.length_m,
            "finish": self.finish,
            "standard": self.standard,
            "notes": self.notes,
            "raw_family": self.raw_family,
            "raw_dimension": self.raw_dimension,
            "warnings": list(self.warnings),
        }


# =============================================================================
# CATALOG
# =============================================================================

_FEATURE_NAMES = frozenset(name for names in FAMILY_FEATURES.values() for name in names)


def _snake_case(key: str) -> str:
    """Convert camelCase catalog keys (webThickness, widthMm) to snake_case."""
    return re.sub(r'(?<!^)(?=[A-Z])', '_', key).lower()


@dataclass(frozen=True)
class Product:
    """A catalog product as seen by the matcher."""
    id: str
    family: Optional[str]
    grade: Optional[str]
    dimension_features: Dict[str, Optional[float]] = field(default_factory=dict)
    title: str = ""
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        """
        Build a Product from a catalog record.

        Accepts camelCase or snake_case keys. Dimension entries that are not
        matching features (weightPerM, threadLength, ...) are ignored.
        """
        raw_dims = data.get("dimension_features")
        if raw_dims is None:
            raw_dims = data.get("dimensions") or {}

        features: Dict[str, Optional[float]] = {}
        for key, value in raw_dims.items():
            name = _snake_case(str(key))
            if name not in _FEATURE_NAMES:
                continue
            if value is None or value == "":
                features[name] = None
                continue
            try:
                features[name] = float(value)
            except (TypeError, ValueError):
                features[name] = None

        is_active = data.get("is_active", data.get("isActive", True))

        return cls(
            id=str(data["id"]),
            family=data.get("family"),
            grade=data.get("grade"),
            dimension_features=features,
            title=data.get("title") or "",
            is_active=bool(is_active),
        )


# =============================================================================
# MATCHING
# =============================================================================

@dataclass(frozen=True)
class MatchResult:
    """Output of the matcher for one line."""
    confidence: Confidence
    matched_product_id: Optional[str]
    reason: str
    score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "confidence": self.confidence.value,
            "matched_product_id": self.matched_product_id,
            "reason": self.reason,
            "score": self.score,
        }


@dataclass
class BOMRow:
    """
    The unit the UI and the state machine operate on.

    line and match record what the engine decided and are never replaced.
    The remaining fields record what the user changed.
    """
    line: ParsedBOMLine
    match: MatchResult
    state: RowState
    is_manually_mapped: bool = False
    is_accepted: bool = False
    manual_product_id: Optional[str] = None
    manual_reason: Optional[str] = None

    @property
    def row_index(self) -> int:
        return self.line.row_index

    @property
    def confidence(self) -> Confidence:
        # Manual selection always reports high confidence
        if self.is_manually_mapped:
            return Confidence.HIGH
        return self.match.confidence

    @property
    def matched_product_id(self) -> Optional[str]:
        if self.is_manually_mapped:
            return self.manual_product_id
        return self.match.matched_product_id

    @property
    def reason(self) -> str:
        if self.is_manually_mapped and self.manual_reason:
            return self.manual_reason
        return self.match.reason

    @property
    def is_deleted(self) -> bool:
        return self.state == RowState.DELETED

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "row_index": self.row_index,
            "line": self.line.to_dict(),
            "engine_match": self.match.to_dict(),
            "state": self.state.value,
            "confidence": self.confidence.value,
            "matched_product_id": self.matched_product_id,
            "reason": self.reason,
            "is_manually_mapped": self.is_manually_mapped,
            "is_accepted": self.is_accepted,
        }


# =============================================================================
# UPLOAD RESULT
# =============================================================================

@dataclass(frozen=True)
class MatchingStats:
    """Per-tier counts over the live (non-deleted) rows of an upload."""
    total_rows: int
    high: int
    medium: int
    low: int
    none: int
    match_rate: float  # percentage of high + medium rows

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
            "none": self.none,
            "match_rate": self.match_rate,
        }


@dataclass
class BOMUploadResult:
    """
    Complete outcome of one upload.

    total_rows counts data rows in the file, including rows that failed
    to parse. rows holds successfully parsed rows only.
    """
    file_name: str
    total_rows: int
    rows: List[BOMRow]
    parse_errors: List[str]
    stats: MatchingStats

    def active_rows(self) -> List[BOMRow]:
        """Rows that have not been deleted."""
        return [row for row in self.rows if not row.is_deleted]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "file_name": self.file_name,
            "total_rows": self.total_rows,
            "rows": [row.to_dict() for row in self.rows],
            "parse_errors": list(self.parse_errors),
            "stats": self.stats.to_dict(),
        }


@dataclass(frozen=True)
class CartLine:
    """A flat line handed to the cart collaborator."""
    product_id: str
    quantity: float
    unit: str
    specs: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit": self.unit,
            "specs": dict(self.specs),
        }
