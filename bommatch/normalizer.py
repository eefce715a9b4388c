from typing import Any, Dict, List, Optional, Tuple
import logging
import re
import unicodedata

from .errors import RowParseError
from .models import ParsedBOMLine, RawBOMRecord
from .schema import (
    FAMILIES,
    FAMILY_ALIASES,
    FAMILY_FEATURES,
    FAMILY_LAYOUTS,
    GRADE_ALIASES,
    GRADE_CLASS_PREFIXES,
    PROFILE_SERIES,
)
from .text import clean_cell, collapse_whitespace, fold_key
from .unit_normalizer import UnitNormalizer

logger = logging.getLogger(__name__)

# A number with an optional length suffix: "6", "48,3", "1.5m", "6 mm".
# The suffix may be followed by the 'x' separator but not by other letters ("100 max").
_DIMENSION_NUMBER = re.compile(r'(\d+(?:[.,]\d+)?)\s*(?:(mm|cm|dm|m)(?![a-wyz]))?', re.IGNORECASE)

# European section designation: "HEA 100", "IPE200"
_PROFILE_SERIES = re.compile(r'^\s*(' + '|'.join(PROFILE_SERIES) + r')\s*-?\s*(\d+(?:[.,]\d+)?)', re.IGNORECASE)

# Diameter markers and tube words that select the pipe layout for stainless/nonferrous
_DIAMETER_MARKER = re.compile(r'(ø|⌀|\bphi\b|\bd\s*(?=\d)|\bteava\b|\btevi\b|\bpipe\b|\btube\b|\bround\b|\brotund)', re.IGNORECASE)

# Fastener thread prefix: "M10x40"
_THREAD_PREFIX = re.compile(r'^\s*M(?=\d)', re.IGNORECASE)


def normalize_family(value: Any) -> Optional[str]:
    """Fold a family token to the vocabulary, or None if unrecognized."""
    key = fold_key(clean_cell(value))
    if not key:
        return None
    if key in FAMILIES:
        return key
    return FAMILY_ALIASES.get(key)


def grade_key(grade: str) -> str:
    """Compact comparison form of a grade: no spaces, hyphens or underscores."""
    return re.sub(r'[\s\-_/]+', '', grade)


def _strip_class_prefix(grade: str) -> str:
    for prefix in GRADE_CLASS_PREFIXES:
        if grade.startswith(prefix + " "):
            return grade[len(prefix):].strip()
    return grade


def normalize_grade(value: Any) -> Optional[str]:
    """Normalize a material grade designation.

    Case-folded to upper case with diacritics preserved, whitespace
    collapsed, surrounding punctuation stripped, and known aliases folded
    to one canonical form.

    Examples:
        normalize_grade(" s235jr ") -> "S235JR"
        normalize_grade("OL 37") -> "S235JR"
        normalize_grade("AISI 304 (1.4301)") -> "AISI 304"
        normalize_grade("Clasa 8.8") -> "8.8"
    """
    text = clean_cell(value)
    if not text:
        return None

    text = unicodedata.normalize("NFC", text)
    text = collapse_whitespace(text.upper()).strip(" ,;:-_/")
    if not text:
        return None

    # "AISI 304 (1.4301)": either part may be the known designation
    paren = re.match(r'^(.+?)\s*\((.+?)\)$', text)
    parts = [paren.group(1), paren.group(2)] if paren else [text]
    parts = [_strip_class_prefix(part.strip()) for part in parts]

    for part in parts:
        alias = GRADE_ALIASES.get(grade_key(part))
        if alias:
            return alias

    return parts[0]


class BomNormalizer:
    """Normalizer turning raw BOM records into canonical, family-aware lines.

    Every method is a pure transform; the alias tables it reads are
    module-level constants.
    """

    def __init__(self, unit_normalizer: Optional[UnitNormalizer] = None):
        """Initialize the normalizer.

        Args:
            unit_normalizer: Number/unit helper (default: a new UnitNormalizer)
        """
        self.units = unit_normalizer or UnitNormalizer()

    def normalize(self, record: RawBOMRecord) -> ParsedBOMLine:
        """Normalize a single record.

        Args:
            record: Raw record from the parser

        Returns:
            ParsedBOMLine for the record

        Raises:
            RowParseError: If the quantity is missing, non-numeric or not
                positive, or the unit is not a count, mass or length unit
        """
        warnings: List[str] = []

        raw_family = clean_cell(record.get("family"))
        family = normalize_family(raw_family)
        if raw_family and family is None:
            warnings.append(f"unknown family '{raw_family}'")

        grade = normalize_grade(record.get("grade"))

        raw_dimension = clean_cell(record.get("dimension"))
        features = self.parse_dimensions(raw_dimension, family, warnings)

        quantity, unit = self._parse_quantity(record)

        length_m = None
        raw_length = clean_cell(record.get("length_m"))
        if raw_length:
            length_m = self.units.parse_length_m(raw_length)
            if length_m is None:
                warnings.append(f"ignored unreadable length '{raw_length}'")

        if warnings:
            logger.debug(f"Row {record.row_index}: {'; '.join(warnings)}")

        return ParsedBOMLine(
            row_index=record.row_index,
            family=family,
            grade=grade,
            dimension_features=features,
            quantity=quantity,
            unit=unit,
            length_m=length_m,
            finish=clean_cell(record.get("finish")) or None,
            standard=clean_cell(record.get("standard")) or None,
            notes=clean_cell(record.get("notes")) or None,
            raw_family=raw_family or None,
            raw_dimension=raw_dimension or None,
            warnings=tuple(warnings),
        )

    def _parse_quantity(self, record: RawBOMRecord) -> Tuple[float, str]:
        raw_quantity = record.get("quantity")
        if not clean_cell(raw_quantity):
            raise RowParseError(record.row_index, "missing quantity")

        quantity = self.units.parse_number(raw_quantity)
        if quantity is None:
            raise RowParseError(record.row_index, f"quantity '{clean_cell(raw_quantity)}' is not a number")
        if quantity <= 0:
            raise RowParseError(record.row_index, f"quantity must be positive, got {clean_cell(raw_quantity)}")

        try:
            quantity, unit = self.units.normalize_quantity(quantity, clean_cell(record.get("unit")))
        except ValueError as e:
            raise RowParseError(record.row_index, str(e)) from e

        return quantity, unit

    def parse_dimensions(
        self,
        text: str,
        family: Optional[str],
        warnings: Optional[List[str]] = None,
    ) -> Dict[str, Optional[float]]:
        """Tokenize dimension text into the family's feature vector.

        Numbers are read in the family's field order; missing trailing
        fields stay None. Values with a cm/dm/m suffix are converted to mm.

        Examples:
            parse_dimensions("HEA 100", "profiles") -> {"height": None, "width": 100.0, ...}
            parse_dimensions("6x1500x6000", "plates") -> {"thickness": 6.0, "width_mm": 1500.0, "length_mm": 6000.0}
            parse_dimensions("Ø48,3x3", "pipes") -> {"diameter": 48.3, "height": None, "width": None, "thickness": 3.0}

        Args:
            text: Dimension text from the row
            family: Normalized family (None yields an empty vector)
            warnings: Optional list collecting non-fatal remarks

        Returns:
            Mapping of every family feature to a float or None
        """
        if warnings is None:
            warnings = []

        if family is None:
            return {}

        features: Dict[str, Optional[float]] = {name: None for name in FAMILY_FEATURES[family]}
        if not text:
            warnings.append("dimensions missing")
            return features

        if family == "profiles":
            series = _PROFILE_SERIES.match(text)
            if series:
                field_name = PROFILE_SERIES[series.group(1).upper()]
                features[field_name] = self.units.parse_number(series.group(2))
                return features

        if family == "fasteners":
            text = _THREAD_PREFIX.sub('', text)

        numbers = self._extract_numbers(text)
        layout = self._select_layout(text, family, len(numbers))

        if len(numbers) < len(layout):
            missing = ", ".join(layout[len(numbers):])
            warnings.append(f"partial dimensions, missing {missing}")
        elif len(numbers) > len(layout):
            warnings.append(f"ignored {len(numbers) - len(layout)} extra dimension value(s)")

        for name, value in zip(layout, numbers):
            features[name] = value

        return features

    def _extract_numbers(self, text: str) -> List[float]:
        numbers = []
        for match in _DIMENSION_NUMBER.finditer(text):
            value = self.units.parse_number(match.group(1))
            if value is None:
                continue
            numbers.append(self.units.to_millimetres(value, match.group(2)))
        return numbers

    def _select_layout(self, text: str, family: str, count: int) -> Tuple[str, ...]:
        """Pick the field order numbers are read into."""
        layouts = FAMILY_LAYOUTS[family]

        if family == "pipes":
            # Three numbers describe a rectangular section (HxWxT)
            return layouts[1] if count >= 3 else layouts[0]

        if family in ("stainless", "nonferrous"):
            return layouts[1] if _DIAMETER_MARKER.search(text) else layouts[0]

        return layouts[0]
