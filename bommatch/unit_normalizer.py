"""Number and unit normalization using the Pint library.

Handles the locale-dependent parts of a BOM row: decimal separators in
quantities, unit synonyms, and length suffixes in dimension text.
"""

import math
import re
from typing import Any, Optional, Tuple
from pint import UnitRegistry

from .schema import DEFAULT_UNIT, UNIT_SYNONYMS
from .text import fold_key

# Initialize Pint unit registry
ureg = UnitRegistry()

# Number with an optional trailing unit, e.g. "6000 mm", "6,5m", "12"
_NUMBER_WITH_UNIT = re.compile(r"^\s*([+-]?[\d.,\s']+?)\s*([^\d\s.,']+)?\s*$")

_THOUSANDS_NOISE = re.compile(r"[\s']")


class UnitNormalizer:
    """Parses locale-formatted numbers and folds units to the canonical vocabulary."""

    def __init__(self):
        """Initialize the unit normalizer."""
        self.ureg = ureg

    def parse_number(self, value: Any) -> Optional[float]:
        """Parse a number written with either decimal separator.

        Rules:
        - both ',' and '.' present: the last one is the decimal separator
        - a separator repeated more than once is a thousands separator
        - a single ',' or '.' is the decimal separator
        - spaces and apostrophes are thousands separators

        Examples:
            parse_number("6,5") -> 6.5
            parse_number("1.234,5") -> 1234.5
            parse_number("1,234.5") -> 1234.5
            parse_number("1 000") -> 1000.0
            parse_number("abc") -> None

        Returns:
            The parsed float, or None if the value is not a plain number
        """
        if value is None or isinstance(value, bool):
            return None

        if isinstance(value, (int, float)):
            number = float(value)
            return None if math.isnan(number) or math.isinf(number) else number

        text = _THOUSANDS_NOISE.sub('', str(value).strip())
        if not text or not re.fullmatch(r'[+-]?[\d.,]*\d[\d.,]*', text):
            return None

        has_comma = ',' in text
        has_point = '.' in text

        if has_comma and has_point:
            if text.rfind(',') > text.rfind('.'):
                text = text.replace('.', '').replace(',', '.')
            else:
                text = text.replace(',', '')
        elif has_comma:
            if text.count(',') > 1:
                text = text.replace(',', '')
            else:
                text = text.replace(',', '.')
        elif has_point and text.count('.') > 1:
            text = text.replace('.', '')

        try:
            number = float(text)
        except ValueError:
            return None

        return None if math.isnan(number) or math.isinf(number) else number

    def fold_unit(self, token: Any) -> Optional[str]:
        """Fold a unit token to the canonical vocabulary using the synonym table only.

        Returns:
            Canonical unit ('kg', 't', 'm', 'pcs'), DEFAULT_UNIT for a blank
            token, or None if the token is not a known synonym
        """
        if token is None:
            return DEFAULT_UNIT
        key = fold_key(str(token))
        if not key:
            return DEFAULT_UNIT
        return UNIT_SYNONYMS.get(key)

    def normalize_quantity(self, quantity: float, token: Any) -> Tuple[float, str]:
        """Normalize a quantity and its unit token to a canonical unit.

        Synonyms are tried first. Any other mass unit Pint understands is
        converted to kg, and any other length unit to m.

        Examples:
            normalize_quantity(10, "buc") -> (10, "pcs")
            normalize_quantity(500, "g") -> (0.5, "kg")
            normalize_quantity(2500, "mm") -> (2.5, "m")

        Raises:
            ValueError: If the unit is not a count, mass or length unit
        """
        canonical = self.fold_unit(token)
        if canonical is not None:
            return quantity, canonical

        unit = self._parse_pint_unit(str(token).strip())
        if unit is None:
            raise ValueError(f"unknown unit '{token}'")

        measured = self.ureg.Quantity(quantity, unit)
        if measured.check("[mass]"):
            return round(measured.to(self.ureg.kilogram).magnitude, 9), "kg"
        if measured.check("[length]"):
            return round(measured.to(self.ureg.meter).magnitude, 9), "m"

        raise ValueError(f"unit '{token}' is not a count, mass or length unit")

    def to_millimetres(self, value: float, unit: Optional[str]) -> float:
        """Convert a dimension value with an optional length suffix to millimetres."""
        if not unit or unit.lower() == "mm":
            return value
        converted = self.ureg.Quantity(value, unit.lower()).to(self.ureg.millimeter)
        return round(converted.magnitude, 6)

    def parse_length_m(self, value: Any) -> Optional[float]:
        """Parse a cut length. Bare numbers are metres, suffixed values are converted.

        Examples:
            parse_length_m("6") -> 6.0
            parse_length_m("6000 mm") -> 6.0
            parse_length_m("12,5") -> 12.5
            parse_length_m("long") -> None
        """
        number = self.parse_number(value)
        if number is not None:
            return number

        match = _NUMBER_WITH_UNIT.match(str(value)) if value is not None else None
        if not match or not match.group(2):
            return None

        number = self.parse_number(match.group(1))
        unit = self._parse_pint_unit(match.group(2))
        if number is None or unit is None:
            return None

        measured = self.ureg.Quantity(number, unit)
        if not measured.check("[length]"):
            return None
        return round(measured.to(self.ureg.meter).magnitude, 9)

    def to_cart_unit(self, quantity: float, unit: str) -> Tuple[float, str]:
        """Convert a canonical quantity to the cart's units (kg, m, pcs)."""
        if unit == "t":
            converted = self.ureg.Quantity(quantity, self.ureg.tonne).to(self.ureg.kilogram)
            return round(converted.magnitude, 9), "kg"
        return quantity, unit

    def _parse_pint_unit(self, token: str):
        """Parse a unit string with Pint, returning None if Pint does not know it."""
        if not token:
            return None
        try:
            return self.ureg.parse_units(token)
        except Exception:
            return None
