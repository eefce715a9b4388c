"""
Weighted scoring matcher for BOM lines against a product catalog.

Every active product of the line's family is scored; nothing else is
filtered out. The best candidate's composite score is mapped to a
confidence tier, and tiers below the lowest threshold leave the line
unmatched.

    composite = dimension_weight * dimension
              + grade_weight * grade
              + coverage_weight * coverage

The matcher is pure: the same line and catalog always give the same
MatchResult, and the catalog is never modified.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .models import Confidence, MatchResult, ParsedBOMLine, Product
from .normalizer import grade_key, normalize_family, normalize_grade
from .schema import FAMILIES, FAMILY_LAYOUTS

logger = logging.getLogger(__name__)

EXACT_GRADE = "exact grade"
PARTIAL_GRADE = "partial grade match"
GRADE_MISMATCH = "grade mismatch"
GRADE_UNAVAILABLE = "grade unavailable"
DIMENSIONS_UNAVAILABLE = "dimensions unavailable"


@dataclass(frozen=True)
class ScoringPolicy:
    """Tunable weights, tolerance bands and confidence thresholds."""
    dimension_weight: float = 0.5
    grade_weight: float = 0.3
    coverage_weight: float = 0.2

    # (max mean relative error, score), checked in order
    tolerance_bands: Tuple[Tuple[float, float], ...] = ((0.02, 1.0), (0.05, 0.8), (0.10, 0.5))

    # Dimension score when no feature is present on both sides
    no_dimension_score: float = 0.3

    # Grade score when either side has no grade
    missing_grade_score: float = 0.5
    partial_grade_score: float = 0.5

    high_threshold: float = 0.85
    medium_threshold: float = 0.6
    low_threshold: float = 0.35

    def confidence_for(self, score: float) -> Confidence:
        if score >= self.high_threshold:
            return Confidence.HIGH
        if score >= self.medium_threshold:
            return Confidence.MEDIUM
        if score >= self.low_threshold:
            return Confidence.LOW
        return Confidence.NONE


DEFAULT_POLICY = ScoringPolicy()


@dataclass(frozen=True)
class CandidateScore:
    """Score breakdown for one catalog product against one line."""
    product: Product
    score: float
    grade_score: float
    grade_label: str
    dimension_score: float
    mean_error: Optional[float]
    coverage: float
    catalog_index: int

    @property
    def is_exact_grade(self) -> bool:
        return self.grade_label == EXACT_GRADE


def relative_error(a: float, b: float) -> float:
    """|a - b| / max(|a|, |b|), with two zeros counting as no error."""
    scale = max(abs(a), abs(b))
    if scale == 0:
        return 0.0
    return abs(a - b) / scale


def coverage(product: Product, family: str) -> float:
    """Fraction of the product's best-fitting layout that is specified."""
    layouts = FAMILY_LAYOUTS.get(family)
    if not layouts:
        return 0.0

    features = product.dimension_features
    best = 0.0
    for layout in layouts:
        filled = sum(1 for name in layout if features.get(name) is not None)
        best = max(best, filled / len(layout))
    return best


class Matcher:
    """
    Scores BOM lines against catalog products.

    Uses weighted scoring to rank every same-family product without
    hard filtering; the tier thresholds decide what is a match.
    """

    def __init__(self, policy: Optional[ScoringPolicy] = None):
        self.policy = policy or DEFAULT_POLICY

    # =========================================================================
    # COMPONENT SCORES
    # =========================================================================

    def grade_score(self, line_grade: Optional[str], product_grade: Optional[str]) -> Tuple[float, str]:
        """
        Score grade agreement.

        Grades are compared in compact form, so "S235 JR" equals "S235JR"
        and "S235JR" partially matches "S235JRH".
        """
        if not line_grade or not product_grade:
            return self.policy.missing_grade_score, GRADE_UNAVAILABLE

        a = grade_key(line_grade)
        b = grade_key(product_grade)
        if a == b:
            return 1.0, EXACT_GRADE
        if a in b or b in a:
            return self.policy.partial_grade_score, PARTIAL_GRADE
        return 0.0, GRADE_MISMATCH

    def dimension_score(
        self,
        line_features: Dict[str, Optional[float]],
        product_features: Dict[str, Optional[float]],
    ) -> Tuple[float, Optional[float]]:
        """
        Score dimensional agreement over features present on both sides.

        Returns:
            (score, mean relative error). The error is None when no
            feature could be compared.
        """
        errors = []
        for name, value in line_features.items():
            other = product_features.get(name)
            if value is None or other is None:
                continue
            errors.append(relative_error(value, other))

        if not errors:
            return self.policy.no_dimension_score, None

        mean_error = sum(errors) / len(errors)
        for max_error, score in self.policy.tolerance_bands:
            if mean_error <= max_error:
                return score, mean_error
        return 0.0, mean_error

    def score_candidate(self, line: ParsedBOMLine, product: Product, catalog_index: int = 0) -> CandidateScore:
        """Score a single product against a line."""
        grade, grade_label = self.grade_score(line.grade, normalize_grade(product.grade))
        dimension, mean_error = self.dimension_score(line.dimension_features, product.dimension_features)
        cov = coverage(product, line.family)

        composite = (
            self.policy.dimension_weight * dimension
            + self.policy.grade_weight * grade
            + self.policy.coverage_weight * cov
        )

        return CandidateScore(
            product=product,
            score=round(composite, 4),
            grade_score=grade,
            grade_label=grade_label,
            dimension_score=dimension,
            mean_error=mean_error,
            coverage=cov,
            catalog_index=catalog_index,
        )

    # =========================================================================
    # MATCHING
    # =========================================================================

    def candidates(self, line: ParsedBOMLine, catalog: Sequence[Product]) -> List[Tuple[int, Product]]:
        """Active catalog products in the line's family, with their catalog positions."""
        if line.family is None:
            return []
        return [
            (index, product)
            for index, product in enumerate(catalog)
            if product.is_active and normalize_family(product.family) == line.family
        ]

    def rank(self, line: ParsedBOMLine, catalog: Sequence[Product], limit: Optional[int] = None) -> List[CandidateScore]:
        """
        Score every candidate and sort best first.

        Ties are broken by exact grade, then catalog order.
        """
        scored = [
            self.score_candidate(line, product, index)
            for index, product in self.candidates(line, catalog)
        ]
        scored.sort(key=lambda c: (-c.score, not c.is_exact_grade, c.catalog_index))
        return scored[:limit] if limit is not None else scored

    def match(self, line: ParsedBOMLine, catalog: Sequence[Product]) -> MatchResult:
        """
        Match one line against the catalog.

        Never raises for a well-formed line; a line that cannot be matched
        gets Confidence.NONE and no product id.
        """
        if line.family is None or line.family not in FAMILIES:
            detail = f"'{line.raw_family}' is not a known family" if line.raw_family else "no family given"
            return self._unmatched(line, f"unknown or empty family: {detail}")

        ranked = self.rank(line, catalog, limit=1)
        if not ranked:
            return self._unmatched(line, f"unknown or empty family: no active catalog products in '{line.family}'")

        best = ranked[0]
        confidence = self.policy.confidence_for(best.score)
        reason = self.describe(best)

        if confidence == Confidence.NONE:
            return self._unmatched(line, f"best candidate too weak: {reason} (score {best.score:.2f})", best.score)

        logger.debug(
            f"Row {line.row_index}: {confidence.value} match {best.product.id} "
            f"(score {best.score}, {reason})"
        )
        return MatchResult(
            confidence=confidence,
            matched_product_id=best.product.id,
            reason=reason,
            score=best.score,
        )

    def match_all(self, lines: Sequence[ParsedBOMLine], catalog: Sequence[Product]) -> List[MatchResult]:
        return [self.match(line, catalog) for line in lines]

    def describe(self, candidate: CandidateScore) -> str:
        """Human-readable reason naming the score components."""
        if candidate.mean_error is None:
            if candidate.grade_label == GRADE_UNAVAILABLE:
                return f"family match only, {DIMENSIONS_UNAVAILABLE}"
            return f"{candidate.grade_label}, {DIMENSIONS_UNAVAILABLE}"

        for max_error, _ in self.policy.tolerance_bands:
            if candidate.mean_error <= max_error:
                return f"{candidate.grade_label}, dimensions within {max_error:.0%}"

        largest = self.policy.tolerance_bands[-1][0]
        return f"{candidate.grade_label}, dimensions differ by more than {largest:.0%}"

    def _unmatched(self, line: ParsedBOMLine, reason: str, score: float = 0.0) -> MatchResult:
        logger.debug(f"Row {line.row_index}: no match ({reason})")
        return MatchResult(
            confidence=Confidence.NONE,
            matched_product_id=None,
            reason=reason,
            score=score,
        )
