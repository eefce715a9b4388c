"""
Unit tests for the catalog matcher.

These tests verify that:
1. Matching is deterministic and never mutates the catalog
2. Confidence never increases as dimensional error grows
3. Ties are broken by exact grade, then catalog order
4. Unknown and empty families are reported as unmatched
"""

import pytest

from bommatch.matcher import Matcher, ScoringPolicy, coverage, relative_error
from bommatch.models import Confidence, ParsedBOMLine, Product
from bommatch.schema import FAMILY_FEATURES


# =============================================================================
# FIXTURES
# =============================================================================

def make_line(family="profiles", grade="S235JR", row_index=2, raw_family=None, **features) -> ParsedBOMLine:
    """Helper to create ParsedBOMLine objects with a full feature vector."""
    vector = {}
    if family in FAMILY_FEATURES:
        vector = {name: None for name in FAMILY_FEATURES[family]}
        vector.update(features)
    return ParsedBOMLine(
        row_index=row_index,
        family=family,
        grade=grade,
        dimension_features=vector,
        quantity=1,
        unit="pcs",
        raw_family=raw_family or family,
    )


def make_product(product_id, family="profiles", grade="S235JR", is_active=True, **features) -> Product:
    """Helper to create Product objects for testing."""
    return Product(
        id=product_id,
        family=family,
        grade=grade,
        dimension_features=features,
        title=product_id,
        is_active=is_active,
    )


@pytest.fixture
def matcher():
    return Matcher()


@pytest.fixture
def catalog():
    return [
        make_product("HEA100", height=96, width=100, web_thickness=5, flange_thickness=8),
        make_product("HEA200", height=190, width=200, web_thickness=6.5, flange_thickness=10),
        make_product("PL10", family="plates", thickness=10, width_mm=1500, length_mm=6000),
        make_product("RHS40x20x2", family="pipes", grade="S235JRH", height=40, width=20, thickness=2),
        make_product("CHS48.3x3", family="pipes", grade="S235JRH", diameter=48.3, thickness=3),
        make_product("INOX304", family="stainless", grade="AISI 304 (1.4301)", thickness=2, width_mm=1000, length_mm=2000),
    ]


# =============================================================================
# COMPONENT SCORES
# =============================================================================

class TestComponents:

    def test_grade_exact(self, matcher):
        assert matcher.grade_score("S235JR", "S235 JR") == (1.0, "exact grade")

    def test_grade_containment(self, matcher):
        assert matcher.grade_score("S235JR", "S235JRH") == (0.5, "partial grade match")

    def test_grade_mismatch(self, matcher):
        assert matcher.grade_score("S355J2", "S235JR") == (0.0, "grade mismatch")

    def test_grade_missing(self, matcher):
        assert matcher.grade_score(None, "S235JR") == (0.5, "grade unavailable")

    def test_relative_error(self):
        assert relative_error(98, 100) == pytest.approx(0.02)
        assert relative_error(0, 0) == 0.0

    def test_dimension_bands(self, matcher):
        product = {"thickness": 10.0}
        assert matcher.dimension_score({"thickness": 10.0}, product)[0] == 1.0
        assert matcher.dimension_score({"thickness": 10.4}, product)[0] == 0.8
        assert matcher.dimension_score({"thickness": 10.8}, product)[0] == 0.5
        assert matcher.dimension_score({"thickness": 12.0}, product)[0] == 0.0

    def test_no_comparable_dimensions(self, matcher):
        score, error = matcher.dimension_score({"thickness": None}, {"thickness": 10.0})
        assert score == 0.3
        assert error is None

    def test_coverage(self):
        assert coverage(make_product("A", family="plates", thickness=6, width_mm=1500, length_mm=6000), "plates") == 1.0
        assert coverage(make_product("B", family="plates", thickness=6), "plates") == pytest.approx(1 / 3)

    def test_coverage_uses_best_layout(self):
        round_pipe = make_product("CHS", family="pipes", diameter=48.3, thickness=3)
        assert coverage(round_pipe, "pipes") == 1.0


# =============================================================================
# MATCHING
# =============================================================================

class TestMatch:

    def test_exact_match(self, matcher, catalog):
        line = make_line(height=96, width=100, web_thickness=5, flange_thickness=8)
        result = matcher.match(line, catalog)

        assert result.confidence == Confidence.HIGH
        assert result.matched_product_id == "HEA100"
        assert result.score == 1.0
        assert result.reason == "exact grade, dimensions within 2%"

    def test_dimension_drift_stays_high(self, matcher, catalog):
        line = make_line(height=98, width=100, web_thickness=5, flange_thickness=8)
        result = matcher.match(line, catalog)

        assert result.confidence == Confidence.HIGH
        assert result.matched_product_id == "HEA100"

    def test_series_designation_matches(self, matcher, catalog):
        result = matcher.match(make_line(width=100), catalog)
        assert result.matched_product_id == "HEA100"
        assert result.confidence == Confidence.HIGH

    def test_partial_grade_reaches_high(self, matcher, catalog):
        line = make_line(family="pipes", grade="S235JR", height=40, width=20, thickness=2)
        result = matcher.match(line, catalog)

        assert result.matched_product_id == "RHS40x20x2"
        assert result.score == 0.85
        assert result.confidence == Confidence.HIGH
        assert result.reason == "partial grade match, dimensions within 2%"

    def test_round_pipe(self, matcher, catalog):
        line = make_line(family="pipes", grade="S235JRH", diameter=48.3, thickness=3)
        assert matcher.match(line, catalog).matched_product_id == "CHS48.3x3"

    def test_catalog_grade_is_normalized(self, matcher, catalog):
        line = make_line(family="stainless", grade="AISI 304", thickness=2, width_mm=1000, length_mm=2000)
        result = matcher.match(line, catalog)

        assert result.matched_product_id == "INOX304"
        assert result.reason.startswith("exact grade")

    def test_weak_candidate_is_unmatched(self, matcher, catalog):
        line = make_line(grade="S355J2", width=120)
        result = matcher.match(line, [catalog[0]])

        assert result.confidence == Confidence.NONE
        assert result.matched_product_id is None
        assert result.score == 0.2
        assert result.reason.startswith("best candidate too weak: grade mismatch, dimensions differ by more than 10%")

    def test_exact_grade_without_dimensions(self, matcher, catalog):
        result = matcher.match(make_line(family="plates"), catalog)

        assert result.confidence == Confidence.MEDIUM
        assert result.score == 0.65
        assert result.reason == "exact grade, dimensions unavailable"

    def test_family_match_only(self, matcher, catalog):
        result = matcher.match(make_line(family="plates", grade=None), catalog)

        assert result.confidence == Confidence.LOW
        assert result.matched_product_id == "PL10"
        assert result.reason == "family match only, dimensions unavailable"

    def test_unknown_family(self, matcher, catalog):
        line = make_line(family=None, raw_family="widgets")
        result = matcher.match(line, catalog)

        assert result.confidence == Confidence.NONE
        assert result.matched_product_id is None
        assert result.reason.startswith("unknown or empty family")
        assert "widgets" in result.reason

    def test_empty_family(self, matcher, catalog):
        result = matcher.match(make_line(family="fasteners", grade="8.8", diameter=10, length=40), catalog)

        assert result.confidence == Confidence.NONE
        assert result.reason.startswith("unknown or empty family")

    def test_inactive_products_are_skipped(self, matcher):
        catalog = [make_product("OLD", family="plates", is_active=False, thickness=10, width_mm=1500, length_mm=6000)]
        result = matcher.match(make_line(family="plates", thickness=10), catalog)

        assert result.confidence == Confidence.NONE
        assert result.reason.startswith("unknown or empty family")

    def test_empty_catalog(self, matcher):
        result = matcher.match(make_line(width=100), [])
        assert result.confidence == Confidence.NONE


# =============================================================================
# PROPERTIES
# =============================================================================

class TestProperties:

    def test_match_is_idempotent(self, matcher, catalog):
        line = make_line(height=98, width=100)
        snapshot = list(catalog)

        first = matcher.match(line, catalog)
        second = matcher.match(line, catalog)

        assert first == second
        assert catalog == snapshot

    def test_confidence_monotonic_in_error(self, matcher):
        catalog = [make_product("PL10", family="plates", thickness=10, width_mm=1500, length_mm=6000)]
        results = [
            matcher.match(make_line(family="plates", thickness=t), catalog)
            for t in (10, 10.4, 10.8, 12, 20)
        ]

        scores = [r.score for r in results]
        confidences = [r.confidence for r in results]
        assert scores == sorted(scores, reverse=True)
        assert confidences == sorted(confidences, reverse=True)
        assert confidences[0] == Confidence.HIGH
        assert confidences[-1] == Confidence.LOW

    def test_tie_prefers_exact_grade(self, matcher):
        catalog = [
            make_product("B", family="plates", grade="S235JRH", thickness=10.4, width_mm=1500, length_mm=6000),
            make_product("A", family="plates", grade="S235JR", thickness=10.8, width_mm=1500, length_mm=6000),
        ]
        ranked = matcher.rank(make_line(family="plates", thickness=10), catalog)

        assert ranked[0].score == ranked[1].score == 0.75
        assert ranked[0].product.id == "A"
        assert matcher.match(make_line(family="plates", thickness=10), catalog).matched_product_id == "A"

    def test_tie_prefers_catalog_order(self, matcher):
        catalog = [
            make_product("FIRST", family="plates", thickness=10, width_mm=1500, length_mm=6000),
            make_product("SECOND", family="plates", thickness=10, width_mm=1500, length_mm=6000),
        ]
        result = matcher.match(make_line(family="plates", thickness=10), catalog)
        assert result.matched_product_id == "FIRST"

    def test_custom_policy(self, catalog):
        strict = Matcher(ScoringPolicy(high_threshold=0.95))
        line = make_line(family="pipes", grade="S235JR", height=40, width=20, thickness=2)

        assert strict.match(line, catalog).confidence == Confidence.MEDIUM


# =============================================================================
# CATALOG RECORDS
# =============================================================================

class TestProductFromDict:

    def test_camel_case_dimensions(self):
        product = Product.from_dict({
            "id": "HEA100",
            "title": "HEA 100 S235JR",
            "family": "profiles",
            "grade": "S235JR",
            "dimensions": {"height": 96, "width": 100, "webThickness": 5, "flangeThickness": 8, "weightPerM": 16.7},
        })

        assert product.dimension_features == {
            "height": 96.0,
            "width": 100.0,
            "web_thickness": 5.0,
            "flange_thickness": 8.0,
        }
        assert product.is_active is True

    def test_inactive_flag(self):
        product = Product.from_dict({"id": 7, "family": "plates", "grade": "S235JR", "isActive": False})
        assert product.id == "7"
        assert product.is_active is False
