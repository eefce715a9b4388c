"""
Unit tests for the row state machine.

These tests verify that:
1. Every transition is allowed or rejected according to the row's state
2. Manual mappings always win over the engine's decision
3. The engine's decision itself is never modified
4. Cart export only carries accepted and manually mapped rows
"""

import pytest

from bommatch.aggregator import build_upload_result
from bommatch.errors import InvalidTransitionError, UnknownProductError, UnknownRowError
from bommatch.models import (
    BOMRow,
    Confidence,
    MatchResult,
    ParsedBOMLine,
    Product,
    RowState,
)
from bommatch.session import RowStateMachine


# =============================================================================
# FIXTURES
# =============================================================================

def make_row(
    row_index: int,
    confidence: Confidence,
    product_id: str = None,
    quantity: float = 10,
    unit: str = "pcs",
    length_m: float = None,
    finish: str = None,
) -> BOMRow:
    """Helper to create a freshly matched BOMRow."""
    if product_id is None and confidence != Confidence.NONE:
        product_id = f"P{row_index}"
    line = ParsedBOMLine(
        row_index=row_index,
        family="plates",
        grade="S235JR",
        dimension_features={"thickness": 6.0, "width_mm": None, "length_mm": None},
        quantity=quantity,
        unit=unit,
        length_m=length_m,
        finish=finish,
    )
    match = MatchResult(
        confidence=confidence,
        matched_product_id=product_id,
        reason="engine reason",
        score=0.9,
    )
    return BOMRow(line=line, match=match, state=RowState.initial_for(confidence))


@pytest.fixture
def catalog():
    return [
        Product(id="HEA100", family="profiles", grade="S235JR", title="HEA 100 S235JR"),
        Product(id="PL6", family="plates", grade="S235JR", title="Tabla 6mm S235JR"),
    ]


@pytest.fixture
def session(catalog):
    rows = [
        make_row(2, Confidence.HIGH),
        make_row(3, Confidence.MEDIUM),
        make_row(4, Confidence.LOW),
        make_row(5, Confidence.NONE),
    ]
    result = build_upload_result("bom.csv", rows, [])
    return RowStateMachine(result, catalog)


# =============================================================================
# INITIAL STATE
# =============================================================================

class TestInitialState:

    @pytest.mark.parametrize("confidence,state", [
        (Confidence.HIGH, RowState.AUTO_HIGH),
        (Confidence.MEDIUM, RowState.AUTO_MEDIUM),
        (Confidence.LOW, RowState.AUTO_LOW),
        (Confidence.NONE, RowState.UNMATCHED),
    ])
    def test_state_follows_confidence(self, confidence, state):
        assert RowState.initial_for(confidence) == state

    def test_unknown_row(self, session):
        with pytest.raises(UnknownRowError):
            session.get_row(99)

    def test_unknown_row_is_lookup_error(self, session):
        with pytest.raises(LookupError):
            session.accept_row(99)


# =============================================================================
# ACCEPT / REJECT
# =============================================================================

class TestAcceptReject:

    def test_accept_auto_row(self, session):
        row = session.accept_row(2)
        assert row.is_accepted is True
        assert row.state == RowState.AUTO_HIGH

    def test_accept_low_row(self, session):
        assert session.accept_row(4).is_accepted is True

    def test_accept_unmatched_fails(self, session):
        with pytest.raises(InvalidTransitionError):
            session.accept_row(5)

    def test_accept_deleted_fails(self, session):
        session.delete_row(2)
        with pytest.raises(InvalidTransitionError):
            session.accept_row(2)

    def test_accept_manual_is_noop(self, session):
        session.manually_map(5, "PL6")
        row = session.accept_row(5)
        assert row.state == RowState.MANUAL_MAPPED
        assert row.matched_product_id == "PL6"

    def test_reject_auto_row(self, session):
        session.accept_row(3)
        row = session.reject_row(3)
        assert row.is_accepted is False
        assert row.state == RowState.AUTO_MEDIUM

    def test_reject_unmatched_is_noop(self, session):
        row = session.reject_row(5)
        assert row.state == RowState.UNMATCHED

    def test_reject_manual_fails(self, session):
        session.manually_map(2, "HEA100")
        with pytest.raises(InvalidTransitionError):
            session.reject_row(2)

    def test_reject_deleted_fails(self, session):
        session.delete_row(3)
        with pytest.raises(InvalidTransitionError):
            session.reject_row(3)

    def test_accept_all_respects_min_confidence(self, session):
        accepted = session.accept_all(Confidence.MEDIUM)

        assert [row.row_index for row in accepted] == [2, 3]
        assert session.get_row(4).is_accepted is False
        assert session.get_row(5).is_accepted is False


# =============================================================================
# MANUAL MAPPING
# =============================================================================

class TestManualMapping:

    def test_map_unmatched_row(self, session):
        row = session.manually_map(5, "HEA100")

        assert row.state == RowState.MANUAL_MAPPED
        assert row.is_manually_mapped is True
        assert row.confidence == Confidence.HIGH
        assert row.matched_product_id == "HEA100"
        assert row.reason == "manual mapping: HEA 100 S235JR"

    def test_engine_decision_is_untouched(self, session):
        session.manually_map(4, "HEA100")
        row = session.get_row(4)

        assert row.match.confidence == Confidence.LOW
        assert row.match.matched_product_id == "P4"
        assert row.match.reason == "engine reason"

    def test_remap_replaces_mapping(self, session):
        session.manually_map(2, "HEA100")
        row = session.manually_map(2, "PL6")

        assert row.matched_product_id == "PL6"
        assert row.state == RowState.MANUAL_MAPPED

    def test_unknown_product(self, session):
        with pytest.raises(UnknownProductError):
            session.manually_map(5, "NOPE")
        assert session.get_row(5).state == RowState.UNMATCHED

    def test_any_product_without_catalog(self):
        result = build_upload_result("bom.csv", [make_row(2, Confidence.NONE)], [])
        machine = RowStateMachine(result)

        assert machine.manually_map(2, "ANYTHING").matched_product_id == "ANYTHING"

    def test_map_deleted_fails(self, session):
        session.delete_row(3)
        with pytest.raises(InvalidTransitionError):
            session.manually_map(3, "HEA100")

    def test_manual_override_dominates(self, session):
        for row_index in (2, 3, 4, 5):
            session.manually_map(row_index, "PL6")

        for row_index in (2, 3, 4, 5):
            assert session.get_row(row_index).confidence == Confidence.HIGH


# =============================================================================
# DELETE
# =============================================================================

class TestDelete:

    def test_delete_is_idempotent(self, session):
        session.delete_row(2)
        row = session.delete_row(2)
        assert row.state == RowState.DELETED
        assert row.is_deleted is True

    def test_delete_manual_row(self, session):
        session.manually_map(5, "PL6")
        assert session.delete_row(5).state == RowState.DELETED

    def test_deleted_rows_stay_addressable(self, session):
        session.delete_row(4)
        assert session.get_row(4).is_deleted is True
        assert [row.row_index for row in session.result.active_rows()] == [2, 3, 5]


# =============================================================================
# STATS AND CART EXPORT
# =============================================================================

class TestStatsAndExport:

    def test_stats_follow_transitions(self, session):
        session.manually_map(5, "PL6")
        session.delete_row(4)

        stats = session.stats()
        assert stats.total_rows == 3
        assert stats.high == 2
        assert stats.medium == 1
        assert stats.low == 0
        assert stats.none == 0
        assert stats.match_rate == 100.0

    def test_export_accepted_and_manual_rows(self, session):
        session.accept_row(3)
        session.manually_map(5, "PL6")

        lines = session.export_cart_lines()

        assert [line.product_id for line in lines] == ["P3", "PL6"]

    def test_rejected_and_deleted_rows_not_exported(self, session):
        session.accept_all(Confidence.LOW)
        session.reject_row(3)
        session.delete_row(4)

        assert [line.product_id for line in session.export_cart_lines()] == ["P2"]

    def test_export_converts_tonnes_and_carries_specs(self):
        rows = [make_row(2, Confidence.HIGH, quantity=1.5, unit="t", length_m=12.0, finish="zincat")]
        machine = RowStateMachine(build_upload_result("bom.csv", rows, []))
        machine.accept_row(2)

        [line] = machine.export_cart_lines()

        assert line.unit == "kg"
        assert line.quantity == pytest.approx(1500.0)
        assert line.specs == {"length_m": 12.0, "finish": "zincat"}
        assert line.to_dict()["product_id"] == "P2"
