"""
Row state machine for one upload session.

Rows live in an arena keyed by row_index. The engine's decision
(BOMRow.line and BOMRow.match) is never touched here; transitions only
record what the user decided:

    auto_high / auto_medium / auto_low --accept--> (same state, accepted)
    auto_*                             --reject--> (same state, not accepted)
    any non-deleted state              --map-----> manual_mapped
    any state                          --delete--> deleted

There is no way back to an auto state, and a deleted row accepts no
further transition except another delete.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .aggregator import compute_stats
from .errors import InvalidTransitionError, UnknownProductError, UnknownRowError
from .models import (
    BOMRow,
    BOMUploadResult,
    CartLine,
    Confidence,
    MatchingStats,
    Product,
    RowState,
)
from .unit_normalizer import UnitNormalizer

logger = logging.getLogger(__name__)


class RowStateMachine:
    """
    Applies user decisions to the rows of one BOMUploadResult.

    Single-actor: callers must not drive one instance from several
    threads at once.
    """

    def __init__(
        self,
        result: BOMUploadResult,
        catalog: Optional[Sequence[Product]] = None,
        unit_normalizer: Optional[UnitNormalizer] = None,
    ):
        """
        Args:
            result: Upload whose rows this machine owns
            catalog: Catalog used to validate manual mappings. Without it
                any product id is accepted.
            unit_normalizer: Unit helper for cart export
        """
        self.result = result
        self.rows: Dict[int, BOMRow] = {row.row_index: row for row in result.rows}
        self.products: Optional[Dict[str, Product]] = None
        if catalog is not None:
            self.products = {product.id: product for product in catalog}
        self.units = unit_normalizer or UnitNormalizer()

    def get_row(self, row_index: int) -> BOMRow:
        row = self.rows.get(row_index)
        if row is None:
            raise UnknownRowError(row_index)
        return row

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def accept_row(self, row_index: int) -> BOMRow:
        """
        Accept the engine's proposal for an auto-matched row.

        Accepting a manually mapped row is a no-op: the mapping is already
        the user's decision.

        Raises:
            InvalidTransitionError: If the row is unmatched or deleted
        """
        row = self.get_row(row_index)

        if row.state == RowState.MANUAL_MAPPED:
            return row
        if not row.state.is_auto:
            raise InvalidTransitionError(row_index, row.state, "accept")

        row.is_accepted = True
        logger.debug(f"Row {row_index}: accepted {row.matched_product_id}")
        return row

    def reject_row(self, row_index: int) -> BOMRow:
        """
        Decline the engine's proposal. The row keeps its state and is not exported.

        Rejecting an unmatched row is a no-op.

        Raises:
            InvalidTransitionError: If the row is manually mapped or deleted
        """
        row = self.get_row(row_index)

        if row.state == RowState.UNMATCHED:
            return row
        if not row.state.is_auto:
            raise InvalidTransitionError(row_index, row.state, "reject")

        row.is_accepted = False
        logger.debug(f"Row {row_index}: rejected {row.matched_product_id}")
        return row

    def manually_map(self, row_index: int, product_id: str) -> BOMRow:
        """
        Map a row to a product chosen by the user.

        The row reports high confidence from now on. Mapping an already
        mapped row replaces the previous mapping.

        Raises:
            InvalidTransitionError: If the row is deleted
            UnknownProductError: If a catalog is attached and does not contain product_id
        """
        row = self.get_row(row_index)

        if row.is_deleted:
            raise InvalidTransitionError(row_index, row.state, "map")

        title = product_id
        if self.products is not None:
            product = self.products.get(product_id)
            if product is None:
                raise UnknownProductError(product_id)
            title = product.title or product.id

        row.state = RowState.MANUAL_MAPPED
        row.is_manually_mapped = True
        row.is_accepted = True
        row.manual_product_id = product_id
        row.manual_reason = f"manual mapping: {title}"

        logger.debug(f"Row {row_index}: manually mapped to {product_id}")
        return row

    def delete_row(self, row_index: int) -> BOMRow:
        """Delete a row. Deleting twice is harmless."""
        row = self.get_row(row_index)

        if not row.is_deleted:
            row.state = RowState.DELETED
            row.is_accepted = False
            logger.debug(f"Row {row_index}: deleted")
        return row

    def accept_all(self, min_confidence: Confidence = Confidence.HIGH) -> List[BOMRow]:
        """
        Accept every auto-matched row at or above min_confidence.

        Returns:
            The rows accepted by this call
        """
        accepted = []
        for row in self.rows.values():
            if row.state.is_auto and not row.is_accepted and row.confidence >= min_confidence:
                self.accept_row(row.row_index)
                accepted.append(row)
        return accepted

    # =========================================================================
    # VIEWS
    # =========================================================================

    def selected_rows(self) -> List[BOMRow]:
        """Rows that go to the cart: accepted auto rows and manual mappings, in row order."""
        return [
            row for row in self._ordered()
            if row.state == RowState.MANUAL_MAPPED or (row.state.is_auto and row.is_accepted)
        ]

    def export_cart_lines(self) -> List[CartLine]:
        """
        Flatten the selected rows into cart lines.

        Tonnes are converted to kilograms; cut length and finish travel in specs.
        """
        lines = []
        for row in self.selected_rows():
            quantity, unit = self.units.to_cart_unit(row.line.quantity, row.line.unit)

            specs = {}
            if row.line.length_m is not None:
                specs["length_m"] = row.line.length_m
            if row.line.finish:
                specs["finish"] = row.line.finish

            lines.append(CartLine(
                product_id=row.matched_product_id,
                quantity=quantity,
                unit=unit,
                specs=specs,
            ))

        logger.info(f"Exported {len(lines)} cart line(s) from {self.result.file_name or 'upload'}")
        return lines

    def stats(self) -> MatchingStats:
        """Current per-tier counts over the live rows, reflecting manual mappings."""
        return compute_stats(self.rows.values())

    def rows_in_state(self, *states: RowState) -> List[BOMRow]:
        return [row for row in self._ordered() if row.state in states]

    def _ordered(self) -> Iterable[BOMRow]:
        return (self.rows[index] for index in sorted(self.rows))
