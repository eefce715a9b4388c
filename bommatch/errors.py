"""Exceptions raised by the BOM ingestion engine."""

from typing import Optional


class BomError(Exception):
    """Base class for all bommatch errors."""


class FileRejectedError(BomError, ValueError):
    """The upload was rejected before any row was parsed (mime type, size, container)."""

    def __init__(self, reason: str, mime_type: Optional[str] = None, size: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.mime_type = mime_type
        self.size = size


class RowParseError(BomError, ValueError):
    """A single row could not be turned into a ParsedBOMLine."""

    def __init__(self, row_index: int, reason: str):
        super().__init__(f"Row {row_index}: {reason}")
        self.row_index = row_index
        self.reason = reason


class InvalidTransitionError(BomError):
    """A row state transition is not allowed from the row's current state."""

    def __init__(self, row_index: int, state, action: str):
        super().__init__(f"Row {row_index}: cannot {action} a row in state '{state.value}'")
        self.row_index = row_index
        self.state = state
        self.action = action


class UnknownRowError(BomError, LookupError):
    """No row with the given row index exists in the upload."""

    def __init__(self, row_index: int):
        super().__init__(f"Unknown row index: {row_index}")
        self.row_index = row_index


class UnknownProductError(BomError, LookupError):
    """A manual mapping referenced a product id that is not in the catalog."""

    def __init__(self, product_id: str):
        super().__init__(f"Unknown product id: {product_id}")
        self.product_id = product_id


__all__ = [
    "BomError",
    "FileRejectedError",
    "RowParseError",
    "InvalidTransitionError",
    "UnknownRowError",
    "UnknownProductError",
]
