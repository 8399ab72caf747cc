"""
Input validation for tool handlers.

Everything here is read-only: handlers call these before opening a write
transaction, so rejected input never touches the store.
"""

from typing import List, NamedTuple, Optional, Sequence

from juggernaut.core.errors import ToolValidationError
from juggernaut.core.types import VALID_STATUSES


class TermIdPartition(NamedTuple):
    valid: List[int]
    invalid: List[int]


def validate_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise ToolValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(VALID_STATUSES)}",
            details={"allowed": list(VALID_STATUSES)},
        )


def validate_taxonomy_has_terms(store, taxonomy: str) -> None:
    """A taxonomy with no known terms is treated as a typo, not an empty set."""
    if store.count_terms(taxonomy) == 0:
        raise ToolValidationError(
            f"Unknown taxonomy '{taxonomy}'. No terms found for this taxonomy."
        )


def validate_term_ids(store, term_ids: Sequence[int], taxonomy: str) -> TermIdPartition:
    """Split requested ids into those that exist in ``taxonomy`` and those that don't."""
    existing = store.existing_term_ids(taxonomy, term_ids)
    valid: List[int] = []
    invalid: List[int] = []
    for term_id in term_ids:
        (valid if term_id in existing else invalid).append(term_id)
    return TermIdPartition(valid, invalid)


def escape_like(text: str) -> str:
    """Escape LIKE metacharacters; pair with ``ESCAPE '\\'`` in the query."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def clamp(value: Optional[int], default: int, lo: int, hi: int) -> int:
    """Clamp a paging argument. ``None`` and 0 fall back to ``default``."""
    return min(max(value or default, lo), hi)
