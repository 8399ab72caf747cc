"""
Juggernaut exceptions.

``ToolError`` and its subclasses are raised by tool handlers and turned into
``isError`` tool results at the dispatch boundary. Anything else that escapes
a handler is logged and reported as a generic tool failure.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class JuggernautError(RuntimeError):
    """Base class for Juggernaut errors."""


class FeatureDisabledError(JuggernautError):
    """Raised when a gated feature is used while disabled."""


class StoreUnavailableError(JuggernautError):
    """Raised when the shared store is missing or not schema-current."""


class ToolError(JuggernautError):
    """A rejected tool call, reported to the caller as an error result."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = dict(details or {})
        super().__init__(message)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        payload.update(self.details)
        return payload


class ToolValidationError(ToolError):
    """Arguments failed validation; nothing was written."""


class PostNotFoundError(ToolError):
    def __init__(self, post_id: int) -> None:
        self.post_id = post_id
        super().__init__(f"Post {post_id} not found")


class UnknownToolError(ToolError):
    def __init__(self, name: Any) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class StoreBusyError(ToolError):
    """The store stayed locked by another process past the lock timeout."""


class StoreOperationError(ToolError):
    """The storage engine failed mid-operation; the transaction was rolled back."""
