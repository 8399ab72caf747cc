"""
Value encoding for post_meta and plugin_data columns.

Values are stored as canonical JSON text. Reading returns a tagged
``DecodedValue`` so callers can tell a structured value from text the sync
process wrote verbatim (which is passed through unchanged).
"""

import json
from dataclasses import dataclass
from typing import Any, Literal, Optional


@dataclass(frozen=True)
class DecodedValue:
    kind: Literal["decoded", "raw"]
    value: Any

    @property
    def is_raw(self) -> bool:
        return self.kind == "raw"


def reject_constant(token: str) -> Any:
    """``parse_constant`` hook: NaN and Infinity are not JSON."""
    raise ValueError(f"Non-standard JSON constant {token!r}")


def encode_value(value: Any) -> str:
    """Encode a JSON-representable value. Strings are stored quoted.

    Raises ValueError for NaN or infinite floats.
    """
    return json.dumps(value, ensure_ascii=False, allow_nan=False)


def decode_value(raw: Optional[str]) -> DecodedValue:
    if raw is None:
        return DecodedValue("decoded", None)
    try:
        return DecodedValue("decoded", json.loads(raw, parse_constant=reject_constant))
    except (TypeError, ValueError):
        return DecodedValue("raw", raw)
