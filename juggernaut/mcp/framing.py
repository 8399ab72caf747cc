"""
Content-Length framing for the stdio transport.

Each message is an ASCII header block, a blank line, then exactly
``Content-Length`` bytes of UTF-8 JSON. Input arrives in chunks of any size,
so ``FrameDecoder`` keeps one buffer of unconsumed bytes and only emits a
message once its whole body is present. Malformed frames are logged and
skipped; they never stall the rest of the stream.
"""

import json
import re
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from juggernaut.store.codec import reject_constant

logger = logging.getLogger("Juggernaut.mcp.framing")

_CONTENT_LENGTH_RE = re.compile(rb"^content-length[ \t]*:[ \t]*(\d+)[ \t\r]*$", re.IGNORECASE | re.MULTILINE)
_DELIMITERS = (b"\r\n\r\n", b"\n\n")


class DecoderState(str, Enum):
    AWAITING_HEADER = "awaiting_header"
    AWAITING_BODY = "awaiting_body"


class FrameDecoder:
    def __init__(self) -> None:
        self._buffer = bytearray()
        self._body_length: Optional[int] = None

    @property
    def state(self) -> DecoderState:
        if self._body_length is None:
            return DecoderState.AWAITING_HEADER
        return DecoderState.AWAITING_BODY

    @property
    def pending_bytes(self) -> int:
        return len(self._buffer)

    def reset(self) -> None:
        """Discard any partially received frame."""
        self._buffer.clear()
        self._body_length = None

    @staticmethod
    def _find_delimiter(buffer: bytearray) -> Optional[Tuple[int, int]]:
        found: Optional[Tuple[int, int]] = None
        for delimiter in _DELIMITERS:
            index = buffer.find(delimiter)
            if index != -1 and (found is None or index < found[0]):
                found = (index, len(delimiter))
        return found

    def feed(self, chunk: bytes) -> List[Dict[str, Any]]:
        """Append a chunk and return every message it completed, in order."""
        self._buffer.extend(chunk)
        messages: List[Dict[str, Any]] = []

        while True:
            if self._body_length is None:
                found = self._find_delimiter(self._buffer)
                if found is None:
                    break
                header_end, delimiter_length = found
                header = bytes(self._buffer[:header_end])
                del self._buffer[: header_end + delimiter_length]

                match = _CONTENT_LENGTH_RE.search(header)
                if match is None:
                    logger.warning("Dropping frame header without Content-Length: %r", header[:200])
                    continue
                self._body_length = int(match.group(1))

            if len(self._buffer) < self._body_length:
                break

            body = bytes(self._buffer[: self._body_length])
            del self._buffer[: self._body_length]
            self._body_length = None

            message = self._parse_body(body)
            if message is not None:
                messages.append(message)

        return messages

    @staticmethod
    def _parse_body(body: bytes) -> Optional[Dict[str, Any]]:
        try:
            message = json.loads(body.decode("utf-8"), parse_constant=reject_constant)
        except (UnicodeDecodeError, ValueError) as exc:
            logger.warning("Parse error in framed JSON body (%d bytes): %s", len(body), exc)
            return None
        if not isinstance(message, dict):
            logger.warning("Ignoring framed JSON value that is not an object")
            return None
        return message


def encode_frame(message: Dict[str, Any]) -> bytes:
    """Serialize once; the header counts bytes, not characters."""
    body = json.dumps(message, ensure_ascii=False).encode("utf-8")
    return b"Content-Length: " + str(len(body)).encode("ascii") + b"\r\n\r\n" + body
