"""
whisperp2p/protocol/messages.py

The broadcast unit (Whisper) and its wire codec.

Wire format: a stream of JSON objects, one per message, each followed by a
newline. Readers do not rely on the newline; they consume successive
self-delimited objects in arrival order, so any whitespace between objects
is accepted.

    {"ID": "...", "Addr": "10.0.0.1:9000", "Body": "hi", "Timestamp": "2026-01-01T00:00:00Z"}
"""

import codecs
import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from ..config import MAX_MESSAGE_BYTES
from ..errors import MessageDecodeError

logger = logging.getLogger("whisperp2p.protocol.messages")

# Wire field names
FIELD_ID = "ID"
FIELD_ADDR = "Addr"
FIELD_BODY = "Body"
FIELD_TIMESTAMP = "Timestamp"

_FRACTION_RE = re.compile(r"\.(\d{6})\d+")

# Deepest object/array nesting accepted from the wire
MAX_NESTING_DEPTH = 32


def new_message_id(origin_addr: str) -> str:
    """Create a fresh message id scoped to the originating address."""
    return f"{origin_addr}/{uuid.uuid4().hex}"


def format_timestamp(ts: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with a ``Z`` suffix."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 / RFC 3339 timestamp into an aware UTC datetime.

    Accepts a ``Z`` suffix and more than six fractional digits (truncated).
    """
    s = value.strip()
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    s = _FRACTION_RE.sub(r".\1", s)
    ts = datetime.fromisoformat(s)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


@dataclass(frozen=True)
class Whisper:
    """
    One broadcast message.

    The id is assigned once at creation and never recomputed; two Whispers
    with the same id are treated as the same message everywhere.
    """
    id: str
    origin_addr: str     # host:port of the node that created it
    body: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(cls, origin_addr: str, body: str) -> "Whisper":
        """Originate a new message from ``origin_addr``."""
        return cls(
            id=new_message_id(origin_addr),
            origin_addr=origin_addr,
            body=body,
            timestamp=datetime.now(timezone.utc),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire dictionary."""
        return {
            FIELD_ID: self.id,
            FIELD_ADDR: self.origin_addr,
            FIELD_BODY: self.body,
            FIELD_TIMESTAMP: format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Whisper":
        """
        Create from a wire dictionary.

        Raises:
            MessageDecodeError: if a field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise MessageDecodeError(f"Expected JSON object, got {type(data).__name__}")
        for name in (FIELD_ID, FIELD_ADDR, FIELD_BODY, FIELD_TIMESTAMP):
            if not isinstance(data.get(name), str):
                raise MessageDecodeError(f"Missing or invalid field {name!r}")
        if not data[FIELD_ID]:
            raise MessageDecodeError("Empty message id")
        try:
            timestamp = parse_timestamp(data[FIELD_TIMESTAMP])
        except ValueError as e:
            raise MessageDecodeError(f"Invalid timestamp: {data[FIELD_TIMESTAMP]!r}") from e
        return cls(
            id=data[FIELD_ID],
            origin_addr=data[FIELD_ADDR],
            body=data[FIELD_BODY],
            timestamp=timestamp,
        )


def encode_whisper(whisper: Whisper) -> bytes:
    """Serialize one message for the wire (newline terminated)."""
    return json.dumps(whisper.to_dict(), separators=(",", ":")).encode("utf-8") + b"\n"


def _find_object_end(text: str, start: int) -> Optional[int]:
    """
    Return the index just past the JSON object beginning at ``start``.

    Returns None if the object is not complete yet.

    Raises:
        MessageDecodeError: if nesting exceeds MAX_NESTING_DEPTH
    """
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{" or ch == "[":
            depth += 1
            if depth > MAX_NESTING_DEPTH:
                raise MessageDecodeError(f"Message nested deeper than {MAX_NESTING_DEPTH} levels")
        elif ch == "}" or ch == "]":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


class WhisperDecoder:
    """
    Incremental decoder for a stream of concatenated JSON messages.

    Usage:
        decoder = WhisperDecoder()
        for whisper in decoder.feed(chunk):
            ...
        decoder.close()  # at EOF; raises if a partial message is pending
    """

    def __init__(self, max_message_bytes: int = MAX_MESSAGE_BYTES):
        self.max_message_bytes = max_message_bytes
        self._utf8 = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""

    @property
    def pending(self) -> bool:
        """True if undecoded, non-whitespace data is buffered."""
        return bool(self._buffer.strip())

    def feed(self, data: bytes) -> Iterator[Whisper]:
        """
        Add bytes from the wire and yield every complete message.

        Messages ahead of a malformed one are yielded before the error is
        raised. Unconsumed messages stay buffered for the next call.

        Raises:
            MessageDecodeError: on malformed input or an oversized message
        """
        try:
            self._buffer += self._utf8.decode(data)
        except UnicodeDecodeError as e:
            raise MessageDecodeError(f"Invalid UTF-8 on the wire: {e}") from e
        return self._drain()

    def close(self) -> None:
        """
        Signal end of stream.

        Raises:
            MessageDecodeError: if a truncated message remains
        """
        try:
            self._buffer += self._utf8.decode(b"", final=True)
        except UnicodeDecodeError as e:
            raise MessageDecodeError(f"Truncated UTF-8 at end of stream: {e}") from e
        if self.pending:
            raise MessageDecodeError("Connection closed mid-message")

    def _drain(self) -> Iterator[Whisper]:
        while True:
            text = self._buffer.lstrip()
            if not text:
                self._buffer = ""
                return
            if text[0] != "{":
                raise MessageDecodeError(f"Unexpected data on the wire: {text[:20]!r}")
            end = _find_object_end(text, 0)
            if end is None:
                self._buffer = text
                if len(text.encode("utf-8")) > self.max_message_bytes:
                    raise MessageDecodeError(
                        f"Message exceeds {self.max_message_bytes} bytes"
                    )
                return
            raw, self._buffer = text[:end], text[end:]
            if len(raw.encode("utf-8")) > self.max_message_bytes:
                raise MessageDecodeError(f"Message exceeds {self.max_message_bytes} bytes")
            try:
                data = json.loads(raw)
            except (json.JSONDecodeError, RecursionError) as e:
                raise MessageDecodeError(f"Invalid JSON: {e}") from e
            yield Whisper.from_dict(data)
