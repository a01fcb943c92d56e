from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from n2k_connect.core.exceptions import InvalidMessageError

MAX_PGN = 0x3FFFF
BROADCAST = 255
#: largest payload a fast-packet sequence can carry
MAX_PAYLOAD = 223


###############################################################################
# OUTBOUND MESSAGE ------------------------------------------------------------
###############################################################################

@dataclass(frozen=True, slots=True)
class OutboundMessage:
    """A structured NMEA 2000 message submitted for transmission.

    ``fields`` carries decoded values for the field encoder; ``data`` carries the
    already-encoded PGN payload when the caller has it.
    """
    pgn: int
    src: int = 0
    dst: int = BROADCAST
    prio: int = 3
    fields: Dict[str, Any] = field(default_factory=dict)
    data: Optional[bytes] = None

    # ---------- factory --------------------------------------------------- #
    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "OutboundMessage":
        if not isinstance(row, dict):
            raise InvalidMessageError("Message must be a JSON object")
        if "pgn" not in row:
            raise InvalidMessageError("Message is missing 'pgn'")
        fields = row.get("fields") or {}
        if not isinstance(fields, dict):
            raise InvalidMessageError("'fields' must be an object")
        message = cls(
            pgn    = _as_int(row["pgn"], "pgn"),
            src    = _as_int(row.get("src", 0), "src"),
            dst    = _as_int(row.get("dst", BROADCAST), "dst"),
            prio   = _as_int(row.get("prio", 3), "prio"),
            fields = dict(fields),
            data   = _parse_data(row.get("data")),
        )
        message.validate()
        return message

    def validate(self) -> None:
        if not 0 <= self.pgn <= MAX_PGN:
            raise InvalidMessageError(f"PGN out of range: {self.pgn}")
        if not 0 <= self.src <= 255:
            raise InvalidMessageError(f"Source address out of range: {self.src}")
        if not 0 <= self.dst <= 255:
            raise InvalidMessageError(f"Destination address out of range: {self.dst}")
        if not 0 <= self.prio <= 7:
            raise InvalidMessageError(f"Priority out of range: {self.prio}")
        if self.data is not None and len(self.data) > MAX_PAYLOAD:
            raise InvalidMessageError(
                f"Payload of {len(self.data)} bytes exceeds the {MAX_PAYLOAD} byte fast-packet limit")

    def with_data(self, data: bytes) -> "OutboundMessage":
        return replace(self, data=bytes(data))

    def to_json_dict(self) -> Dict[str, Any]:
        """canboat-style JSON representation."""
        out: Dict[str, Any] = {
            "pgn": self.pgn,
            "src": self.src,
            "dst": self.dst,
            "prio": self.prio,
            "fields": dict(self.fields),
        }
        if self.data is not None:
            out["data"] = self.data.hex()
        return out


@dataclass(frozen=True, slots=True)
class SendResult:
    pgn: int
    transmitted: bool
    detail: Optional[str] = None


###############################################################################
# Helper functions ------------------------------------------------------------
###############################################################################

def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidMessageError(f"'{name}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidMessageError(f"'{name}' must be an integer, got {value!r}") from None


def _parse_data(value: Any) -> Optional[bytes]:
    """Accept bytes, a hex string ("01 ff" / "01ff" / "01,ff") or a list of byte values."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        cleaned = value.replace(",", "").replace(" ", "")
        try:
            return bytes.fromhex(cleaned)
        except ValueError:
            raise InvalidMessageError(f"'data' is not valid hex: {value!r}") from None
    if isinstance(value, (list, tuple)):
        try:
            return bytes(int(b) for b in value)
        except (TypeError, ValueError):
            raise InvalidMessageError("'data' must contain byte values 0-255") from None
    raise InvalidMessageError("'data' must be a hex string or a list of bytes")
