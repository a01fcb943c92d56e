"""
Text and frame encodings used on NMEA 2000 gateways.

All functions take an already-encoded PGN payload; turning field values into that
payload is the PGN encoder's job.
"""

import base64
from datetime import datetime, timezone
from typing import List, Optional

from n2k_connect.models.messages import OutboundMessage

CAN_FRAME_SIZE = 8
PAD_BYTE = 0xFF


def iso_timestamp(now: Optional[datetime] = None) -> str:
    """UTC timestamp with millisecond precision and a trailing Z, as canboat prints it."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def encode_can_id(pgn: int, src: int, dst: int = 255, prio: int = 3) -> int:
    """29-bit extended CAN identifier for a PGN.

    PDU1 PGNs (PF < 240) are destination addressed: the destination goes in the PS
    byte. PDU2 PGNs carry their group extension there instead.
    """
    can_id = src & 0xFF
    pf = (pgn >> 8) & 0xFF
    if pf < 240:
        can_id |= (dst & 0xFF) << 8
        can_id |= (pgn & 0x3FF00) << 8
    else:
        can_id |= (pgn & 0x3FFFF) << 8
    can_id |= (prio & 0x7) << 26
    return can_id


def fast_packet_frames(payload: bytes, sequence_id: int = 0) -> List[bytes]:
    """Split a payload into CAN frames; more than 8 bytes uses fast-packet framing."""
    if len(payload) <= CAN_FRAME_SIZE:
        return [bytes(payload)]

    seq = (sequence_id & 0x7) << 5
    frames = [bytes([seq, len(payload)]) + payload[:6]]
    offset, counter = 6, 1
    while offset < len(payload):
        chunk = payload[offset:offset + 7]
        frame = bytes([seq | counter]) + chunk
        frames.append(frame + bytes([PAD_BYTE]) * (CAN_FRAME_SIZE - len(frame)))
        offset += 7
        counter += 1
    return frames


# --------------------------------------------------------------------------- #
#  Gateway text formats (outbound)
# --------------------------------------------------------------------------- #
def to_ikonvert(message: OutboundMessage, payload: bytes) -> List[str]:
    """Digital Yacht iKonvert / NavLink2 transmit sentence."""
    encoded = base64.b64encode(payload).decode("ascii")
    return [f"!PDGY,{message.pgn},{message.dst},{encoded}"]


def to_actisense_ascii(message: OutboundMessage, payload: bytes,
                       now: Optional[datetime] = None) -> List[str]:
    """Actisense N2K ASCII: ``Ahhmmss.ddd <SS><DD><P> <PGN> <DATA>``."""
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%H%M%S") + f".{now.microsecond // 1000:03d}"
    return [
        f"A{stamp} {message.src:02X}{message.dst:02X}{message.prio:X} "
        f"{message.pgn:05X} {payload.hex().upper()}"
    ]


def to_ydgw_raw(message: OutboundMessage, payload: bytes, sequence_id: int = 0) -> List[str]:
    """Yacht Devices RAW: one ``<CANID> <b0> <b1> ...`` line per CAN frame."""
    can_id = encode_can_id(message.pgn, message.src, message.dst, message.prio)
    return [
        f"{can_id:08X} " + " ".join(f"{b:02X}" for b in frame)
        for frame in fast_packet_frames(payload, sequence_id)
    ]


# --------------------------------------------------------------------------- #
#  Inbound line formats
# --------------------------------------------------------------------------- #
def to_candump(can_id: int, data: bytes, interface: str, timestamp: float) -> str:
    """candump -L style line: ``(1502979132.106111) can0 09F8017F#00FC...``."""
    return f"({timestamp:.6f}) {interface} {can_id:08X}#{bytes(data).hex().upper()}"


def to_plain(timestamp: str, prio: int, pgn: int, src: int, dst: int, payload: bytes) -> str:
    """canboat plain CSV line: ``timestamp,prio,pgn,src,dst,len,b0,b1,...``."""
    octets = ",".join(f"{b:02x}" for b in payload)
    line = f"{timestamp},{prio},{pgn},{src},{dst},{len(payload)}"
    return f"{line},{octets}" if octets else line


def synthetic_line(pgn: int, timestamp: Optional[str] = None) -> str:
    """Placeholder line for a PGN known only from a SignalK delta."""
    return to_plain(timestamp or iso_timestamp(), 2, pgn, 1, 255, bytes(8))
