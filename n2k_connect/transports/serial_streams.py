"""
Stream helpers for gateways that need their own framing.

Actisense NGT-1 speaks a binary DLE/STX framed protocol (BST); Digital Yacht
iKonvert speaks ``$PDGY``/``!PDGY`` sentences and must be told to go online. Both
helpers turn inbound bytes into canboat text lines and structured outbound
messages into wire bytes.
"""

import logging
from typing import List, Optional, Tuple

from n2k_connect.models.messages import OutboundMessage
from n2k_connect.outbound.wire_formats import iso_timestamp, to_ikonvert, to_plain
from n2k_connect.transports.base_transport import LineBuffer

logger = logging.getLogger(__name__)

DLE = 0x10
STX = 0x02
ETX = 0x03

N2K_MSG_RECEIVED = 0x93
N2K_MSG_SEND = 0x94


# --------------------------------------------------------------------------- #
#  Actisense NGT-1 (BST)
# --------------------------------------------------------------------------- #
def build_bst_frame(command: int, payload: bytes) -> bytes:
    """DLE STX <cmd> <len> <payload> <checksum> DLE ETX, with DLE doubled."""
    body = bytes([command, len(payload)]) + bytes(payload)
    body += bytes([(-sum(body)) & 0xFF])
    return bytes([DLE, STX]) + body.replace(bytes([DLE]), bytes([DLE, DLE])) + bytes([DLE, ETX])


class BstDecoder:
    """Incremental BST frame decoder; corrupt frames are dropped."""

    def __init__(self):
        self._frame = bytearray()
        self._in_frame = False
        self._escape = False

    def feed(self, data: bytes) -> List[Tuple[int, bytes]]:
        packets = []
        for byte in data:
            if self._escape:
                self._escape = False
                if byte == STX:
                    self._frame.clear()
                    self._in_frame = True
                elif byte == ETX:
                    if self._in_frame:
                        packet = self._finish()
                        if packet is not None:
                            packets.append(packet)
                    self._in_frame = False
                elif byte == DLE:
                    if self._in_frame:
                        self._frame.append(DLE)
                else:
                    self._in_frame = False
                    self._frame.clear()
                continue
            if byte == DLE:
                self._escape = True
            elif self._in_frame:
                self._frame.append(byte)
        return packets

    def _finish(self) -> Optional[Tuple[int, bytes]]:
        frame = bytes(self._frame)
        self._frame.clear()
        if len(frame) < 3 or sum(frame) & 0xFF:
            logger.debug(f"Dropping BST frame with bad checksum: {frame.hex()}")
            return None
        command, length, payload = frame[0], frame[1], frame[2:-1]
        if len(payload) != length:
            logger.debug(f"Dropping BST frame with bad length: {frame.hex()}")
            return None
        return command, payload


def decode_n2k_received(payload: bytes, timestamp: Optional[str] = None) -> Optional[str]:
    """Turn an N2K_MSG_RECEIVED payload into a canboat plain line."""
    if len(payload) < 11:
        return None
    prio = payload[0]
    pgn = payload[1] | (payload[2] << 8) | (payload[3] << 16)
    dst, src = payload[4], payload[5]
    length = payload[10]
    data = payload[11:11 + length]
    if len(data) != length:
        return None
    return to_plain(timestamp or iso_timestamp(), prio, pgn, src, dst, data)


def encode_n2k_send(message: OutboundMessage, payload: bytes) -> bytes:
    header = bytes([
        message.prio,
        message.pgn & 0xFF,
        (message.pgn >> 8) & 0xFF,
        (message.pgn >> 16) & 0xFF,
        message.dst,
        len(payload),
    ])
    return build_bst_frame(N2K_MSG_SEND, header + bytes(payload))


class ActisenseStream:
    """Bytes in, canboat lines out; structured messages in, BST frames out."""

    def __init__(self):
        self._decoder = BstDecoder()

    def opening_bytes(self) -> bytes:
        return b""

    def feed(self, data: bytes) -> List[str]:
        lines = []
        for command, payload in self._decoder.feed(data):
            if command != N2K_MSG_RECEIVED:
                continue
            line = decode_n2k_received(payload)
            if line is not None:
                lines.append(line)
        return lines

    def encode(self, message: OutboundMessage, payload: bytes) -> bytes:
        return encode_n2k_send(message, payload)


# --------------------------------------------------------------------------- #
#  Digital Yacht iKonvert
# --------------------------------------------------------------------------- #
IKONVERT_INIT = "$PDGY,N2NET_INIT,ALL"


class IKonvertStream:
    """Line filter for iKonvert: data sentences pass, status sentences are dropped."""

    def __init__(self):
        self._buffer = LineBuffer("\n", encoding="ascii")

    def opening_bytes(self) -> bytes:
        return (IKONVERT_INIT + "\r\n").encode("ascii")

    def feed(self, data: bytes) -> List[str]:
        return [line for line in self._buffer.feed(data) if self.accepts(line)]

    @staticmethod
    def accepts(line: str) -> bool:
        if line.startswith("$PDGY"):
            logger.debug(f"iKonvert status: {line}")
            return False
        return True

    def encode(self, message: OutboundMessage, payload: bytes) -> bytes:
        return "".join(line + "\r\n" for line in to_ikonvert(message, payload)).encode("ascii")
