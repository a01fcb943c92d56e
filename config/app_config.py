"""Centralised application settings (dotenv + env overrides)."""
from __future__ import annotations
import os
from pathlib import Path
from dotenv import load_dotenv

ROOT = Path(__file__).parents[1]
load_dotenv(ROOT / ".env", override=False)

class settings:                            # pylint: disable=too-few-public-methods
    LOG_LEVEL            = os.getenv("LOG_LEVEL", "INFO").upper()
    AUTH_TIMEOUT         = float(os.getenv("AUTH_TIMEOUT", 10.0))
    REPLAY_BASE_INTERVAL = float(os.getenv("REPLAY_BASE_INTERVAL", 0.1))
    REPLAY_LOOP_DELAY    = float(os.getenv("REPLAY_LOOP_DELAY", 0.1))
    REPLAY_QUEUE_SIZE    = int(os.getenv("REPLAY_QUEUE_SIZE", 1000))
    READ_CHUNK_SIZE      = int(os.getenv("READ_CHUNK_SIZE", 4096))
    UDP_BIND_HOST        = os.getenv("UDP_BIND_HOST", "0.0.0.0")
    CAN_BUSTYPE          = os.getenv("CAN_BUSTYPE", "socketcan")
    CAN_RECONNECT_DELAY  = float(os.getenv("CAN_RECONNECT_DELAY", 5.0))
    RECORDINGS_DIR       = os.getenv("RECORDINGS_DIR",
                                     str(Path.home() / ".n2k-connect" / "recordings"))
    N2K_PROFILE          = os.getenv("N2K_PROFILE")
