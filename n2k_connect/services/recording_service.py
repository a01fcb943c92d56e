"""Passthrough recorder: writes raw lines to a file that File Replay can play back."""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, TextIO

from config.app_config import settings
from n2k_connect.core.exceptions import RecordingError
from n2k_connect.core.patterns import ConnectionEvent, ConnectionObserver, EventKind

DEFAULT_SUFFIX = ".txt"


@dataclass(frozen=True, slots=True)
class RecordingFile:
    name: str
    size: int
    created: str
    line_count: int


class RecordingService(ConnectionObserver):
    def __init__(self, directory: Optional[str] = None):
        self.directory = Path(directory or settings.RECORDINGS_DIR).expanduser()
        self.log = logging.getLogger(self.__class__.__name__)
        self._handle: Optional[TextIO] = None
        self._file_name: Optional[str] = None
        self._count = 0
        self._started: Optional[str] = None

    # --------------------------------------------------------------------- #
    #  Observer interface
    # --------------------------------------------------------------------- #
    def get_observer_id(self) -> str:
        return "recording-service"

    def get_interested_events(self) -> Set[EventKind]:
        return {EventKind.RAW_MESSAGE}

    async def notify(self, event: ConnectionEvent) -> None:
        if self._handle is None or not event.payload:
            return
        self._handle.write(f"{event.payload}\n")
        self._count += 1

    # --------------------------------------------------------------------- #
    #  Public API
    # --------------------------------------------------------------------- #
    @property
    def is_recording(self) -> bool:
        return self._handle is not None

    def start_recording(self, file_name: Optional[str] = None) -> Dict[str, Any]:
        if self.is_recording:
            raise RecordingError(f"Already recording to {self._file_name}")
        if not file_name:
            stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
            file_name = f"recording_{stamp}{DEFAULT_SUFFIX}"
        elif not Path(file_name).suffix:
            file_name += DEFAULT_SUFFIX

        path = self.recording_path(file_name)
        if path.exists():
            raise RecordingError(f"File {file_name} already exists")
        self.directory.mkdir(parents=True, exist_ok=True)
        self._handle = open(path, "w", encoding="utf-8")
        self._file_name = file_name
        self._count = 0
        self._started = datetime.now(timezone.utc).isoformat(timespec="seconds")
        self.log.info(f"Started recording to {path}")
        return self.status()

    def stop_recording(self) -> Dict[str, Any]:
        if not self.is_recording:
            raise RecordingError("No recording in progress")
        status = self.status()
        self._handle.close()
        self._handle = None
        self.log.info(f"Stopped recording: {self._count} lines to {self._file_name}")
        self._file_name = None
        self._started = None
        status["is_recording"] = False
        return status

    def status(self) -> Dict[str, Any]:
        size = 0
        if self._handle is not None:
            self._handle.flush()
            size = self.recording_path(self._file_name).stat().st_size
        return {
            "is_recording":  self.is_recording,
            "file_name":     self._file_name,
            "message_count": self._count,
            "started_at":    self._started,
            "file_size":     size,
        }

    def list_recordings(self) -> List[RecordingFile]:
        if not self.directory.is_dir():
            return []
        files = []
        for path in self.directory.iterdir():
            if not path.is_file():
                continue
            stat = path.stat()
            with open(path, "r", encoding="utf-8", errors="replace") as handle:
                line_count = sum(1 for line in handle if line.strip())
            files.append(RecordingFile(
                name       = path.name,
                size       = stat.st_size,
                created    = datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat(timespec="seconds"),
                line_count = line_count,
            ))
        return sorted(files, key=lambda f: f.created, reverse=True)

    def delete_recording(self, file_name: str) -> None:
        if file_name == self._file_name:
            raise RecordingError(f"{file_name} is being recorded")
        path = self.recording_path(file_name)
        try:
            path.unlink()
        except FileNotFoundError:
            raise RecordingError(f"No recording named {file_name}") from None
        self.log.info(f"Deleted recording {file_name}")

    def recording_path(self, file_name: str) -> Path:
        """Path inside the recordings directory; names with path components are rejected."""
        if not file_name or Path(file_name).name != file_name or file_name in (".", ".."):
            raise RecordingError(f"Invalid recording name: {file_name!r}")
        return self.directory / file_name
