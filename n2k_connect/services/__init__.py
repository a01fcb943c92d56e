from .connection_manager import ConnectionManager
from .recording_service import RecordingFile, RecordingService

__all__ = ['ConnectionManager', 'RecordingFile', 'RecordingService']
