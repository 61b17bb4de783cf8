"""3D lottery show: formations, draw lifecycle and live registrations."""

from .errors import CapacityError, DrawError, ExhaustedError, MalformedEventError, ResourceTeardownError
from .lifecycle import DrawEngine
from .models import Participant, Partition, Prize, WinRecord
from .state import LotteryStatus, StatusChange
from .store import DrawStore, JsonStore, MemoryStore

__version__ = "0.1.0"

__all__ = [
    "CapacityError",
    "DrawEngine",
    "DrawError",
    "DrawStore",
    "ExhaustedError",
    "JsonStore",
    "LotteryStatus",
    "MalformedEventError",
    "MemoryStore",
    "Participant",
    "Partition",
    "Prize",
    "ResourceTeardownError",
    "StatusChange",
    "WinRecord",
]
