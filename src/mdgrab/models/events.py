"""Progress events emitted by page handlers and the list harvester."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Optional


class EventType(str, Enum):
    """Types of events emitted while downloading."""

    # Lifecycle
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"

    # Status updates for the indicator
    STATUS = "status"

    # Harvesting
    ENTRIES_COLLECTED = "entries_collected"
    ITEM_PROGRESS = "item_progress"
    ITEM_SAVED = "item_saved"
    ITEM_SKIPPED = "item_skipped"


@dataclass
class ProgressEvent:
    """
    Event shown on the progress surface.

    ``timeout`` is how long (seconds) the indicator should keep the message
    visible; 0 keeps it until replaced.

    Example:
        def on_event(event):
            if event.type == EventType.ITEM_SKIPPED:
                print(f"Skipped {event.current}/{event.total}: {event.error}")
    """

    type: EventType
    message: str = ""

    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    url: Optional[str] = None
    error: Optional[str] = None
    current: Optional[int] = None
    total: Optional[int] = None
    output_path: Optional[Path] = None
    timeout: float = 0.0

    @property
    def is_error(self) -> bool:
        """Check if this is an error event."""
        return self.type in (EventType.FAILED, EventType.ITEM_SKIPPED)


# Callback used to report progress events
EventEmitter = Callable[[ProgressEvent], None]


@dataclass
class HarvestStats:
    """Counters for one batch download."""

    entries_collected: int = 0
    items_saved: int = 0
    items_skipped: int = 0
    rounds: int = 0
    skipped_positions: list[int] = field(default_factory=list)
