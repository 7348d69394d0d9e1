"""
Exception bridge - diagnostic records and structured errors.

Every engine call reports problems out-of-band into an ExceptionInfo record
rather than through its return value. Callers must ask the record whether the
call failed (has_failed) and turn the worst entry into a typed error (to_error).
"""

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, List, Optional, Type

from magick_bridge.core.enums import Severity

logger = logging.getLogger(__name__)


class MagickError(Exception):
    """Structured error carrying severity, reason and description."""

    def __init__(self, severity: Any, reason: str = "", description: str = ""):
        self.severity = severity
        self.reason = reason
        self.description = description
        super().__init__(str(self))

    @property
    def severity_label(self) -> str:
        if isinstance(self.severity, Severity):
            return self.severity.label
        return str(self.severity)

    def __str__(self) -> str:
        return f"MagickError {self.severity_label}: {self.reason}- {self.description}"

    def to_dict(self) -> Dict[str, str]:
        return {
            "severity": self.severity_label,
            "reason": self.reason,
            "description": self.description,
        }


class GeometryError(MagickError):
    """Geometry string failed to parse against the image dimensions"""


class DecodeError(MagickError):
    """Source bytes or file are not a recognized or valid image"""


class BlobUnsupportedError(MagickError):
    """Format cannot be decoded from or encoded to an in-memory buffer"""


class TransformError(MagickError):
    """Resize, crop, shadow or flatten reported a warning-or-worse diagnostic"""


class ColorError(TransformError):
    """Color specification is not in the engine's color database"""


class WriteError(MagickError):
    """Encoding to a blob or file failed"""


class EngineStateError(MagickError):
    """Engine used outside its READY state"""

    def __init__(self, description: str):
        super().__init__(Severity.FATAL, "EngineState", description)


class HandleDestroyedError(MagickError):
    """Image handle used after destroy()"""

    def __init__(self, description: str = "image handle has been destroyed"):
        super().__init__(Severity.ERROR, "HandleDestroyed", description)


@dataclass(frozen=True)
class ExceptionEntry:
    """Single diagnostic entry"""

    severity: Severity
    reason: str
    description: str


class ExceptionInfo:
    """
    Diagnostic record attached to engine calls.

    Entries may be appended from any thread; every read goes through the
    record's lock. Callers only get snapshots, never the live entry list.
    """

    def __init__(self):
        self._entries: List[ExceptionEntry] = []
        self._lock = Lock()
        self._destroyed = False

    def throw(self, severity: Severity, reason: str, description: str = "") -> None:
        """Append a diagnostic entry."""
        with self._lock:
            if self._destroyed:
                raise RuntimeError("diagnostic record has been destroyed")
            self._entries.append(ExceptionEntry(Severity(severity), reason, description))

        if severity >= Severity.WARNING:
            logger.debug(f"Engine diagnostic {Severity(severity).label}: {reason} {description}")

    def has_failed(self) -> bool:
        """True if any entry is a warning or worse. INFO entries never count."""
        with self._lock:
            for entry in self._entries:
                if entry.severity >= Severity.WARNING:
                    return True
        return False

    def worst(self) -> Optional[ExceptionEntry]:
        """Most severe entry; the earliest one wins a tie."""
        with self._lock:
            worst = None
            for entry in self._entries:
                if worst is None or entry.severity > worst.severity:
                    worst = entry
            return worst

    def entries(self) -> List[ExceptionEntry]:
        """Snapshot of the queued entries"""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def destroy(self) -> None:
        """Release the entries; the record cannot be reused afterwards."""
        with self._lock:
            self._entries.clear()
            self._destroyed = True

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def has_failed(exception: ExceptionInfo) -> bool:
    """Whether the record holds any entry of severity warning or above."""
    return exception.has_failed()


def to_error(exception: ExceptionInfo, error_cls: Type[MagickError] = MagickError) -> MagickError:
    """
    Convert the most relevant diagnostic entry into a structured error.

    Args:
        exception: Diagnostic record to inspect
        error_cls: MagickError subclass to build

    Returns:
        Error instance (not raised)
    """
    entry = exception.worst()
    if entry is None:
        return error_cls(Severity.UNDEFINED, "", "no diagnostic recorded")

    reason = entry.reason or "Unknown"
    description = entry.description or reason
    return error_cls(entry.severity, reason, description)
