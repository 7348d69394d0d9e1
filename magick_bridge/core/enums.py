"""
Centralized enums for the imaging engine binding.
"""

from enum import Enum, IntEnum, IntFlag


class Severity(IntEnum):
    """Diagnostic severity, ordered so comparisons mean 'at least as bad as'."""

    UNDEFINED = 0
    INFO = 100
    WARNING = 300
    ERROR = 400
    FATAL = 700

    @property
    def label(self) -> str:
        return self.name.lower()


class EngineState(str, Enum):
    """Process-wide engine lifecycle"""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    SHUT_DOWN = "shut_down"


class GeometryFlags(IntFlag):
    """Which parts of a geometry string were present."""

    NO_VALUE = 0x0000
    WIDTH = 0x0001
    HEIGHT = 0x0002
    X = 0x0004
    Y = 0x0008
    PERCENT = 0x1000
    ASPECT = 0x2000
    LESS = 0x4000
    GREATER = 0x8000
    AREA = 0x10000
    MINIMUM = 0x40000
    X_NEGATIVE = 0x0010
    Y_NEGATIVE = 0x0020
