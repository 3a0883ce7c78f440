"""Turn execution and the driver state machine."""

from .driver import (
    FUNCTION_CALL_REQUIRED,
    TOO_MANY_ERRORS,
    Driver,
    DriveResult,
    FailureKind,
    drive,
)
from .turn import Turn

__all__ = [
    "drive",
    "Driver",
    "DriveResult",
    "FailureKind",
    "Turn",
    "FUNCTION_CALL_REQUIRED",
    "TOO_MANY_ERRORS",
]
