from procubid.core.clock import Clock, FixedClock
from procubid.core.config import settings
from procubid.core.errors import ErrorKind, Outcome, ServiceError

__all__ = [
    "settings",
    "Clock",
    "FixedClock",
    "ErrorKind",
    "Outcome",
    "ServiceError",
]
