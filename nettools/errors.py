"""Error types for the NetTools session engine."""

from enum import Enum


class NetToolsError(Exception):
    """Base class for NetTools errors."""


class NotConnectedError(NetToolsError):
    """Raised when sending while the channel is not open."""

    def __init__(self, state=None):
        self.state = state
        super().__init__("not connected")


class MalformedMessageError(NetToolsError):
    """Raised when an inbound frame cannot be decoded into a message."""

    def __init__(self, reason: str, frame: str = ""):
        self.reason = reason
        self.frame = frame
        super().__init__(reason)


class Rejection(Enum):
    """Reasons a submission is refused before anything is sent."""

    INVALID_HOST = "invalid_host"
    INVALID_PARAMETERS = "invalid_parameters"
    UNRESOLVABLE_HOST = "unresolvable_host"
    RATE_LIMITED = "rate_limited"

    @property
    def message(self) -> str:
        return _REJECTION_MESSAGES[self]


_REJECTION_MESSAGES = {
    Rejection.INVALID_HOST: "Invalid hostname or IP address",
    Rejection.INVALID_PARAMETERS: "Invalid parameters",
    Rejection.UNRESOLVABLE_HOST: "Unable to resolve hostname",
    Rejection.RATE_LIMITED: "Rate limit exceeded",
}
