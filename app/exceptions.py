"""
Error taxonomy for the planning poker backend.

Store implementations translate their native failures into these types so the
room service and the API layer never depend on botocore directly.
"""
from typing import Any, List, Optional


class PokerError(Exception):
    """Base class for all domain and storage errors."""

    retryable: bool = False


class NotFoundError(PokerError):
    """A requested room or participant does not exist."""


class RoomNotFoundError(NotFoundError):
    def __init__(self, room_id: str):
        super().__init__(f"Room {room_id} not found")
        self.room_id = room_id


class UserNotFoundError(NotFoundError):
    def __init__(self, room_id: str, user_key: str):
        super().__init__(f"User {user_key} not found in room {room_id}")
        self.room_id = room_id
        self.user_key = user_key


class ConditionFailedError(PokerError):
    """A conditional write did not hold, usually because the target was deleted."""


class MalformedKeyError(PokerError):
    """An item's key did not match any recognized prefix."""

    def __init__(self, value: Any):
        super().__init__(f"Unrecognized key: {value!r}")
        self.value = value


class StoreUnavailableError(PokerError):
    """Throttling, timeouts and other transient store failures."""

    retryable = True
    code: Optional[str] = None


class PartialBatchError(StoreUnavailableError):
    """
    A batch write left some requests unprocessed.

    Requests that the store did apply are not rolled back; ``unprocessed``
    holds the rest so the caller can resubmit them.
    """

    def __init__(self, unprocessed: List[Any], attempted: Optional[int] = None):
        attempted_msg = f" of {attempted}" if attempted is not None else ""
        super().__init__(f"{len(unprocessed)}{attempted_msg} batch requests were not processed")
        self.unprocessed = list(unprocessed)
        self.attempted = attempted
