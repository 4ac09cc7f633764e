"""
Key scheme for the single poker table.

Every item is addressed by a ``(PK, SK)`` pair:

- Room:        ``ROOM:<roomId>``             / ``ROOM``
- Participant: ``ROOM:<roomId>``             / ``USER:<userKey>``
- Connection:  ``CONNECTION:<connectionId>`` / ``CONNECTION``

Callers work with the tagged key types below and never slice key strings
themselves.
"""
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Union

from app.exceptions import MalformedKeyError

PARTITION_KEY = "PK"
SORT_KEY = "SK"

ROOM_PREFIX = "ROOM:"
USER_PREFIX = "USER:"
CONNECTION_PREFIX = "CONNECTION:"

ROOM_SORT_KEY = "ROOM"
CONNECTION_SORT_KEY = "CONNECTION"


@dataclass(frozen=True)
class RoomKey:
    room_id: str


@dataclass(frozen=True)
class ParticipantKey:
    room_id: str
    user_key: str


@dataclass(frozen=True)
class ConnectionKey:
    connection_id: str


@dataclass(frozen=True)
class RawKey:
    """Verbatim key of an item with none of the shapes above; only used to delete it."""

    partition_key: str
    sort_key: str


ItemKey = Union[RoomKey, ParticipantKey, ConnectionKey, RawKey]


def room_partition(room_id: str) -> str:
    return ROOM_PREFIX + room_id


def room_sort_key() -> str:
    return ROOM_SORT_KEY


def user_sort_key(user_key: str) -> str:
    return USER_PREFIX + user_key


def connection_partition(connection_id: str) -> str:
    return CONNECTION_PREFIX + connection_id


def _strip_prefix(value: Any, prefix: str) -> str:
    if not isinstance(value, str) or not value.startswith(prefix) or len(value) == len(prefix):
        raise MalformedKeyError(value)
    return value[len(prefix):]


def parse_room_partition(partition_key: str) -> str:
    return _strip_prefix(partition_key, ROOM_PREFIX)


def parse_user_key(sort_key: str) -> str:
    """Inverse of :func:`user_sort_key`."""
    return _strip_prefix(sort_key, USER_PREFIX)


def encode_key(key: ItemKey) -> Dict[str, str]:
    """Turn a tagged key into the ``{"PK": ..., "SK": ...}`` mapping stored in the table."""
    if isinstance(key, RoomKey):
        return {PARTITION_KEY: room_partition(key.room_id), SORT_KEY: room_sort_key()}
    if isinstance(key, ParticipantKey):
        return {PARTITION_KEY: room_partition(key.room_id), SORT_KEY: user_sort_key(key.user_key)}
    if isinstance(key, ConnectionKey):
        return {PARTITION_KEY: connection_partition(key.connection_id), SORT_KEY: CONNECTION_SORT_KEY}
    if isinstance(key, RawKey):
        return {PARTITION_KEY: key.partition_key, SORT_KEY: key.sort_key}
    raise TypeError(f"Unsupported key type: {type(key).__name__}")


def decode_key(item: Mapping[str, Any]) -> ItemKey:
    """
    Recover the tagged key of a stored item.

    Raises:
        MalformedKeyError: if either half of the key has an unknown shape
    """
    partition_key = item.get(PARTITION_KEY)
    sort_key = item.get(SORT_KEY)

    if isinstance(partition_key, str) and partition_key.startswith(CONNECTION_PREFIX):
        if sort_key != CONNECTION_SORT_KEY:
            raise MalformedKeyError(sort_key)
        return ConnectionKey(_strip_prefix(partition_key, CONNECTION_PREFIX))

    room_id = parse_room_partition(partition_key)
    if sort_key == ROOM_SORT_KEY:
        return RoomKey(room_id)
    return ParticipantKey(room_id, parse_user_key(sort_key))


def item_key(item: Mapping[str, Any]) -> ItemKey:
    """Like :func:`decode_key`, but falls back to a :class:`RawKey` for unknown shapes."""
    try:
        return decode_key(item)
    except MalformedKeyError:
        return RawKey(item[PARTITION_KEY], item[SORT_KEY])
