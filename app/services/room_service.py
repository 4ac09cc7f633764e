"""
Room and vote operations on top of the single-table store.

Each operation is atomic only at the single-item level. Reveal/hide and room
deletion touch many items through paged reads and buffered batch writes, so a
concurrent reader can observe a partially applied state; retrying the same
operation converges to the same end state.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from app.exceptions import ConditionFailedError, MalformedKeyError, RoomNotFoundError
from app.models import DEFAULT_VALID_SIZES, Participant, Room, join_sizes, split_sizes
from app.storage.batching import DeleteBuffer, UpdateBuffer
from app.storage.ids import (
    HOST_KEY_LENGTH,
    ROOM_ID_LENGTH,
    USER_ID_LENGTH,
    USER_KEY_LENGTH,
    generate_id,
)
from app.storage.keys import (
    PARTITION_KEY,
    ROOM_SORT_KEY,
    SORT_KEY,
    ConnectionKey,
    ParticipantKey,
    RawKey,
    RoomKey,
    decode_key,
    parse_room_partition,
    room_partition,
)
from app.storage.pagination import paginate_query, paginate_scan
from app.storage.store import MAX_BATCH_SIZE, AttributeFilter, Store
from app.utils.timestamps import format_timestamp, utc_now

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=30)


def _require(value: str, name: str) -> str:
    if not value:
        raise ValueError(f"{name} must be a non-empty string")
    return value


class RoomService:
    """
    Public API for planning poker rooms.

    The store is injected; the service keeps no state between calls apart from
    its configuration.
    """

    def __init__(
        self,
        store: Store,
        clock: Optional[Callable[[], datetime]] = None,
        id_generator: Optional[Callable[[int], str]] = None,
        retention: timedelta = DEFAULT_RETENTION,
        batch_size: int = MAX_BATCH_SIZE,
        page_size: Optional[int] = None,
    ):
        self.store = store
        self.clock = clock or utc_now
        self.id_generator = id_generator or generate_id
        self.retention = retention
        self.batch_size = batch_size
        self.page_size = page_size

    def _now(self) -> str:
        return format_timestamp(self.clock())

    async def _touch_room(self, room_id: str, timestamp: str) -> None:
        """Bump the room's ``updatedOn`` so active rooms are never swept as stale."""
        await self.store.update(RoomKey(room_id), {"updatedOn": timestamp}, require_exists=True)

    async def create_room(self) -> Dict[str, Any]:
        room_id = self.id_generator(ROOM_ID_LENGTH)
        host_key = self.id_generator(HOST_KEY_LENGTH)
        created_on = self._now()

        await self.store.put(
            RoomKey(room_id),
            {
                "roomId": room_id,
                "hostKey": host_key,
                "validSizes": join_sizes(DEFAULT_VALID_SIZES),
                "isRevealed": False,
                "createdOn": created_on,
                "updatedOn": created_on,
            },
        )
        logger.info(f"Created room {room_id}")
        return {
            "roomId": room_id,
            "hostKey": host_key,
            "validSizes": list(DEFAULT_VALID_SIZES),
            "isRevealed": False,
        }

    async def get_room(self, room_id: str) -> Room:
        """
        Load a room and all of its participants with one partition query.

        Items whose keys cannot be decoded are logged and skipped.

        Raises:
            RoomNotFoundError: if the partition holds no room item
        """
        _require(room_id, "room_id")
        room_item = None
        participants = []

        async for item in paginate_query(self.store, room_partition(room_id), page_size=self.page_size):
            try:
                key = decode_key(item)
            except MalformedKeyError as e:
                logger.warning(f"Skipping item in room {room_id}: {e}")
                continue

            if isinstance(key, RoomKey):
                room_item = item
            elif isinstance(key, ParticipantKey):
                participants.append(
                    Participant(
                        user_key=key.user_key,
                        user_id=item.get("userId", ""),
                        username=item.get("username", ""),
                        vote=item.get("vote", ""),
                        created_on=item.get("createdOn", ""),
                        updated_on=item.get("updatedOn", ""),
                    )
                )
            else:
                logger.warning(f"Skipping unexpected {type(key).__name__} in room {room_id}")

        if room_item is None:
            raise RoomNotFoundError(room_id)

        return Room(
            room_id=room_id,
            valid_sizes=split_sizes(room_item.get("validSizes", "")),
            is_revealed=bool(room_item.get("isRevealed", False)),
            created_on=room_item.get("createdOn", ""),
            updated_on=room_item.get("updatedOn", ""),
            participants=participants,
        )

    async def get_valid_sizes(self, room_id: str) -> List[str]:
        """Card values of a room, read from the room item alone."""
        _require(room_id, "room_id")
        room_item = await self.store.get(RoomKey(room_id))
        if room_item is None:
            raise RoomNotFoundError(room_id)
        return split_sizes(room_item.get("validSizes", ""))

    async def add_user(self, room_id: str, username: str, user_id: Optional[str] = None) -> Dict[str, str]:
        """
        Add a participant with no vote.

        The room is checked with a point read first so no participant is
        written into a partition without a room.
        """
        _require(room_id, "room_id")
        if await self.store.get(RoomKey(room_id)) is None:
            raise RoomNotFoundError(room_id)

        user_key = self.id_generator(USER_KEY_LENGTH)
        user_id = user_id or self.id_generator(USER_ID_LENGTH)
        now = self._now()
        participant_key = ParticipantKey(room_id, user_key)

        await self.store.put(
            participant_key,
            {
                "userKey": user_key,
                "userId": user_id,
                "username": username,
                "vote": "",
                "createdOn": now,
                "updatedOn": now,
            },
        )
        try:
            await self._touch_room(room_id, now)
        except ConditionFailedError:
            # Room was deleted between the read and the write
            await self.store.delete(participant_key)
            raise RoomNotFoundError(room_id) from None

        logger.info(f"Added user {user_key} to room {room_id}")
        return {"roomId": room_id, "username": username, "userKey": user_key, "userId": user_id}

    async def _update_participant(self, room_id: str, user_key: str, changes: Dict[str, Any]) -> None:
        _require(room_id, "room_id")
        _require(user_key, "user_key")
        now = self._now()
        try:
            await self.store.update(
                ParticipantKey(room_id, user_key),
                {**changes, "updatedOn": now},
                require_exists=True,
            )
        except ConditionFailedError as e:
            raise ConditionFailedError(f"User {user_key} is not in room {room_id}") from e
        await self._touch_room(room_id, now)

    async def set_vote(self, room_id: str, user_key: str, vote: str) -> None:
        """
        Record a participant's vote; ``""`` clears it.

        Membership in the room's ``validSizes`` is checked by the API layer, not here.

        Raises:
            ConditionFailedError: if the participant (or its room) no longer exists
        """
        await self._update_participant(room_id, user_key, {"vote": vote})

    async def set_username(self, room_id: str, user_key: str, username: str) -> None:
        await self._update_participant(room_id, user_key, {"username": username})

    async def set_cards_revealed(self, room_id: str, is_revealed: bool) -> Dict[str, Any]:
        """
        Reveal or hide the votes of a room.

        Hiding rewrites every participant with an empty vote; revealing never
        touches a participant. The rewrites are full puts built from the
        partition read, so a ``delete_room`` that lands between two flushes
        can leave rewritten participants behind without their room item.

        Raises:
            RoomNotFoundError: if the partition holds no room item
        """
        _require(room_id, "room_id")
        now = self._now()
        found_room = False
        votes_cleared = 0

        async with UpdateBuffer(self.store, chunk_size=self.batch_size) as buffer:
            async for item in paginate_query(self.store, room_partition(room_id), page_size=self.page_size):
                try:
                    key = decode_key(item)
                except MalformedKeyError as e:
                    logger.warning(f"Skipping item in room {room_id}: {e}")
                    continue

                if isinstance(key, RoomKey):
                    found_room = True
                    await buffer.push(key, {**item, "isRevealed": is_revealed, "updatedOn": now})
                elif isinstance(key, ParticipantKey) and not is_revealed:
                    await buffer.push(key, {**item, "vote": "", "updatedOn": now})
                    votes_cleared += 1

        if not found_room:
            raise RoomNotFoundError(room_id)

        logger.info(f"Room {room_id} isRevealed={is_revealed}, cleared {votes_cleared} votes")
        return {"roomId": room_id, "isRevealed": is_revealed, "votesCleared": votes_cleared}

    async def delete_room(self, room_id: str) -> int:
        """
        Delete the room item and every other item in its partition.

        Items with an unrecognised key are deleted by their raw key. Deleting a
        room that does not exist is a no-op. Returns the number of items deleted.
        """
        _require(room_id, "room_id")
        async with DeleteBuffer(self.store, chunk_size=self.batch_size) as buffer:
            async for item in paginate_query(self.store, room_partition(room_id), page_size=self.page_size):
                try:
                    key = decode_key(item)
                except MalformedKeyError as e:
                    logger.warning(f"Deleting unrecognised item in room {room_id}: {e}")
                    key = RawKey(item[PARTITION_KEY], item[SORT_KEY])
                await buffer.push(key)

        logger.info(f"Deleted room {room_id} ({buffer.flushed_count} items)")
        return buffer.flushed_count

    async def delete_stale_rooms(self) -> int:
        """
        Delete every room whose ``updatedOn`` is strictly older than the retention cutoff.

        Rooms are deleted while the scan advances, so an interrupted sweep can
        simply be run again.
        """
        cutoff = format_timestamp(self.clock() - self.retention)
        filters = [
            AttributeFilter("updatedOn", "lt", cutoff),
            AttributeFilter(SORT_KEY, "eq", ROOM_SORT_KEY),
        ]
        logger.info(f"Sweeping rooms not updated since {cutoff}")

        seen = set()
        deleted = 0
        async for item in paginate_scan(self.store, filters, projection=[PARTITION_KEY], page_size=self.page_size):
            try:
                room_id = parse_room_partition(item.get(PARTITION_KEY))
            except MalformedKeyError as e:
                logger.warning(f"Skipping stale scan result: {e}")
                continue
            if room_id in seen:
                continue
            seen.add(room_id)
            # Zero when another caller already removed the room
            if await self.delete_room(room_id) > 0:
                deleted += 1

        logger.info(f"Deleted {deleted} stale rooms")
        return deleted

    async def connect_websocket(self, connection_id: str) -> None:
        _require(connection_id, "connection_id")
        await self.store.put(
            ConnectionKey(connection_id),
            {"connectionId": connection_id, "connectedOn": self._now()},
        )
        logger.debug(f"Registered connection {connection_id}")

    async def disconnect_websocket(self, connection_id: str) -> None:
        _require(connection_id, "connection_id")
        await self.store.delete(ConnectionKey(connection_id))
        logger.debug(f"Removed connection {connection_id}")
