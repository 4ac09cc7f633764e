"""
Buffered batch writes.

Cascading operations push one intent per item and let the buffer write them in
chunks no larger than the store's batch ceiling. Use the buffers as async
context managers so the final partial chunk is always drained:

    async with DeleteBuffer(store) as buffer:
        async for item in paginate_query(store, partition):
            await buffer.push(decode_key(item))
"""
import logging
from typing import Any, Dict, List

from app.exceptions import PartialBatchError
from app.storage.keys import ItemKey, encode_key
from app.storage.store import MAX_BATCH_SIZE, DeleteRequest, PutRequest, Store, WriteRequest

logger = logging.getLogger(__name__)


class MutationBuffer:
    """
    Accumulates write requests and flushes them in bounded chunks.

    The buffer does not retry. When the store leaves requests unprocessed the
    flush raises ``PartialBatchError`` and the rejected requests are carried on
    the exception, not kept in the buffer.
    """

    def __init__(self, store: Store, chunk_size: int = MAX_BATCH_SIZE):
        if not 1 <= chunk_size <= MAX_BATCH_SIZE:
            raise ValueError(f"chunk_size must be between 1 and {MAX_BATCH_SIZE}, got {chunk_size}")
        self.store = store
        self.chunk_size = chunk_size
        self._pending: List[WriteRequest] = []
        self.flushed_count = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def _push_request(self, request: WriteRequest) -> None:
        self._pending.append(request)
        if len(self._pending) >= self.chunk_size:
            await self._write_chunk()

    async def _write_chunk(self) -> None:
        chunk = self._pending[:self.chunk_size]
        del self._pending[:self.chunk_size]

        unprocessed = await self.store.batch_write(chunk)
        self.flushed_count += len(chunk) - len(unprocessed)
        if unprocessed:
            raise PartialBatchError(unprocessed, attempted=len(chunk))

    async def flush(self) -> None:
        """Write everything pending. No store call is made when nothing is pending."""
        while self._pending:
            await self._write_chunk()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            await self.flush()
        elif self._pending:
            logger.warning(f"Discarding {len(self._pending)} buffered writes after {exc_type.__name__}")
            self._pending.clear()
        return False


class DeleteBuffer(MutationBuffer):
    """Queues raw key deletions."""

    async def push(self, key: ItemKey) -> None:
        await self._push_request(DeleteRequest(key))


class UpdateBuffer(MutationBuffer):
    """Queues full replacement writes; ``attributes`` must be the complete new item."""

    async def push(self, key: ItemKey, attributes: Dict[str, Any]) -> None:
        await self._push_request(PutRequest({**attributes, **encode_key(key)}))
