"""
Pytest configuration file.

This file is automatically loaded by pytest before any tests run.
It sets up the test environment configuration and an in-memory store that
mimics DynamoDB paging and batch-write behaviour.
"""
import os
import sys
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Set APP_ENV to test before any other imports
os.environ['APP_ENV'] = 'test'

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app.exceptions import ConditionFailedError  # noqa: E402
from app.services.room_service import RoomService  # noqa: E402
from app.storage.keys import PARTITION_KEY, SORT_KEY, encode_key  # noqa: E402
from app.storage.store import MAX_BATCH_SIZE, DeleteRequest, Page, PutRequest, Store  # noqa: E402

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class InMemoryStore(Store):
    """
    Dict-backed store with DynamoDB-like paging.

    ``page_limit`` caps the items evaluated per page; scans apply filters after
    the limit, so filtered pages may come back empty with a continuation token.
    Failures can be injected per operation through ``fail_next`` and partial
    batches through ``unprocessed_next``.
    """

    def __init__(self, page_limit=None):
        self.items = {}
        self.page_limit = page_limit
        self.calls = defaultdict(int)
        self.batch_sizes = []
        self.fail_next = {}
        self.unprocessed_next = 0

    def _check_failure(self, operation):
        self.calls[operation] += 1
        error = self.fail_next.pop(operation, None)
        if error is not None:
            raise error

    @staticmethod
    def _item_key(item):
        return (item[PARTITION_KEY], item[SORT_KEY])

    def seed(self, item):
        self.items[self._item_key(item)] = dict(item)

    def _limit(self, limit):
        limits = [value for value in (limit, self.page_limit) if value]
        return min(limits) if limits else None

    def _page(self, candidates, start_token, limit, transform):
        ordered = sorted(candidates, key=self._item_key)
        if start_token:
            start = (start_token[PARTITION_KEY], start_token[SORT_KEY])
            ordered = [item for item in ordered if self._item_key(item) > start]
        limit = self._limit(limit)
        evaluated = ordered[:limit] if limit else ordered
        next_token = None
        if limit and len(evaluated) == limit:
            last = evaluated[-1]
            next_token = {PARTITION_KEY: last[PARTITION_KEY], SORT_KEY: last[SORT_KEY]}
        return Page([result for result in (transform(item) for item in evaluated) if result is not None], next_token)

    async def put(self, key, attributes):
        self._check_failure("put")
        item = {**attributes, **encode_key(key)}
        self.items[self._item_key(item)] = item

    async def get(self, key):
        self._check_failure("get")
        encoded = encode_key(key)
        item = self.items.get((encoded[PARTITION_KEY], encoded[SORT_KEY]))
        return dict(item) if item is not None else None

    async def delete(self, key):
        self._check_failure("delete")
        encoded = encode_key(key)
        self.items.pop((encoded[PARTITION_KEY], encoded[SORT_KEY]), None)

    async def update(self, key, changes, require_exists=False):
        self._check_failure("update")
        encoded = encode_key(key)
        item_key = (encoded[PARTITION_KEY], encoded[SORT_KEY])
        if require_exists and item_key not in self.items:
            raise ConditionFailedError("condition check failed")
        item = self.items.setdefault(item_key, dict(encoded))
        item.update(changes)
        return dict(item)

    async def query_page(self, partition_key, start_token=None, limit=None):
        self._check_failure("query")
        candidates = [item for item in self.items.values() if item[PARTITION_KEY] == partition_key]
        return self._page(candidates, start_token, limit, dict)

    async def scan_page(self, filters, projection=None, start_token=None, limit=None):
        self._check_failure("scan")

        def transform(item):
            if not all(f.matches(item) for f in filters):
                return None
            if projection:
                return {name: item[name] for name in projection if name in item}
            return dict(item)

        return self._page(list(self.items.values()), start_token, limit, transform)

    async def batch_write(self, requests):
        self._check_failure("batch_write")
        assert len(requests) <= MAX_BATCH_SIZE
        self.batch_sizes.append(len(requests))

        rejected = self.unprocessed_next
        self.unprocessed_next = 0
        applied = requests[:len(requests) - rejected] if rejected else requests
        for request in applied:
            if isinstance(request, PutRequest):
                self.items[self._item_key(request.item)] = dict(request.item)
            elif isinstance(request, DeleteRequest):
                encoded = encode_key(request.key)
                self.items.pop((encoded[PARTITION_KEY], encoded[SORT_KEY]), None)
        return list(requests[len(applied):])


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


class SequentialIds:
    """Deterministic id generator honoring the requested length."""

    def __init__(self):
        self.counter = 0

    def __call__(self, length: int) -> str:
        self.counter += 1
        return str(self.counter).zfill(length)[-length:]


@pytest.fixture
def make_service(clock):
    """Factory for services over a given store, with a fixed clock and predictable ids."""

    def factory(store, **kwargs):
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("id_generator", SequentialIds())
        return RoomService(store, **kwargs)

    return factory


@pytest.fixture
def service(store, make_service):
    return make_service(store)


@pytest.fixture
def make_store():
    """Factory for stores with a custom page limit."""
    return InMemoryStore
