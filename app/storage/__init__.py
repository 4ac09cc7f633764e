"""Single-table persistence: key scheme, paged reads and buffered batch writes."""
from .batching import DeleteBuffer, MutationBuffer, UpdateBuffer
from .keys import ConnectionKey, ParticipantKey, RawKey, RoomKey, decode_key, encode_key
from .pagination import PaginatedReader, paginate_query, paginate_scan
from .store import MAX_BATCH_SIZE, AttributeFilter, DynamoStore, Page, Store

__all__ = [
    'AttributeFilter',
    'ConnectionKey',
    'DeleteBuffer',
    'DynamoStore',
    'MAX_BATCH_SIZE',
    'MutationBuffer',
    'Page',
    'PaginatedReader',
    'ParticipantKey',
    'RawKey',
    'RoomKey',
    'Store',
    'UpdateBuffer',
    'decode_key',
    'encode_key',
    'paginate_query',
    'paginate_scan',
]
