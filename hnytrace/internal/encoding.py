from typing import Iterable
from typing import List
from typing import Optional

from hnytrace.constants import MAX_BATCH_SIZE
from hnytrace.constants import MAX_EVENT_SIZE

from .codec import JSONCodec
from .event import Event
from .logger import get_logger


__all__ = ["BufferFull", "BufferItemTooLarge", "EventBatch", "chunk_events", "encode_events"]


log = get_logger(__name__)


class BufferFull(Exception):
    pass


class BufferItemTooLarge(Exception):
    pass


class EventBatch(object):
    """
    Encoded events making up the body of one batch request.

    The size accounts for the JSON array around the events: the brackets and
    the commas between items.
    """

    content_type = "application/json"

    def __init__(
        self, max_size: int = MAX_BATCH_SIZE, max_item_size: int = MAX_EVENT_SIZE, max_count: Optional[int] = None
    ) -> None:
        self.max_size = max_size
        self.max_item_size = max_item_size
        self.max_count = max_count
        self._items: List[bytes] = []
        # "[" and "]"
        self._size = 2

    def __len__(self):
        return len(self._items)

    def __repr__(self):
        return "{}(count={}, size={})".format(self.__class__.__name__, len(self), self.size)

    @property
    def size(self) -> int:
        return self._size

    def get(self) -> List[bytes]:
        return list(self._items)

    def put(self, item: bytes) -> None:
        """Append an encoded event.

        :raises BufferItemTooLarge: the event can never fit in a batch
        :raises BufferFull: the event does not fit in this batch anymore
        """
        separator = 1 if self._items else 0
        if len(item) > self.max_item_size or 2 + len(item) > self.max_size:
            raise BufferItemTooLarge(len(item))
        if self._size + separator + len(item) > self.max_size:
            raise BufferFull(len(item))
        if self.max_count is not None and len(self._items) >= self.max_count:
            raise BufferFull(len(item))
        self._items.append(item)
        self._size += separator + len(item)

    def encode(self) -> bytes:
        return b"[" + b",".join(self._items) + b"]"


def chunk_events(
    encoded_events: Iterable[bytes],
    max_event_size: int = MAX_EVENT_SIZE,
    max_batch_size: int = MAX_BATCH_SIZE,
    max_batch_count: Optional[int] = None,
) -> List[EventBatch]:
    """Split encoded events into batches, keeping their order.

    Events larger than ``max_event_size`` are dropped.
    """
    batches: List[EventBatch] = []
    batch = EventBatch(max_batch_size, max_event_size, max_batch_count)
    for item in encoded_events:
        try:
            batch.put(item)
        except BufferItemTooLarge:
            log.warning(
                "Event of %d bytes is larger than the limit of %d bytes, dropping it",
                len(item),
                max_event_size,
                extra={"product": "exporter"},
            )
            continue
        except BufferFull:
            batches.append(batch)
            batch = EventBatch(max_batch_size, max_event_size, max_batch_count)
            batch.put(item)
    if len(batch):
        batches.append(batch)
    return batches


def encode_events(events: Iterable[Event], codec: JSONCodec) -> List[bytes]:
    """Encode events to their wire form. Events that cannot be encoded are logged and dropped."""
    encoded = []
    for event in events:
        try:
            encoded.append(codec.encode(event.to_dict()))
        except Exception:
            log.warning("Failed to encode the event of %s, dropping it", event.time, exc_info=True)
    return encoded
