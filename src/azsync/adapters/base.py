"""Capability contract every side adapter satisfies.

The engine is written against ``SideAdapter`` only and never branches on
the concrete backend.  Payloads are opaque to the engine: an adapter's
``read()`` result is handed unchanged to the other adapter's ``write()``.
Secret adapters exchange ``str`` values; file and blob adapters exchange
``ContentStream`` objects so large content is never buffered in memory.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Iterator, Protocol, Union, runtime_checkable

from azsync.sync.models import SideState

DEFAULT_CHUNK_SIZE = 4 * 1024 * 1024


class ContentStream:
    """An iterable of byte chunks with a known total length.

    The known length lets the blob client pick between a single upload and
    a staged block upload without reading the content first.

    Args:
        chunks: Iterable producing the content in order.
        length: Total number of bytes ``chunks`` will produce.
        on_close: Optional callback releasing the underlying resource.
    """

    def __init__(
        self,
        chunks: Iterable[bytes],
        length: int,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self._chunks = chunks
        self._length = length
        self._on_close = on_close
        self._closed = False

    @classmethod
    def from_bytes(cls, data: bytes) -> ContentStream:
        """Wrap an in-memory buffer."""
        return cls([data] if data else [], len(data))

    def __len__(self) -> int:
        return self._length

    def __iter__(self) -> Iterator[bytes]:
        try:
            for chunk in self._chunks:
                if chunk:
                    yield chunk
        finally:
            self.close()

    def close(self) -> None:
        """Release the underlying resource (idempotent)."""
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close()

    def __enter__(self) -> ContentStream:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


Payload = Union[str, bytes, ContentStream]


def as_stream(payload: Payload) -> ContentStream:
    """Coerce any payload into a ``ContentStream``."""
    if isinstance(payload, ContentStream):
        return payload
    if isinstance(payload, str):
        return ContentStream.from_bytes(payload.encode("utf-8"))
    return ContentStream.from_bytes(bytes(payload))


def as_text(payload: Payload) -> str:
    """Coerce any payload into text (UTF-8), consuming streams."""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, ContentStream):
        return b"".join(payload).decode("utf-8")
    return bytes(payload).decode("utf-8")


@runtime_checkable
class SideAdapter(Protocol):
    """Protocol that all side adapters must satisfy."""

    #: Short label used in logs and reports (e.g. ``"local"``).
    name: str

    def query(self, key: str) -> SideState:
        """Return existence and timestamp of *key* without loading its value.

        Raises:
            TransientError: On network failure or throttling.
            FatalError: On authentication/authorization failure.
        """
        ...  # pragma: no cover

    def read(self, key: str) -> Payload:
        """Return the value/content of *key*.

        Raises:
            ItemNotFoundError: If the key does not exist.
        """
        ...  # pragma: no cover

    def write(self, key: str, payload: Payload, modified: datetime) -> None:
        """Store *payload* under *key* and record *modified* as its timestamp.

        The stored timestamp must be reported unchanged by later
        ``query()`` calls.
        """
        ...  # pragma: no cover

    def list_keys(self) -> list[str]:
        """Return every key currently held on this side."""
        ...  # pragma: no cover
