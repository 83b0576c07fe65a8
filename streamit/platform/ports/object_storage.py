from typing import BinaryIO, Iterator, Protocol, runtime_checkable

@runtime_checkable
class ObjectStoragePort(Protocol):
    def put_fileobj(self, key: str, fileobj: BinaryIO, content_type: str) -> int: ...

    def exists(self, key: str) -> bool: ...

    def size(self, key: str) -> int | None:
        """Byte size of the object, or None when it is missing."""
        ...

    def iter_range(self, key: str, start: int, end: int, chunk_size: int) -> Iterator[bytes]:
        """Yield bytes ``start..end`` inclusive. Raises FileNotFoundError if missing."""
        ...

    def probe_source(self, key: str) -> str:
        """Path or URL a media prober can read the object from."""
        ...

    def delete(self, key: str) -> None:
        """Remove the object; a missing object is not an error. Raises OSError on backend failure."""
        ...
