import os
import shutil
from typing import BinaryIO, Iterator
from streamit.platform.ports.object_storage import ObjectStoragePort
from streamit.core.config import settings

class LocalFilesystemStorage(ObjectStoragePort):
    def __init__(self, root: str | None = None):
        self.root = os.path.abspath(root or settings.LOCAL_STORAGE_ROOT)
        os.makedirs(self.root, exist_ok=True)

    def _path(self, key: str) -> str:
        safe = key.replace("..", "").strip("/")
        return os.path.join(self.root, safe)

    def put_fileobj(self, key: str, fileobj: BinaryIO, content_type: str) -> int:
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        fileobj.seek(0)
        with open(path, "wb") as f:
            shutil.copyfileobj(fileobj, f, length=1024 * 1024)
        return os.path.getsize(path)

    def exists(self, key: str) -> bool:
        return os.path.isfile(self._path(key))

    def size(self, key: str) -> int | None:
        try:
            return os.path.getsize(self._path(key))
        except OSError:
            return None

    def iter_range(self, key: str, start: int, end: int, chunk_size: int) -> Iterator[bytes]:
        # Opened eagerly so a missing file surfaces before the response starts.
        f = open(self._path(key), "rb")
        return self._read_span(f, start, end, chunk_size)

    @staticmethod
    def _read_span(f: BinaryIO, start: int, end: int, chunk_size: int) -> Iterator[bytes]:
        with f:
            f.seek(start)
            remaining = end - start + 1
            while remaining > 0:
                chunk = f.read(min(chunk_size, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)
                yield chunk

    def probe_source(self, key: str) -> str:
        return self._path(key)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)
