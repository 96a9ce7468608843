"""Rewindable content streams.

Content lives in memory until it grows past `max_memory` bytes, then spills
to a temporary file. Spilled files are private to the worker that owns the
document and are deleted on `dispose()`.
"""

from __future__ import annotations
import os
import shutil
import tempfile
from typing import BinaryIO, Optional, Union

DEFAULT_MAX_MEMORY = 1024 * 1024
_CHUNK = 64 * 1024


class CachedStream:
    def __init__(
        self,
        data: bytes = b"",
        *,
        max_memory: int = DEFAULT_MAX_MEMORY,
        temp_dir: Optional[str] = None,
    ):
        self.max_memory = max_memory
        self.temp_dir = temp_dir
        self._file = tempfile.SpooledTemporaryFile(max_size=max_memory, dir=temp_dir)
        if data:
            self._file.write(data)
            self._file.seek(0)

    @classmethod
    def from_stream(cls, stream: BinaryIO, **kwargs) -> "CachedStream":
        cs = cls(**kwargs)
        shutil.copyfileobj(stream, cs._file, _CHUNK)
        cs.rewind()
        return cs

    @classmethod
    def from_path(cls, path: Union[str, os.PathLike], **kwargs) -> "CachedStream":
        with open(path, "rb") as f:
            return cls.from_stream(f, **kwargs)

    def read(self, size: int = -1) -> bytes:
        return self._file.read(size)

    def readinto(self, b) -> int:
        return self._file.readinto(b)

    def write(self, data: bytes) -> int:
        return self._file.write(data)

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._file.seek(offset, whence)

    def tell(self) -> int:
        return self._file.tell()

    def rewind(self) -> None:
        self._file.seek(0)

    def getvalue(self) -> bytes:
        """Whole content; leaves the stream rewound."""
        self.rewind()
        data = self._file.read()
        self.rewind()
        return data

    def copy_to(self, out: BinaryIO) -> None:
        self.rewind()
        shutil.copyfileobj(self._file, out, _CHUNK)
        self.rewind()

    @property
    def size(self) -> int:
        pos = self._file.tell()
        self._file.seek(0, os.SEEK_END)
        end = self._file.tell()
        self._file.seek(pos)
        return end

    @property
    def spilled(self) -> bool:
        return self.size > self.max_memory

    @property
    def closed(self) -> bool:
        return self._file.closed

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def dispose(self) -> None:
        if not self._file.closed:
            self._file.close()

    def new_stream(self) -> "CachedStream":
        """Empty stream with the same spill settings."""
        return CachedStream(max_memory=self.max_memory, temp_dir=self.temp_dir)

    def __enter__(self) -> "CachedStream":
        return self

    def __exit__(self, *exc) -> None:
        self.dispose()
