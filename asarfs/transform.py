from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional

from .constants import READ_CHUNK_SIZE, TMP_PREFIX


# A transformer consumes the source as a stream of byte chunks and yields the
# transformed stream.
Transformer = Callable[[Iterator[bytes]], Iterable[bytes]]
TransformHook = Callable[[str], Optional[Transformer]]


@dataclass
class TransformedFile:
    path: str
    stat: os.stat_result


@dataclass
class FileRecord:
    """Crawl metadata for one source entry."""
    type: str  # "file", "directory" or "link"
    stat: os.stat_result
    transformed: Optional[TransformedFile] = field(default=None)

    @classmethod
    def from_path(cls, path: str) -> "FileRecord":
        st = os.lstat(path)
        if os.path.islink(path):
            kind = "link"
        elif os.path.isdir(path):
            kind = "directory"
        else:
            kind = "file"
        return cls(type=kind, stat=st)


@dataclass
class InsertOptions:
    transform: Optional[TransformHook] = None


def _iter_chunks(fh) -> Iterator[bytes]:
    while True:
        chunk = fh.read(READ_CHUNK_SIZE)
        if not chunk:
            return
        yield chunk


def materialize(src_path: str, transformer: Transformer) -> TransformedFile:
    """Pipe ``src_path`` through ``transformer`` into a fresh temporary file.

    The temporary directory is left in place; the caller owns its cleanup.
    """
    tmpdir = tempfile.mkdtemp(prefix=TMP_PREFIX)
    tmpfile = os.path.join(tmpdir, os.path.basename(src_path))
    with open(src_path, "rb") as src, open(tmpfile, "wb") as out:
        for piece in transformer(_iter_chunks(src)):
            out.write(piece)
    return TransformedFile(path=tmpfile, stat=os.lstat(tmpfile))
