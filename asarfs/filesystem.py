from __future__ import annotations

import logging
import os
import stat
import sys
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type

from .constants import MAX_LINK_DEPTH, PACK_STATE, UINT32_MAX, UNPACK_STATE
from .errors import (
    CyclicLinkError,
    HeaderError,
    HeaderFormatError,
    NotFoundError,
    OversizeFileError,
    SymlinkEscapeError,
)
from .hashutil import get_file_integrity
from .node import DirectoryNode, FileNode, HeaderNode, LinkNode, node_from_dict, node_to_dict
from .pathutil import is_escaping, split_path
from .transform import FileRecord, InsertOptions, materialize


logger = logging.getLogger(__name__)

IntegrityProvider = Callable[[str], Any]


@dataclass
class EntryInfo:
    full_path: str
    unpacked: bool
    is_dir: bool
    offset: int
    size: int


def filter_chained(infos: List[EntryInfo]) -> List[EntryInfo]:
    """Drop packed entries whose byte range does not chain with its neighbours.

    Records are ordered by offset. A packed entry survives when it starts at 0
    or right where another entry ends, and when it is the last record or
    another entry starts right where it ends. Directories and unpacked entries
    carry no byte range and always survive.
    """
    ordered = sorted(infos, key=lambda fi: fi.offset)
    if not ordered:
        return []
    starts = {fi.offset for fi in ordered}
    # the last record never vouches for a successor
    ends = {fi.offset + fi.size for fi in ordered[:-1]}
    kept: List[EntryInfo] = []
    for idx, fi in enumerate(ordered):
        prev_ok = fi.offset == 0 or fi.offset in ends
        next_ok = idx + 1 == len(ordered) or (fi.offset + fi.size) in starts
        if fi.is_dir or fi.unpacked or (prev_ok and next_ok):
            kept.append(fi)
        else:
            logger.warning(
                "dropping suspicious entry %s (offset=%d size=%d prev_ok=%s next_ok=%s)",
                fi.full_path, fi.offset, fi.size, prev_ok, next_ok,
            )
    return kept


def _format_line(full_path: str, unpacked: bool, is_pack: bool) -> str:
    if not is_pack:
        return full_path
    return f"{UNPACK_STATE if unpacked else PACK_STATE} : {full_path}"


class Filesystem:
    """In-memory header of an archive rooted at ``src``.

    Entries are inserted with filesystem paths under ``src``; lookups take
    archive-relative paths. Packed files receive consecutive offsets into the
    archive's data region in the order their bytes are reserved.
    """
    def __init__(self, src: str, *, integrity: Optional[IntegrityProvider] = None):
        self.src = os.path.abspath(src)
        self.header = DirectoryNode()
        self.offset = 0
        self.integrity = integrity or get_file_integrity
        self._lock = threading.RLock()

    @classmethod
    def from_header(cls, src: str, header: Dict[str, Any], **kwargs) -> "Filesystem":
        """Rebuild a Filesystem from a parsed header dict (e.g. of an existing archive)."""
        root = node_from_dict(header)
        if not isinstance(root, DirectoryNode):
            raise HeaderFormatError("header root must be a directory")
        fs = cls(src, **kwargs)
        fs.header = root
        fs.offset = max(
            (n.offset + n.size for _, n in fs.walk() if isinstance(n, FileNode) and n.offset is not None),
            default=0,
        )
        return fs

    def to_header(self) -> Dict[str, Any]:
        return node_to_dict(self.header)

    def walk(self) -> Iterator[Tuple[str, HeaderNode]]:
        """Yield ``(archive_path, node)`` in depth-first pre-order, root excluded."""
        def _walk(base: str, d: DirectoryNode) -> Iterator[Tuple[str, HeaderNode]]:
            for name, child in d.files.items():
                path = f"{base}/{name}" if base else name
                yield path, child
                if isinstance(child, DirectoryNode):
                    yield from _walk(path, child)

        return _walk("", self.header)

    # ---- path resolution -------------------------------------------------

    def _relative(self, p: str) -> str:
        try:
            rel = os.path.relpath(os.path.abspath(p), self.src)
        except ValueError:
            # different drive on Windows
            raise HeaderError(f"{p}: outside of {self.src}") from None
        if is_escaping(rel):
            raise HeaderError(f"{p}: outside of {self.src}")
        return "" if rel == os.curdir else rel

    def search_node_from_directory(self, rel: str, *, create: bool = True) -> Optional[DirectoryNode]:
        """Walk ``rel`` from the root, creating missing directories when ``create``."""
        node = self.header
        for name in split_path(rel):
            child = node.files.get(name)
            if child is None:
                if not create:
                    return None
                child = DirectoryNode()
                node.files[name] = child
            elif not isinstance(child, DirectoryNode):
                if not create:
                    return None
                raise HeaderError(f"{rel}: '{name}' is not a directory")
            node = child
        return node

    def search_node_from_path(self, p: str, kind: Type[HeaderNode] = DirectoryNode) -> HeaderNode:
        """Return the node for filesystem path ``p``, creating a ``kind`` node if absent."""
        rel = self._relative(p)
        if not rel:
            return self.header
        parent = self.search_node_from_directory(os.path.dirname(rel))
        name = os.path.basename(rel)
        node = parent.files.get(name)
        if node is None:
            node = kind()
            parent.files[name] = node
        elif not isinstance(node, kind):
            raise HeaderError(f"{rel}: entry already exists as a {type(node).__name__}")
        return node

    def _inherits_unpacked(self, rel_dir: str) -> bool:
        node = self.header
        if node.unpacked:
            return True
        for name in split_path(rel_dir):
            child = node.files.get(name)
            if not isinstance(child, DirectoryNode):
                return False
            if child.unpacked:
                return True
            node = child
        return False

    # ---- entry builder ---------------------------------------------------

    def reserve(self, size: int) -> int:
        """Reserve ``size`` bytes of the data region and return their start offset."""
        with self._lock:
            start = self.offset
            self.offset += size
            return start

    def insert_directory(self, p: str, should_unpack: bool = False) -> Dict[str, HeaderNode]:
        with self._lock:
            node = self.search_node_from_path(p, DirectoryNode)
            if should_unpack:
                node.unpacked = True
            return node.files

    def insert_file(
        self,
        p: str,
        should_unpack: bool,
        file: FileRecord,
        options: Optional[InsertOptions] = None,
    ) -> FileNode:
        """Insert a regular file.

        Unpacked files (by request or because a parent directory is unpacked)
        only record size and integrity. Packed files may first be run through
        ``options.transform``; their final size is checked against the format
        limit, hashed, and only then reserved in the data region so that
        concurrent insertions never share or skip bytes.
        """
        with self._lock:
            node = self.search_node_from_path(p, FileNode)
            # crawl pre-placement leaves empty nodes too
            fresh = node.offset is None and node.integrity is None and not node.unpacked
            unpack = should_unpack or self._inherits_unpacked(os.path.dirname(self._relative(p)))

        try:
            return self._fill_file(node, p, unpack, file, options)
        except BaseException:
            if fresh:
                self._discard(p, node)
            raise

    def _discard(self, p: str, node: HeaderNode) -> None:
        with self._lock:
            rel = self._relative(p)
            parent = self.search_node_from_directory(os.path.dirname(rel), create=False)
            name = os.path.basename(rel)
            if parent is not None and parent.files.get(name) is node:
                del parent.files[name]

    def _fill_file(
        self,
        node: FileNode,
        p: str,
        unpack: bool,
        file: FileRecord,
        options: Optional[InsertOptions],
    ) -> FileNode:
        if unpack:
            integrity = self.integrity(p)
            with self._lock:
                node.size = file.stat.st_size
                node.unpacked = True
                node.offset = None
                node.integrity = integrity
            logger.debug("unpacked %s (%d bytes)", p, node.size)
            return node

        transformer = options.transform(p) if options is not None and options.transform else None
        if transformer:
            file.transformed = materialize(p, transformer)
            size = file.transformed.stat.st_size
        else:
            size = file.stat.st_size

        if size > UINT32_MAX:
            raise OversizeFileError(p, size)

        # hash the original source, not the transformed copy
        integrity = self.integrity(p)

        with self._lock:
            node.size = size
            node.offset = self.reserve(size)
            node.integrity = integrity
            if sys.platform != "win32" and (file.stat.st_mode & stat.S_IXUSR):
                node.executable = True
        logger.debug("packed %s at offset %d (%d bytes)", p, node.offset, size)
        return node

    def insert_link(self, p: str) -> str:
        try:
            link = os.path.relpath(os.path.realpath(p), os.path.realpath(self.src))
        except ValueError:
            # different drive on Windows
            raise SymlinkEscapeError(p, os.path.realpath(p)) from None
        if is_escaping(link):
            raise SymlinkEscapeError(p, link)
        with self._lock:
            node = self.search_node_from_path(p, LinkNode)
            node.link = link
        logger.debug("link %s -> %s", p, link)
        return link

    # ---- listing ---------------------------------------------------------

    def list_files(
        self,
        *,
        is_pack: bool = False,
        ignore_unpack: bool = False,
        ignore_fake_file: bool = False,
    ) -> List[str]:
        """List every entry as an absolute archive path.

        ``is_pack`` prefixes each line with its pack state; ``ignore_unpack``
        omits unpacked entries (their children are still visited);
        ``ignore_fake_file`` keeps only entries whose offsets chain, in offset
        order (see :func:`filter_chained`).
        """
        files: List[str] = []
        infos: List[EntryInfo] = []

        def _fill(base: str, node: HeaderNode) -> None:
            if not isinstance(node, DirectoryNode):
                return
            for name, child in node.files.items():
                full_path = os.path.join(base, name)
                unpacked = getattr(child, "unpacked", False)
                if not (ignore_unpack and unpacked):
                    files.append(_format_line(full_path, unpacked, is_pack))
                    if ignore_fake_file:
                        infos.append(EntryInfo(
                            full_path=full_path,
                            unpacked=unpacked,
                            is_dir=isinstance(child, DirectoryNode),
                            offset=getattr(child, "offset", None) or 0,
                            size=getattr(child, "size", 0),
                        ))
                _fill(full_path, child)

        _fill("/", self.header)

        if ignore_fake_file:
            return [_format_line(fi.full_path, fi.unpacked, is_pack) for fi in filter_chained(infos)]
        return files

    # ---- lookup ----------------------------------------------------------

    def get_node(self, p: str) -> Optional[HeaderNode]:
        """Look up an archive-relative path without creating anything."""
        node = self.search_node_from_directory(os.path.dirname(p), create=False)
        if node is None:
            return None
        name = os.path.basename(p)
        if not name:
            return node
        return node.files.get(name)

    def get_file(self, p: str, follow_links: bool = True) -> HeaderNode:
        seen = set()
        current = p
        while True:
            info = self.get_node(current)
            if info is None:
                raise NotFoundError(current)
            if not (follow_links and isinstance(info, LinkNode)):
                return info
            key = "/".join(split_path(current))
            if key in seen or len(seen) >= MAX_LINK_DEPTH:
                raise CyclicLinkError(p)
            seen.add(key)
            current = info.link
