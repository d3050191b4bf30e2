from __future__ import annotations

import concurrent.futures as _fut
import fnmatch
import logging
import os
from typing import Dict, List, Optional, Tuple

from .filesystem import Filesystem, IntegrityProvider
from .node import FileNode
from .transform import FileRecord, InsertOptions, TransformHook


logger = logging.getLogger(__name__)


def crawl(src: str) -> Tuple[List[str], Dict[str, FileRecord]]:
    """List everything below ``src`` in pre-order, names sorted per directory.

    Symlinks are reported as links and never followed.
    """
    filenames: List[str] = []
    metadata: Dict[str, FileRecord] = {}

    def _visit(d: str) -> None:
        with os.scandir(d) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            rec = FileRecord.from_path(entry.path)
            filenames.append(entry.path)
            metadata[entry.path] = rec
            if rec.type == "directory":
                _visit(entry.path)

    _visit(os.path.abspath(src))
    return filenames, metadata


def build_header(
    src: str,
    *,
    unpack: Optional[str] = None,
    unpack_dir: Optional[str] = None,
    transform: Optional[TransformHook] = None,
    integrity: Optional[IntegrityProvider] = None,
    jobs: int = 1,
) -> Filesystem:
    """Crawl ``src`` and insert every entry into a new :class:`Filesystem`.

    Args:
        src: Directory to index.
        unpack: Glob matched against file basenames; matches are stored unpacked.
        unpack_dir: Glob matched against directory paths relative to ``src``;
            matching directories and everything below them are unpacked.
        transform: Optional content transform hook for packed files.
        integrity: Integrity provider override (defaults to SHA-256 blocks).
        jobs: Worker threads used for hashing/transforming files.
    """
    fs = Filesystem(src, integrity=integrity)
    options = InsertOptions(transform=transform)
    filenames, metadata = crawl(fs.src)
    unpacked_dirs = set()
    pending: List[Tuple[str, bool, FileRecord]] = []

    for path in filenames:
        rec = metadata[path]
        rel = os.path.relpath(path, fs.src)
        if rec.type == "directory":
            should_unpack = os.path.dirname(rel) in unpacked_dirs or bool(
                unpack_dir and fnmatch.fnmatch(rel.replace(os.sep, "/"), unpack_dir)
            )
            if should_unpack:
                unpacked_dirs.add(rel)
            fs.insert_directory(path, should_unpack)
        elif rec.type == "link":
            fs.insert_link(path)
        else:
            should_unpack = bool(unpack and fnmatch.fnmatch(os.path.basename(path), unpack))
            # place the node now so listing order follows the crawl
            fs.search_node_from_path(path, FileNode)
            pending.append((path, should_unpack, rec))

    if jobs <= 1:
        for path, should_unpack, rec in pending:
            fs.insert_file(path, should_unpack, rec, options)
    else:
        with _fut.ThreadPoolExecutor(max_workers=jobs) as ex:
            futures = [ex.submit(fs.insert_file, path, should_unpack, rec, options) for path, should_unpack, rec in pending]
            for f in futures:
                f.result()

    logger.info("indexed %d entries from %s (%d packed bytes)", len(filenames), fs.src, fs.offset)
    return fs
