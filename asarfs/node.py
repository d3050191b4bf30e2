from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from .errors import HeaderFormatError


@dataclass
class DirectoryNode:
    files: Dict[str, "HeaderNode"] = field(default_factory=dict)
    unpacked: bool = False


@dataclass
class FileNode:
    size: int = 0
    offset: Optional[int] = None  # only set for packed files
    integrity: Optional[Dict[str, Any]] = None
    executable: bool = False
    unpacked: bool = False


@dataclass
class LinkNode:
    link: str = ""


HeaderNode = Union[DirectoryNode, FileNode, LinkNode]


def node_to_dict(node: HeaderNode) -> Dict[str, Any]:
    """Convert a node into the on-disk header shape.

    Offsets are written as decimal strings; optional flags are only emitted
    when set so that existing archives round-trip unchanged.
    """
    if isinstance(node, DirectoryNode):
        out: Dict[str, Any] = {"files": {name: node_to_dict(child) for name, child in node.files.items()}}
        if node.unpacked:
            out["unpacked"] = True
        return out
    if isinstance(node, LinkNode):
        return {"link": node.link}
    out = {"size": node.size}
    if node.unpacked:
        out["unpacked"] = True
    if node.offset is not None:
        out["offset"] = str(node.offset)
    if node.integrity is not None:
        out["integrity"] = node.integrity
    if node.executable:
        out["executable"] = True
    return out


def _as_uint(value: Any, what: str) -> int:
    if isinstance(value, bool):
        raise HeaderFormatError(f"{what} must be an integer")
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise HeaderFormatError(f"{what} must be an integer, got {value!r}") from None
    if n < 0:
        raise HeaderFormatError(f"{what} must be non-negative")
    return n


def node_from_dict(data: Any, *, _path: str = "/") -> HeaderNode:
    """Parse a header dict produced by :func:`node_to_dict` (or an existing archive)."""
    if not isinstance(data, dict):
        raise HeaderFormatError(f"{_path}: node must be an object")
    if "files" in data:
        files = data["files"]
        if not isinstance(files, dict):
            raise HeaderFormatError(f"{_path}: 'files' must be an object")
        d = DirectoryNode(unpacked=bool(data.get("unpacked", False)))
        for name, child in files.items():
            d.files[name] = node_from_dict(child, _path=_path.rstrip("/") + "/" + name)
        return d
    if "link" in data:
        if not isinstance(data["link"], str):
            raise HeaderFormatError(f"{_path}: 'link' must be a string")
        return LinkNode(link=data["link"])
    offset = data.get("offset")
    return FileNode(
        size=_as_uint(data.get("size", 0), f"{_path}: size"),
        offset=None if offset is None else _as_uint(offset, f"{_path}: offset"),
        integrity=data.get("integrity"),
        executable=bool(data.get("executable", False)),
        unpacked=bool(data.get("unpacked", False)),
    )
