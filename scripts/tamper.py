from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, Optional

from asarfs.errors import AsarError, HeaderFormatError


def _load(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _save(path: str, header: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(header, f)


def _parent_files(header: Dict[str, Any], arc_path: str) -> tuple[Dict[str, Any], str]:
    parts = [p for p in arc_path.replace("\\", "/").split("/") if p not in ("", ".")]
    if not parts:
        raise ValueError("Path must name an entry")
    node = header
    for name in parts[:-1]:
        node = node.get("files", {}).get(name)
        if not isinstance(node, dict) or "files" not in node:
            raise HeaderFormatError(f"{name}: not a directory in header")
    return node["files"], parts[-1]


def cmd_inject(args: argparse.Namespace) -> None:
    header = _load(args.header)
    files, name = _parent_files(header, args.path)
    if name in files:
        raise ValueError(f"{args.path} already exists")
    files[name] = {"size": args.size, "offset": str(args.offset)}
    _save(args.header, header)
    print(f"Injected {args.path} at offset {args.offset} size {args.size}")


def cmd_shift(args: argparse.Namespace) -> None:
    header = _load(args.header)
    files, name = _parent_files(header, args.path)
    node = files.get(name)
    if not isinstance(node, dict) or "offset" not in node:
        raise ValueError(f"{args.path} is not a packed file")
    new_offset = int(node["offset"]) + args.delta
    if new_offset < 0:
        raise ValueError("Offset must stay non-negative")
    node["offset"] = str(new_offset)
    _save(args.header, header)
    print(f"Moved {args.path} to offset {new_offset}")


def main(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="asarfs.tamper", description="Tamper with asar header JSON for testing")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_inj = sub.add_parser("inject", help="Add a fake packed entry")
    p_inj.add_argument("header", help="Path to header JSON")
    p_inj.add_argument("path", help="Archive path of the fake entry")
    p_inj.add_argument("--offset", type=int, required=True, help="Declared offset")
    p_inj.add_argument("--size", type=int, required=True, help="Declared size")
    p_inj.set_defaults(func=cmd_inject)

    p_shift = sub.add_parser("shift", help="Move an existing entry's offset")
    p_shift.add_argument("header", help="Path to header JSON")
    p_shift.add_argument("path", help="Archive path of a packed file")
    p_shift.add_argument("--delta", type=int, required=True, help="Bytes to add to the offset (may be negative)")
    p_shift.set_defaults(func=cmd_shift)

    args = ap.parse_args(argv)
    try:
        args.func(args)
    except (AsarError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
