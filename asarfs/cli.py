from __future__ import annotations

import argparse
import json as _json
import logging
import sys
from typing import Any, Dict, List, Optional

from asarfs.crawl import build_header
from asarfs.errors import AsarError, HeaderFormatError
from asarfs.filesystem import Filesystem
from asarfs.node import node_to_dict


def configure_logging(level: int = logging.WARNING) -> None:
    """Configure default logging if no handlers are present."""
    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _load_header(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as fh:
        try:
            return _json.load(fh)
        except _json.JSONDecodeError as e:
            raise HeaderFormatError(f"{path}: not a JSON header ({e})") from None


def cmd_header(
    src: str,
    *,
    output: Optional[str] = None,
    unpack: Optional[str] = None,
    unpack_dir: Optional[str] = None,
    jobs: int = 1,
    indent: Optional[int] = None,
) -> bool:
    """Index a directory and emit its header as JSON.

    Args:
        src: Directory to index.
        output: Write the header here instead of stdout.
        unpack: Glob of file basenames to leave unpacked.
        unpack_dir: Glob of relative directory paths to leave unpacked.
        jobs: Worker threads for hashing.
        indent: JSON indentation; compact when omitted.
    """
    fs = build_header(src, unpack=unpack, unpack_dir=unpack_dir, jobs=jobs)
    text = _json.dumps(fs.to_header(), indent=indent)
    if output:
        with open(output, "w", encoding="utf-8") as fh:
            fh.write(text)
        print(f"Done: {len(fs.list_files())} entries; {fs.offset} packed bytes -> {output}")
    else:
        print(text)
    return True


def cmd_list(
    header: str,
    *,
    is_pack: bool = False,
    ignore_unpack: bool = False,
    ignore_fake_file: bool = False,
) -> bool:
    """List the entries of a header JSON file.

    Args:
        header: Path to a JSON header.
        is_pack: Prefix each line with its pack state.
        ignore_unpack: Omit unpacked entries.
        ignore_fake_file: Omit packed entries whose offsets do not chain.
    """
    fs = Filesystem.from_header(".", _load_header(header))
    for line in fs.list_files(is_pack=is_pack, ignore_unpack=ignore_unpack, ignore_fake_file=ignore_fake_file):
        print(line)
    return True


def cmd_get(header: str, path: str, *, follow_links: bool = True) -> bool:
    """Print a single node of a header JSON file."""
    fs = Filesystem.from_header(".", _load_header(header))
    print(_json.dumps(node_to_dict(fs.get_file(path, follow_links))))
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="asarfs",
        description="Build and inspect asar archive headers",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_header = sub.add_parser("header", help="Index a directory and print its header JSON")
    ap_header.add_argument("src", help="Source directory")
    ap_header.add_argument("-o", "--output", help="Write header to this file")
    ap_header.add_argument("--unpack", help="Do not pack files whose basename matches this glob")
    ap_header.add_argument("--unpack-dir", help="Do not pack directories matching this glob")
    ap_header.add_argument("--jobs", "-j", type=int, default=1, help="Hashing threads (default 1)")
    ap_header.add_argument("--indent", type=int, help="Pretty-print with this indentation")

    ap_list = sub.add_parser("list", help="List header contents")
    ap_list.add_argument("header", help="Header JSON path")
    ap_list.add_argument("--is-pack", action="store_true", help="Show pack state of each entry")
    ap_list.add_argument("--ignore-unpack", action="store_true", help="Hide unpacked entries")
    ap_list.add_argument(
        "--ignore-fake-file",
        action="store_true",
        help="Hide entries whose offset/size do not chain with their neighbours",
    )

    ap_get = sub.add_parser("get", help="Show one entry")
    ap_get.add_argument("header", help="Header JSON path")
    ap_get.add_argument("path", help="Archive-relative path")
    ap_get.add_argument("--no-follow", action="store_true", help="Do not resolve symlinks")

    args = ap.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)
    try:
        if args.cmd == "header":
            cmd_header(
                args.src,
                output=args.output,
                unpack=args.unpack,
                unpack_dir=args.unpack_dir,
                jobs=args.jobs,
                indent=args.indent,
            )
        elif args.cmd == "list":
            cmd_list(
                args.header,
                is_pack=args.is_pack,
                ignore_unpack=args.ignore_unpack,
                ignore_fake_file=args.ignore_fake_file,
            )
        elif args.cmd == "get":
            cmd_get(args.header, args.path, follow_links=not args.no_follow)
        else:
            raise RuntimeError("Unknown command")
    except (AsarError, OSError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
