"""
asarfs: header index for asar archives

Builds the JSON header that sits in front of an asar archive's concatenated
file data:

- Directories, files, symlinks and unpacked entries in an ordered tree
- Sequential offset assignment for packed files, safe under concurrent inserts
- Optional content transforms applied before sizing
- Symlink escape checks against the archive root
- Listings with an offset contiguity check that drops tampered entries

Reading and writing the archive bytes themselves is left to the caller.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "node",
    "filesystem",
    "crawl",
    "hashutil",
    "transform",
]

# Programmatic API lives in asarfs.filesystem (Filesystem) and asarfs.crawl
# (build_header); asarfs.cli wraps them as cmd_header/cmd_list/cmd_get.
