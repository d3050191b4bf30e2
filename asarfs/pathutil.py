from __future__ import annotations

import os
from typing import List


def split_path(p: str) -> List[str]:
    """Split an archive-relative path into its segments.

    Rules:
    - Accept both the platform separator and forward slashes
    - Drop empty and '.' segments
    """
    if os.sep != "/":
        p = p.replace(os.sep, "/")
    return [q for q in p.split("/") if q not in ("", ".")]


def is_escaping(rel: str) -> bool:
    """True when a relative path starts with a parent-directory segment."""
    parts = rel.replace(os.sep, "/").split("/")
    return parts[0] == ".."
