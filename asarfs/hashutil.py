from __future__ import annotations

from typing import Any, Dict, List

from Cryptodome.Hash import SHA256

from .constants import INTEGRITY_ALGORITHM, INTEGRITY_BLOCK_SIZE, READ_CHUNK_SIZE


def sha256_hex(data: bytes) -> str:
    return SHA256.new(data).hexdigest()


def _integrity(whole: str, blocks: List[str]) -> Dict[str, Any]:
    return {
        "algorithm": INTEGRITY_ALGORITHM,
        "hash": whole,
        "blockSize": INTEGRITY_BLOCK_SIZE,
        "blocks": blocks,
    }


def get_file_integrity(path: str) -> Dict[str, Any]:
    """Digest a file in one streaming pass.

    ``hash`` covers the whole file; ``blocks`` holds one digest per
    consecutive ``INTEGRITY_BLOCK_SIZE`` block so readers can verify partial
    reads. An empty file yields a single digest of the empty block.
    """
    whole = SHA256.new()
    blocks: List[str] = []
    block = SHA256.new()
    block_len = 0
    with open(path, "rb") as f:
        while True:
            chunk = f.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            whole.update(chunk)
            view = memoryview(chunk)
            while view:
                take = min(len(view), INTEGRITY_BLOCK_SIZE - block_len)
                block.update(view[:take])
                block_len += take
                view = view[take:]
                if block_len == INTEGRITY_BLOCK_SIZE:
                    blocks.append(block.hexdigest())
                    block = SHA256.new()
                    block_len = 0
    if block_len or not blocks:
        blocks.append(block.hexdigest())
    return _integrity(whole.hexdigest(), blocks)


def get_bytes_integrity(data: bytes) -> Dict[str, Any]:
    blocks = [
        sha256_hex(data[i:i + INTEGRITY_BLOCK_SIZE])
        for i in range(0, len(data), INTEGRITY_BLOCK_SIZE)
    ] or [sha256_hex(b"")]
    return _integrity(sha256_hex(data), blocks)
