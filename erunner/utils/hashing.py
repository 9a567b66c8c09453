# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Source fingerprinting for erunner.

A fingerprint is the SHA256 digest of a source file's bytes, hex encoded in
upper case (the format existing erunner_cache.json documents already hold).
The orchestrator compares fingerprints to decide whether a rebuild is needed,
so the only property that matters is stability: same bytes, same string.
"""

import hashlib
from pathlib import Path

HASH_ALGORITHM = "sha256"
HASH_BUFFER_SIZE = 65536  # 64 KiB per read, the file is never held in memory whole


def compute_fingerprint(file_path: Path) -> str:
    """
    Compute the fingerprint of a file.

    Reads the file in fixed-size chunks so a large source (or a generated
    test input someone registered by mistake) never has to fit in memory.

    Args:
        file_path: Path to the file to hash.

    Returns:
        Upper-case hex string of the SHA256 digest.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        OSError: If the file can't be read.
    """
    hasher = hashlib.new(HASH_ALGORITHM)
    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(HASH_BUFFER_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest().upper()


def compute_fingerprint_bytes(data: bytes) -> str:
    """Fingerprint of raw bytes, same encoding as compute_fingerprint."""
    return hashlib.new(HASH_ALGORITHM, data).hexdigest().upper()


def fingerprints_match(stored: str, actual: str) -> bool:
    """
    Compare two fingerprints ignoring hex case.

    Older documents may hold lower-case digests; they still describe the
    same bytes.
    """
    return stored.upper() == actual.upper()
