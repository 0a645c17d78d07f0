"""
Content fingerprinting.

A fingerprint is a SHA3-256 digest reduced to four signed 64-bit integers,
which the file table indexes as a compound unique key. The reduction reads
each consecutive 8-byte slice of the digest as a big-endian signed integer.
"""
import hashlib
from collections.abc import Callable
from os import PathLike
from typing import NamedTuple, Protocol

import aiofiles

DIGEST_SIZE = 32
HASH_PART_SIZE = 8


class Hasher(Protocol):
    digest_size: int

    def update(self, data: bytes, /) -> None: ...

    def digest(self) -> bytes: ...


HasherFactory = Callable[[], Hasher]


class FileHash(NamedTuple):
    hash_1: int
    hash_2: int
    hash_3: int
    hash_4: int


def separate_hash(digest: bytes) -> FileHash:
    """
    Split a 32-byte digest into four signed 64-bit integers.

    Args:
        digest: Raw digest bytes

    Returns:
        FileHash with the four big-endian signed slices

    Raises:
        ValueError: If the digest is not 32 bytes long
    """
    if len(digest) != DIGEST_SIZE:
        raise ValueError(f"Digest must be {DIGEST_SIZE} bytes, got {len(digest)}")

    return FileHash(
        *(
            int.from_bytes(digest[i:i + HASH_PART_SIZE], "big", signed=True)
            for i in range(0, DIGEST_SIZE, HASH_PART_SIZE)
        )
    )


class Fingerprinter:
    """Incremental fingerprint over a byte stream."""

    def __init__(self, hasher_factory: HasherFactory = hashlib.sha3_256):
        self._hasher = hasher_factory()

    def update(self, data: bytes) -> None:
        self._hasher.update(data)

    def finalize(self) -> FileHash:
        return separate_hash(self._hasher.digest())


def hash_buffer(buffer: bytes, hasher_factory: HasherFactory = hashlib.sha3_256) -> FileHash:
    fingerprinter = Fingerprinter(hasher_factory)
    fingerprinter.update(buffer)
    return fingerprinter.finalize()


async def hash_path(
    file_path: str | PathLike,
    hasher_factory: HasherFactory = hashlib.sha3_256,
    buffer_size: int = 4096,
) -> FileHash:
    """
    Fingerprint a file on disk without loading it into memory.

    Args:
        file_path: Path of the file to hash
        hasher_factory: Callable returning a fresh 256-bit hasher
        buffer_size: Number of bytes read per iteration

    Returns:
        FileHash of the file content

    Raises:
        OSError: If the file cannot be opened or read
    """
    fingerprinter = Fingerprinter(hasher_factory)

    async with aiofiles.open(file_path, "rb") as f:
        while True:
            data = await f.read(buffer_size)
            if not data:
                break
            fingerprinter.update(data)

    return fingerprinter.finalize()
