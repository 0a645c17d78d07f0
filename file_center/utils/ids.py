"""
Utility functions for file identifiers and base62 encoding.

Record and chunk ids are the hex form of a random UUID, which keeps them
fixed-length and never reused. Base62 is used for the URL-safe id tokens
handed out to callers.
"""
import string
import uuid


# Base62 character set: [0-9a-zA-Z]
BASE62_CHARS = string.digits + string.ascii_letters
BASE62_INDEX = {char: index for index, char in enumerate(BASE62_CHARS)}

FILE_ID_BYTES = 16


def b62encode(num: int) -> str:
    """
    Encode a number to base62 string.

    Args:
        num: Non-negative integer to encode

    Returns:
        Base62 encoded string

    Examples:
        >>> b62encode(12345)
        '3d7'
    """
    if num == 0:
        return BASE62_CHARS[0]

    base = len(BASE62_CHARS)
    encoded = []

    while num > 0:
        num, remainder = divmod(num, base)
        encoded.append(BASE62_CHARS[remainder])

    return "".join(reversed(encoded))


def b62decode(encoded: str) -> int:
    """
    Decode a base62 string back to a number.

    Args:
        encoded: Base62 string produced by b62encode

    Returns:
        Decoded integer

    Raises:
        ValueError: If the string is empty or contains a non-base62 character
    """
    if not encoded:
        raise ValueError("Empty base62 string")

    num = 0
    for char in encoded:
        try:
            num = num * len(BASE62_CHARS) + BASE62_INDEX[char]
        except KeyError:
            raise ValueError(f"Invalid base62 character: {char!r}") from None

    return num


def new_file_id() -> str:
    """Generate a new record or chunk id (32 lowercase hex characters)."""
    return uuid.uuid4().hex


def file_id_to_bytes(file_id: str) -> bytes:
    """
    Convert a file id to its raw bytes.

    Raises:
        ValueError: If the id is not 32 hex characters
    """
    raw = bytes.fromhex(file_id)
    if len(raw) != FILE_ID_BYTES:
        raise ValueError(f"File id must be {FILE_ID_BYTES} bytes, got {len(raw)}")
    return raw
