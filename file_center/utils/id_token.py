"""
Reversible id tokens.

Tokens let callers hand out file handles without exposing raw record ids.
The 16 id bytes are masked with a keystream derived from the center key,
prefixed with a keyed check byte and rendered in base62, which keeps the
token URL-safe. The masking is obfuscation, not encryption.
"""
import hashlib
import hmac

from file_center.exceptions import IDTokenError
from file_center.utils.ids import FILE_ID_BYTES, b62decode, b62encode, file_id_to_bytes

# Leading marker byte so that leading zero bytes survive the integer round trip
TOKEN_MARKER = 0x01
TOKEN_BYTES = 2 + FILE_ID_BYTES


class IdTokenCodec:
    """Encode file ids into URL-safe tokens and back."""

    def __init__(self, key: str):
        self._key = hashlib.sha256(key.encode("utf-8")).digest()
        self._keystream = hashlib.sha256(self._key + b"keystream").digest()[:FILE_ID_BYTES]

    def _check_byte(self, raw: bytes) -> int:
        return hmac.new(self._key, raw, hashlib.sha256).digest()[0]

    def encrypt_id(self, file_id: str) -> str:
        """
        Turn a file id into a token.

        Raises:
            IDTokenError: If the id is not a 32-char hex string
        """
        try:
            raw = file_id_to_bytes(file_id)
        except ValueError as e:
            raise IDTokenError(f"Invalid file id: {e}") from e

        masked = bytes(a ^ b for a, b in zip(raw, self._keystream))
        payload = bytes([TOKEN_MARKER, self._check_byte(raw)]) + masked
        return b62encode(int.from_bytes(payload, "big"))

    def decrypt_id_token(self, id_token: str) -> str:
        """
        Turn a token back into a file id.

        Raises:
            IDTokenError: If the token is not base62, was not produced with this
                key, or does not carry exactly 16 id bytes
        """
        try:
            num = b62decode(id_token)
        except ValueError as e:
            raise IDTokenError(f"Malformed id token: {e}") from e

        payload = num.to_bytes((num.bit_length() + 7) // 8, "big")
        if len(payload) != TOKEN_BYTES or payload[0] != TOKEN_MARKER:
            raise IDTokenError(f"ID needs to be {FILE_ID_BYTES} bytes")

        raw = bytes(a ^ b for a, b in zip(payload[2:], self._keystream))
        if payload[1] != self._check_byte(raw):
            raise IDTokenError("Id token does not belong to this file center")

        return raw.hex()
