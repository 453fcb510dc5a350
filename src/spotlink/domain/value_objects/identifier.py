"""Bridge between Spotify base-62 ids and local 128-bit catalog ids.

Spotify ids are 22 characters of 0-9A-Za-z, which is slightly more than
128 bits of information. The local catalog keys everything by UUID, so the
decoded integer is squeezed into 16 bytes:

- fewer than 16 bytes: left-pad with zero bytes
- exactly 16 bytes: used as-is
- 17 bytes: the most significant byte is dropped

The mapping is deterministic but not injective. Two remote ids that only
differ in the dropped byte land on the same local id, so never try to get
the remote id back from the UUID. The lossless remote reference lives in
CatalogEntity.external_id.
"""

from uuid import UUID

from spotlink.domain.exceptions import IdentifierDecodeError

BASE62_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
_DIGITS = {char: index for index, char in enumerate(BASE62_ALPHABET)}

UUID_BYTES = 16
MAX_DECODED_BYTES = 17


def decode_base62(value: str) -> int:
    """Decode a base-62 string as a big-endian unsigned integer.

    An empty string decodes to 0.

    Raises:
        IdentifierDecodeError: On characters outside the alphabet
    """
    number = 0
    for char in value:
        digit = _DIGITS.get(char)
        if digit is None:
            raise IdentifierDecodeError(value, f"invalid character {char!r}")
        number = number * 62 + digit
    return number


def derive_local_id(remote_id: str) -> UUID:
    """Map a Spotify base-62 id onto a local UUID.

    Args:
        remote_id: Spotify id, e.g. "6jPPWvp74YGsboZjvxfvVe"

    Returns:
        Deterministic UUID for this id

    Raises:
        IdentifierDecodeError: On invalid characters or more than 17 decoded bytes
    """
    number = decode_base62(remote_id)
    length = max(1, (number.bit_length() + 7) // 8)
    if length > MAX_DECODED_BYTES:
        raise IdentifierDecodeError(
            remote_id, f"decodes to {length} bytes, at most {MAX_DECODED_BYTES} allowed"
        )

    raw = number.to_bytes(length, "big")
    if length == MAX_DECODED_BYTES:
        raw = raw[1:]
    return UUID(bytes=raw.rjust(UUID_BYTES, b"\x00"))
