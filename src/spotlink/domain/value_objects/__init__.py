"""Domain value objects."""

from spotlink.domain.value_objects.identifier import (
    BASE62_ALPHABET,
    decode_base62,
    derive_local_id,
)
from spotlink.domain.value_objects.image_ref import ImageRef, select_artwork

__all__ = [
    "BASE62_ALPHABET",
    "ImageRef",
    "decode_base62",
    "derive_local_id",
    "select_artwork",
]
