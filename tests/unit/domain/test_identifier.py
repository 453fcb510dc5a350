"""Tests for the base-62 to UUID identifier bridge."""

from uuid import UUID

import pytest

from spotlink.domain.exceptions import IdentifierDecodeError, ValidationError
from spotlink.domain.value_objects import decode_base62, derive_local_id


class TestDecodeBase62:
    """Test raw base-62 decoding."""

    def test_single_digits(self) -> None:
        assert decode_base62("0") == 0
        assert decode_base62("9") == 9
        assert decode_base62("A") == 10
        assert decode_base62("a") == 36
        assert decode_base62("z") == 61

    def test_big_endian(self) -> None:
        """Test that the leftmost digit is the most significant."""
        assert decode_base62("10") == 62
        assert decode_base62("zz") == 62 * 62 - 1

    def test_empty_string_is_zero(self) -> None:
        assert decode_base62("") == 0

    @pytest.mark.parametrize("value", ["abc-def", "spotify:track", "äbc", "a b"])
    def test_invalid_character_raises(self, value: str) -> None:
        with pytest.raises(IdentifierDecodeError):
            decode_base62(value)


class TestDeriveLocalId:
    """Test the deterministic remote id -> local UUID mapping."""

    @pytest.mark.parametrize(
        ("remote_id", "expected"),
        [
            ("6jPPWvp74YGsboZjvxfvVe", "dd34c066-0e36-da2c-3576-5c59b994cb96"),
            ("4uLU6hMCjMI75M1A2tKUQC", "a149c997-c273-038e-e29f-1d92f47aa160"),
            ("1", "00000000-0000-0000-0000-000000000001"),
            ("Z", "00000000-0000-0000-0000-000000000023"),
        ],
    )
    def test_known_values(self, remote_id: str, expected: str) -> None:
        assert derive_local_id(remote_id) == UUID(expected)

    def test_deterministic(self) -> None:
        assert derive_local_id("6jPPWvp74YGsboZjvxfvVe") == derive_local_id(
            "6jPPWvp74YGsboZjvxfvVe"
        )

    def test_seventeen_bytes_drop_most_significant_byte(self) -> None:
        """Test that a 17-byte value keeps its 16 least significant bytes."""
        remote_id = "7y9COUDxusQXRjW95vOubE"
        number = decode_base62(remote_id)
        assert (number.bit_length() + 7) // 8 == 17

        local_id = derive_local_id(remote_id)

        assert local_id == UUID("05dfa32c-524e-7c3d-bfba-e08c56bc0554")
        assert local_id.bytes == number.to_bytes(17, "big")[1:]

    def test_short_values_are_left_padded(self) -> None:
        """Test that values under 16 bytes get leading zero bytes."""
        remote_id = "001ZwdS5xdxEREPySFridC"
        assert (decode_base62(remote_id).bit_length() + 7) // 8 == 15

        local_id = derive_local_id(remote_id)

        assert local_id == UUID("000374f2-01cd-cc23-ee7b-b33db5928b76")
        assert local_id.bytes[0] == 0

    def test_largest_22_char_id(self) -> None:
        assert derive_local_id("z" * 22) == UUID("f520034c-4307-70c4-2452-8c66503fffff")

    def test_empty_string_is_nil_uuid(self) -> None:
        assert derive_local_id("") == UUID(int=0)

    def test_too_wide_raises(self) -> None:
        """Test that values wider than 17 bytes are rejected."""
        with pytest.raises(IdentifierDecodeError) as exc_info:
            derive_local_id("z" * 24)
        assert exc_info.value.remote_id == "z" * 24

    def test_decode_error_is_validation_and_value_error(self) -> None:
        with pytest.raises(ValidationError):
            derive_local_id("not-base62")
        with pytest.raises(ValueError):
            derive_local_id("not-base62")

    def test_ids_differing_only_in_dropped_byte_collide(self) -> None:
        """Test the documented lossiness: two 17-byte values, one UUID."""
        low = (1 << 128) + 12345
        high = (2 << 128) + 12345

        def encode(number: int) -> str:
            alphabet = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
            digits = ""
            while number:
                number, rest = divmod(number, 62)
                digits = alphabet[rest] + digits
            return digits

        assert encode(low) != encode(high)
        assert derive_local_id(encode(low)) == derive_local_id(encode(high))
