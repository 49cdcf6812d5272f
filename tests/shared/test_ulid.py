"""Tests for ULID generation and conversion helpers."""

from __future__ import annotations

import pytest

from packages.shipgate_shared.ids import (
    generate_ulid_bytes,
    generate_ulid_str,
    is_ulid_str,
    ulid_bytes_to_str,
    ulid_str_to_bytes,
)


def test_generated_ulid_has_canonical_shape() -> None:
    """Generated strings are 26 Crockford Base32 characters."""
    value = generate_ulid_str()

    assert len(value) == 26
    assert is_ulid_str(value)


def test_timestamp_prefix_orders_ulids() -> None:
    """Earlier timestamps sort before later ones."""
    earlier = generate_ulid_str(timestamp_ms=1_700_000_000_000)
    later = generate_ulid_str(timestamp_ms=1_700_000_000_001)

    assert earlier < later


def test_timestamp_occupies_leading_48_bits() -> None:
    """The first six bytes hold the millisecond timestamp."""
    raw = generate_ulid_bytes(timestamp_ms=0x0123456789AB)

    assert raw[:6] == bytes.fromhex("0123456789AB")


def test_string_and_bytes_forms_convert_losslessly() -> None:
    """Conversion preserves the value in both directions."""
    raw = generate_ulid_bytes()

    assert ulid_str_to_bytes(ulid_bytes_to_str(raw)) == raw


def test_decoding_is_case_insensitive() -> None:
    """Lowercase input decodes to the same bytes."""
    value = generate_ulid_str()

    assert ulid_str_to_bytes(value.lower()) == ulid_str_to_bytes(value)


@pytest.mark.parametrize(
    "value",
    ["", "short", "0" * 25, "U" * 26, "8" + "0" * 25, None, 42],
)
def test_is_ulid_str_rejects_malformed_values(value: object) -> None:
    """Wrong length, excluded characters, overflow, and non-strings are refused."""
    assert is_ulid_str(value) is False


def test_out_of_range_timestamp_is_rejected() -> None:
    """Timestamps must fit the 48-bit field."""
    with pytest.raises(ValueError):
        generate_ulid_bytes(timestamp_ms=1 << 48)


def test_bytes_must_be_sixteen_long() -> None:
    """Only 16-byte values encode."""
    with pytest.raises(ValueError):
        ulid_bytes_to_str(b"\x00" * 15)
