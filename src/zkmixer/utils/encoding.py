"""Encoding and decoding utilities for 32-byte field values."""

from typing import Union

from zkmixer.crypto.field import CURVE_ORDER, FIELD_ELEMENT_SIZE
from zkmixer.exceptions import DeserializationError, FieldElementOutOfRange


def bytes_to_hex(data: bytes) -> str:
    """
    Convert bytes to hexadecimal string.

    Args:
        data: Bytes to convert

    Returns:
        str: Hexadecimal string with '0x' prefix
    """
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """
    Convert hexadecimal string to bytes.

    Args:
        hex_str: Hexadecimal string (with or without '0x' prefix)

    Returns:
        bytes: Decoded bytes

    Raises:
        DeserializationError: If hex string is invalid
    """
    if hex_str.startswith(("0x", "0X")):
        hex_str = hex_str[2:]

    if len(hex_str) % 2 != 0:
        raise DeserializationError("Hex string must have even number of characters")

    try:
        return bytes.fromhex(hex_str)
    except ValueError as e:
        raise DeserializationError(f"Invalid hex string: {e}") from e


def field_to_bytes(value: int) -> bytes:
    """
    Encode a scalar-field element as 32 big-endian bytes.

    Raises:
        FieldElementOutOfRange: If value is not in [0, R)
    """
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < CURVE_ORDER:
        raise FieldElementOutOfRange("Value is not a reduced scalar-field element")
    return value.to_bytes(FIELD_ELEMENT_SIZE, byteorder="big")


def bytes_to_field(data: bytes) -> int:
    """
    Decode 32 big-endian bytes into a scalar-field element.

    Raises:
        FieldElementOutOfRange: If data has the wrong size or is not reduced
    """
    if not isinstance(data, (bytes, bytearray)) or len(data) != FIELD_ELEMENT_SIZE:
        raise FieldElementOutOfRange(f"Expected {FIELD_ELEMENT_SIZE} bytes")
    value = int.from_bytes(data, byteorder="big")
    if value >= CURVE_ORDER:
        raise FieldElementOutOfRange("Encoded value is not reduced modulo the scalar field")
    return value


def ensure_bytes32(data: Union[bytes, str, int]) -> bytes:
    """
    Normalise a 32-byte hash given as bytes, 0x-hex or an int.

    Returns:
        bytes: Encoded field element

    Raises:
        FieldElementOutOfRange: If the value is not a reduced field element
    """
    if isinstance(data, str):
        try:
            data = hex_to_bytes(data)
        except DeserializationError as e:
            raise FieldElementOutOfRange(str(e)) from e
    if isinstance(data, int) and not isinstance(data, bool):
        return field_to_bytes(data)
    bytes_to_field(data)
    return bytes(data)
