"""Encoding and decoding utilities for field elements and addresses."""

import re
from typing import Union

from zkmixer.utils.hash import FIELD_MODULUS, is_field_element

ADDRESS_BYTES = 20
NULL_ADDRESS = "0x" + "00" * ADDRESS_BYTES

HEX_DIGITS = re.compile(r"[0-9a-fA-F]+")


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
        ValueError: If hex string is invalid
    """
    if hex_str.startswith("0x"):
        hex_str = hex_str[2:]

    if len(hex_str) % 2 != 0:
        raise ValueError("Hex string must have even number of characters")

    return bytes.fromhex(hex_str)


def field_to_hex(value: int) -> str:
    """Render a field element as a 0x-prefixed, 64-digit hex string."""
    if not is_field_element(value):
        raise ValueError(f"Not a field element: {value!r}")
    return "0x" + format(value, "064x")


def hex_to_field(value: Union[str, int]) -> int:
    """
    Parse a field element from a hex string (or pass an int through).

    Raises:
        ValueError: If the value is not hex or is outside the field
    """
    if isinstance(value, int) and not isinstance(value, bool):
        number = value
    elif isinstance(value, str):
        number = _parse_hex(value)
    else:
        raise TypeError(f"Expected hex str or int, got {type(value)}")

    if not 0 <= number < FIELD_MODULUS:
        raise ValueError("Value outside the scalar field")
    return number


def normalize_address(address: Union[str, int]) -> str:
    """
    Normalize an account address to a lowercase, 20-byte, 0x-prefixed string.

    Short forms are left-padded, so ``0xABC`` and ``0x...0abc`` are the same
    account.

    Raises:
        ValueError: If the address is not hex or wider than 20 bytes
    """
    if isinstance(address, int) and not isinstance(address, bool):
        number = address
    elif isinstance(address, str):
        number = _parse_hex(address)
    else:
        raise TypeError(f"Expected address str or int, got {type(address)}")

    if number < 0 or number.bit_length() > ADDRESS_BYTES * 8:
        raise ValueError("Address must fit in 20 bytes")
    return "0x" + format(number, f"0{ADDRESS_BYTES * 2}x")


def address_to_field(address: str) -> int:
    """Map a normalized address to its public-input field element."""
    return int(normalize_address(address), 16)


def _parse_hex(text: str) -> int:
    # int(x, 16) alone would also take whitespace, "_" and a second prefix
    digits = text[2:] if text[:2].lower() == "0x" else text
    if not HEX_DIGITS.fullmatch(digits):
        raise ValueError(f"Not a hex string: {text!r}")
    return int(digits, 16)
