"""
c32check Address Codec

Stacks addresses are 'S' + c32 version character + c32(hash160 + checksum),
where the checksum is the first 4 bytes of sha256(sha256(version + hash160)).
"""

import hashlib
from typing import Tuple

from .exceptions import C32Error


C32_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

# Address versions
MAINNET_SINGLE_SIG = 22   # SP...
TESTNET_SINGLE_SIG = 26   # ST...


def _normalize(text: str) -> str:
    return text.upper().replace("O", "0").replace("L", "1").replace("I", "1")


def _checksum(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()[:4]


def c32_encode(data: bytes) -> str:
    """Encode bytes as c32, keeping one '0' per leading zero byte"""
    leading_zeros = len(data) - len(data.lstrip(b"\x00"))
    number = int.from_bytes(data, "big")

    digits = []
    while number > 0:
        number, remainder = divmod(number, 32)
        digits.append(C32_ALPHABET[remainder])

    return C32_ALPHABET[0] * leading_zeros + "".join(reversed(digits))


def c32_decode(text: str) -> bytes:
    """Decode a c32 string back to bytes"""
    text = _normalize(text)
    if any(char not in C32_ALPHABET for char in text):
        raise C32Error(f"Not a c32-encoded string: {text!r}")

    stripped = text.lstrip(C32_ALPHABET[0])
    leading_zeros = len(text) - len(stripped)

    number = 0
    for char in stripped:
        number = number * 32 + C32_ALPHABET.index(char)

    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    return b"\x00" * leading_zeros + body


def c32check_encode(version: int, data: bytes) -> str:
    if not 0 <= version < 32:
        raise C32Error(f"Invalid c32check version: {version}")

    checksum = _checksum(bytes([version]) + data)
    return C32_ALPHABET[version] + c32_encode(data + checksum)


def c32check_decode(text: str) -> Tuple[int, bytes]:
    text = _normalize(text)
    if len(text) < 2:
        raise C32Error("c32check string too short")

    version_char = text[0]
    if version_char not in C32_ALPHABET:
        raise C32Error(f"Invalid c32check version character: {version_char!r}")
    version = C32_ALPHABET.index(version_char)

    payload = c32_decode(text[1:])
    if len(payload) < 4:
        raise C32Error("c32check payload too short")

    data, checksum = payload[:-4], payload[-4:]
    if _checksum(bytes([version]) + data) != checksum:
        raise C32Error("c32check checksum mismatch")

    return version, data


def c32_address(version: int, hash160: bytes) -> str:
    """Build a Stacks address from a version byte and a 20-byte hash160"""
    if len(hash160) != 20:
        raise C32Error(f"hash160 must be 20 bytes, got {len(hash160)}")
    return "S" + c32check_encode(version, hash160)


def c32_address_decode(address: str) -> Tuple[int, bytes]:
    """Split a Stacks address into (version, hash160)"""
    if not address or address[0] != "S":
        raise C32Error("Stacks address must start with 'S'")

    version, data = c32check_decode(address[1:])
    if len(data) != 20:
        raise C32Error(f"Address payload must be 20 bytes, got {len(data)}")

    return version, data


def is_valid_address_format(address: str) -> bool:
    try:
        c32_address_decode(address)
    except C32Error:
        return False
    return True
