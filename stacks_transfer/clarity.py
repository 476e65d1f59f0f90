"""
Clarity Values

Minimal Clarity value model with consensus (de)serialization, enough to
encode contract-call arguments and decode read-only call results.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Tuple, Union

from .c32 import c32_address, c32_address_decode
from .exceptions import C32Error, ClarityError


MAX_UINT128 = 2 ** 128 - 1


class ClarityType(IntEnum):
    INT = 0x00
    UINT = 0x01
    BUFFER = 0x02
    BOOL_TRUE = 0x03
    BOOL_FALSE = 0x04
    PRINCIPAL_STANDARD = 0x05
    PRINCIPAL_CONTRACT = 0x06
    RESPONSE_OK = 0x07
    RESPONSE_ERR = 0x08
    OPTIONAL_NONE = 0x09
    OPTIONAL_SOME = 0x0A
    LIST = 0x0B
    TUPLE = 0x0C
    STRING_ASCII = 0x0D
    STRING_UTF8 = 0x0E


@dataclass(frozen=True)
class ClarityValue:
    """
    A typed Clarity value

    `value` holds the Python payload: int for int/uint, bytes for buffers,
    bool for booleans, the c32 address for standard principals,
    (address, contract_name) for contract principals, a ClarityValue for
    ok/err/some, a list for lists, a dict for tuples, str for strings,
    None for none.
    """
    type: ClarityType
    value: Any = None

    def __repr__(self):
        return f"ClarityValue({self.type.name}, {self.value!r})"


# ============================================================================
# Constructors
# ============================================================================

def uint_cv(value: Union[int, str]) -> ClarityValue:
    number = int(value)
    if not 0 <= number <= MAX_UINT128:
        raise ClarityError(f"uint out of range: {number}")
    return ClarityValue(ClarityType.UINT, number)


def standard_principal_cv(address: str) -> ClarityValue:
    try:
        c32_address_decode(address)
    except C32Error as e:
        raise ClarityError(f"Invalid principal {address!r}: {e}") from e
    return ClarityValue(ClarityType.PRINCIPAL_STANDARD, address)


def none_cv() -> ClarityValue:
    return ClarityValue(ClarityType.OPTIONAL_NONE)


def response_ok_cv(value: ClarityValue) -> ClarityValue:
    return ClarityValue(ClarityType.RESPONSE_OK, value)


def response_err_cv(value: ClarityValue) -> ClarityValue:
    return ClarityValue(ClarityType.RESPONSE_ERR, value)


# ============================================================================
# Serialization
# ============================================================================

def _serialize_principal(address: str) -> bytes:
    version, hash160 = c32_address_decode(address)
    return bytes([version]) + hash160


def _serialize_name(name: str) -> bytes:
    encoded = name.encode("ascii")
    return bytes([len(encoded)]) + encoded


def serialize_cv(cv: ClarityValue) -> bytes:
    """Serialize a ClarityValue to its consensus byte form"""
    prefix = bytes([cv.type])
    t = cv.type

    if t == ClarityType.UINT:
        return prefix + cv.value.to_bytes(16, "big")
    if t == ClarityType.INT:
        return prefix + cv.value.to_bytes(16, "big", signed=True)
    if t in (ClarityType.BOOL_TRUE, ClarityType.BOOL_FALSE, ClarityType.OPTIONAL_NONE):
        return prefix
    if t == ClarityType.BUFFER:
        return prefix + len(cv.value).to_bytes(4, "big") + cv.value
    if t == ClarityType.PRINCIPAL_STANDARD:
        return prefix + _serialize_principal(cv.value)
    if t == ClarityType.PRINCIPAL_CONTRACT:
        address, contract_name = cv.value
        return prefix + _serialize_principal(address) + _serialize_name(contract_name)
    if t in (ClarityType.RESPONSE_OK, ClarityType.RESPONSE_ERR, ClarityType.OPTIONAL_SOME):
        return prefix + serialize_cv(cv.value)
    if t == ClarityType.LIST:
        body = b"".join(serialize_cv(item) for item in cv.value)
        return prefix + len(cv.value).to_bytes(4, "big") + body
    if t == ClarityType.TUPLE:
        body = b"".join(
            _serialize_name(name) + serialize_cv(cv.value[name])
            for name in sorted(cv.value)
        )
        return prefix + len(cv.value).to_bytes(4, "big") + body
    if t == ClarityType.STRING_ASCII:
        encoded = cv.value.encode("ascii")
        return prefix + len(encoded).to_bytes(4, "big") + encoded
    if t == ClarityType.STRING_UTF8:
        encoded = cv.value.encode("utf-8")
        return prefix + len(encoded).to_bytes(4, "big") + encoded

    raise ClarityError(f"Cannot serialize Clarity type {t!r}")


def cv_to_hex(cv: ClarityValue) -> str:
    return "0x" + serialize_cv(cv).hex()


# ============================================================================
# Deserialization
# ============================================================================

class _Reader:
    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def read(self, length: int) -> bytes:
        end = self.offset + length
        if end > len(self.data):
            raise ClarityError("Unexpected end of Clarity value")
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def read_u8(self) -> int:
        return self.read(1)[0]

    def read_u32(self) -> int:
        return int.from_bytes(self.read(4), "big")


def _read_principal(reader: _Reader) -> str:
    version = reader.read_u8()
    try:
        return c32_address(version, reader.read(20))
    except C32Error as e:
        raise ClarityError(f"Invalid principal: {e}") from e


def _read_name(reader: _Reader) -> str:
    return reader.read(reader.read_u8()).decode("ascii")


def _read_cv(reader: _Reader) -> ClarityValue:
    type_id = reader.read_u8()
    try:
        t = ClarityType(type_id)
    except ValueError:
        raise ClarityError(f"Unknown Clarity type id: 0x{type_id:02x}")

    if t == ClarityType.UINT:
        return ClarityValue(t, int.from_bytes(reader.read(16), "big"))
    if t == ClarityType.INT:
        return ClarityValue(t, int.from_bytes(reader.read(16), "big", signed=True))
    if t == ClarityType.BOOL_TRUE:
        return ClarityValue(t, True)
    if t == ClarityType.BOOL_FALSE:
        return ClarityValue(t, False)
    if t == ClarityType.OPTIONAL_NONE:
        return ClarityValue(t)
    if t == ClarityType.BUFFER:
        return ClarityValue(t, reader.read(reader.read_u32()))
    if t == ClarityType.PRINCIPAL_STANDARD:
        return ClarityValue(t, _read_principal(reader))
    if t == ClarityType.PRINCIPAL_CONTRACT:
        address = _read_principal(reader)
        return ClarityValue(t, (address, _read_name(reader)))
    if t in (ClarityType.RESPONSE_OK, ClarityType.RESPONSE_ERR, ClarityType.OPTIONAL_SOME):
        return ClarityValue(t, _read_cv(reader))
    if t == ClarityType.LIST:
        count = reader.read_u32()
        return ClarityValue(t, [_read_cv(reader) for _ in range(count)])
    if t == ClarityType.TUPLE:
        count = reader.read_u32()
        fields = {}
        for _ in range(count):
            name = _read_name(reader)
            fields[name] = _read_cv(reader)
        return ClarityValue(t, fields)
    if t == ClarityType.STRING_ASCII:
        return ClarityValue(t, reader.read(reader.read_u32()).decode("ascii"))
    # STRING_UTF8
    return ClarityValue(t, reader.read(reader.read_u32()).decode("utf-8"))


def deserialize_cv(data: Union[bytes, str]) -> ClarityValue:
    """
    Deserialize a Clarity value from bytes or a (0x-prefixed) hex string

    Raises:
        ClarityError: malformed input or trailing bytes
    """
    if isinstance(data, str):
        text = data[2:] if data.startswith("0x") else data
        try:
            data = bytes.fromhex(text)
        except ValueError as e:
            raise ClarityError(f"Invalid hex: {e}") from e

    reader = _Reader(data)
    cv = _read_cv(reader)
    if reader.offset != len(data):
        raise ClarityError(f"{len(data) - reader.offset} trailing bytes after Clarity value")
    return cv


def unwrap_ok_uint(cv: ClarityValue) -> Tuple[bool, int]:
    """
    Extract the integer from `(ok uint)` (or a bare uint)

    Returns:
        Tuple of (found, value)
    """
    if cv.type == ClarityType.RESPONSE_OK:
        cv = cv.value
    if cv.type == ClarityType.UINT:
        return True, cv.value
    return False, 0
