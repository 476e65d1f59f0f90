import pytest

from stacks_transfer.clarity import (
    MAX_UINT128,
    ClarityType,
    ClarityValue,
    cv_to_hex,
    deserialize_cv,
    none_cv,
    response_err_cv,
    response_ok_cv,
    serialize_cv,
    standard_principal_cv,
    uint_cv,
    unwrap_ok_uint,
)
from stacks_transfer.exceptions import ClarityError

from conftest import make_address


def u32(n: int) -> bytes:
    return n.to_bytes(4, "big")


class TestSerialization:
    def test_uint(self):
        assert serialize_cv(uint_cv(100)) == bytes([0x01]) + (100).to_bytes(16, "big")

    def test_uint_range(self):
        assert uint_cv(MAX_UINT128).value == MAX_UINT128
        with pytest.raises(ClarityError):
            uint_cv(MAX_UINT128 + 1)
        with pytest.raises(ClarityError):
            uint_cv(-1)

    def test_none(self):
        assert serialize_cv(none_cv()) == b"\x09"

    def test_standard_principal(self):
        address = make_address(7)
        assert serialize_cv(standard_principal_cv(address)) == bytes([0x05, 26]) + b"\x07" * 20

    def test_invalid_principal(self):
        with pytest.raises(ClarityError):
            standard_principal_cv("ST-not-an-address")

    def test_responses(self):
        assert serialize_cv(response_ok_cv(none_cv())) == b"\x07\x09"
        assert serialize_cv(response_err_cv(uint_cv(3))) == b"\x08\x01" + (3).to_bytes(16, "big")

    def test_hex(self):
        assert cv_to_hex(none_cv()) == "0x09"


class TestDeserialization:
    def test_ok_uint_from_hex(self):
        hex_result = "0x07" + "01" + (900).to_bytes(16, "big").hex()
        cv = deserialize_cv(hex_result)
        assert cv.type == ClarityType.RESPONSE_OK
        assert cv.value == uint_cv(900)

    def test_negative_int(self):
        cv = deserialize_cv(b"\x00" + b"\xff" * 16)
        assert cv == ClarityValue(ClarityType.INT, -1)

    def test_bools(self):
        assert deserialize_cv(b"\x03").value is True
        assert deserialize_cv(b"\x04").value is False

    def test_contract_principal(self):
        data = bytes([0x06, 26]) + b"\x07" * 20 + b"\x06Krypto"
        cv = deserialize_cv(data)
        assert cv.value == (make_address(7), "Krypto")
        assert serialize_cv(cv) == data

    def test_some_buffer(self):
        cv = deserialize_cv(b"\x0a\x02" + u32(2) + b"hi")
        assert cv.type == ClarityType.OPTIONAL_SOME
        assert cv.value == ClarityValue(ClarityType.BUFFER, b"hi")

    def test_list_and_strings(self):
        data = b"\x0b" + u32(2) + b"\x0d" + u32(1) + b"x" + b"\x0e" + u32(2) + "é".encode("utf-8")
        cv = deserialize_cv(data)
        assert [item.value for item in cv.value] == ["x", "é"]
        assert serialize_cv(cv) == data

    def test_tuple_reencodes_with_sorted_keys(self):
        address = make_address(3)
        owner = serialize_cv(standard_principal_cv(address))
        amount = serialize_cv(uint_cv(5))
        unsorted = b"\x0c" + u32(2) + b"\x05owner" + owner + b"\x06amount" + amount
        cv = deserialize_cv(unsorted)

        assert cv.value["owner"].value == address
        assert cv.value["amount"].value == 5
        assert serialize_cv(cv) == b"\x0c" + u32(2) + b"\x06amount" + amount + b"\x05owner" + owner

    def test_truncated(self):
        with pytest.raises(ClarityError):
            deserialize_cv(b"\x01\x00")

    def test_trailing_bytes(self):
        with pytest.raises(ClarityError):
            deserialize_cv(b"\x09\x09")

    def test_unknown_type(self):
        with pytest.raises(ClarityError):
            deserialize_cv(b"\x7f")

    def test_bad_hex(self):
        with pytest.raises(ClarityError):
            deserialize_cv("0xzz")


class TestUnwrapOkUint:
    def test_ok(self):
        assert unwrap_ok_uint(response_ok_cv(uint_cv(42))) == (True, 42)

    def test_bare_uint(self):
        assert unwrap_ok_uint(uint_cv(0)) == (True, 0)

    def test_err(self):
        assert unwrap_ok_uint(response_err_cv(uint_cv(1))) == (False, 0)

    def test_wrong_type(self):
        assert unwrap_ok_uint(deserialize_cv(b"\x07\x03")) == (False, 0)
