"""
Input Validation

Checks for the recipient address and amount entered at the prompts.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from loguru import logger

from .c32 import is_valid_address_format
from .clarity import MAX_UINT128
from .exceptions import InvalidAmountError


@dataclass
class AddressValidation:
    is_valid: bool
    error: Optional[str] = None


def validate_recipient_address(
    address: Optional[str],
    expected_prefix: str = "ST",
    format_checker: Callable[[str], bool] = is_valid_address_format
) -> AddressValidation:
    """
    Validate a recipient address

    Args:
        address: Address entered by the user
        expected_prefix: Network prefix ('ST' testnet, 'SP' mainnet)
        format_checker: c32check validator

    Returns:
        AddressValidation with a reason when invalid
    """
    try:
        if not address or not address.startswith(expected_prefix):
            network = "testnet" if expected_prefix == "ST" else "mainnet"
            return AddressValidation(
                False,
                f"Invalid address format. Must start with '{expected_prefix}' for {network}"
            )

        if not format_checker(address):
            return AddressValidation(False, "Invalid Stacks address format")

        return AddressValidation(True)

    except Exception as e:
        logger.debug(f"Address check raised: {e}")
        return AddressValidation(False, "Invalid address format")


def _to_decimal(value) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    text = str(value).strip()
    if "_" in text:
        return None
    try:
        number = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def validate_amount(value) -> bool:
    """True only for positive integers that fit a Clarity uint ('100', '1e2', '100.0')"""
    number = _to_decimal(value)
    if number is None or number <= 0 or number > MAX_UINT128:
        return False
    return number == number.to_integral_value()


def parse_amount(value) -> int:
    """
    Parse a validated amount into token base units

    Raises:
        InvalidAmountError: value is not a positive integer up to 2**128 - 1
    """
    if not validate_amount(value):
        raise InvalidAmountError("Amount must be a positive integer")
    return int(_to_decimal(value))
