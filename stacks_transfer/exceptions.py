"""
Transfer Exceptions

Every fatal condition of a transfer run derives from TransferError so the
runner can print it and exit cleanly.
"""

from typing import Optional


class TransferError(Exception):
    """Base class for all transfer errors"""


class ConfigError(TransferError):
    """Configuration missing or malformed"""


class InputValidationError(TransferError):
    """User input rejected before any network call"""


class InvalidAddressError(InputValidationError):
    pass


class InvalidAmountError(InputValidationError):
    pass


class InsufficientBalanceError(TransferError):
    """Sender balance below the requested amount"""

    def __init__(self, balance: int, amount: int):
        super().__init__("Insufficient balance for transfer")
        self.balance = balance
        self.amount = amount


class BroadcastError(TransferError):
    """Node rejected the signed transaction"""

    def __init__(self, message: str, reason: Optional[str] = None, txid: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
        self.txid = txid


class ChainClientError(TransferError):
    """Stacks node API call failed"""


class ReadOnlyCallError(ChainClientError):
    pass


class ContractAbiError(ChainClientError):
    """Contract call does not match the deployed contract interface"""


class C32Error(ValueError):
    """Malformed c32 / c32check string"""


class ClarityError(ValueError):
    """Clarity value could not be serialized or deserialized"""
