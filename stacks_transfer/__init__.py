"""
Stacks Token Transfer

Transfers SIP-010 fungible tokens with a contract call, then confirms
settlement by polling both balances.

Components:
- transfer_engine: Transfer orchestration and fail-open balance lookups
- settlement_verifier: Bounded fixed-delay balance-delta verification
- stacks_client: Stacks node API client (read-only calls, broadcast)
- transaction: Contract-call transaction serialization and signing
- clarity: Clarity value (de)serialization
- c32: c32check address codec
- validation: Recipient address and amount checks
- transfer_config: YAML/env configuration
- cli: Interactive runner
"""

from .transfer_engine import (
    TokenTransferEngine,
    TransferRequest,
    TransferResult,
)
from .settlement_verifier import (
    SettlementVerifier,
    BalanceSnapshot,
    VerificationOutcome,
    VerificationReport,
)
from .stacks_client import (
    StacksClient,
    ContractCallOptions,
    BroadcastResult,
    derive_address,
)
from .transfer_config import (
    TransferConfig,
    StacksNetwork,
    STACKS_TESTNET,
    STACKS_MAINNET,
    load_transfer_config,
)
from .validation import (
    validate_recipient_address,
    validate_amount,
    parse_amount,
)

__all__ = [
    # Main engine
    'TokenTransferEngine',
    'TransferRequest',
    'TransferResult',

    # Verification
    'SettlementVerifier',
    'BalanceSnapshot',
    'VerificationOutcome',
    'VerificationReport',

    # Chain client
    'StacksClient',
    'ContractCallOptions',
    'BroadcastResult',
    'derive_address',

    # Configuration
    'TransferConfig',
    'StacksNetwork',
    'STACKS_TESTNET',
    'STACKS_MAINNET',
    'load_transfer_config',

    # Input validation
    'validate_recipient_address',
    'validate_amount',
    'parse_amount',
]

__version__ = '1.0.0'
