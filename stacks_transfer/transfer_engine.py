"""
Token Transfer Engine

SIP-010 token transfer with settlement verification:
1. Derive sender address
2. Pre-transfer balance snapshot
3. Sufficient balance check
4. Contract call assembly (transfer amount sender recipient none)
5. Sign and broadcast
6. Settle delay
7. Balance-delta verification with bounded retries
"""

import asyncio
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from loguru import logger

from .clarity import none_cv, standard_principal_cv, uint_cv, unwrap_ok_uint
from .exceptions import BroadcastError, InsufficientBalanceError, TransferError
from .settlement_verifier import (
    BalanceSnapshot,
    SettlementVerifier,
    Sleeper,
    VerificationOutcome,
    VerificationReport,
)
from .stacks_client import ContractCallOptions, StacksClient
from .transaction import AnchorMode, PostConditionMode
from .transfer_config import TransferConfig


@dataclass
class TransferRequest:
    """Transfer request"""
    recipient_address: str
    amount: int


@dataclass
class TransferResult:
    """Transfer result"""
    recipient_address: str
    sender_address: Optional[str]
    amount: int
    success: bool
    txid: Optional[str]
    outcome: Optional[VerificationOutcome]
    attempts: int
    initial_sender_balance: Optional[int]
    initial_recipient_balance: Optional[int]
    final_sender_balance: Optional[int] = None
    final_recipient_balance: Optional[int] = None
    explorer_url: Optional[str] = None
    error_message: Optional[str] = None
    completed_at: Optional[datetime] = None

    @property
    def verified(self) -> bool:
        return self.outcome is VerificationOutcome.VERIFIED

    def to_dict(self) -> Dict:
        data = asdict(self)
        if self.outcome:
            data['outcome'] = self.outcome.value
        if self.completed_at:
            data['completed_at'] = self.completed_at.isoformat()
        return data


class TokenTransferEngine:
    """
    Fungible token transfer engine

    Safety Features:
    1. Balance check before building the transaction
    2. Contract ABI validation before signing
    3. Broadcast errors surfaced verbatim
    4. Settlement confirmed from balance deltas, fixed-delay retries
    """

    TRANSFER_FUNCTION = "transfer"
    BALANCE_FUNCTION = "get-balance"

    def __init__(
        self,
        config: TransferConfig,
        client: Optional[StacksClient] = None,
        sleep: Sleeper = asyncio.sleep
    ):
        """
        Initialize transfer engine

        Args:
            config: Transfer configuration
            client: Chain client (default: StacksClient for config.network)
            sleep: Awaitable delay used for settle and retry waits
        """
        self.config = config
        self.network = config.stacks_network
        self.client = client or StacksClient(self.network, timeout_seconds=config.request_timeout_seconds)
        self.sleep = sleep

        self.verifier = SettlementVerifier(
            self.get_token_balance,
            max_attempts=config.max_attempts,
            retry_delay_seconds=config.retry_delay_seconds,
            sleep=sleep,
        )
        self.transfer_history: List[TransferResult] = []

        logger.info("Token Transfer Engine initialized")
        logger.info(f"  Network: {self.network.name} ({self.network.api_url})")
        logger.info(f"  Token contract: {config.contract_address}.{config.contract_name}")
        logger.info(f"  Verification: {config.max_attempts} attempts, {config.retry_delay_seconds:g}s apart")

    async def get_token_balance(self, address: str) -> int:
        """
        Get token balance for an address

        Never raises: any failure is logged and reported as a zero balance,
        which the verifier then sees as an unexpected delta.
        """
        try:
            logger.debug(f"Fetching balance for address: {address}")

            result = await self.client.read_only_call(
                self.config.contract_address,
                self.config.contract_name,
                self.BALANCE_FUNCTION,
                [standard_principal_cv(address)],
                sender_address=address,
            )

            if result is None:
                raise ValueError("No response received from balance check")

            found, balance = unwrap_ok_uint(result)
            if not found:
                raise ValueError(f"Unexpected balance response: {result!r}")

            logger.debug(f"Balance of {address}: {balance}")
            return balance

        except Exception as e:
            logger.error(f"Error getting balance for {address}: {e}")
            return 0

    def _build_transfer_options(self, sender_address: str, recipient_address: str, amount: int) -> ContractCallOptions:
        return ContractCallOptions(
            sender_key=self.config.sender_key,
            contract_address=self.config.contract_address,
            contract_name=self.config.contract_name,
            function_name=self.TRANSFER_FUNCTION,
            function_args=[
                uint_cv(amount),
                standard_principal_cv(sender_address),
                standard_principal_cv(recipient_address),
                none_cv(),  # no memo
            ],
            fee=self.config.fee,
            anchor_mode=AnchorMode.ANY,
            post_condition_mode=PostConditionMode.ALLOW,
            validate_with_abi=True,
        )

    async def transfer(self, request: TransferRequest) -> TransferResult:
        """
        Execute a transfer and verify settlement

        Raises:
            InsufficientBalanceError: sender balance below amount
            BroadcastError: node rejected the transaction
            TransferError: any other fatal condition

        Returns:
            TransferResult; verification exhaustion still returns the txid
        """
        sender_address = None
        initial_sender_balance = None
        initial_recipient_balance = None

        try:
            sender_address = self.client.derive_address(self.config.sender_key)
            print(f"\nSender's address: {sender_address}")

            print("\nFetching initial balances...")
            initial_sender_balance = await self.get_token_balance(sender_address)
            initial_recipient_balance = await self.get_token_balance(request.recipient_address)

            print(f"Sender's initial balance: {initial_sender_balance}")
            print(f"Recipient's initial balance: {initial_recipient_balance}")

            if initial_sender_balance < request.amount:
                raise InsufficientBalanceError(initial_sender_balance, request.amount)

            options = self._build_transfer_options(sender_address, request.recipient_address, request.amount)

            print("\nCreating transaction...")
            print("Broadcasting transaction...")
            broadcast = await self.client.build_and_submit_contract_call(options)

            if broadcast.error:
                raise BroadcastError(broadcast.error, reason=broadcast.reason, txid=broadcast.txid)

            explorer_url = self.config.explorer_url(broadcast.txid)
            logger.info(f"✓ Transaction broadcast: {broadcast.txid}")
            print("\nTransaction successful!")
            print(f"Transaction ID: {broadcast.txid}")
            print(f"View in Explorer: {explorer_url}")

            print("\nWaiting for transaction to be processed...")
            await self.sleep(self.config.settle_delay_seconds)

            snapshot = BalanceSnapshot(
                sender_address=sender_address,
                recipient_address=request.recipient_address,
                amount=request.amount,
                sender_balance=initial_sender_balance,
                recipient_balance=initial_recipient_balance,
            )
            report: VerificationReport = await self.verifier.verify(snapshot, broadcast.txid)

            result = TransferResult(
                recipient_address=request.recipient_address,
                sender_address=sender_address,
                amount=request.amount,
                success=True,
                txid=report.txid,
                outcome=report.outcome,
                attempts=report.attempts,
                initial_sender_balance=initial_sender_balance,
                initial_recipient_balance=initial_recipient_balance,
                final_sender_balance=report.last_check.sender_balance if report.last_check else None,
                final_recipient_balance=report.last_check.recipient_balance if report.last_check else None,
                explorer_url=explorer_url,
                completed_at=datetime.now(timezone.utc),
            )
            self.transfer_history.append(result)
            return result

        except Exception as e:
            logger.error(f"❌ Transfer failed: {e}")

            self.transfer_history.append(TransferResult(
                recipient_address=request.recipient_address,
                sender_address=sender_address,
                amount=request.amount,
                success=False,
                txid=getattr(e, 'txid', None),
                outcome=None,
                attempts=0,
                initial_sender_balance=initial_sender_balance,
                initial_recipient_balance=initial_recipient_balance,
                error_message=str(e),
                completed_at=datetime.now(timezone.utc),
            ))

            if isinstance(e, TransferError):
                raise
            raise TransferError(str(e)) from e

    async def close(self):
        """Close chain client connections"""
        try:
            await self.client.close()
            logger.debug("✓ Chain client closed")
        except Exception as e:
            logger.debug(f"Error closing chain client: {e}")
