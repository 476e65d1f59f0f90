"""
Settlement Verifier

Confirms a broadcast transfer actually moved funds by re-reading both
balances a bounded number of times with a fixed delay between attempts.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from loguru import logger


BalanceFetcher = Callable[[str], Awaitable[int]]
Sleeper = Callable[[float], Awaitable[None]]


class VerificationOutcome(Enum):
    VERIFIED = "verified"
    PENDING = "pending"        # not yet verified, will retry
    EXHAUSTED = "exhausted"    # gave up after max attempts


@dataclass(frozen=True)
class BalanceSnapshot:
    """Pre-transfer state the verifier compares against"""
    sender_address: str
    recipient_address: str
    amount: int
    sender_balance: int
    recipient_balance: int


@dataclass
class BalanceCheck:
    """One verification attempt"""
    attempt: int
    sender_balance: int
    recipient_balance: int
    sender_delta: int
    recipient_delta: int
    verified: bool

    @property
    def outcome(self) -> VerificationOutcome:
        return VerificationOutcome.VERIFIED if self.verified else VerificationOutcome.PENDING


@dataclass
class VerificationReport:
    txid: str
    outcome: VerificationOutcome
    attempts: int
    last_check: Optional[BalanceCheck] = None

    @property
    def verified(self) -> bool:
        return self.outcome is VerificationOutcome.VERIFIED


class SettlementVerifier:
    """
    Bounded fixed-delay settlement check

    Verified iff sender lost exactly `amount` and recipient gained exactly
    `amount`. Any other delta, larger ones included, counts as not settled.
    """

    def __init__(
        self,
        balance_fetcher: BalanceFetcher,
        max_attempts: int = 3,
        retry_delay_seconds: float = 20.0,
        sleep: Sleeper = asyncio.sleep
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.balance_fetcher = balance_fetcher
        self.max_attempts = max_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self.sleep = sleep

    async def verify_once(self, snapshot: BalanceSnapshot, attempt: int = 1) -> BalanceCheck:
        sender_balance = await self.balance_fetcher(snapshot.sender_address)
        recipient_balance = await self.balance_fetcher(snapshot.recipient_address)

        sender_delta = snapshot.sender_balance - sender_balance
        recipient_delta = recipient_balance - snapshot.recipient_balance

        return BalanceCheck(
            attempt=attempt,
            sender_balance=sender_balance,
            recipient_balance=recipient_balance,
            sender_delta=sender_delta,
            recipient_delta=recipient_delta,
            verified=sender_delta == snapshot.amount and recipient_delta == snapshot.amount,
        )

    async def verify(self, snapshot: BalanceSnapshot, txid: str) -> VerificationReport:
        """
        Run up to max_attempts checks

        Returns:
            VerificationReport; the txid is returned whatever the outcome
        """
        check = None

        for attempt in range(1, self.max_attempts + 1):
            print(f"\nVerification attempt {attempt} of {self.max_attempts}...")

            check = await self.verify_once(snapshot, attempt)

            print("\nTransfer verification:")
            print(f"Sender's final balance: {check.sender_balance}")
            print(f"Recipient's final balance: {check.recipient_balance}")
            print(f"Amount transferred: {snapshot.amount}")

            logger.debug(
                f"Attempt {attempt}: sender_delta={check.sender_delta}, "
                f"recipient_delta={check.recipient_delta}, expected={snapshot.amount} "
                f"-> {check.outcome.value}"
            )

            if check.verified:
                logger.info(f"✓ Transfer {txid} verified on attempt {attempt}")
                print("\nTransfer verified successfully!")
                return VerificationReport(txid, VerificationOutcome.VERIFIED, attempt, check)

            if attempt < self.max_attempts:
                print(
                    f"\nVerification not successful. Waiting {self.retry_delay_seconds:g} "
                    f"seconds before next attempt..."
                )
                await self.sleep(self.retry_delay_seconds)

        logger.warning(f"⚠ Transfer {txid} not verified after {self.max_attempts} attempts")
        print("\nMax verification attempts reached. The transaction may still be processing.")
        print("Please check the explorer for the latest status.")

        return VerificationReport(txid, VerificationOutcome.EXHAUSTED, self.max_attempts, check)
