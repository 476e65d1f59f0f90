"""
Interactive Transfer Runner

Prompts for a recipient and an amount, runs one transfer, prints the outcome.
"""

import asyncio
import sys
from typing import Callable, Optional

import aiohttp
from dotenv import find_dotenv, load_dotenv
from loguru import logger

from .exceptions import InvalidAddressError, TransferError
from .settlement_verifier import VerificationOutcome
from .transfer_config import TransferConfig, load_transfer_config
from .transfer_engine import TokenTransferEngine, TransferRequest, TransferResult
from .validation import parse_amount, validate_recipient_address


LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {name}:{function} - {message}"


def configure_logging(level: str = "INFO"):
    """Replace loguru's default sink with a stderr sink at the given level"""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)


def collect_request(config: TransferConfig, prompt: Callable[[str], str] = input) -> TransferRequest:
    """
    Read and validate recipient and amount

    The amount prompt is only shown once the address passed validation.

    Raises:
        InvalidAddressError / InvalidAmountError
    """
    recipient_address = prompt("Enter recipient address: ").strip()
    validation = validate_recipient_address(
        recipient_address,
        expected_prefix=config.stacks_network.address_prefix
    )
    if not validation.is_valid:
        raise InvalidAddressError(validation.error)

    amount = parse_amount(prompt("Enter amount to transfer: "))
    return TransferRequest(recipient_address=recipient_address, amount=amount)


async def run_transfer(config: TransferConfig, request: TransferRequest,
                       engine: Optional[TokenTransferEngine] = None) -> TransferResult:
    engine = engine or TokenTransferEngine(config)
    try:
        return await engine.transfer(request)
    finally:
        await engine.close()


def main(prompt: Callable[[str], str] = input) -> int:
    try:
        load_dotenv(find_dotenv(usecwd=True))
        config = load_transfer_config()
        configure_logging(config.log_level)
        print(f"=== Stacks Token Transfer Script ({config.network.capitalize()}) ===\n")

        request = collect_request(config, prompt)
        result = asyncio.run(run_transfer(config, request))

    except (TransferError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        print(f"\nError: {e}")
        return 1
    except (KeyboardInterrupt, EOFError):
        print("\nAborted.")
        return 1

    if result.outcome is VerificationOutcome.VERIFIED:
        print(f"\nDone: {result.txid} (verified)")
    else:
        print(f"\nDone: {result.txid} (inconclusive, check the explorer)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
