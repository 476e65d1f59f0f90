"""
Stacks Chain Client

Thin async client over the Stacks node RPC API (Hiro-compatible):
- Derive addresses from private keys
- Read-only contract calls
- Account nonce and contract interface lookups
- Build, sign and broadcast contract-call transactions
"""

import json
from dataclasses import dataclass
from typing import Dict, List, Optional

import aiohttp
from loguru import logger

from .c32 import is_valid_address_format
from .clarity import ClarityValue, cv_to_hex, deserialize_cv
from .exceptions import ChainClientError, ContractAbiError, ReadOnlyCallError
from .transaction import (
    AnchorMode,
    ContractCallPayload,
    PostConditionMode,
    SigningKey,
    make_contract_call,
)
from .transfer_config import StacksNetwork


def derive_address(private_key_hex: str, network: StacksNetwork) -> str:
    """Derive the single-sig Stacks address for a private key"""
    return SigningKey.from_hex(private_key_hex).address(network.address_version)


@dataclass
class ContractCallOptions:
    """Options for build_and_submit_contract_call"""
    sender_key: str
    contract_address: str
    contract_name: str
    function_name: str
    function_args: List[ClarityValue]
    fee: int
    nonce: Optional[int] = None
    anchor_mode: AnchorMode = AnchorMode.ANY
    post_condition_mode: PostConditionMode = PostConditionMode.ALLOW
    validate_with_abi: bool = True


@dataclass
class BroadcastResult:
    """Node response to a broadcast; error is set when the node rejected it"""
    txid: Optional[str]
    error: Optional[str] = None
    reason: Optional[str] = None


class StacksClient:
    """
    Async Stacks node API client

    The aiohttp session is created lazily and must be released with close().
    """

    def __init__(
        self,
        network: StacksNetwork,
        timeout_seconds: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.network = network
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.session = session
        self._owns_session = session is None

        logger.debug(f"Stacks client initialized ({network.name}: {network.api_url})")

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self.session

    def _url(self, path: str) -> str:
        return f"{self.network.api_url}{path}"

    async def _get_json(self, path: str, params: Optional[Dict] = None):
        session = await self._get_session()
        async with session.get(self._url(path), params=params) as response:
            if response.status != 200:
                text = await response.text()
                raise ChainClientError(f"GET {path} failed ({response.status}): {text[:200]}")
            return await response.json(content_type=None)

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    def derive_address(self, private_key_hex: str) -> str:
        return derive_address(private_key_hex, self.network)

    @staticmethod
    def is_valid_address_format(address: str) -> bool:
        return is_valid_address_format(address)

    # ------------------------------------------------------------------
    # Read-only calls
    # ------------------------------------------------------------------

    async def read_only_call(
        self,
        contract_address: str,
        contract_name: str,
        function_name: str,
        function_args: List[ClarityValue],
        sender_address: str
    ) -> ClarityValue:
        """
        Call a read-only contract function

        Returns:
            Decoded Clarity result

        Raises:
            ReadOnlyCallError: node returned okay=false or no result
        """
        path = f"/v2/contracts/call-read/{contract_address}/{contract_name}/{function_name}"
        body = {
            'sender': sender_address,
            'arguments': [cv_to_hex(arg) for arg in function_args],
        }

        session = await self._get_session()
        async with session.post(self._url(path), json=body) as response:
            if response.status != 200:
                text = await response.text()
                raise ReadOnlyCallError(f"Read-only call {function_name} failed ({response.status}): {text[:200]}")
            data = await response.json(content_type=None)

        if not data:
            raise ReadOnlyCallError(f"No response received from {function_name}")
        if not data.get('okay'):
            raise ReadOnlyCallError(f"Read-only call {function_name} rejected: {data.get('cause')}")

        return deserialize_cv(data['result'])

    # ------------------------------------------------------------------
    # Account / contract lookups
    # ------------------------------------------------------------------

    async def get_account_nonce(self, address: str) -> int:
        data = await self._get_json(f"/v2/accounts/{address}", params={'proof': '0'})
        return int(data['nonce'])

    async def get_contract_interface(self, contract_address: str, contract_name: str) -> Dict:
        return await self._get_json(f"/v2/contracts/interface/{contract_address}/{contract_name}")

    async def validate_contract_call(self, options: ContractCallOptions):
        """
        Check the call against the deployed contract ABI

        Raises:
            ContractAbiError: function missing, not public, or wrong arity
        """
        abi = await self.get_contract_interface(options.contract_address, options.contract_name)

        for function in abi.get('functions', []):
            if function.get('name') != options.function_name:
                continue

            if function.get('access') != 'public':
                raise ContractAbiError(
                    f"Function '{options.function_name}' is {function.get('access')}, not public"
                )

            expected = len(function.get('args', []))
            if expected != len(options.function_args):
                raise ContractAbiError(
                    f"Function '{options.function_name}' expects {expected} arguments, "
                    f"got {len(options.function_args)}"
                )
            return

        raise ContractAbiError(
            f"Contract {options.contract_address}.{options.contract_name} "
            f"has no function '{options.function_name}'"
        )

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def broadcast_transaction(self, raw_tx: bytes) -> BroadcastResult:
        session = await self._get_session()
        async with session.post(
            self._url("/v2/transactions"),
            data=raw_tx,
            headers={'Content-Type': 'application/octet-stream'}
        ) as response:
            text = await response.text()

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return BroadcastResult(txid=None, error=f"Unexpected broadcast response: {text[:200]}")

        if isinstance(data, str):
            return BroadcastResult(txid=data.removeprefix('0x'))

        return BroadcastResult(
            txid=data.get('txid'),
            error=data.get('error', 'transaction rejected'),
            reason=data.get('reason'),
        )

    async def build_and_submit_contract_call(self, options: ContractCallOptions) -> BroadcastResult:
        """
        Build, sign and broadcast a contract call

        Broadcast rejections are returned in BroadcastResult.error, not raised.
        """
        key = SigningKey.from_hex(options.sender_key)
        sender_address = key.address(self.network.address_version)

        if options.validate_with_abi:
            await self.validate_contract_call(options)

        nonce = options.nonce
        if nonce is None:
            nonce = await self.get_account_nonce(sender_address)

        payload = ContractCallPayload(
            contract_address=options.contract_address,
            contract_name=options.contract_name,
            function_name=options.function_name,
            function_args=options.function_args,
        )
        transaction = make_contract_call(
            key,
            payload,
            nonce=nonce,
            fee=options.fee,
            tx_version=self.network.tx_version,
            chain_id=self.network.chain_id,
            anchor_mode=options.anchor_mode,
            post_condition_mode=options.post_condition_mode,
        )

        logger.debug(f"Signed {options.function_name} call (nonce={nonce}, fee={options.fee}, txid={transaction.txid()})")

        return await self.broadcast_transaction(transaction.serialize())

    async def close(self):
        """Close the HTTP session if this client created it"""
        if self.session is not None and self._owns_session:
            await self.session.close()
        self.session = None
