import json
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from stacks_transfer.c32 import TESTNET_SINGLE_SIG, c32_address
from stacks_transfer.clarity import response_ok_cv, uint_cv
from stacks_transfer.stacks_client import BroadcastResult
from stacks_transfer.transfer_config import TransferConfig


# 32-byte secret + 0x01 suffix: compressed public key
TEST_SENDER_KEY = "11" * 32 + "01"
TEST_TXID = "ab" * 32


def make_address(seed: int, version: int = TESTNET_SINGLE_SIG) -> str:
    return c32_address(version, bytes([seed]) * 20)


class FakeResponse:
    """Stand-in for an aiohttp response used as an async context manager"""

    def __init__(self, status: int = 200, body=None, text: Optional[str] = None):
        self.status = status
        self._text = text if text is not None else json.dumps(body)

    async def text(self):
        return self._text

    async def json(self, content_type=None):
        return json.loads(self._text)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Routes requests by (method, path suffix) and records them"""

    def __init__(self):
        self.routes: Dict = {}
        self.requests: List[Dict] = []
        self.closed = False

    def add(self, method: str, path: str, response: FakeResponse):
        self.routes[(method, path)] = response

    def _match(self, method: str, url: str) -> FakeResponse:
        for (route_method, path), response in self.routes.items():
            if route_method == method and url.endswith(path):
                return response
        raise AssertionError(f"Unexpected request: {method} {url}")

    def get(self, url, params=None):
        self.requests.append({'method': 'GET', 'url': url, 'params': params})
        return self._match('GET', url)

    def post(self, url, json=None, data=None, headers=None):
        self.requests.append({'method': 'POST', 'url': url, 'json': json, 'data': data, 'headers': headers})
        return self._match('POST', url)

    async def close(self):
        self.closed = True


class FakeChainClient:
    """
    Chain client double

    balances maps address -> list of balances; each read pops the next one
    and the last value repeats. An Exception in the list is raised instead.
    """

    def __init__(self, sender_address: str, balances: Dict[str, List], broadcast: Optional[BroadcastResult] = None):
        self.sender_address = sender_address
        self.balances = {address: list(values) for address, values in balances.items()}
        self.read_calls: List[str] = []
        self.build_and_submit_contract_call = AsyncMock(
            return_value=broadcast or BroadcastResult(txid=TEST_TXID)
        )
        self.close = AsyncMock()

    def derive_address(self, private_key_hex: str) -> str:
        return self.sender_address

    async def read_only_call(self, contract_address, contract_name, function_name, function_args, sender_address):
        self.read_calls.append(sender_address)
        values = self.balances[sender_address]
        value = values.pop(0) if len(values) > 1 else values[0]
        if isinstance(value, Exception):
            raise value
        return response_ok_cv(uint_cv(value))


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)


@pytest.fixture
def sender_address():
    return make_address(1)


@pytest.fixture
def recipient_address():
    return make_address(2)


@pytest.fixture
def transfer_config():
    return TransferConfig(sender_key=TEST_SENDER_KEY)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def fake_session():
    return FakeSession()
