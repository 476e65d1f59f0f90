import aiohttp
import pytest

from stacks_transfer.clarity import ClarityType, response_err_cv, uint_cv
from stacks_transfer.exceptions import BroadcastError, InsufficientBalanceError, TransferError
from stacks_transfer.settlement_verifier import VerificationOutcome
from stacks_transfer.stacks_client import BroadcastResult
from stacks_transfer.transaction import AnchorMode, PostConditionMode
from stacks_transfer.transfer_engine import TokenTransferEngine, TransferRequest

from conftest import TEST_TXID, FakeChainClient


def make_engine(config, client, sleep):
    return TokenTransferEngine(config, client=client, sleep=sleep)


class TestGetTokenBalance:
    @pytest.mark.asyncio
    async def test_returns_balance(self, transfer_config, sender_address, recording_sleep):
        client = FakeChainClient(sender_address, {sender_address: [1000]})
        engine = make_engine(transfer_config, client, recording_sleep)

        assert await engine.get_token_balance(sender_address) == 1000

    @pytest.mark.asyncio
    @pytest.mark.parametrize("fault", [
        aiohttp.ClientConnectionError("connection refused"),
        TimeoutError(),
        ValueError("malformed"),
        RuntimeError("anything"),
    ])
    async def test_failure_degrades_to_zero(self, transfer_config, sender_address, recording_sleep, fault):
        client = FakeChainClient(sender_address, {sender_address: [fault]})
        engine = make_engine(transfer_config, client, recording_sleep)

        assert await engine.get_token_balance(sender_address) == 0

    @pytest.mark.asyncio
    async def test_missing_response_degrades_to_zero(self, transfer_config, sender_address, recording_sleep):
        client = FakeChainClient(sender_address, {})

        async def no_response(*args, **kwargs):
            return None

        client.read_only_call = no_response
        engine = make_engine(transfer_config, client, recording_sleep)

        assert await engine.get_token_balance(sender_address) == 0

    @pytest.mark.asyncio
    async def test_err_response_degrades_to_zero(self, transfer_config, sender_address, recording_sleep):
        client = FakeChainClient(sender_address, {})

        async def err_response(*args, **kwargs):
            return response_err_cv(uint_cv(1))

        client.read_only_call = err_response
        engine = make_engine(transfer_config, client, recording_sleep)

        assert await engine.get_token_balance(sender_address) == 0


class TestTransfer:
    @pytest.mark.asyncio
    async def test_scenario_successful_transfer(
        self, transfer_config, sender_address, recipient_address, recording_sleep
    ):
        client = FakeChainClient(sender_address, {
            sender_address: [1000, 900],
            recipient_address: [0, 100],
        })
        engine = make_engine(transfer_config, client, recording_sleep)

        result = await engine.transfer(TransferRequest(recipient_address, 100))

        assert result.success
        assert result.outcome is VerificationOutcome.VERIFIED
        assert result.attempts == 1
        assert result.txid == TEST_TXID
        assert result.initial_sender_balance == 1000
        assert result.final_sender_balance == 900
        assert result.final_recipient_balance == 100
        assert result.explorer_url == f"https://explorer.hiro.so/txid/{TEST_TXID}?chain=testnet"
        # settle delay only
        assert recording_sleep.calls == [15.0]
        assert engine.transfer_history == [result]

    @pytest.mark.asyncio
    async def test_transfer_call_arguments(
        self, transfer_config, sender_address, recipient_address, recording_sleep
    ):
        client = FakeChainClient(sender_address, {
            sender_address: [1000, 900],
            recipient_address: [0, 100],
        })
        engine = make_engine(transfer_config, client, recording_sleep)

        await engine.transfer(TransferRequest(recipient_address, 100))

        options = client.build_and_submit_contract_call.await_args.args[0]
        assert options.contract_address == transfer_config.contract_address
        assert options.contract_name == "Krypto"
        assert options.function_name == "transfer"
        assert options.fee == 2000
        assert options.anchor_mode == AnchorMode.ANY
        assert options.post_condition_mode == PostConditionMode.ALLOW
        assert options.validate_with_abi

        amount, sender, recipient, memo = options.function_args
        assert amount == uint_cv(100)
        assert sender.value == sender_address
        assert recipient.value == recipient_address
        assert memo.type == ClarityType.OPTIONAL_NONE

    @pytest.mark.asyncio
    async def test_scenario_insufficient_balance(
        self, transfer_config, sender_address, recipient_address, recording_sleep
    ):
        client = FakeChainClient(sender_address, {
            sender_address: [50],
            recipient_address: [0],
        })
        engine = make_engine(transfer_config, client, recording_sleep)

        with pytest.raises(InsufficientBalanceError, match="Insufficient balance for transfer"):
            await engine.transfer(TransferRequest(recipient_address, 100))

        client.build_and_submit_contract_call.assert_not_awaited()
        # pre-transfer snapshot only
        assert client.read_calls == [sender_address, recipient_address]
        assert recording_sleep.calls == []
        assert not engine.transfer_history[-1].success

    @pytest.mark.asyncio
    async def test_exact_balance_is_sufficient(
        self, transfer_config, sender_address, recipient_address, recording_sleep
    ):
        client = FakeChainClient(sender_address, {
            sender_address: [100, 0],
            recipient_address: [0, 100],
        })
        engine = make_engine(transfer_config, client, recording_sleep)

        result = await engine.transfer(TransferRequest(recipient_address, 100))
        assert result.verified

    @pytest.mark.asyncio
    async def test_scenario_stuck_transaction(
        self, transfer_config, sender_address, recipient_address, recording_sleep
    ):
        client = FakeChainClient(sender_address, {
            sender_address: [1000],
            recipient_address: [0],
        })
        engine = make_engine(transfer_config, client, recording_sleep)

        result = await engine.transfer(TransferRequest(recipient_address, 100))

        assert result.success
        assert result.outcome is VerificationOutcome.EXHAUSTED
        assert result.attempts == 3
        assert result.txid == TEST_TXID
        assert recording_sleep.calls == [15.0, 20.0, 20.0]
        assert len(client.read_calls) == 2 + 3 * 2

    @pytest.mark.asyncio
    async def test_degraded_query_during_verification_retries(
        self, transfer_config, sender_address, recipient_address, recording_sleep
    ):
        client = FakeChainClient(sender_address, {
            sender_address: [1000, RuntimeError("node down"), 900],
            recipient_address: [0, 100],
        })
        engine = make_engine(transfer_config, client, recording_sleep)

        result = await engine.transfer(TransferRequest(recipient_address, 100))

        assert result.verified
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_broadcast_error_surfaced_verbatim(
        self, transfer_config, sender_address, recipient_address, recording_sleep
    ):
        client = FakeChainClient(
            sender_address,
            {sender_address: [1000], recipient_address: [0]},
            broadcast=BroadcastResult(txid="cd" * 32, error="transaction rejected", reason="BadNonce"),
        )
        engine = make_engine(transfer_config, client, recording_sleep)

        with pytest.raises(BroadcastError) as excinfo:
            await engine.transfer(TransferRequest(recipient_address, 100))

        assert str(excinfo.value) == "transaction rejected"
        assert excinfo.value.reason == "BadNonce"
        assert recording_sleep.calls == []
        assert engine.transfer_history[-1].txid == "cd" * 32

    @pytest.mark.asyncio
    async def test_unexpected_submission_failure_wrapped(
        self, transfer_config, sender_address, recipient_address, recording_sleep
    ):
        client = FakeChainClient(sender_address, {sender_address: [1000], recipient_address: [0]})
        client.build_and_submit_contract_call.side_effect = aiohttp.ClientConnectionError("reset")
        engine = make_engine(transfer_config, client, recording_sleep)

        with pytest.raises(TransferError, match="reset"):
            await engine.transfer(TransferRequest(recipient_address, 100))

    @pytest.mark.asyncio
    async def test_close(self, transfer_config, sender_address, recording_sleep):
        client = FakeChainClient(sender_address, {})
        engine = make_engine(transfer_config, client, recording_sleep)

        await engine.close()
        client.close.assert_awaited_once()


class TestTransferResult:
    @pytest.mark.asyncio
    async def test_to_dict(self, transfer_config, sender_address, recipient_address, recording_sleep):
        client = FakeChainClient(sender_address, {
            sender_address: [1000, 900],
            recipient_address: [0, 100],
        })
        engine = make_engine(transfer_config, client, recording_sleep)

        data = (await engine.transfer(TransferRequest(recipient_address, 100))).to_dict()

        assert data['outcome'] == 'verified'
        assert data['txid'] == TEST_TXID
        assert isinstance(data['completed_at'], str)
