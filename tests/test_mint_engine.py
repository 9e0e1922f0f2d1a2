"""
Unit Tests for Mint Engine (batch orchestration)
"""

import pytest
from web3 import Web3

from blockchain.contract_manager import ContractManager, selector
from blockchain.errors import ValidationError
from bot.mint_engine import MintEngine
from utils.tx_history import TxStatus

from .conftest import CONTRACT, WALLET_A, WALLET_B, WALLET_C, uint256


@pytest.fixture
def contract_manager(rpc, config):
    manager = ContractManager(rpc, config['storage']['contracts_file'])
    manager.add_contract(CONTRACT, 'Test Drop')
    manager.activate_contract(CONTRACT)
    return manager


@pytest.fixture
def engine(config, rpc, signer, contract_manager, history, sleeper):
    return MintEngine(config, rpc, signer, contract_manager, history, sleep=sleeper)


def wallets(*addresses):
    return [{'address': a, 'active': True} for a in addresses]


class TestMintAll:
    """Test batch mint outcomes"""

    @pytest.mark.asyncio
    async def test_all_wallets_succeed(self, engine, rpc, signer, history):
        result = await engine.mint_all(wallets(WALLET_A, WALLET_B))

        assert result.all_succeeded
        assert (result.success_count, result.total) == (2, 2)
        assert {tx['from'] for tx in rpc.broadcasts} == {WALLET_A, WALLET_B}
        assert set(signer.last_used) == {WALLET_A, WALLET_B}
        assert all(r.status == TxStatus.CONFIRMED for r in history.query(limit=10))

    @pytest.mark.asyncio
    async def test_partial_failure_is_isolated(self, engine, rpc, history, sleeper):
        rpc.fail(WALLET_C, forever=lambda: OSError("connection refused"))

        result = await engine.mint_all(wallets(WALLET_A, WALLET_B, WALLET_C))

        assert result.partial
        assert (result.success_count, result.total) == (2, 3)

        failed = next(o for o in result.outcomes if not o.success)
        assert failed.address == WALLET_C
        assert failed.tx_hash is not None
        assert "connection refused" in failed.error

        records = history.query(limit=10)
        assert len(records) == 5
        assert sum(r.status == TxStatus.CONFIRMED for r in records) == 2
        assert [r.status for r in history.query(address=WALLET_C, limit=10)] == [TxStatus.FAILED] * 3
        assert sleeper.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_all_failed(self, engine, rpc):
        for address in (WALLET_A, WALLET_B):
            rpc.fail(address, forever=lambda: ValueError("execution reverted: sold out"))

        result = await engine.mint_all(wallets(WALLET_A, WALLET_B))

        assert result.all_failed
        assert result.success_count == 0
        # Fatal reverts are not retried
        assert len(rpc.broadcasts) == 2

    @pytest.mark.asyncio
    async def test_duplicate_wallets_minted_once(self, engine, rpc):
        result = await engine.mint_all(wallets(WALLET_A, WALLET_A.lower()))

        assert result.total == 1
        assert len(rpc.broadcasts) == 1

    @pytest.mark.asyncio
    async def test_empty_batch(self, engine, rpc):
        result = await engine.mint_all([])

        assert result.total == 0
        assert result.all_failed
        assert rpc.broadcasts == []

    @pytest.mark.asyncio
    async def test_no_active_contract(self, config, rpc, signer, history, tmp_path):
        manager = ContractManager(rpc, str(tmp_path / 'empty.json'))
        engine = MintEngine(config, rpc, signer, manager, history)

        with pytest.raises(ValidationError):
            await engine.mint_all(wallets(WALLET_A))

    @pytest.mark.asyncio
    async def test_mint_price_sent_as_value(self, engine, rpc):
        rpc.call_results[Web3.to_hex(selector('mintPrice'))] = uint256(10**16)

        await engine.mint_all(wallets(WALLET_A))

        assert rpc.broadcasts[0]['value'] == 10**16
        assert rpc.broadcasts[0]['data'] == Web3.to_hex(selector('mint'))

    @pytest.mark.asyncio
    async def test_progress_messages(self, engine, rpc):
        rpc.fail(WALLET_B, OSError("connection reset"))
        messages = []

        async def notify(text):
            messages.append(text)

        result = await engine.mint_all(wallets(WALLET_A, WALLET_B), request_ref=42, notify=notify)

        assert result.all_succeeded
        assert messages[0].startswith("🚀 Starting batch mint with 2 wallets")
        assert sum("Mint Successful" in m for m in messages) == 2
        assert sum(m.startswith("🔄 Retrying (1/2)") for m in messages) == 1
        assert "2/2 successful" in messages[-1]

    @pytest.mark.asyncio
    async def test_notify_failure_does_not_fail_mint(self, engine):
        async def broken_notify(text):
            raise RuntimeError("telegram down")

        result = await engine.mint_all(wallets(WALLET_A), notify=broken_notify)

        assert result.all_succeeded

    @pytest.mark.asyncio
    async def test_wallet_store_failure_after_confirmation(self, engine, signer, history):
        def disk_full(address, timestamp=None):
            raise OSError("No space left on device")
        signer.update_last_used = disk_full

        result = await engine.mint_all(wallets(WALLET_A))

        assert result.all_succeeded
        assert result.outcomes[0].tx_hash is not None
        assert history.query(limit=1)[0].status == TxStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_stats(self, engine, rpc):
        rpc.fail(WALLET_B, forever=lambda: ValueError("execution reverted: max supply"))

        await engine.mint_all(wallets(WALLET_A, WALLET_B))
        stats = engine.get_stats()

        assert stats['batches'] == 1
        assert stats['successful_mints'] == 1
        assert stats['failed_mints'] == 1
        assert stats['success_rate'] == 50.0
