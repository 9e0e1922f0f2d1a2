"""
Unit Tests for Contract Manager
"""

import pytest
from web3 import Web3

from blockchain.contract_manager import ContractManager, selector
from blockchain.errors import NetworkError, ValidationError

from .conftest import CONTRACT, WALLET_A, uint256


OTHER = Web3.to_checksum_address('0x' + '44' * 20)


@pytest.fixture
def contracts_file(tmp_path):
    return str(tmp_path / 'contracts.json')


@pytest.fixture
def manager(rpc, contracts_file):
    return ContractManager(rpc, contracts_file)


def answer(rpc, method_name, value):
    rpc.call_results[Web3.to_hex(selector(method_name))] = uint256(value)


class TestContractList:
    """Test saved contract bookkeeping"""

    def test_add_and_activate(self, manager):
        manager.add_contract(CONTRACT.lower(), 'Drop')

        assert manager.get_active_contract_address() is None

        manager.activate_contract(CONTRACT)
        assert manager.get_active_contract_address() == CONTRACT

    def test_only_one_active(self, manager):
        manager.add_contract(CONTRACT)
        manager.add_contract(OTHER)
        manager.activate_contract(CONTRACT)
        manager.activate_contract(OTHER)

        assert [c['address'] for c in manager.get_all_contracts() if c['active']] == [OTHER]

    def test_duplicate_and_invalid(self, manager):
        manager.add_contract(CONTRACT)

        with pytest.raises(ValidationError):
            manager.add_contract(CONTRACT)
        with pytest.raises(ValidationError):
            manager.add_contract('0x1234')
        with pytest.raises(ValidationError):
            manager.activate_contract(OTHER)

    def test_remove_active_promotes_first_remaining(self, manager):
        manager.add_contract(CONTRACT)
        manager.add_contract(OTHER)
        manager.activate_contract(OTHER)

        assert manager.remove_contract(OTHER) is True
        assert manager.get_active_contract_address() == CONTRACT
        assert manager.remove_contract(OTHER) is False

    def test_first_contract_activated_on_load(self, rpc, manager, contracts_file):
        manager.add_contract(CONTRACT)

        reloaded = ContractManager(rpc, contracts_file)

        assert reloaded.get_active_contract_address() == CONTRACT


class TestChainQueries:
    """Test contract probing and call data"""

    @pytest.mark.asyncio
    async def test_validate_contract(self, rpc, manager):
        rpc.code[CONTRACT] = b'\x60\x80' + selector('publicMint') + b'\x00'
        answer(rpc, 'totalSupply', 10)
        answer(rpc, 'maxSupply', 1000)

        result = await manager.validate_contract(CONTRACT)

        assert result['valid']
        assert result['methods'] == {'totalSupply': 'totalSupply', 'maxSupply': 'maxSupply', 'mint': 'publicMint'}

    @pytest.mark.asyncio
    async def test_validate_without_code(self, manager):
        result = await manager.validate_contract(WALLET_A)

        assert not result['valid']
        assert result['errors'] == ["No contract code found at this address"]

    @pytest.mark.asyncio
    async def test_validate_without_mint_method(self, rpc, manager):
        rpc.code[CONTRACT] = b'\x60\x80\x60\x40'
        answer(rpc, 'totalSupply', 1)

        result = await manager.validate_contract(CONTRACT)

        assert not result['valid']
        assert "No mint method found in contract bytecode" in result['errors']

    def test_encode_mint_call_uses_saved_method(self, manager):
        manager.add_contract(CONTRACT, methods={'mint': 'publicMint'})
        manager.activate_contract(CONTRACT)

        assert manager.encode_mint_call() == selector('publicMint')

    def test_encode_mint_call_without_active_contract(self, manager):
        with pytest.raises(ValidationError):
            manager.encode_mint_call()

    @pytest.mark.asyncio
    async def test_supply_status(self, rpc, manager):
        manager.add_contract(CONTRACT)
        manager.activate_contract(CONTRACT)
        answer(rpc, 'totalSupply', 250)
        answer(rpc, 'MAX_SUPPLY', 1000)

        assert await manager.get_supply_status() == (250, 1000)

    @pytest.mark.asyncio
    async def test_supply_status_rpc_failure(self, rpc, manager):
        manager.add_contract(CONTRACT)
        manager.activate_contract(CONTRACT)
        rpc.call_results[Web3.to_hex(selector('totalSupply'))] = ConnectionError("connection refused")

        with pytest.raises(NetworkError):
            await manager.get_supply_status()

    @pytest.mark.asyncio
    async def test_free_mint_value(self, manager):
        manager.add_contract(CONTRACT)
        manager.activate_contract(CONTRACT)

        assert await manager.get_mint_value() == 0
