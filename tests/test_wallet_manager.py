"""
Unit Tests for Wallet Manager
"""

import json

import pytest
from eth_account import Account

from blockchain.errors import ValidationError
from blockchain.transaction_builder import TransactionBuilder
from bot.wallet_manager import WalletManager

from .conftest import CONTRACT


PRIVATE_KEY = '0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318'
ADDRESS = Account.from_key(PRIVATE_KEY).address


@pytest.fixture
def wallets_file(tmp_path):
    return str(tmp_path / 'wallets.json')


@pytest.fixture
def wallet_manager(wallets_file):
    return WalletManager('correct horse', wallets_file, kdf_iterations=2)


def mint_tx(nonce=0):
    return TransactionBuilder(10143).build_mint_tx(ADDRESS, CONTRACT, b'\x12\x49\xc5\x8b', nonce, 10**9, 500000)


class TestWalletManager:
    """Test wallet storage and signing"""

    def test_requires_master_password(self, wallets_file):
        with pytest.raises(ValueError):
            WalletManager('', wallets_file)

    def test_add_wallet(self, wallet_manager):
        address = wallet_manager.add_wallet(PRIVATE_KEY[2:], 'Main')

        assert address == ADDRESS
        wallet = wallet_manager.get_wallet(ADDRESS.lower())
        assert wallet['label'] == 'Main'
        assert wallet['active'] is True
        assert 'keystore' not in wallet

    def test_private_key_not_stored_in_clear(self, wallet_manager, wallets_file):
        wallet_manager.add_wallet(PRIVATE_KEY)

        with open(wallets_file) as f:
            content = f.read()

        assert PRIVATE_KEY[2:] not in content
        assert json.loads(content)[0]['keystore']['crypto']['kdf'] == 'pbkdf2'

    @pytest.mark.parametrize("key", ['', '0x1234', 'zz' * 32, '0x' + '00' * 32])
    def test_invalid_key_rejected(self, wallet_manager, key):
        with pytest.raises(ValidationError):
            wallet_manager.add_wallet(key)

    def test_duplicate_rejected(self, wallet_manager):
        wallet_manager.add_wallet(PRIVATE_KEY)

        with pytest.raises(ValidationError):
            wallet_manager.add_wallet(PRIVATE_KEY)

    def test_sign_after_reload(self, wallet_manager, wallets_file):
        wallet_manager.add_wallet(PRIVATE_KEY)

        reloaded = WalletManager('correct horse', wallets_file, kdf_iterations=2)
        signed = reloaded.sign_transaction(mint_tx(), ADDRESS)

        assert Account.recover_transaction(signed.raw_transaction) == ADDRESS

    def test_wrong_password_cannot_sign(self, wallet_manager, wallets_file):
        wallet_manager.add_wallet(PRIVATE_KEY)

        reloaded = WalletManager('wrong', wallets_file, kdf_iterations=2)

        with pytest.raises(ValidationError):
            reloaded.sign_transaction(mint_tx(), ADDRESS)

    def test_inactive_wallet_cannot_sign(self, wallet_manager):
        wallet_manager.add_wallet(PRIVATE_KEY)

        assert wallet_manager.toggle_wallet(ADDRESS) is False
        assert wallet_manager.get_active_wallets() == []

        with pytest.raises(ValidationError):
            wallet_manager.sign_transaction(mint_tx(), ADDRESS)

    def test_remove_wallet(self, wallet_manager):
        wallet_manager.add_wallet(PRIVATE_KEY)

        assert wallet_manager.remove_wallet(ADDRESS) is True
        assert wallet_manager.remove_wallet(ADDRESS) is False
        assert wallet_manager.toggle_wallet(ADDRESS) is None

    def test_update_last_used(self, wallet_manager):
        wallet_manager.add_wallet(PRIVATE_KEY)

        wallet_manager.update_last_used(ADDRESS, 1700000000.0)

        assert wallet_manager.get_wallet(ADDRESS)['last_used'] == 1700000000.0
