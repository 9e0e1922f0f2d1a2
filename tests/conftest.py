"""
Shared fixtures: in-memory RPC node, fake signer and test configuration
"""

import asyncio
import copy
import json
from types import SimpleNamespace

import pytest
from web3 import Web3

from utils.config_loader import DEFAULT_CONFIG
from utils.tx_history import TransactionHistory


WALLET_A = Web3.to_checksum_address('0x' + '11' * 20)
WALLET_B = Web3.to_checksum_address('0x' + '22' * 20)
WALLET_C = Web3.to_checksum_address('0x' + '33' * 20)
CONTRACT = Web3.to_checksum_address('0x1aa689f843077dca043df7d0dc0b3f62dbc6180d')


class FakeRPC:
    """
    Minimal stand-in for RPCManager

    Signed payloads are JSON-encoded transaction dicts (see FakeSigner),
    so broadcast() can see the sender and nonce.
    """

    def __init__(self):
        self.counts = {}
        self.count_error = None
        self.gas_price = 2 * 10**9
        self.block = 100

        self.broadcasts = []
        self.hold = None
        self._failures = {}
        self._always_fail = {}

        self.call_results = {}
        self.calls = []
        self.code = {}

    def fail(self, address, *errors, forever=None):
        """Queue errors for address's next broadcasts; `forever` is a factory raised on every broadcast"""
        self._failures.setdefault(address.lower(), []).extend(errors)
        if forever is not None:
            self._always_fail[address.lower()] = forever

    async def get_transaction_count(self, address):
        if self.count_error is not None:
            raise self.count_error
        return self.counts.get(address, 0)

    async def get_gas_price(self):
        return self.gas_price

    async def broadcast(self, raw_transaction):
        tx = json.loads(raw_transaction)
        self.broadcasts.append(tx)

        if self.hold is not None:
            await self.hold.wait()

        sender = tx['from'].lower()
        queued = self._failures.get(sender)
        if queued:
            raise queued.pop(0)
        if sender in self._always_fail:
            raise self._always_fail[sender]()

        self.counts[tx['from']] = max(self.counts.get(tx['from'], 0), tx['nonce'] + 1)
        self.block += 1
        return {
            'transactionHash': Web3.to_hex(Web3.keccak(raw_transaction)),
            'blockNumber': self.block,
            'gasUsed': 52000,
            'status': 1
        }

    async def call(self, tx):
        self.calls.append(tx)
        result = self.call_results.get(tx.get('data'))
        if result is None:
            raise ValueError('execution reverted')
        if isinstance(result, Exception):
            raise result
        return result

    async def get_code(self, address):
        return self.code.get(Web3.to_checksum_address(address), b'')


class FakeSigner:
    """Signs by JSON-encoding the transaction; also tracks last_used like WalletManager"""

    def __init__(self):
        self.signed = []
        self.last_used = {}

    def sign_transaction(self, transaction, address):
        self.signed.append(transaction)
        raw = json.dumps(transaction, sort_keys=True).encode()
        return SimpleNamespace(raw_transaction=raw)

    def update_last_used(self, address, timestamp=None):
        self.last_used[address] = timestamp or 1


class SleepRecorder:
    """Replaces asyncio.sleep in retry paths"""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)
        await asyncio.sleep(0)


def uint256(value):
    return value.to_bytes(32, 'big')


@pytest.fixture
def rpc():
    return FakeRPC()


@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def config(tmp_path):
    """Test configuration (fast retries, no simulation, files under tmp_path)"""
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg['network']['explorer_url'] = 'https://explorer.test/tx/'
    cfg['execution'].update({
        'tx_timeout_seconds': 5,
        'max_attempts': 3,
        'retry_base_delay_seconds': 0.5,
        'receipt_poll_interval_seconds': 0.01,
        'simulate_before_send': False
    })
    cfg['history']['file'] = str(tmp_path / 'tx_history.json')
    cfg['storage'].update({
        'wallets_file': str(tmp_path / 'wallets.json'),
        'contracts_file': str(tmp_path / 'contracts.json'),
        'keystore_iterations': 2
    })
    cfg['telegram'].update({'token': 'test-token', 'admin_id': 42})
    cfg['security']['master_password'] = 'test-password'
    return cfg


@pytest.fixture
def history(config):
    return TransactionHistory(config['history']['file'], config['history']['max_records'])
