"""
RPC Manager
Async JSON-RPC access to the single configured endpoint
"""

from typing import Dict
from web3 import AsyncWeb3, Web3
from loguru import logger

from blockchain.errors import BroadcastError, MintBotError, NetworkError, classify_error


class RPCManager:
    """
    Thin async wrapper around AsyncWeb3

    Every transport failure is surfaced as NetworkError; broadcast failures
    are classified (nonce conflict, fatal contract error, timeout, ...).
    """

    def __init__(
        self,
        rpc_url: str,
        receipt_timeout: float = 300,
        poll_latency: float = 1.0,
        w3: AsyncWeb3 = None
    ):
        """
        Initialize RPC Manager

        Args:
            rpc_url: HTTP RPC endpoint
            receipt_timeout: Upper bound for receipt polling inside broadcast()
            poll_latency: Seconds between receipt polls
            w3: Pre-built AsyncWeb3 instance (tests)
        """
        self.rpc_url = rpc_url
        self.receipt_timeout = receipt_timeout
        self.poll_latency = poll_latency
        self.w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))

        # Usage tracking
        self.usage_stats = {
            'requests': 0,
            'failures': 0
        }

        logger.info(f"RPC Manager initialized: {rpc_url}")

    def _record(self, failed: bool = False):
        self.usage_stats['requests'] += 1
        if failed:
            self.usage_stats['failures'] += 1

    async def get_transaction_count(self, address: str) -> int:
        """Get transaction count including pending transactions"""
        try:
            count = await self.w3.eth.get_transaction_count(
                Web3.to_checksum_address(address),
                'pending'
            )
            self._record()
            return int(count)
        except Exception as e:
            self._record(failed=True)
            raise NetworkError(f"get_transaction_count failed: {e}") from e

    async def get_gas_price(self) -> int:
        """Get current network gas price in wei"""
        try:
            gas_price = await self.w3.eth.gas_price
            self._record()
            return int(gas_price)
        except Exception as e:
            self._record(failed=True)
            raise NetworkError(f"gas_price failed: {e}") from e

    async def broadcast(self, raw_transaction: bytes) -> Dict:
        """
        Send a signed transaction and wait for its receipt

        Args:
            raw_transaction: Signed transaction bytes

        Returns:
            Receipt dict (blockNumber, gasUsed, status, transactionHash)

        Raises:
            MintBotError subclass describing the failure
        """
        tx_hash = Web3.to_hex(Web3.keccak(raw_transaction))

        try:
            sent_hash = await self.w3.eth.send_raw_transaction(raw_transaction)
            logger.debug(f"Transaction sent: {Web3.to_hex(sent_hash)}")

            receipt = await self.w3.eth.wait_for_transaction_receipt(
                sent_hash,
                timeout=self.receipt_timeout,
                poll_latency=self.poll_latency
            )
            self._record()
        except MintBotError:
            self._record(failed=True)
            raise
        except Exception as e:
            self._record(failed=True)
            raise classify_error(e, tx_hash=tx_hash) from e

        receipt = dict(receipt)

        if receipt.get('status') == 0:
            raise BroadcastError("Transaction has been reverted by the EVM", tx_hash=tx_hash)

        return receipt

    async def call(self, tx: Dict) -> bytes:
        """eth_call - errors are propagated unclassified for the caller to inspect"""
        result = await self.w3.eth.call(tx)
        self._record()
        return bytes(result)

    async def get_code(self, address: str) -> bytes:
        try:
            code = await self.w3.eth.get_code(Web3.to_checksum_address(address))
            self._record()
            return bytes(code)
        except Exception as e:
            self._record(failed=True)
            raise NetworkError(f"get_code failed: {e}") from e

    async def is_healthy(self) -> bool:
        """Check if the endpoint answers"""
        try:
            return await self.w3.is_connected()
        except Exception:
            return False

    def get_usage_stats(self) -> Dict:
        return dict(self.usage_stats)
