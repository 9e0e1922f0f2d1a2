"""
Nonce Manager
Allocates collision-free transaction nonces for every managed wallet
"""

import asyncio
from typing import Dict, List, Optional
from web3 import Web3
from loguru import logger

from .errors import MintBotError, NetworkError, ValidationError


class NonceManager:
    """
    Per-address nonce allocator shared by all submission chains

    Reconciles the on-chain transaction count with nonces already issued
    in-process. Allocation for one address is serialized by its own lock;
    different addresses allocate independently.
    Issued nonces are never handed out again unless released before
    they reach the network.
    """

    def __init__(self, rpc_manager):
        """
        Initialize Nonce Manager

        Args:
            rpc_manager: RPC client exposing get_transaction_count()
        """
        self.rpc_manager = rpc_manager

        # Internal nonce tracking (never persisted)
        self.last_issued: Dict[str, int] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

        logger.info("Nonce Manager initialized")

    @staticmethod
    def _normalize(address: str) -> str:
        try:
            return Web3.to_checksum_address(address)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid address: {address}") from e

    def _get_lock(self, address: str) -> asyncio.Lock:
        """Get or create the lock for a checksum address"""
        if address not in self._locks:
            self._locks[address] = asyncio.Lock()
        return self._locks[address]

    async def allocate(self, address: str) -> int:
        """
        Allocate the next nonce for an address

        Args:
            address: Sending wallet address

        Returns:
            max(on-chain count, last issued + 1)

        Raises:
            NetworkError: On-chain count could not be fetched
            ValidationError: Address is malformed
        """
        address = self._normalize(address)

        async with self._get_lock(address):
            try:
                on_chain = await self.rpc_manager.get_transaction_count(address)
            except MintBotError:
                raise
            except Exception as e:
                raise NetworkError(f"Could not fetch transaction count for {address}: {e}") from e

            last = self.last_issued.get(address)
            nonce = on_chain if last is None else max(on_chain, last + 1)
            self.last_issued[address] = nonce

            logger.debug(f"Allocated nonce {nonce} for {address} (on-chain: {on_chain}, last: {last})")
            return nonce

    async def release(self, address: str, nonce: int) -> bool:
        """
        Give back a nonce that never left the process

        Only the most recently issued nonce can be released; anything older
        may already sit behind a later broadcast.

        Returns:
            True if the nonce will be handed out again
        """
        address = self._normalize(address)

        async with self._get_lock(address):
            if self.last_issued.get(address) != nonce:
                return False

            if nonce > 0:
                self.last_issued[address] = nonce - 1
            else:
                self.last_issued.pop(address)

            logger.debug(f"Released unused nonce {nonce} for {address}")
            return True

    async def invalidate(self, address: str):
        """
        Forget the last issued nonce so the next allocation re-derives from chain

        Used after the node rejects a transaction as nonce too low/used or
        replacement underpriced.
        """
        address = self._normalize(address)

        async with self._get_lock(address):
            previous = self.last_issued.pop(address, None)
            logger.warning(f"Nonce cache invalidated for {address} (was: {previous})")

    def get_last_issued(self, address: str) -> Optional[int]:
        """Get last issued nonce (None if nothing issued since start/invalidation)"""
        return self.last_issued.get(self._normalize(address))

    def tracked_addresses(self) -> List[str]:
        return list(self.last_issued.keys())
