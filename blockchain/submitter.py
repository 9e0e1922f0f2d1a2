"""
Transaction Submitter
Broadcasts signed transactions with a bounded wait and records every attempt
"""

import asyncio
from typing import Dict, Optional, Set
from web3 import Web3
from loguru import logger

from utils.logger import log_action
from utils.tx_history import TransactionHistory, TransactionRecord
from .errors import MintBotError, TransactionTimeoutError, classify_error


class TransactionSubmitter:
    """
    Final hop between a signed payload and the network

    Each submit() writes exactly one history record and moves it to exactly
    one terminal state (confirmed or failed) before returning or raising.
    """

    def __init__(self, rpc_manager, history: TransactionHistory, default_timeout: float = 120):
        """
        Initialize Transaction Submitter

        Args:
            rpc_manager: RPC client exposing broadcast()
            history: Transaction history store
            default_timeout: Seconds to wait for a receipt when submit() gets none
        """
        self.rpc_manager = rpc_manager
        self.history = history
        self.default_timeout = default_timeout

        # Broadcasts that lost the race against the timer
        self._detached: Set[asyncio.Task] = set()

    @staticmethod
    def compute_hash(raw_transaction: bytes) -> str:
        """Transaction hash of a signed payload"""
        return Web3.to_hex(Web3.keccak(raw_transaction))

    async def submit(
        self,
        raw_transaction: bytes,
        from_address: str,
        to_address: str,
        gas_price: int,
        gas_limit: int,
        timeout: Optional[float] = None
    ) -> Dict:
        """
        Broadcast a signed transaction and wait (bounded) for its receipt

        Args:
            raw_transaction: Signed transaction bytes
            from_address: Sending wallet
            to_address: Destination contract
            gas_price: Gas price used (audit)
            gas_limit: Gas limit used (audit)
            timeout: Seconds before giving up on the receipt

        Returns:
            Transaction receipt

        Raises:
            TransactionTimeoutError: No receipt within timeout
            MintBotError: Classified broadcast failure
        """
        timeout = self.default_timeout if timeout is None else timeout
        tx_hash = self.compute_hash(raw_transaction)

        record = TransactionRecord(
            hash=tx_hash,
            from_address=from_address,
            to_address=to_address,
            gas_price=int(gas_price),
            gas_limit=int(gas_limit)
        )
        await self.history.append(record)

        broadcast = asyncio.ensure_future(self.rpc_manager.broadcast(raw_transaction))
        done, _ = await asyncio.wait({broadcast}, timeout=timeout)

        if not done:
            self._detach(broadcast, tx_hash)
            error = TransactionTimeoutError(
                f"Transaction timeout after {timeout}s",
                tx_hash=tx_hash
            )
            await self._record_failure(tx_hash, from_address, error)
            raise error

        try:
            receipt = broadcast.result()
        except Exception as e:
            error = classify_error(e, tx_hash=tx_hash)
            await self._record_failure(tx_hash, from_address, error)
            if error is e:
                raise
            raise error from e

        block_number = receipt.get('blockNumber')
        gas_used = receipt.get('gasUsed')

        await self.history.mutate(
            tx_hash,
            lambda r: r.mark_confirmed(block_number, gas_used)
        )

        log_action('transaction_confirmed', hash=tx_hash, sender=from_address,
                   to=to_address, block=block_number)
        logger.success(f"Transaction confirmed: {tx_hash} (block {block_number})")

        return receipt

    async def _record_failure(self, tx_hash: str, from_address: str, error: MintBotError):
        message = str(error) or error.__class__.__name__

        await self.history.mutate(tx_hash, lambda r: r.mark_failed(message))

        log_action('transaction_failed', hash=tx_hash, sender=from_address,
                   error=message, kind=error.__class__.__name__)
        logger.error(f"Transaction failed: {tx_hash} - {message}")

    def _detach(self, task: asyncio.Task, tx_hash: str):
        """Let a timed-out broadcast finish on its own; its outcome is only logged"""
        self._detached.add(task)

        def _on_done(finished: asyncio.Task):
            self._detached.discard(finished)
            if finished.cancelled():
                return
            late_error = finished.exception()
            if late_error is not None:
                logger.debug(f"Abandoned broadcast {tx_hash} failed late: {late_error}")
            else:
                logger.info(f"Abandoned broadcast {tx_hash} completed after timeout (history unchanged)")

        task.add_done_callback(_on_done)

    @property
    def detached_count(self) -> int:
        return len(self._detached)
