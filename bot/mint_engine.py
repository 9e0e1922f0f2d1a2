"""
Mint Engine - Batch mint orchestration
Fans one mint out to every active wallet and aggregates the outcomes
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional
from web3 import Web3
from loguru import logger

from blockchain.errors import MintBotError, summarize_error
from blockchain.nonce_manager import NonceManager
from blockchain.retry_handler import MintRequest, RetryContext, RetryHandler
from blockchain.submitter import TransactionSubmitter
from blockchain.transaction_builder import TransactionBuilder
from utils.logger import log_action
from utils.simulation import TransactionSimulator
from utils.tx_history import TransactionHistory, TransactionRecord

from . import formatter


Notify = Callable[[str], Awaitable[Any]]


@dataclass
class WalletOutcome:
    """Terminal outcome of one wallet's submission chain"""
    address: str
    success: bool
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    error: Optional[str] = None


@dataclass
class BatchResult:
    """Aggregate of one batch mint"""
    success_count: int
    total: int
    outcomes: List[WalletOutcome] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return self.total > 0 and self.success_count == self.total

    @property
    def all_failed(self) -> bool:
        return self.success_count == 0

    @property
    def partial(self) -> bool:
        return 0 < self.success_count < self.total


class MintEngine:
    """
    Batch mint coordinator

    Owns the submission pipeline (nonce manager, submitter, retry handler)
    and runs one independent retry chain per wallet.
    """

    def __init__(
        self,
        config: Dict,
        rpc_manager,
        wallet_manager,
        contract_manager,
        history: TransactionHistory,
        nonce_manager: Optional[NonceManager] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize Mint Engine

        Args:
            config: Bot configuration
            rpc_manager: RPC client
            wallet_manager: Signing capability + wallet registry
            contract_manager: Mint call-data provider
            history: Transaction history store
            nonce_manager: Shared nonce allocator (created if omitted)
            sleep: Backoff delay function
        """
        logger.info("Initializing Mint Engine...")

        self.config = config
        self.rpc_manager = rpc_manager
        self.wallet_manager = wallet_manager
        self.contract_manager = contract_manager
        self.history = history
        self.explorer_url = config['network']['explorer_url']

        execution = config['execution']

        self.nonce_manager = nonce_manager or NonceManager(rpc_manager)
        self.tx_builder = TransactionBuilder(config['network']['chain_id'])
        self.submitter = TransactionSubmitter(
            rpc_manager,
            history,
            default_timeout=execution['tx_timeout_seconds']
        )
        self.simulator = TransactionSimulator(rpc_manager) if execution.get('simulate_before_send') else None
        self.retry_handler = RetryHandler(
            self.submitter,
            self.nonce_manager,
            self.tx_builder,
            wallet_manager,
            rpc_manager,
            config,
            simulator=self.simulator,
            sleep=sleep
        )

        # Performance tracking
        self.stats = {
            'batches': 0,
            'total_mints': 0,
            'successful_mints': 0,
            'failed_mints': 0
        }

        logger.success("Mint Engine initialized successfully")

    async def mint_all(
        self,
        wallets: List[Dict],
        request_ref: Any = None,
        notify: Optional[Notify] = None
    ) -> BatchResult:
        """
        Mint once from every given wallet, concurrently

        Args:
            wallets: Wallet entries (dicts with 'address')
            request_ref: Caller reference (chat id) carried into retry contexts
            notify: Optional coroutine receiving progress messages

        Returns:
            BatchResult - never raises because some (or all) chains failed

        Raises:
            ValidationError: No active contract, batch cannot start
        """
        contract_address = self.contract_manager.get_active_contract_address()
        call_data = self.contract_manager.encode_mint_call()
        value = await self._resolve_mint_value()

        # One chain per address
        addresses = []
        seen = set()
        for wallet in wallets:
            key = wallet['address'].lower()
            if key not in seen:
                seen.add(key)
                addresses.append(wallet['address'])

        log_action('batch_mint_started', wallets=len(addresses), contract=contract_address)

        if notify and addresses:
            await self._notify(notify, formatter.batch_started(len(addresses), contract_address))

        requests = [
            MintRequest(
                wallet_address=address,
                contract_address=contract_address,
                call_data=call_data,
                value=value,
                request_ref=request_ref,
                on_retry=self._retry_hook(notify)
            )
            for address in addresses
        ]

        results = await asyncio.gather(
            *(self._mint_for_wallet(request, notify) for request in requests),
            return_exceptions=True
        )

        outcomes = []
        for request, result in zip(requests, results):
            if isinstance(result, WalletOutcome):
                outcomes.append(result)
            else:
                # _mint_for_wallet handles every Exception; this is cancellation-class
                logger.error(f"Chain for {request.wallet_address} aborted: {result!r}")
                outcomes.append(WalletOutcome(request.wallet_address, False, error=repr(result)))

        success_count = sum(1 for o in outcomes if o.success)
        batch = BatchResult(success_count=success_count, total=len(outcomes), outcomes=outcomes)

        self.stats['batches'] += 1
        self.stats['total_mints'] += batch.total
        self.stats['successful_mints'] += batch.success_count
        self.stats['failed_mints'] += batch.total - batch.success_count

        log_action('batch_mint_complete', successful=success_count, total=batch.total)

        if notify:
            await self._notify(notify, formatter.batch_summary(success_count, batch.total))

        return batch

    async def _resolve_mint_value(self) -> int:
        try:
            return await self.contract_manager.get_mint_value()
        except MintBotError as e:
            logger.warning(f"Could not read mint price, assuming free mint: {e}")
            return 0

    async def _mint_for_wallet(self, request: MintRequest, notify: Optional[Notify]) -> WalletOutcome:
        """Run one wallet's chain to its terminal outcome"""
        address = request.wallet_address

        try:
            receipt = await self.retry_handler.submit_with_retry(request)
        except Exception as e:
            tx_hash = getattr(e, 'tx_hash', None)
            logger.error(f"Mint failed for {address}: {e}")
            log_action('mint_failed', address=address, error=summarize_error(e), hash=tx_hash)

            if notify:
                await self._notify(notify, formatter.transaction_failed(e, address, tx_hash))

            return WalletOutcome(address, False, tx_hash=tx_hash, error=summarize_error(e))

        tx_hash = receipt.get('transactionHash')
        if isinstance(tx_hash, (bytes, bytearray)):
            tx_hash = Web3.to_hex(tx_hash)

        try:
            self.wallet_manager.update_last_used(address)
        except Exception as e:
            logger.warning(f"Could not record last use of {address}: {e}")

        if notify:
            await self._notify(notify, formatter.transaction_success(tx_hash, address, self.explorer_url))

        return WalletOutcome(address, True, tx_hash=tx_hash, block_number=receipt.get('blockNumber'))

    def _retry_hook(self, notify: Optional[Notify]):
        if notify is None:
            return None

        max_attempts = self.retry_handler.max_attempts

        async def on_retry(context: RetryContext, error: MintBotError, delay: float):
            await self._notify(
                notify,
                formatter.retry_notice(context.attempt_number + 1, max_attempts, error, delay)
            )

        return on_retry

    @staticmethod
    async def _notify(notify: Notify, text: str):
        """Progress messages are best effort - a chat failure must not fail a mint"""
        try:
            await notify(text)
        except Exception as e:
            logger.warning(f"Could not deliver progress message: {e}")

    def query_history(self, address: Optional[str] = None, limit: int = 10) -> List[TransactionRecord]:
        return self.history.query(address, limit)

    def get_stats(self) -> Dict:
        return {
            **self.stats,
            'success_rate': (self.stats['successful_mints'] / max(self.stats['total_mints'], 1)) * 100
        }
