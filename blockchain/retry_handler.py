"""
Retry Handler
Bounded exponential-backoff retries around transaction submission
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional
from loguru import logger

from utils.logger import log_action
from .errors import MintBotError, NonceConflictError, classify_error


@dataclass
class RetryContext:
    """State of one logical mint request across its attempts"""
    wallet_address: str
    request_ref: Any = None
    attempt_number: int = 0
    last_tx_hash: Optional[str] = None


@dataclass
class MintRequest:
    """Everything needed to (re)build the same mint for one wallet"""
    wallet_address: str
    contract_address: str
    call_data: bytes
    value: int = 0
    request_ref: Any = None
    on_retry: Optional[Callable[[RetryContext, MintBotError, float], Awaitable[None]]] = None


class RetryHandler:
    """
    Sole decision point for retry vs. surface

    Fatal errors (supply exhausted, missing mint method, bad input) are
    raised on the spot. Everything else is retried with delay
    base_delay * 2**attempt, each attempt taking a fresh nonce and a fresh
    signature.
    """

    def __init__(
        self,
        submitter,
        nonce_manager,
        tx_builder,
        signer,
        rpc_manager,
        config: Dict,
        simulator=None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize Retry Handler

        Args:
            submitter: TransactionSubmitter
            nonce_manager: NonceManager
            tx_builder: TransactionBuilder
            signer: Object exposing sign_transaction(tx, address)
            rpc_manager: RPC client (network gas price)
            config: Bot configuration
            simulator: Optional TransactionSimulator run before signing
            sleep: Async delay function (injected in tests)
        """
        self.submitter = submitter
        self.nonce_manager = nonce_manager
        self.tx_builder = tx_builder
        self.signer = signer
        self.rpc_manager = rpc_manager
        self.simulator = simulator
        self._sleep = sleep

        execution = config['execution']
        gas = config['gas_settings']

        self.max_attempts = int(execution['max_attempts'])
        self.base_delay = float(execution['retry_base_delay_seconds'])
        self.tx_timeout = float(execution['tx_timeout_seconds'])

        self.gas_price = int(gas['gas_price_wei'])
        self.gas_limit = int(gas['gas_limit'])
        self.use_network_gas_price = bool(gas.get('use_network_gas_price', False))

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt `attempt` (0-indexed)"""
        return self.base_delay * (2 ** attempt)

    async def _resolve_gas_price(self) -> int:
        if self.use_network_gas_price:
            return await self.rpc_manager.get_gas_price()
        return self.gas_price

    async def _attempt(self, request: MintRequest, context: RetryContext) -> Dict:
        """One full gas -> simulate -> allocate -> sign -> submit pass"""
        gas_price = await self._resolve_gas_price()

        if self.simulator is not None:
            await self.simulator.simulate_transaction(self.tx_builder.build_call(
                from_address=request.wallet_address,
                contract_address=request.contract_address,
                call_data=request.call_data,
                gas_limit=self.gas_limit,
                value=request.value
            ))

        # Nothing may fail between allocation and broadcast without giving the nonce back
        nonce = await self.nonce_manager.allocate(request.wallet_address)

        try:
            tx = self.tx_builder.build_mint_tx(
                from_address=request.wallet_address,
                contract_address=request.contract_address,
                call_data=request.call_data,
                nonce=nonce,
                gas_price=gas_price,
                gas_limit=self.gas_limit,
                value=request.value
            )
            signed = self.signer.sign_transaction(tx, request.wallet_address)
        except Exception:
            await self.nonce_manager.release(request.wallet_address, nonce)
            raise

        context.last_tx_hash = self.submitter.compute_hash(signed.raw_transaction)

        return await self.submitter.submit(
            signed.raw_transaction,
            request.wallet_address,
            request.contract_address,
            gas_price,
            self.gas_limit,
            timeout=self.tx_timeout
        )

    async def submit_with_retry(self, request: MintRequest, max_attempts: Optional[int] = None) -> Dict:
        """
        Submit a mint, retrying retryable failures

        Args:
            request: Mint request for one wallet
            max_attempts: Override of the configured attempt bound

        Returns:
            Receipt of the successful attempt

        Raises:
            MintBotError: Fatal error, or the last error once attempts run out
        """
        max_attempts = self.max_attempts if max_attempts is None else max_attempts
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        context = RetryContext(
            wallet_address=request.wallet_address,
            request_ref=request.request_ref
        )
        last_error: Optional[MintBotError] = None

        for attempt in range(max_attempts):
            context.attempt_number = attempt
            context.last_tx_hash = None

            log_action('mint_attempt', address=request.wallet_address,
                       attempt=attempt + 1, contract=request.contract_address)

            try:
                return await self._attempt(request, context)
            except Exception as e:
                error = classify_error(e, tx_hash=context.last_tx_hash)
                if error is not e:
                    error.__cause__ = e

            last_error = error

            if not error.retryable:
                logger.error(f"Fatal error for {request.wallet_address}, not retrying: {error}")
                raise error

            if isinstance(error, NonceConflictError):
                await self.nonce_manager.invalidate(request.wallet_address)

            if attempt + 1 >= max_attempts:
                break

            delay = self.backoff_delay(attempt)
            logger.warning(
                f"Attempt {attempt + 1}/{max_attempts} for {request.wallet_address} failed "
                f"({error.__class__.__name__}: {error}) - retrying in {delay:.1f}s"
            )

            if request.on_retry is not None:
                await request.on_retry(context, error, delay)

            await self._sleep(delay)

        logger.error(f"Giving up on {request.wallet_address} after {max_attempts} attempts: {last_error}")
        raise last_error
