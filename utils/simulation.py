"""
Transaction Simulator
Dry-runs mint calls with eth_call before anything is signed
"""

from typing import Dict
from loguru import logger

from blockchain.errors import FatalContractError, FATAL_PATTERNS, MintBotError, classify_error


class TransactionSimulator:
    """
    Simulates transactions to catch hopeless mints early
    Uses eth_call (free) against the pending state
    """

    def __init__(self, rpc_manager):
        """
        Initialize Transaction Simulator

        Args:
            rpc_manager: RPC client exposing call()
        """
        self.rpc_manager = rpc_manager

        logger.info("Transaction Simulator initialized")

    async def simulate_transaction(self, tx: Dict) -> bool:
        """
        Simulate transaction execution

        Args:
            tx: Unsigned transaction dict

        Returns:
            True if simulation succeeds

        Raises:
            FatalContractError: Revert reason says the mint can never succeed
            MintBotError: Any other failure, classified (retryable)
        """
        call_tx = {k: tx[k] for k in ('from', 'to', 'data', 'value', 'gas') if k in tx}

        try:
            await self.rpc_manager.call(call_tx)
        except MintBotError:
            raise
        except Exception as e:
            error_str = str(e).lower()

            if any(pattern in error_str for pattern in FATAL_PATTERNS):
                logger.warning(f"Simulation hit a fatal revert: {e}")
                raise FatalContractError(str(e)) from e

            logger.warning(f"Simulation failed: {e}")
            raise classify_error(e) from e

        logger.debug(f"Simulation successful for {tx.get('from')}")
        return True
