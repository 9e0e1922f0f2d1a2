"""
Blockchain Interaction Package
Handles nonce allocation, transaction building, submission and retries
"""

from .errors import MintBotError
from .nonce_manager import NonceManager
from .transaction_builder import TransactionBuilder
from .submitter import TransactionSubmitter
from .retry_handler import RetryHandler
from .contract_manager import ContractManager

__all__ = [
    'MintBotError',
    'NonceManager',
    'TransactionBuilder',
    'TransactionSubmitter',
    'RetryHandler',
    'ContractManager'
]
