"""
Utilities Package
RPC access, transaction history, configuration and logging
"""

from .tx_history import TransactionHistory
from .config_loader import load_config
from .logger import setup_logging, log_action
from .rpc_manager import RPCManager
from .simulation import TransactionSimulator

__all__ = [
    'TransactionHistory',
    'load_config',
    'setup_logging',
    'log_action',
    'RPCManager',
    'TransactionSimulator'
]
