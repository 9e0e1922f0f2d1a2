"""
Mint Bot Core Package
Handles the mint engine, wallet storage and the Telegram command layer
"""

from .wallet_manager import WalletManager
from .mint_engine import MintEngine
from .telegram_bot import TelegramBot

__all__ = ['WalletManager', 'MintEngine', 'TelegramBot']
