"""
NFT Mint Bot - Main Entry Point
Telegram-driven batch minter
"""

import sys
from loguru import logger

from blockchain.contract_manager import ContractManager
from blockchain.errors import MintBotError
from bot.mint_engine import MintEngine
from bot.telegram_bot import TelegramBot
from bot.wallet_manager import WalletManager
from utils.config_loader import load_config
from utils.logger import setup_logging
from utils.rpc_manager import RPCManager
from utils.tx_history import TransactionHistory


class MintBotRunner:
    """Wires configuration, storage and the mint engine behind the Telegram bot"""

    def __init__(self, config_path: str = "config/bot_config.json"):
        self.config = load_config(config_path)
        setup_logging(self.config)

        self.engine = None
        self.bot = None

    def _ensure_default_contract(self, contract_manager: ContractManager):
        """Seed the saved contract list with the configured default"""
        if contract_manager.get_all_contracts():
            return

        default = self.config['default_contract']
        if not default.get('address'):
            return

        try:
            contract_manager.add_contract(default['address'], default.get('label', ''))
            contract_manager.activate_contract(default['address'])
            logger.info(f"Default contract registered: {default['address']}")
        except MintBotError as e:
            logger.warning(f"Could not register default contract: {e}")

    def build(self):
        config = self.config
        execution = config['execution']
        storage = config['storage']

        rpc_manager = RPCManager(
            config['network']['rpc_url'],
            receipt_timeout=execution['tx_timeout_seconds'],
            poll_latency=execution['receipt_poll_interval_seconds']
        )

        wallet_manager = WalletManager(
            config['security']['master_password'],
            wallets_file=storage['wallets_file'],
            kdf_iterations=storage['keystore_iterations']
        )

        contract_manager = ContractManager(rpc_manager, contracts_file=storage['contracts_file'])
        self._ensure_default_contract(contract_manager)

        history = TransactionHistory(
            history_file=config['history']['file'],
            max_records=config['history']['max_records']
        )

        self.engine = MintEngine(config, rpc_manager, wallet_manager, contract_manager, history)
        self.bot = TelegramBot(config, self.engine)

    def run(self):
        logger.info("=" * 70)
        logger.info("🚀 NFT Mint Bot Starting...")
        logger.info("=" * 70)

        self.build()
        self.bot.run()

        stats = self.engine.get_stats()
        logger.info("📊 Final Statistics:")
        logger.info(f"  Batches: {stats['batches']}")
        logger.info(f"  Total Mints: {stats['total_mints']}")
        logger.info(f"  Successful: {stats['successful_mints']}")
        logger.info(f"  Failed: {stats['failed_mints']}")
        logger.info(f"  Success Rate: {stats['success_rate']:.1f}%")


def main():
    """Main entry point"""
    MintBotRunner().run()


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.exception(f"Fatal error in main: {e}")
        sys.exit(1)
    finally:
        logger.info("NFT Mint Bot terminated")
