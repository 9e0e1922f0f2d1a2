"""
Telegram Bot
Admin-only chat commands driving the mint engine
"""

from typing import Dict, Optional
from telegram import LinkPreviewOptions, Update
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError
from telegram.ext import Application, ApplicationBuilder, CommandHandler, ContextTypes
from loguru import logger

from blockchain.errors import MintBotError, summarize_error
from utils.logger import log_action
from utils.validation import is_valid_address

from . import formatter
from .mint_engine import MintEngine


class TelegramBot:
    """
    Command layer between the admin chat and the mint engine
    """

    def __init__(self, config: Dict, engine: MintEngine):
        """
        Initialize Telegram Bot

        Args:
            config: Bot configuration (telegram section: token, admin_id)
            engine: Mint engine (wallet / contract managers are reached through it)
        """
        self.token = config['telegram']['token']
        self.admin_id = config['telegram']['admin_id']
        self.explorer_url = config['network']['explorer_url']

        self.engine = engine
        self.wallet_manager = engine.wallet_manager
        self.contract_manager = engine.contract_manager

        if not self.token:
            raise ValueError("TELEGRAM_TOKEN must be set")

    def build_application(self) -> Application:
        application = ApplicationBuilder().token(self.token).build()

        commands = {
            'start': self.cmd_start,
            'help': self.cmd_start,
            'mint': self.cmd_mint,
            'status': self.cmd_status,
            'contracts': self.cmd_contracts,
            'contadd': self.cmd_contadd,
            'contuse': self.cmd_contuse,
            'contrem': self.cmd_contrem,
            'addwallet': self.cmd_addwallet,
            'wallets': self.cmd_wallets,
            'togglewallet': self.cmd_togglewallet,
            'removewallet': self.cmd_removewallet,
            'history': self.cmd_history,
            'wallethistory': self.cmd_wallethistory,
        }
        for name, handler in commands.items():
            application.add_handler(CommandHandler(name, handler))

        application.add_error_handler(self._on_error)
        return application

    def run(self):
        """Start long polling (blocks until stopped)"""
        logger.info("📡 Telegram bot polling started")
        self.build_application().run_polling()

    def _is_admin(self, update: Update) -> bool:
        user = update.effective_user
        return user is not None and user.id == self.admin_id

    async def send(self, context: ContextTypes.DEFAULT_TYPE, chat_id: int, text: str, markdown: bool = True):
        """Send Markdown, falling back to plain text if Telegram rejects the formatting"""
        if not markdown:
            return await context.bot.send_message(chat_id, text)

        try:
            return await context.bot.send_message(
                chat_id,
                text,
                parse_mode=ParseMode.MARKDOWN,
                link_preview_options=LinkPreviewOptions(is_disabled=True)
            )
        except BadRequest as e:
            logger.warning(f"Markdown message rejected ({e}), resending as plain text")
            return await context.bot.send_message(chat_id, formatter.strip_markdown(text))

    async def _on_error(self, update: Optional[object], context: ContextTypes.DEFAULT_TYPE):
        logger.error(f"Telegram handler error: {context.error}")

    async def cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(update):
            return
        await self.send(context, update.effective_chat.id, formatter.help_text())

    async def cmd_mint(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(update):
            return

        chat_id = update.effective_chat.id
        wallets = self.wallet_manager.get_active_wallets()

        if not wallets:
            await self.send(context, chat_id, '❌ No active wallets configured. Use /addwallet to add wallets.', markdown=False)
            return

        if not self.contract_manager.get_active_contract_address():
            await self.send(context, chat_id, '❌ No active contract configured. Use /contadd to add a contract.', markdown=False)
            return

        # Batch runs in the background so the bot keeps answering commands
        context.application.create_task(
            self._run_batch(wallets, chat_id, context),
            update=update
        )

    async def _run_batch(self, wallets, chat_id: int, context: ContextTypes.DEFAULT_TYPE):
        async def notify(text: str):
            await self.send(context, chat_id, text)

        try:
            await self.engine.mint_all(wallets, request_ref=chat_id, notify=notify)
        except MintBotError as e:
            logger.error(f"Batch mint could not start: {e}")
            await self.send(context, chat_id, f"❌ Batch mint could not start: {summarize_error(e)}", markdown=False)

    async def cmd_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(update):
            return

        chat_id = update.effective_chat.id
        address = self.contract_manager.get_active_contract_address()

        if not address:
            await self.send(context, chat_id, '❌ No active contract configured. Use /contadd to add a contract.', markdown=False)
            return

        try:
            total, maximum = await self.contract_manager.get_supply_status()
        except MintBotError as e:
            logger.error(f"Status check error: {e}")
            await self.send(context, chat_id, f"❌ Error fetching supply: {summarize_error(e)}", markdown=False)
            return

        await self.send(context, chat_id, formatter.supply_status(total, maximum, address))

    async def cmd_contracts(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(update):
            return
        await self.send(context, update.effective_chat.id, formatter.contract_list(self.contract_manager.get_all_contracts()))

    async def cmd_contadd(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(update):
            return

        chat_id = update.effective_chat.id
        if not context.args:
            await self.send(context, chat_id, 'Usage: /contadd <address> [label]', markdown=False)
            return

        address = context.args[0].strip()
        label = ' '.join(context.args[1:]).strip()

        if not is_valid_address(address):
            await self.send(context, chat_id, '❌ Invalid contract address format', markdown=False)
            return

        await self.send(context, chat_id, '⏳ Validating contract address...', markdown=False)

        try:
            validation = await self.contract_manager.validate_contract(address)
            if not validation['valid']:
                reasons = '; '.join(validation['errors']) or 'required methods not found'
                await self.send(context, chat_id, f"❌ Invalid contract: {summarize_error(Exception(reasons))}", markdown=False)
                return

            contract = self.contract_manager.add_contract(address, label, methods=validation['methods'])
        except MintBotError as e:
            await self.send(context, chat_id, f"❌ Error adding contract: {summarize_error(e)}", markdown=False)
            return

        await self.send(context, chat_id, formatter.contract_added(contract))

    async def cmd_contuse(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(update):
            return

        chat_id = update.effective_chat.id
        if not context.args:
            await self.send(context, chat_id, 'Usage: /contuse <address>', markdown=False)
            return

        try:
            contract = self.contract_manager.activate_contract(context.args[0])
        except MintBotError as e:
            await self.send(context, chat_id, f"❌ Error activating contract: {summarize_error(e)}", markdown=False)
            return

        await self.send(context, chat_id, formatter.contract_activated(contract))

    async def cmd_contrem(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(update):
            return

        chat_id = update.effective_chat.id
        if not context.args:
            await self.send(context, chat_id, 'Usage: /contrem <address>', markdown=False)
            return

        address = context.args[0].strip()
        try:
            removed = self.contract_manager.remove_contract(address)
        except MintBotError as e:
            await self.send(context, chat_id, f"❌ Error removing contract: {summarize_error(e)}", markdown=False)
            return

        if removed:
            await self.send(context, chat_id, formatter.contract_removed(address))
        else:
            await self.send(context, chat_id, '❌ Contract not found', markdown=False)

    async def cmd_addwallet(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(update):
            return

        chat_id = update.effective_chat.id

        # The command text holds a private key - drop it from the chat
        try:
            await update.effective_message.delete()
        except TelegramError as e:
            logger.warning(f"Could not delete /addwallet message: {e}")

        if not context.args:
            await self.send(context, chat_id, 'Usage: /addwallet <private_key> [label]', markdown=False)
            return

        try:
            address = self.wallet_manager.add_wallet(context.args[0], ' '.join(context.args[1:]))
        except MintBotError as e:
            await self.send(context, chat_id, f"❌ Error adding wallet: {summarize_error(e)}", markdown=False)
            return

        await self.send(context, chat_id, f"✅ Wallet added successfully!\nAddress: {address}", markdown=False)

    async def cmd_wallets(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(update):
            return
        await self.send(context, update.effective_chat.id, formatter.wallet_list(self.wallet_manager.get_all_wallets()))

    async def cmd_togglewallet(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(update):
            return

        chat_id = update.effective_chat.id
        if not context.args:
            await self.send(context, chat_id, 'Usage: /togglewallet <address>', markdown=False)
            return

        address = context.args[0].strip()
        new_status = self.wallet_manager.toggle_wallet(address)

        if new_status is None:
            await self.send(context, chat_id, '❌ Wallet not found', markdown=False)
        else:
            await self.send(context, chat_id, f"✅ Wallet {'activated' if new_status else 'deactivated'}: {address}", markdown=False)

    async def cmd_removewallet(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(update):
            return

        chat_id = update.effective_chat.id
        if not context.args:
            await self.send(context, chat_id, 'Usage: /removewallet <address>', markdown=False)
            return

        address = context.args[0].strip()
        if self.wallet_manager.remove_wallet(address):
            await self.send(context, chat_id, f"✅ Wallet removed: {address}", markdown=False)
        else:
            await self.send(context, chat_id, '❌ Wallet not found', markdown=False)

    async def cmd_history(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(update):
            return

        limit = 5
        if context.args and context.args[0].isdigit():
            limit = int(context.args[0])

        records = self.engine.query_history(limit=limit)
        await self.send(context, update.effective_chat.id, formatter.history(records, self.explorer_url))

    async def cmd_wallethistory(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self._is_admin(update):
            return

        chat_id = update.effective_chat.id
        if not context.args or not is_valid_address(context.args[0]):
            await self.send(context, chat_id, '❌ Invalid wallet address', markdown=False)
            return

        address = context.args[0].strip()
        records = self.engine.query_history(address=address, limit=10)

        if not records:
            await self.send(context, chat_id, f"📜 No transaction history for {formatter.code(address)}")
            return

        log_action('wallet_history_viewed', address=address)
        title = f"📜 *Transaction History for*\n{formatter.code(address)}"
        await self.send(context, chat_id, formatter.history(records, self.explorer_url, title=title))
