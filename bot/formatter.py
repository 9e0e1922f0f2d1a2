"""
Telegram Formatter
Markdown message builders for chat replies
"""

import re
from datetime import datetime
from typing import Dict, List, Optional

from blockchain.errors import summarize_error
from utils.tx_history import TransactionRecord, TxStatus


STATUS_EMOJI = {
    TxStatus.CONFIRMED: '✅',
    TxStatus.PENDING: '⏳',
    TxStatus.FAILED: '❌',
}


def code(text) -> str:
    return f"`{text}`"


def short(address: Optional[str], length: int = 10) -> str:
    if not address:
        return 'unknown'
    return address[:length] + '...'


def _when(timestamp: Optional[float]) -> str:
    if not timestamp:
        return 'Never'
    return datetime.fromtimestamp(timestamp).strftime('%Y-%m-%d %H:%M:%S')


def strip_markdown(text: str) -> str:
    """Plain-text fallback when Telegram rejects the Markdown"""
    text = re.sub(r'\[([^\]]+)\]\([^)]+\)', r'\1', text)
    return text.replace('*', '').replace('`', '').replace('\n\n', '\n')


def transaction_success(tx_hash: str, address: str, explorer_url: str) -> str:
    return (
        f"✅ *Mint Successful!*\n"
        f"From: {code(short(address))}\n"
        f"[View Transaction]({explorer_url}{tx_hash})"
    )


def transaction_failed(error: Exception, address: str, tx_hash: Optional[str] = None) -> str:
    """Failure message with bounded error text and the tx hash when known"""
    message = (
        f"❌ *Mint Failed*\n"
        f"From: {code(short(address))}\n"
        f"Error: {summarize_error(error)}"
    )
    if tx_hash:
        message += f"\nTx: {code(tx_hash)}"
    return message


def retry_notice(attempt: int, max_attempts: int, error: Exception, delay: float) -> str:
    return (
        f"🔄 Retrying ({attempt}/{max_attempts - 1}) in {delay:.0f}s...\n"
        f"Error: {summarize_error(error)}"
    )


def batch_started(wallet_count: int, contract_address: str) -> str:
    return f"🚀 Starting batch mint with {wallet_count} wallets on contract {short(contract_address, 8)}"


def batch_summary(success_count: int, total: int) -> str:
    if total and success_count == total:
        headline = "🎉 Batch mint complete!"
    elif success_count == 0:
        headline = "❌ Batch mint failed"
    else:
        headline = "⚠️ Batch mint partially complete"
    return f"{headline}\n✅ {success_count}/{total} successful\nCheck /history for details"


def supply_status(total: int, maximum: int, contract_address: str) -> str:
    percentage = (total / maximum * 100) if maximum else 0
    return (
        f"📊 *NFT Supply Status*\n"
        f"Contract: {code(contract_address)}\n"
        f"Current Supply: {code(total)}\n"
        f"Max Supply: {code(maximum)}\n"
        f"Progress: {code(f'{percentage:.2f}%')}"
    )


def wallet_list(wallets: List[Dict]) -> str:
    if not wallets:
        return '📝 No wallets configured'

    message = f"📝 *Wallet List* ({len(wallets)} wallets)\n\n"
    for index, wallet in enumerate(wallets, 1):
        message += (
            f"*{index}. {wallet.get('label') or 'Wallet'}*\n"
            f"Address: {code(wallet['address'])}\n"
            f"Status: {'✅ Active' if wallet['active'] else '❌ Inactive'}\n"
            f"Last Used: {_when(wallet.get('last_used'))}\n\n"
        )
    return message


def contract_list(contracts: List[Dict]) -> str:
    if not contracts:
        return '📝 No contracts configured'

    message = f"📝 *Contract List* ({len(contracts)} contracts)\n\n"
    for index, contract in enumerate(contracts, 1):
        message += (
            f"*{index}. {contract.get('label') or 'Contract'}*\n"
            f"Address: {code(contract['address'])}\n"
            f"Status: {'✅ Active' if contract['active'] else '❌ Inactive'}\n"
            f"Added: {_when(contract.get('added_at'))}\n\n"
        )
    return message


def contract_added(contract: Dict) -> str:
    return (
        f"✅ *Contract Added*\n"
        f"Address: {code(contract['address'])}\n"
        f"Label: {contract['label']}\n\n"
        f"Use /contuse {contract['address']} to activate this contract."
    )


def contract_activated(contract: Dict) -> str:
    return (
        f"✅ *Active Contract Changed*\n"
        f"Now using: {code(contract['label'])}\n"
        f"Address: {code(contract['address'])}"
    )


def contract_removed(address: str) -> str:
    return f"✅ *Contract Removed*\nAddress: {code(address)}"


def history(records: List[TransactionRecord], explorer_url: str, title: str = "📜 *Recent Transactions*") -> str:
    if not records:
        return '📜 No transaction history available'

    message = f"{title}\n\n"
    for index, record in enumerate(records, 1):
        message += (
            f"*{index}. {STATUS_EMOJI[record.status]} {record.status.value.upper()}*\n"
            f"Time: {_when(record.submitted_at)}\n"
            f"From: {code(short(record.from_address))}\n"
            f"Tx: [{short(record.hash)}]({explorer_url}{record.hash})\n"
        )
        if record.status == TxStatus.FAILED and record.error:
            message += f"Error: {summarize_error(Exception(record.error), 60)}\n"
        message += "\n"
    return message


def help_text() -> str:
    return (
        "🤖 *NFT Mint Bot*\n\n"
        "*Minting Commands:*\n"
        "/mint - Start minting with all active wallets\n"
        "/status - Check NFT contract supply status\n\n"
        "*Contract Management:*\n"
        "/contadd `<address>` `[label]` - Add a new contract address\n"
        "/contuse `<address>` - Switch to a different contract\n"
        "/contrem `<address>` - Remove a contract address\n"
        "/contracts - List all saved contracts\n\n"
        "*Wallet Management:*\n"
        "/addwallet `<private_key>` - Add a new wallet\n"
        "/wallets - List all configured wallets\n"
        "/togglewallet `<address>` - Enable/disable a wallet\n"
        "/removewallet `<address>` - Remove a wallet\n\n"
        "*History:*\n"
        "/history `[count]` - Show recent transaction history\n"
        "/wallethistory `<address>` - Show history for a specific wallet"
    )
