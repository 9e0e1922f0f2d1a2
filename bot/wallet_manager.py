"""
Wallet Manager
Encrypted storage and signing for the pool of minting wallets
"""

import json
import os
import time
from typing import Dict, List, Optional
from eth_account import Account
from eth_account.signers.local import LocalAccount
from loguru import logger

from blockchain.errors import ValidationError
from utils.logger import log_action
from utils.validation import is_valid_private_key, normalize_private_key


class WalletManager:
    """
    Manages the minting wallets

    Private keys are stored as keystore v3 files encrypted with the master
    password. Callers only ever see addresses and signed transactions.
    """

    def __init__(
        self,
        master_password: str,
        wallets_file: str = "data/secure_wallets.json",
        kdf_iterations: int = 100000
    ):
        """
        Initialize Wallet Manager

        Args:
            master_password: Password protecting every stored key
            wallets_file: JSON file holding the encrypted wallets
            kdf_iterations: PBKDF2 iterations for new keystores
        """
        if not master_password:
            raise ValueError("MASTER_PASSWORD must be set")

        self._password = master_password
        self.wallets_file = wallets_file
        self.kdf_iterations = kdf_iterations

        self.wallets: List[Dict] = self._load_wallets()

        # Decrypted accounts, filled lazily on first signature
        self._accounts: Dict[str, LocalAccount] = {}

        logger.info(f"Wallet Manager initialized with {len(self.wallets)} wallets")

    def _load_wallets(self) -> List[Dict]:
        if not os.path.exists(self.wallets_file):
            return []

        try:
            with open(self.wallets_file, 'r') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading wallets: {e}")
            return []

    def _save_wallets(self):
        os.makedirs(os.path.dirname(os.path.abspath(self.wallets_file)), exist_ok=True)
        tmp_path = self.wallets_file + '.tmp'
        with open(tmp_path, 'w') as f:
            json.dump(self.wallets, f, indent=2)
        os.replace(tmp_path, self.wallets_file)

    def _find(self, address: str) -> Optional[Dict]:
        wanted = address.strip().lower()
        for wallet in self.wallets:
            if wallet['address'].lower() == wanted:
                return wallet
        return None

    @staticmethod
    def _public_view(wallet: Dict) -> Dict:
        return {k: v for k, v in wallet.items() if k != 'keystore'}

    def add_wallet(self, private_key: str, label: str = '') -> str:
        """
        Add a wallet

        Args:
            private_key: Hex private key (0x prefix optional)
            label: Display label

        Returns:
            Checksum address of the new wallet
        """
        if not is_valid_private_key(private_key):
            raise ValidationError("Invalid private key format")

        key = normalize_private_key(private_key)
        account = Account.from_key(key)

        if self._find(account.address):
            raise ValidationError("Wallet already exists")

        keystore = Account.encrypt(key, self._password, kdf='pbkdf2', iterations=self.kdf_iterations)

        self.wallets.append({
            'address': account.address,
            'keystore': keystore,
            'label': label or f"Wallet {len(self.wallets) + 1}",
            'active': True,
            'last_used': None,
            'added_at': time.time()
        })
        self._save_wallets()
        self._accounts[account.address] = account

        log_action('wallet_added', address=account.address)
        return account.address

    def get_wallet(self, address: str) -> Optional[Dict]:
        wallet = self._find(address)
        return self._public_view(wallet) if wallet else None

    def get_all_wallets(self) -> List[Dict]:
        return [self._public_view(w) for w in self.wallets]

    def get_active_wallets(self) -> List[Dict]:
        return [self._public_view(w) for w in self.wallets if w['active']]

    def toggle_wallet(self, address: str) -> Optional[bool]:
        """Flip active flag; returns new state or None if unknown"""
        wallet = self._find(address)
        if wallet is None:
            return None

        wallet['active'] = not wallet['active']
        self._save_wallets()

        log_action('wallet_toggled', address=wallet['address'], active=wallet['active'])
        return wallet['active']

    def remove_wallet(self, address: str) -> bool:
        wallet = self._find(address)
        if wallet is None:
            return False

        self.wallets.remove(wallet)
        self._accounts.pop(wallet['address'], None)
        self._save_wallets()

        log_action('wallet_removed', address=wallet['address'])
        return True

    def update_last_used(self, address: str, timestamp: Optional[float] = None):
        wallet = self._find(address)
        if wallet is not None:
            wallet['last_used'] = timestamp or time.time()
            self._save_wallets()

    def _get_account(self, address: str) -> LocalAccount:
        wallet = self._find(address)
        if wallet is None:
            raise ValidationError(f"Wallet {address} not found")

        account = self._accounts.get(wallet['address'])
        if account is None:
            try:
                key = Account.decrypt(wallet['keystore'], self._password)
            except ValueError as e:
                raise ValidationError(f"Could not decrypt wallet {wallet['address']}: {e}") from e
            account = Account.from_key(key)
            self._accounts[wallet['address']] = account

        return account

    def sign_transaction(self, transaction: Dict, address: str):
        """
        Sign a transaction with the wallet that owns `address`

        Args:
            transaction: Transaction dict
            address: Sending wallet

        Returns:
            SignedTransaction (raw_transaction, hash)
        """
        wallet = self._find(address)
        if wallet is None or not wallet['active']:
            raise ValidationError(f"Wallet {address} not found or inactive")

        account = self._get_account(address)

        try:
            return account.sign_transaction(transaction)
        except Exception as e:
            logger.error(f"Error signing transaction for {address}: {e}")
            raise ValidationError(f"Could not sign transaction: {e}") from e
