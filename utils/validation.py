"""
Input Validation
Address and private key checks done before touching the chain
"""

import re
from eth_account import Account
from web3 import Web3

from blockchain.errors import ValidationError


PRIVATE_KEY_RE = re.compile(r'^0x[0-9a-fA-F]{64}$')


def normalize_private_key(key: str) -> str:
    key = key.strip()
    return key if key.startswith('0x') else '0x' + key


def is_valid_private_key(key: str) -> bool:
    """Check 32-byte hex key that maps to an account"""
    if not isinstance(key, str):
        return False

    key = normalize_private_key(key)
    if not PRIVATE_KEY_RE.match(key):
        return False

    try:
        return bool(Account.from_key(key).address)
    except Exception:
        # eth_keys rejects out-of-range keys with its own ValidationError
        return False


def is_valid_address(address: str) -> bool:
    return isinstance(address, str) and Web3.is_address(address.strip())


def require_address(address: str) -> str:
    """
    Validate and checksum an address

    Raises:
        ValidationError: Address is malformed
    """
    if not is_valid_address(address):
        raise ValidationError(f"Invalid address: {address}")
    return Web3.to_checksum_address(address.strip())
