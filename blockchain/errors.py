"""
Mint Bot Errors
Error taxonomy for transaction submission and retry routing
"""

import re
from typing import Optional
from web3.exceptions import TimeExhausted


# Revert / RPC messages that mean retrying can never succeed
FATAL_PATTERNS = (
    'max supply',
    'maximum supply',
    'exceeds supply',
    'exceed supply',
    'supply cap',
    'sold out',
    'minted out',
    'function selector was not recognized',
    'function does not exist',
    'no fallback',
    'mint method not found',
)

# Chain rejected the nonce - local nonce cache is out of sync
NONCE_PATTERNS = (
    'nonce',
    'underpriced',
    'already known',
)

NETWORK_PATTERNS = (
    'connection refused',
    'connection reset',
    'cannot connect',
    'could not connect',
    'service unavailable',
    'bad gateway',
    'too many requests',
)

# Status codes only as whole numbers, never inside hashes or addresses
HTTP_STATUS_RE = re.compile(r'\b(?:429|502|503)\b')


class MintBotError(Exception):
    """Base error for the mint engine"""

    retryable = True

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class ValidationError(MintBotError):
    """Malformed address or input, rejected before any chain interaction"""

    retryable = False


class NetworkError(MintBotError):
    """RPC endpoint unreachable or returned a malformed response"""


class BroadcastError(MintBotError):
    """Broadcast rejected by the node or transaction reverted"""


class NonceConflictError(BroadcastError):
    """Nonce reused or replacement underpriced"""


class TransactionTimeoutError(MintBotError, TimeoutError):
    """No acknowledgment within the submission timeout"""


class FatalContractError(MintBotError):
    """Supply cap reached or required contract method missing"""

    retryable = False


def _matches(message: str, patterns) -> bool:
    return any(pattern in message for pattern in patterns)


def classify_error(error: Exception, tx_hash: Optional[str] = None) -> MintBotError:
    """
    Map an arbitrary exception onto the mint error taxonomy

    Args:
        error: Exception raised by web3, the transport or our own code
        tx_hash: Transaction hash, if one was computed

    Returns:
        MintBotError subclass instance (the original is not modified)
    """
    if isinstance(error, MintBotError):
        if tx_hash and not error.tx_hash:
            error.tx_hash = tx_hash
        return error

    message = str(error) or error.__class__.__name__
    lowered = message.lower()

    if isinstance(error, (TimeExhausted, TimeoutError)):
        return TransactionTimeoutError(message, tx_hash=tx_hash)

    # Revert reasons beat everything else: they are contract-level facts
    if _matches(lowered, FATAL_PATTERNS):
        return FatalContractError(message, tx_hash=tx_hash)

    if _matches(lowered, NONCE_PATTERNS):
        return NonceConflictError(message, tx_hash=tx_hash)

    if (isinstance(error, (ConnectionError, OSError))
            or _matches(lowered, NETWORK_PATTERNS)
            or HTTP_STATUS_RE.search(lowered)):
        return NetworkError(message, tx_hash=tx_hash)

    return BroadcastError(message, tx_hash=tx_hash)


def summarize_error(error: Exception, limit: int = 100) -> str:
    """Bounded, single-line error text for chat messages"""
    message = ' '.join((str(error) or error.__class__.__name__).split())
    if len(message) > limit:
        return message[:limit - 3] + '...'
    return message
