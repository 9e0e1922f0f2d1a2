"""
Transaction Builder
Constructs unsigned mint transactions
"""

from typing import Dict, Union
from web3 import Web3
from eth_abi import encode
from loguru import logger


class TransactionBuilder:
    """
    Builds legacy (gasPrice) transactions for contract mint calls
    """

    def __init__(self, chain_id: int):
        """
        Initialize Transaction Builder

        Args:
            chain_id: Target chain id (replay protection)
        """
        self.chain_id = chain_id

    def build_call(
        self,
        from_address: str,
        contract_address: str,
        call_data: Union[bytes, str],
        gas_limit: int,
        value: int = 0
    ) -> Dict:
        """eth_call payload for a mint (no nonce, no gas price)"""
        if isinstance(call_data, (bytes, bytearray)):
            call_data = Web3.to_hex(call_data)

        return {
            'from': Web3.to_checksum_address(from_address),
            'to': Web3.to_checksum_address(contract_address),
            'value': int(value),
            'gas': int(gas_limit),
            'data': call_data
        }

    def build_mint_tx(
        self,
        from_address: str,
        contract_address: str,
        call_data: Union[bytes, str],
        nonce: int,
        gas_price: int,
        gas_limit: int,
        value: int = 0
    ) -> Dict:
        """
        Build transaction for a mint call

        Args:
            from_address: Minting wallet
            contract_address: NFT contract
            call_data: ABI-encoded mint call
            nonce: Allocated nonce
            gas_price: Gas price in wei
            gas_limit: Gas limit
            value: Payable amount in wei

        Returns:
            Transaction dict
        """
        tx = self.build_call(from_address, contract_address, call_data, gas_limit, value)
        tx.update({
            'gasPrice': int(gas_price),
            'nonce': int(nonce),
            'chainId': self.chain_id
        })

        logger.debug(f"Built mint tx from {tx['from']} nonce {nonce}")
        return tx

    @staticmethod
    def encode_function_call(signature: str, arg_types=None, args=None) -> bytes:
        """
        Encode selector + arguments

        Args:
            signature: Function name with types, e.g. "mint(uint256)"
            arg_types: ABI types of the arguments
            args: Argument values

        Returns:
            Encoded call data
        """
        selector = Web3.keccak(text=signature)[:4]

        if not arg_types:
            return bytes(selector)

        return bytes(selector) + encode(list(arg_types), list(args or []))
