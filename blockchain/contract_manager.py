"""
Contract Manager
Saved NFT contracts, active contract selection and mint call data
"""

import json
import os
import time
from typing import Dict, List, Optional, Tuple
from web3 import Web3
from eth_abi import decode
from loguru import logger

from utils.logger import log_action
from utils.validation import require_address
from .errors import FatalContractError, MintBotError, ValidationError, classify_error


DEFAULT_METHODS = {
    'mint': 'mint',
    'totalSupply': 'totalSupply',
    'maxSupply': 'MAX_SUPPLY'
}

# Getter names probed when a contract is validated
SUPPLY_CANDIDATES = ['totalSupply', 'totalMinted', 'supply', 'tokenCount']
MAX_SUPPLY_CANDIDATES = ['MAX_SUPPLY', 'maxSupply', 'MAX_TOKENS', 'maxTokens', 'cap']
MINT_CANDIDATES = ['mint', 'publicMint', 'mintPublic', 'mintToken', 'buyToken']
PRICE_CANDIDATES = ['mintPrice', 'price', 'MINT_PRICE', 'cost', 'mintCost']


def selector(method_name: str) -> bytes:
    """4-byte selector of a no-argument function"""
    return bytes(Web3.keccak(text=f"{method_name}()")[:4])


class ContractManager:
    """
    Manages the saved contract list and supplies mint call data

    Exactly one saved contract is active at a time; it is the target of
    every batch mint.
    """

    def __init__(self, rpc_manager, contracts_file: str = "data/saved_contracts.json"):
        """
        Initialize Contract Manager

        Args:
            rpc_manager: RPC client exposing call() and get_code()
            contracts_file: JSON file holding saved contracts
        """
        self.rpc_manager = rpc_manager
        self.contracts_file = contracts_file
        self.contracts: List[Dict] = self._load_contracts()

        self._initialize_active_contract()

        logger.info(f"Contract Manager initialized with {len(self.contracts)} contracts")

    def _load_contracts(self) -> List[Dict]:
        if not os.path.exists(self.contracts_file):
            return []

        try:
            with open(self.contracts_file, 'r') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading contracts: {e}")
            return []

    def _save_contracts(self):
        os.makedirs(os.path.dirname(os.path.abspath(self.contracts_file)), exist_ok=True)
        tmp_path = self.contracts_file + '.tmp'
        with open(tmp_path, 'w') as f:
            json.dump(self.contracts, f, indent=2)
        os.replace(tmp_path, self.contracts_file)

    def _initialize_active_contract(self):
        """Make the first saved contract active if none is"""
        if self.contracts and not any(c['active'] for c in self.contracts):
            self.contracts[0]['active'] = True
            self._save_contracts()

    def _find(self, address: str) -> Optional[Dict]:
        wanted = address.strip().lower()
        for contract in self.contracts:
            if contract['address'].lower() == wanted:
                return contract
        return None

    def get_active_contract(self) -> Optional[Dict]:
        for contract in self.contracts:
            if contract['active']:
                return contract
        return None

    def get_active_contract_address(self) -> Optional[str]:
        active = self.get_active_contract()
        return active['address'] if active else None

    def get_all_contracts(self) -> List[Dict]:
        return list(self.contracts)

    def add_contract(self, address: str, label: str = '', methods: Optional[Dict] = None) -> Dict:
        """
        Save a contract (inactive until activated)

        Args:
            address: Contract address
            label: Display label
            methods: Method names override (mint / totalSupply / maxSupply)

        Returns:
            Saved contract entry
        """
        address = require_address(address)

        if self._find(address):
            raise ValidationError("Contract already exists")

        contract = {
            'address': address,
            'label': label or f"Contract {len(self.contracts) + 1}",
            'active': False,
            'added_at': time.time(),
            'methods': {**DEFAULT_METHODS, **(methods or {})}
        }

        self.contracts.append(contract)
        self._save_contracts()

        log_action('contract_added', address=address, label=contract['label'])
        return contract

    def activate_contract(self, address: str) -> Dict:
        address = require_address(address)
        contract = self._find(address)

        if contract is None:
            raise ValidationError("Contract not found")

        for c in self.contracts:
            c['active'] = False
        contract['active'] = True
        self._save_contracts()

        log_action('contract_activated', address=contract['address'])
        return contract

    def remove_contract(self, address: str) -> bool:
        """Remove a contract; if it was active, the first remaining one takes over"""
        address = require_address(address)
        contract = self._find(address)

        if contract is None:
            return False

        self.contracts.remove(contract)

        if contract['active'] and self.contracts:
            self.contracts[0]['active'] = True

        self._save_contracts()

        log_action('contract_removed', address=contract['address'])
        return True

    def update_contract_methods(self, address: str, methods: Dict) -> Dict:
        contract = self._find(require_address(address))
        if contract is None:
            raise ValidationError("Contract not found")

        contract['methods'] = {**DEFAULT_METHODS, **methods}
        self._save_contracts()

        log_action('contract_methods_updated', address=contract['address'], methods=contract['methods'])
        return contract

    def _active_or_raise(self) -> Dict:
        contract = self.get_active_contract()
        if contract is None:
            raise ValidationError("No active contract configured")
        return contract

    async def _call_uint(self, address: str, method_name: str) -> int:
        """Call a no-argument uint256 getter"""
        result = await self.rpc_manager.call({
            'to': Web3.to_checksum_address(address),
            'data': Web3.to_hex(selector(method_name))
        })
        if len(result) < 32:
            raise ValueError(f"{method_name}() returned {len(result)} bytes")
        return decode(['uint256'], result[:32])[0]

    async def _probe(self, address: str, candidates: List[str]) -> Optional[Tuple[str, int]]:
        """First getter in candidates that answers with a uint256"""
        for name in candidates:
            try:
                value = await self._call_uint(address, name)
                logger.info(f"Found {name}() on {address}: {value}")
                return name, value
            except Exception as e:
                logger.debug(f"Method {name}() call failed on {address}: {e}")
        return None

    async def validate_contract(self, address: str) -> Dict:
        """
        Heuristically check that an address is a mintable NFT contract

        The mint function is looked up by selector in the deployed bytecode
        (it cannot be called without minting); supply getters are called.

        Returns:
            Dict with 'valid', detected 'methods' and 'errors'
        """
        address = require_address(address)
        results = {'valid': False, 'methods': {}, 'errors': []}

        code = await self.rpc_manager.get_code(address)
        if not code:
            results['errors'].append("No contract code found at this address")
            return results

        supply = await self._probe(address, SUPPLY_CANDIDATES)
        if supply:
            results['methods']['totalSupply'] = supply[0]

        max_supply = await self._probe(address, MAX_SUPPLY_CANDIDATES)
        if max_supply:
            results['methods']['maxSupply'] = max_supply[0]

        for name in MINT_CANDIDATES:
            if selector(name) in code:
                results['methods']['mint'] = name
                break
        else:
            results['errors'].append("No mint method found in contract bytecode")

        results['valid'] = 'mint' in results['methods'] and bool(supply or max_supply)

        logger.info(f"Contract validation for {address}: {results}")
        return results

    def encode_mint_call(self) -> bytes:
        """Call data for the active contract's mint method"""
        contract = self._active_or_raise()
        mint_method = contract.get('methods', DEFAULT_METHODS).get('mint')

        if not mint_method:
            raise FatalContractError(f"Mint method not found for {contract['address']}")

        return selector(mint_method)

    async def get_mint_value(self) -> int:
        """Payable amount for one mint (0 if no price getter answers)"""
        contract = self._active_or_raise()
        found = await self._probe(contract['address'], PRICE_CANDIDATES)

        if found is None:
            return 0

        logger.info(f"Mint price detected: {found[0]}() = {found[1]} wei")
        return found[1]

    async def get_supply_status(self) -> Tuple[int, int]:
        """(current supply, max supply) of the active contract"""
        contract = self._active_or_raise()
        methods = contract.get('methods', DEFAULT_METHODS)

        try:
            total = await self._call_uint(contract['address'], methods['totalSupply'])
            maximum = await self._call_uint(contract['address'], methods['maxSupply'])
        except MintBotError:
            raise
        except Exception as e:
            raise classify_error(e) from e

        return total, maximum
