"""
Config Loader
Merges defaults, config/bot_config.json and environment overrides
"""

import copy
import json
import os
from typing import Dict, Optional
from loguru import logger
from dotenv import load_dotenv


DEFAULT_CONFIG = {
    'network': {
        'rpc_url': 'https://testnet-rpc.monad.xyz',
        'chain_id': 10143,
        'explorer_url': 'https://testnet.monadexplorer.com/tx/'
    },
    'gas_settings': {
        'gas_price_wei': 1000000000,  # 1 gwei
        'gas_limit': 500000,
        'use_network_gas_price': False
    },
    'execution': {
        'tx_timeout_seconds': 120,
        'max_attempts': 3,
        'retry_base_delay_seconds': 3,
        'receipt_poll_interval_seconds': 1,
        'simulate_before_send': True
    },
    'history': {
        'file': 'data/tx_history.json',
        'max_records': 100
    },
    'storage': {
        'wallets_file': 'data/secure_wallets.json',
        'contracts_file': 'data/saved_contracts.json',
        'keystore_iterations': 100000
    },
    'default_contract': {
        'address': '0x1aa689f843077dca043df7d0dc0b3f62dbc6180d',
        'label': 'Default Contract'
    },
    'telegram': {
        'token': None,
        'admin_id': None
    },
    'security': {
        'master_password': None
    },
    'logging': {
        'level': 'INFO',
        'file': 'data/logs/bot.log',
        'error_file': 'data/logs/error.log',
        'rotation': '1 day',
        'retention': '7 days'
    }
}

# env var -> (section, key, type)
ENV_OVERRIDES = {
    'RPC_URL': ('network', 'rpc_url', str),
    'CHAIN_ID': ('network', 'chain_id', int),
    'EXPLORER_URL': ('network', 'explorer_url', str),
    'GAS_PRICE': ('gas_settings', 'gas_price_wei', int),
    'GAS_LIMIT': ('gas_settings', 'gas_limit', int),
    'TX_TIMEOUT': ('execution', 'tx_timeout_seconds', float),
    'MAX_ATTEMPTS': ('execution', 'max_attempts', int),
    'RETRY_BASE_DELAY': ('execution', 'retry_base_delay_seconds', float),
    'CONTRACT_ADDRESS': ('default_contract', 'address', str),
    'TELEGRAM_TOKEN': ('telegram', 'token', str),
    'ADMIN_ID': ('telegram', 'admin_id', int),
    'MASTER_PASSWORD': ('security', 'master_password', str),
    'LOG_LEVEL': ('logging', 'level', str),
}


def _deep_merge(base: Dict, override: Dict) -> Dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_path: str = "config/bot_config.json", env: Optional[Dict] = None) -> Dict:
    """
    Load bot configuration

    Args:
        config_path: JSON config file (missing file -> defaults only)
        env: Environment mapping (defaults to os.environ after load_dotenv)

    Returns:
        Configuration dict
    """
    if env is None:
        load_dotenv()
        env = os.environ

    config = copy.deepcopy(DEFAULT_CONFIG)

    if os.path.exists(config_path):
        with open(config_path, 'r') as f:
            _deep_merge(config, json.load(f))
    else:
        logger.warning(f"Config file {config_path} not found - using defaults")

    for var, (section, key, cast) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw in (None, ''):
            continue
        try:
            config[section][key] = cast(raw)
        except ValueError:
            raise ValueError(f"Invalid value for {var}: {raw!r}")

    if config['execution']['max_attempts'] < 1:
        raise ValueError("execution.max_attempts must be at least 1")

    return config
