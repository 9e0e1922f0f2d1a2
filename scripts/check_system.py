"""
System Check Script
Verifies configuration, storage and RPC connectivity before running the bot

Run from the repository root as a module so the project packages resolve:

    python -m scripts.check_system
"""

import asyncio
import os
import sys
import json
from loguru import logger

from utils.config_loader import load_config
from utils.rpc_manager import RPCManager


def check_environment_variables(config):
    """Check that the secrets the bot cannot start without are set"""
    logger.info("Checking environment variables...")

    required = {
        'TELEGRAM_TOKEN': config['telegram']['token'],
        'ADMIN_ID': config['telegram']['admin_id'],
        'MASTER_PASSWORD': config['security']['master_password'],
    }

    missing = [name for name, value in required.items() if not value]

    if missing:
        logger.error(f"Missing environment variables: {', '.join(missing)}")
        return False

    logger.success("✓ All environment variables set")
    return True


def check_configuration_files(config):
    """Check that the JSON stores that exist are readable"""
    logger.info("Checking configuration files...")

    files = [
        'config/bot_config.json',
        config['storage']['wallets_file'],
        config['storage']['contracts_file'],
        config['history']['file']
    ]

    ok = True
    for file_path in files:
        if not os.path.exists(file_path):
            logger.info(f"  - {file_path} (not created yet)")
            continue

        try:
            with open(file_path, 'r') as f:
                json.load(f)
            logger.success(f"  ✓ {file_path}")
        except (OSError, ValueError) as e:
            logger.error(f"  ✗ {file_path}: {e}")
            ok = False

    return ok


def check_directories(config):
    """Create the data directories if needed"""
    logger.info("Checking directories...")

    paths = [
        config['storage']['wallets_file'],
        config['history']['file'],
        config['logging']['file']
    ]

    for dir_path in sorted({os.path.dirname(p) for p in paths if p and os.path.dirname(p)}):
        if not os.path.exists(dir_path):
            os.makedirs(dir_path, exist_ok=True)
            logger.info(f"  Created: {dir_path}")
        else:
            logger.success(f"  ✓ {dir_path}")

    return True


async def check_rpc_connection(config):
    """Check the RPC endpoint and the default contract deployment"""
    logger.info("Checking RPC connection...")

    rpc_manager = RPCManager(config['network']['rpc_url'])

    if not await rpc_manager.is_healthy():
        logger.error(f"  ✗ Cannot reach {rpc_manager.rpc_url}")
        return False

    chain_id = await rpc_manager.w3.eth.chain_id
    if chain_id != config['network']['chain_id']:
        logger.error(f"  ✗ Chain id mismatch: node={chain_id} config={config['network']['chain_id']}")
        return False

    logger.success(f"  ✓ Connected (chain {chain_id})")

    contract_address = config['default_contract'].get('address')
    if contract_address:
        code = await rpc_manager.get_code(contract_address)
        if not code:
            logger.error(f"  ✗ No contract at {contract_address}")
            return False
        logger.success(f"  ✓ Contract deployed at {contract_address}")

    return True


def main():
    """Run all system checks"""
    logger.info("=" * 70)
    logger.info("NFT Mint Bot System Check")
    logger.info("=" * 70)

    config = load_config()

    checks = [
        ("Environment Variables", lambda: check_environment_variables(config)),
        ("Configuration Files", lambda: check_configuration_files(config)),
        ("Directories", lambda: check_directories(config)),
        ("RPC Connection", lambda: asyncio.run(check_rpc_connection(config)))
    ]

    results = []

    for name, check_func in checks:
        logger.info("")
        try:
            result = check_func()
            results.append((name, result))
        except Exception as e:
            logger.error(f"Error in {name}: {e}")
            results.append((name, False))

    # Summary
    logger.info("")
    logger.info("=" * 70)
    logger.info("Summary")
    logger.info("=" * 70)

    passed = sum(1 for _, result in results if result)
    total = len(results)

    for name, result in results:
        status = "✓ PASS" if result else "✗ FAIL"
        logger.info(f"  {status}: {name}")

    logger.info("")
    logger.info(f"Total: {passed}/{total} checks passed")

    if passed == total:
        logger.success("✅ System ready to run!")
        logger.info("Start bot: python main.py")
        return 0

    logger.error("❌ System not ready - fix issues above")
    return 1


if __name__ == "__main__":
    sys.exit(main())
