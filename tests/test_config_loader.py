"""
Unit Tests for configuration loading
"""

import json

import pytest

from utils.config_loader import DEFAULT_CONFIG, load_config


class TestLoadConfig:
    """Test defaults, file merge and environment overrides"""

    def test_defaults_when_file_missing(self, tmp_path):
        config = load_config(str(tmp_path / 'missing.json'), env={})

        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_file_merges_into_defaults(self, tmp_path):
        path = tmp_path / 'bot_config.json'
        path.write_text(json.dumps({'execution': {'max_attempts': 5}}))

        config = load_config(str(path), env={})

        assert config['execution']['max_attempts'] == 5
        assert config['execution']['tx_timeout_seconds'] == 120

    def test_env_overrides_file(self, tmp_path):
        path = tmp_path / 'bot_config.json'
        path.write_text(json.dumps({'network': {'chain_id': 1}}))

        config = load_config(str(path), env={
            'CHAIN_ID': '10143',
            'ADMIN_ID': '123456',
            'TX_TIMEOUT': '30',
            'TELEGRAM_TOKEN': 'abc:def',
            'GAS_PRICE': ''
        })

        assert config['network']['chain_id'] == 10143
        assert config['telegram']['admin_id'] == 123456
        assert config['telegram']['token'] == 'abc:def'
        assert config['execution']['tx_timeout_seconds'] == 30.0
        assert config['gas_settings']['gas_price_wei'] == DEFAULT_CONFIG['gas_settings']['gas_price_wei']

    def test_invalid_env_value(self, tmp_path):
        with pytest.raises(ValueError, match="GAS_LIMIT"):
            load_config(str(tmp_path / 'missing.json'), env={'GAS_LIMIT': 'lots'})

    def test_max_attempts_must_be_positive(self, tmp_path):
        with pytest.raises(ValueError):
            load_config(str(tmp_path / 'missing.json'), env={'MAX_ATTEMPTS': '0'})
