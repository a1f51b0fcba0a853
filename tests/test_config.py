#!/usr/bin/env python3
"""
Unit tests for environment configuration
"""

import dataclasses

import pytest

from reskin.config import DEFAULT_FAVICON_PATH, Config, ConfigError


class TestConfigFromEnv:
    """Test reading configuration from the environment"""

    def test_defaults(self):
        config = Config.from_env({'CLONE_URL': 'https://upstream.example/'})
        assert config.clone_url == 'https://upstream.example'
        assert config.port == 8000
        assert config.ext_port == 8000
        assert config.host == 'localhost'
        assert config.trust_proxy == 0
        assert config.upstream_timeout == 30.0
        assert config.favicon_path == DEFAULT_FAVICON_PATH

    def test_ext_port_defaults_to_port(self):
        config = Config.from_env({'CLONE_URL': 'https://upstream.example', 'PORT': '3000'})
        assert config.ext_port == 3000

    def test_explicit_values(self):
        config = Config.from_env({
            'CLONE_URL': 'https://upstream.example',
            'PORT': '3000',
            'EXT_PORT': '443',
            'TRUST_PROXY_IPS': '2',
            'UPSTREAM_TIMEOUT': '5.5',
            'LOG_LEVEL': 'debug',
        })
        assert config.port == 3000
        assert config.ext_port == 443
        assert config.trust_proxy == 2
        assert config.upstream_timeout == 5.5
        assert config.log_level == 'DEBUG'

    @pytest.mark.parametrize('value, hops', [('true', 1), ('false', 0), ('', 0), ('3', 3)])
    def test_trust_proxy(self, value, hops):
        config = Config.from_env({'CLONE_URL': 'https://upstream.example', 'TRUST_PROXY_IPS': value})
        assert config.trust_proxy == hops

    @pytest.mark.parametrize('environ', [
        {},
        {'CLONE_URL': 'upstream.example'},
        {'CLONE_URL': 'https://upstream.example', 'PORT': 'abc'},
        {'CLONE_URL': 'https://upstream.example', 'TRUST_PROXY_IPS': 'loopback'},
        {'CLONE_URL': 'https://upstream.example', 'TRUST_PROXY_IPS': '-1'},
        {'CLONE_URL': 'https://upstream.example', 'UPSTREAM_TIMEOUT': 'soon'},
    ])
    def test_invalid(self, environ):
        with pytest.raises(ConfigError):
            Config.from_env(environ)

    def test_ip_list_error_mentions_hop_count(self):
        with pytest.raises(ConfigError, match="hop count.*not supported"):
            Config.from_env({'CLONE_URL': 'https://upstream.example', 'TRUST_PROXY_IPS': '10.0.0.1'})

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            Config.from_env({})

    def test_immutable(self):
        config = Config(clone_url='https://upstream.example')
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.port = 1


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
