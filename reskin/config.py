"""
Process configuration, read once from the environment at start-up
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlsplit

DEFAULT_PORT = 8000
DEFAULT_TIMEOUT = 30.0
DEFAULT_FAVICON_PATH = '/static/img/favicon32.7f3da72dcea1.png'


class ConfigError(ValueError):
    """Raised when an environment value cannot be used"""


def _int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = environ.get(name, '').strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _trust_proxy(value: str) -> int:
    """Number of reverse proxy hops whose X-Forwarded-* headers are trusted"""
    value = value.strip().lower()
    if value in ('', 'false', 'no', '0'):
        return 0
    if value in ('true', 'yes'):
        return 1
    try:
        hops = int(value)
    except ValueError:
        raise ConfigError(
            f"TRUST_PROXY_IPS must be true, false or a hop count, got {value!r}; "
            "IP address and subnet lists are not supported"
        )
    if hops < 0:
        raise ConfigError("TRUST_PROXY_IPS hop count cannot be negative")
    return hops


@dataclass(frozen=True)
class Config:
    clone_url: str
    port: int = DEFAULT_PORT
    ext_port: int = DEFAULT_PORT
    host: str = 'localhost'
    trust_proxy: int = 0
    upstream_timeout: float = DEFAULT_TIMEOUT
    favicon_path: str = DEFAULT_FAVICON_PATH
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Config':
        """
        Build the configuration from environment variables.

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            Validated Config

        Raises:
            ConfigError: If CLONE_URL is missing or a value is malformed
        """
        if environ is None:
            environ = os.environ

        clone_url = environ.get('CLONE_URL', '').strip().rstrip('/')
        parts = urlsplit(clone_url)
        if not parts.scheme or not parts.netloc:
            raise ConfigError("CLONE_URL must be an absolute URL, e.g. https://example.com")

        port = _int(environ, 'PORT', DEFAULT_PORT)
        ext_port = _int(environ, 'EXT_PORT', port)

        timeout = environ.get('UPSTREAM_TIMEOUT', '').strip()
        try:
            upstream_timeout = float(timeout) if timeout else DEFAULT_TIMEOUT
        except ValueError:
            raise ConfigError(f"UPSTREAM_TIMEOUT must be a number of seconds, got {timeout!r}")

        return cls(
            clone_url=clone_url,
            port=port,
            ext_port=ext_port,
            host=environ.get('HOST', 'localhost'),
            trust_proxy=_trust_proxy(environ.get('TRUST_PROXY_IPS', '')),
            upstream_timeout=upstream_timeout,
            favicon_path=environ.get('FAVICON_PATH', DEFAULT_FAVICON_PATH),
            log_level=environ.get('LOG_LEVEL', 'INFO').upper(),
        )
