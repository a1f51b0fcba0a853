"""
URL helpers for mapping between the upstream origin and the proxy's public address
"""

from urllib.parse import urljoin, urlsplit, urlunsplit

DEFAULT_PORTS = {'http': 80, 'https': 443}


def _split(url: str):
    """urlsplit that also validates the port, which urlsplit itself defers"""
    parts = urlsplit(url)
    parts.port  # raises ValueError for a non-numeric or out of range port
    return parts


def resolve(url: str, base: str) -> str:
    """
    Resolve a possibly relative URL against a base URL.

    Args:
        url: Absolute, scheme-relative or path-relative URL
        base: Absolute URL to resolve against

    Returns:
        The absolute URL, or `url` unchanged if it cannot be parsed
    """
    try:
        absolute = urljoin(base, url.strip())
        parts = _split(absolute)
    except ValueError:
        return url

    if not parts.scheme:
        return url
    return absolute


def retarget(location: str, proxy_base: str) -> str:
    """
    Point a redirect location at the proxy instead of the upstream.

    Scheme, host, port and credentials come from `proxy_base`; path, query
    and fragment come from `location`. Anything unparseable falls back to
    `proxy_base` so an upstream address never reaches the client.
    """
    try:
        base = _split(proxy_base)
        target = _split(urljoin(proxy_base, location.strip()))
    except ValueError:
        return proxy_base

    if not target.scheme or not target.netloc or not base.netloc:
        return proxy_base

    return urlunsplit((base.scheme, base.netloc, target.path or '/', target.query, target.fragment))


def prefix_slash(path: str) -> str:
    return path if path.startswith('/') else '/' + path


def public_url(path: str, scheme: str, host: str, port: int) -> str:
    """
    Build the externally visible URL of `path` on this proxy.

    Args:
        path: Path (with optional query) on the proxy
        scheme: Request scheme as seen by the client
        host: Request Host header; any port in it is replaced by `port`
        port: Externally visible port

    Returns:
        Absolute URL, default ports omitted
    """
    parts = urlsplit(urljoin('http://localhost', path))

    hostname = urlsplit(f'//{host}').hostname or 'localhost'
    if ':' in hostname:
        hostname = f'[{hostname}]'

    netloc = hostname
    if DEFAULT_PORTS.get(scheme) != port:
        netloc = f'{hostname}:{port}'

    return urlunsplit((scheme, netloc, parts.path or '/', parts.query, parts.fragment))
