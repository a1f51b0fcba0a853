#!/usr/bin/env python3
"""
Reskinning reverse proxy: mirrors a single upstream site inside a local page shell
"""

import logging
from typing import Mapping, Optional
from urllib.parse import quote, urlsplit

import requests
from flask import Flask, Response, make_response, redirect, render_template, request
from werkzeug.exceptions import InternalServerError, MethodNotAllowed, NotFound
from werkzeug.http import parse_options_header
from werkzeug.middleware.proxy_fix import ProxyFix

from reskin.config import Config
from reskin.html_processing import rewrite_head
from reskin.urls import prefix_slash, public_url, resolve, retarget

logger = logging.getLogger(__name__)

CACHE_CONTROL = 'public, max-age=86400'  # 24 hours
ROBOTS_TXT = 'User-agent: *\nDisallow: /\n'

DEFAULT_ACCEPT = 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8'
DEFAULT_ACCEPT_LANGUAGE = 'en-US'
DEFAULT_USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:74.0) Gecko/20100101 Firefox/74.0'


def upstream_headers(client_headers: Mapping[str, str]) -> dict:
    """Headers for the upstream request, taken from the client where it sent them"""
    return {
        'Accept': client_headers.get('Accept') or DEFAULT_ACCEPT,
        'Accept-Language': client_headers.get('Accept-Language') or DEFAULT_ACCEPT_LANGUAGE,
        'DNT': '1',
        'User-Agent': client_headers.get('User-Agent') or DEFAULT_USER_AGENT,
    }


def fetch_upstream(url: str, headers: dict, timeout: float) -> requests.Response:
    """Single GET against the upstream. Redirects are returned, never followed."""
    return requests.get(url, headers=headers, allow_redirects=False, timeout=timeout)


def is_html(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    mimetype, _ = parse_options_header(content_type)
    return mimetype.lower() == 'text/html'


def decode_body(resp: requests.Response, content_type: str) -> str:
    """Decode the upstream body with its declared charset, defaulting to UTF-8"""
    _, options = parse_options_header(content_type)
    charset = options.get('charset') or 'utf-8'
    try:
        return resp.content.decode(charset, errors='replace')
    except LookupError:
        logger.warning("Unknown charset %r from upstream, decoding as UTF-8", charset)
        return resp.content.decode('utf-8', errors='replace')


def upstream_status(resp: requests.Response):
    """Status code plus the upstream's own reason phrase when it sent one"""
    if resp.reason:
        return f"{resp.status_code} {resp.reason}"
    return resp.status_code


def original_url() -> str:
    """
    Path and query of the current request exactly as the client sent them,
    percent escapes included
    """
    raw = request.environ.get('RAW_URI') or request.environ.get('REQUEST_URI')
    if not raw:
        path = quote(request.script_root + request.path, safe="/:@!$&'()*+,;=~")
        query = request.query_string.decode('latin-1')
        return f"{path}?{query}" if query else path

    # absolute-form request target, e.g. from a forward proxy
    if not raw.startswith('/'):
        parts = urlsplit(raw)
        return f"{parts.path}?{parts.query}" if parts.query else parts.path
    return raw


def log_request(msg: str, *args):
    logger.info("%s: " + msg, request.remote_addr, *args)


def create_app(config: Optional[Config] = None) -> Flask:
    """
    Create the proxy application.

    Args:
        config: Process configuration; read from the environment when omitted

    Returns:
        Configured Flask app
    """
    if config is None:
        config = Config.from_env()

    app = Flask(__name__)
    app.config['RESKIN'] = config

    if config.trust_proxy:
        hops = config.trust_proxy
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops, x_host=hops)

    def proxy_url(path: str) -> str:
        return public_url(path, request.scheme, request.host, config.ext_port)

    @app.before_request
    def log_incoming():
        log_request("%s %s", request.method, original_url())

    @app.after_request
    def add_cache_control(response: Response) -> Response:
        response.headers['Cache-Control'] = CACHE_CONTROL
        return response

    @app.route('/robots.txt', provide_automatic_options=False)
    def robots():
        return Response(ROBOTS_TXT, content_type='text/plain')

    # The upstream favicon.ico may itself be a redirect and some browsers give up after one hop
    @app.route('/favicon.ico', provide_automatic_options=False)
    def favicon():
        return redirect(config.clone_url + prefix_slash(config.favicon_path))

    @app.route('/', defaults={'path': ''}, provide_automatic_options=False)
    @app.route('/<path:path>', provide_automatic_options=False)
    def proxy(path):
        """
        Fetch the matching upstream page and either redirect or re-render it
        """
        clone_url = config.clone_url + prefix_slash(original_url())
        log_request("FETCH %s", clone_url)

        try:
            resp = fetch_upstream(clone_url, upstream_headers(request.headers), config.upstream_timeout)
        except requests.RequestException:
            logger.exception("%s: FETCH ERROR %s %s", request.remote_addr, request.method, original_url())
            return Response('Not Found', status=404)

        content_type = resp.headers.get('content-type')

        # Not a page, let the client fetch it from the upstream directly
        if not is_html(content_type):
            log_request("REDIRECT %s TO %s", content_type, clone_url)
            return redirect(clone_url)

        location = resp.headers.get('location')
        if location:
            location = retarget(resolve(location, clone_url), proxy_url(''))
            log_request("LOCATION %s", location)
            response = Response(status=upstream_status(resp))
            response.headers['Location'] = location
            return response

        page = rewrite_head(decode_body(resp, content_type), config.clone_url)
        page_info = {
            'baseCloneURL': config.clone_url,
            'baseURL': proxy_url(request.script_root.rstrip('/')),
            'pageURL': proxy_url(original_url()),
            'pageTitle': page.title,
            'metaTitle': page.meta_title,
            'metaDescription': page.meta_description,
        }

        response = make_response(render_template(
            'container.html',
            page_info=page_info,
            clone_url=clone_url,
            headers=page.headers,
            body_content=page.body_html,
        ))
        response.status = upstream_status(resp)
        return response

    @app.errorhandler(NotFound)
    @app.errorhandler(MethodNotAllowed)
    def not_found(e):
        log_request("%s %s 404 Not Found", request.method, original_url())
        return Response('Not Found', status=404)

    @app.errorhandler(InternalServerError)
    def internal_error(e):
        # Flask has already logged the traceback
        log_request("ERROR %s %s", request.method, original_url())
        return Response('Internal Server Error', status=500)

    return app


def main():
    config = Config.from_env()
    logging.basicConfig(
        level=config.log_level,
        format='[%(asctime)s] %(levelname)s %(name)s: %(message)s',
    )

    app = create_app(config)
    logger.info("Mirroring %s on http://%s:%d (public port %d)",
                config.clone_url, config.host, config.port, config.ext_port)
    app.run(host=config.host, port=config.port, threaded=True)


if __name__ == '__main__':
    main()
