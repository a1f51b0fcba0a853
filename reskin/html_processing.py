import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from reskin.urls import resolve

# url(...) with a single-quoted, double-quoted or bare reference
CSS_URL_PATTERN = re.compile(
    r"""url\s*\(\s*(?:'([^']*)'|"([^"]*)"|([^)'"]*))\s*\)"""
)


@dataclass
class PageRewriteResult:
    """Rewritten pieces of one upstream HTML page, ready for the container template"""
    head_lines: List[str] = field(default_factory=list)
    title: str = ''
    meta: Dict[str, Optional[str]] = field(default_factory=dict)
    body_html: str = ''

    @property
    def headers(self) -> str:
        return '\n'.join(self.head_lines)

    @property
    def meta_title(self) -> Optional[str]:
        return self.meta.get('og:title')

    @property
    def meta_description(self) -> Optional[str]:
        return self.meta.get('og:description')


def rewrite_css(css: str, base: str) -> str:
    """
    Rewrite every url() reference in CSS text to an absolute URL.

    This is a best-effort regex pass, not a CSS parser: anything that does
    not look like a complete url(...) is left as it is.

    Args:
        css: CSS text, or the markup of a <style> element
        base: Absolute URL that relative references are resolved against

    Returns:
        CSS with each reference written as url('<absolute url>')
    """
    def replace(match):
        single, double, bare = match.groups()
        if single is not None:
            reference = single
        elif double is not None:
            reference = double
        else:
            reference = bare.strip()
        # a bare quote would end the url('...') string early
        absolute = resolve(reference, base).replace("'", '%27')
        return f"url('{absolute}')"

    return CSS_URL_PATTERN.sub(replace, css)


def rewrite_head(document: str, upstream_base: str) -> PageRewriteResult:
    """
    Extract metadata and resource links from an upstream page and strip its scripts.

    Links and style blocks directly under <head> are collected in source
    order with their URLs made absolute against the upstream, so the client
    loads those resources from the upstream and not through the proxy.

    Args:
        document: Full HTML document from the upstream
        upstream_base: Upstream base URL

    Returns:
        PageRewriteResult with head lines, title, meta values and body HTML
    """
    soup = BeautifulSoup(document, 'lxml')
    result = PageRewriteResult()

    head = soup.find('head')
    if head:
        for meta in head.find_all('meta', recursive=False):
            key = meta.get('name') or meta.get('property')
            if key:
                result.meta[key] = meta.get('content')

        title = head.find('title', recursive=False)
        if title:
            result.title = title.get_text()

        for element in head.find_all(['link', 'style'], recursive=False):
            if element.name == 'link':
                if not element.get('href'):
                    continue
                element['href'] = resolve(element['href'], upstream_base)
                result.head_lines.append(str(element))
            else:
                result.head_lines.append(rewrite_css(str(element), upstream_base))

    body = soup.find('body')
    if body:
        for script in body.find_all('script'):
            script.decompose()
        result.body_html = body.decode_contents()

    return result
