"""Anchor harvesting for pages the pipeline has already fetched."""

from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup


def same_host_links(page: str, base_url: str) -> list[str]:
    """Absolute http(s) links in ``page`` on ``base_url``'s host, deduped, in document order."""
    host = urlparse(base_url).hostname
    links: list[str] = []
    for anchor in BeautifulSoup(page, "html.parser").find_all("a", href=True):
        absolute = urljoin(base_url, anchor["href"])
        parsed = urlparse(absolute)
        if parsed.scheme not in ("http", "https") or parsed.hostname != host:
            continue
        if absolute not in links:
            links.append(absolute)
    return links
