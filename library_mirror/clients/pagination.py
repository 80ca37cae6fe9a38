"""
Cursor pagination over Vimeo-style collections.

A page looks like {"data": [...], "paging": {"next": "/path?page=2" | null}}.
"""

import logging
from typing import Iterator
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from library_mirror.clients.http import ResilientClient

logger = logging.getLogger(__name__)


def with_page_size(url: str, per_page: int) -> str:
    """Set per_page on a URL, keeping any query string it already has."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "per_page"]
    query.append(("per_page", str(per_page)))
    return urlunsplit(parts._replace(query=urlencode(query, safe=",")))


def iter_pages(client: ResilientClient, initial_url: str, per_page: int = 100) -> Iterator[dict]:
    """
    Lazily fetch every page of a paginated collection.

    per_page is only added to the initial URL; next links are followed
    verbatim. The sequence ends when a page has no next link, or when a
    page has no "data" list (degraded responses end the listing rather
    than failing it). Call again with initial_url to restart.

    Yields:
        Page payloads as returned by the API
    """
    url = with_page_size(initial_url, per_page)

    while url:
        page = client.get(url)

        if not isinstance(page, dict) or not isinstance(page.get("data"), list):
            logger.warning(f"Page without a data list at {url}; ending pagination")
            return

        yield page

        paging = page.get("paging") or {}
        url = paging.get("next")
