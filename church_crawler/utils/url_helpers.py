"""
URL helper utilities for the site crawler.

This module provides functions for URL normalization and same-domain checks.
"""

from urllib.parse import urljoin, urlparse


def normalize_url(url: str, base_url: str | None = None) -> str:
    """
    Normalize URL by resolving it against a base and adding a scheme if missing.

    Args:
        url: URL to normalize (absolute, relative or protocol-relative)
        base_url: Base URL for resolving relative URLs (optional)

    Returns:
        Normalized absolute URL with scheme

    Examples:
        >>> normalize_url("church.org")
        'https://church.org'
        >>> normalize_url("/about", "https://church.org/main/")
        'https://church.org/about'
        >>> normalize_url("sub/page.html", "https://church.org/main/")
        'https://church.org/main/sub/page.html'
    """
    url = url.strip()

    if base_url and not url.startswith(("http://", "https://", "//")):
        return urljoin(base_url, url)

    if url.startswith("//"):
        return f"https:{url}"

    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"

    return url


def get_hostname(url: str) -> str:
    """Lowercased hostname of a URL, without port."""
    return (urlparse(normalize_url(url)).hostname or "").lower()


def is_same_domain(url1: str, url2: str) -> bool:
    """
    Check if two URLs share the same hostname.

    Subdomains count as different hosts.

    Examples:
        >>> is_same_domain("https://church.org/about", "http://church.org/news")
        True
        >>> is_same_domain("https://www.church.org", "https://church.org")
        False
    """
    host1 = get_hostname(url1)
    return bool(host1) and host1 == get_hostname(url2)


def strip_fragment(url: str) -> str:
    """Drop the #fragment part of a URL."""
    return url.split("#", 1)[0]


def last_path_segment(url: str) -> str:
    """Last non-empty path segment, used as a fallback link title."""
    path = urlparse(url).path.rstrip("/")
    return path.rsplit("/", 1)[-1] if path else ""
