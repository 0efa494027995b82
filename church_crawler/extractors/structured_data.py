"""
Page metadata extractor for <head> tags and Open Graph properties.

The result is stored as the crawled page's extractedData blob.
"""

from typing import Any

from bs4 import BeautifulSoup


def _meta_content(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    return (tag.get("content") or "").strip() if tag is not None else ""


def _favicon(soup: BeautifulSoup) -> str:
    links = soup.find_all("link", href=True)
    for rel in ("icon", "shortcut icon"):
        for link in links:
            if " ".join(link.get("rel") or []).lower() == rel:
                return link["href"]
    return ""


def extract_page_metadata(html: str) -> dict[str, Any]:
    """
    Extract head metadata from a page.

    Args:
        html: HTML content

    Returns:
        Dict with keys: title, description, keywords, ogTitle, ogImage,
        favicon, charset (defaults to utf-8), viewport. Missing values are ''.

    Example:
        {
            "title": "사랑의교회",
            "description": "...",
            "ogImage": "https://church.org/og.png",
            "charset": "utf-8",
            "viewport": "width=device-width, initial-scale=1",
            ...
        }
    """
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    charset_tag = soup.find("meta", charset=True)

    return {
        "title": title_tag.get_text().strip() if title_tag is not None else "",
        "description": _meta_content(soup, name="description"),
        "keywords": _meta_content(soup, name="keywords"),
        "ogTitle": _meta_content(soup, property="og:title"),
        "ogImage": _meta_content(soup, property="og:image"),
        "favicon": _favicon(soup),
        "charset": (charset_tag.get("charset") or "utf-8") if charset_tag is not None else "utf-8",
        "viewport": _meta_content(soup, name="viewport"),
    }
