"""
Keyword page classification for the deep crawl.

A crawled page is matched on its lowercased title plus URL path (the host is
left out so a ".org" domain does not make every page an "org" page):

- people:        staff/pastor/introduction pages, sent to the people pass
- organization:  ministry/department/district pages, sent to the organization extractor

A page can be both. Classification never prevents the generic extractor run.
"""

from typing import Literal, Optional
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, Field

from ..constants import ORGANIZATION_KEYWORDS, PASTOR_PAGE_KEYWORDS, PEOPLE_KEYWORDS
from ..models import PageInfo

PageRole = Literal["people", "organization"]


class PageClassification(BaseModel):
    """Roles of one crawled page and the keywords that triggered them."""

    url: str
    roles: list[PageRole] = Field(default_factory=list)
    keywords_matched: list[str] = Field(default_factory=list)

    @property
    def is_people(self) -> bool:
        return "people" in self.roles

    @property
    def is_organization(self) -> bool:
        return "organization" in self.roles


def _match_text(title: str, url: str) -> str:
    parsed = urlparse(url)
    path = unquote(parsed.path + ("?" + parsed.query if parsed.query else ""))
    return f"{title} {path}".lower()


def _matches(text: str, keywords: list[str]) -> list[str]:
    return [keyword for keyword in keywords if keyword.lower() in text]


def classify_page(title: str, url: str) -> PageClassification:
    """
    Classify a page by title and URL keywords.

    Examples:
        >>> classify_page("섬기는 사람들", "https://church.org/about/staff").roles
        ['people']
        >>> classify_page("교구 안내", "https://church.org/org/district").roles
        ['organization']
    """
    text = _match_text(title, url)
    people = _matches(text, PEOPLE_KEYWORDS)
    organization = _matches(text, ORGANIZATION_KEYWORDS)

    roles: list[PageRole] = []
    if people:
        roles.append("people")
    if organization:
        roles.append("organization")
    return PageClassification(url=url, roles=roles, keywords_matched=people + organization)


def find_pastor_pages(navigation: list[PageInfo], keywords: Optional[list[str]] = None) -> list[PageInfo]:
    """Navigation nodes (any depth, document order) whose title names a pastor page."""
    keywords = keywords or PASTOR_PAGE_KEYWORDS
    return [
        node
        for item in navigation
        for node in item.iter_tree()
        if node.url and any(keyword in node.title for keyword in keywords)
    ]
