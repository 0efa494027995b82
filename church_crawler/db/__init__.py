"""MySQL client and crawl-result repository.

Provides:
- DatabaseClient: one reusable PyMySQL connection per handle
- CrawlRepository: organization lookup, full-replace save, crawl log, read-back
"""

from .client import DatabaseClient
from .repository import CrawlRepository, Organization, OrganizationNotFoundError, build_tree

__all__ = [
    "DatabaseClient",
    "CrawlRepository",
    "Organization",
    "OrganizationNotFoundError",
    "build_tree",
]
