"""Data access for crawl results.

Saving is a full replace: the organization's structure, dictionary and
taxonomy rows are deleted and re-inserted from the new crawl. Statements
run in autocommit mode without a surrounding transaction. A failing row is
logged and counted, never raised; the count ends up in the crawl log.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import pymysql

from ..constants import CRAWL_LOG_ERROR_SAMPLE
from ..models import (
    CrawlResult,
    DictionaryEntry,
    OrganizationIdentity,
    PageInfo,
    SiteMetadata,
    SiteStructure,
    TaxonomyNode,
)
from .client import DatabaseClient

logger = logging.getLogger(__name__)


class OrganizationNotFoundError(Exception):
    """No organization with the requested code."""

    def __init__(self, code: str):
        super().__init__(f"Organization not found: {code}")
        self.code = code


def _json_default(obj: Any) -> Any:
    """Handle non-serializable objects for JSON encoding."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _serialize_json(value: Any) -> str | None:
    """Serialize a value to JSON string for storage."""
    if value is None:
        return None
    return json.dumps(value, default=_json_default, ensure_ascii=False)


def _deserialize_json(value: str | bytes | None) -> Any:
    """Deserialize a JSON string from storage."""
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    return value  # Already parsed by driver


@dataclass
class Organization:
    """Organization record."""

    id: int
    name: str
    code: str
    homepage_url: str
    is_active: bool = True
    last_crawled: datetime | None = None

    @classmethod
    def from_row(cls, row: dict) -> "Organization":
        return cls(
            id=row["id"],
            name=row["name"],
            code=row["code"],
            homepage_url=row["homepage_url"],
            is_active=bool(row.get("is_active", True)),
            last_crawled=row.get("last_crawled"),
        )

    def identity(self) -> OrganizationIdentity:
        return OrganizationIdentity(name=self.name, code=self.code, url=self.homepage_url)


def _is_board_row(row: dict) -> bool:
    return row["page_type"] == "board" and row["depth"] == 0


class _RowWriter:
    """Runs write statements and counts the ones that failed."""

    def __init__(self, client: DatabaseClient):
        self.client = client
        self.failed = 0

    def insert(self, table: str, data: dict) -> Optional[int]:
        columns = list(data.keys())
        placeholders = ", ".join(["%s"] * len(columns))
        sql = f"INSERT INTO {table} ({', '.join(f'`{c}`' for c in columns)}) VALUES ({placeholders})"
        try:
            return self.client.execute_insert(sql, tuple(data.values()))
        except pymysql.MySQLError as e:
            self.failed += 1
            logger.warning(f"Insert into {table} failed: {e}")
            return None

    def write(self, sql: str, params: tuple) -> None:
        try:
            self.client.execute_write(sql, params)
        except pymysql.MySQLError as e:
            self.failed += 1
            logger.warning(f"Write failed ({sql.split()[0]} ...): {e}")


class CrawlRepository:
    """Organization lookup, crawl result storage and read-back queries."""

    # Tables replaced wholesale on every save
    STRUCTURE_TABLES = ["church_site_structure", "church_dictionary", "church_taxonomy"]

    SOCIAL_PLATFORMS = [
        "youtube",
        "facebook",
        "instagram",
        "twitter",
        "blog",
        "kakao",
        "naver_blog",
        "naver_cafe",
        "naver_tv",
    ]

    def __init__(self, client: DatabaseClient):
        self.client = client

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    def get_organization(self, code: str) -> Organization:
        """
        Look up an organization by code.

        Raises:
            OrganizationNotFoundError: unknown code
        """
        row = self.client.execute_one(
            "SELECT id, name, code, homepage_url, is_active FROM churches WHERE code = %s",
            (code,),
        )
        if row is None:
            raise OrganizationNotFoundError(code)
        return Organization.from_row(row)

    def list_organizations(self, active_only: bool = True) -> list[Organization]:
        """Organizations ordered by name, with their last completed crawl time."""
        where = "WHERE c.is_active = TRUE" if active_only else ""
        rows = self.client.execute(
            f"""
            SELECT c.id, c.name, c.code, c.homepage_url, c.is_active,
                   (SELECT MAX(l.completed_at) FROM church_crawl_logs l
                     WHERE l.church_id = c.id AND l.status IN ('completed', 'completed_with_errors')) AS last_crawled
            FROM churches c
            {where}
            ORDER BY c.name
            """
        )
        return [Organization.from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save_crawl_result(
        self,
        organization_id: int,
        structure: SiteStructure,
        dictionary: list[DictionaryEntry],
        taxonomy: list[TaxonomyNode],
    ) -> int:
        """
        Replace everything stored for an organization with one crawl's output.

        Returns:
            Number of statements that failed (0 on a clean save)
        """
        writer = _RowWriter(self.client)

        for table in self.STRUCTURE_TABLES:
            writer.write(f"DELETE FROM {table} WHERE church_id = %s", (organization_id,))

        self._save_navigation(writer, organization_id, structure.navigation, None)

        for i, board in enumerate(structure.boards):
            writer.insert(
                "church_site_structure",
                {
                    "church_id": organization_id,
                    "parent_id": None,
                    "page_type": "board",
                    "title": board.title,
                    "url": board.url,
                    "depth": 0,
                    "sort_order": i,
                    "content_type": "board",
                    "has_children": False,
                },
            )

        for entry in dictionary:
            writer.insert(
                "church_dictionary",
                {
                    "church_id": organization_id,
                    "term": entry.term,
                    "category": entry.category,
                    "subcategory": entry.subcategory,
                    "definition": entry.definition,
                    "aliases": _serialize_json(entry.aliases),
                    "related_terms": _serialize_json(entry.related_terms),
                    "metadata": _serialize_json(entry.metadata),
                    "source_url": entry.source_url,
                },
            )

        self._save_taxonomy(writer, organization_id, taxonomy, None, 0, "")

        if structure.contacts is not None:
            self._save_contacts(writer, organization_id, structure)
        if structure.social_media is not None:
            self._save_social_media(writer, organization_id, structure)
        if structure.media is not None:
            self._save_media(writer, organization_id, structure)
        if structure.worship_times:
            self._save_worship_times(writer, organization_id, structure)

        if writer.failed:
            logger.warning(f"Saved crawl for organization {organization_id} with {writer.failed} failed statements")
        return writer.failed

    def _save_navigation(
        self,
        writer: _RowWriter,
        organization_id: int,
        items: list[PageInfo],
        parent_id: Optional[int],
    ):
        """Depth-first insert; children of a failed row are skipped."""
        for i, item in enumerate(items):
            row_id = writer.insert(
                "church_site_structure",
                {
                    "church_id": organization_id,
                    "parent_id": parent_id,
                    "page_type": item.page_type,
                    "title": item.title,
                    "url": item.url,
                    "depth": item.depth,
                    "sort_order": i,
                    "content_type": item.content_type or "static",
                    "has_children": bool(item.children),
                    "extracted_data": _serialize_json(item.extracted_data),
                    "crawled": item.crawled,
                    "crawl_error": item.crawl_error,
                },
            )
            if row_id is not None and item.children:
                self._save_navigation(writer, organization_id, item.children, row_id)

    def _save_taxonomy(
        self,
        writer: _RowWriter,
        organization_id: int,
        nodes: list[TaxonomyNode],
        parent_id: Optional[int],
        depth: int,
        base_path: str,
    ):
        for node in nodes:
            path = f"{base_path}/{node.name}"
            row_id = writer.insert(
                "church_taxonomy",
                {
                    "church_id": organization_id,
                    "parent_id": parent_id,
                    "name": node.name,
                    "taxonomy_type": node.type or "organization",
                    "depth": depth,
                    "path": path,
                    "description": node.description,
                },
            )
            if row_id is not None and node.children:
                self._save_taxonomy(writer, organization_id, node.children, row_id, depth + 1, path)

    def _save_contacts(self, writer: _RowWriter, organization_id: int, structure: SiteStructure):
        contacts = structure.contacts
        writer.write("DELETE FROM church_contacts WHERE church_id = %s", (organization_id,))

        for contact_type, values in (("phone", contacts.phones), ("email", contacts.emails)):
            for i, value in enumerate(values):
                writer.insert(
                    "church_contacts",
                    {
                        "church_id": organization_id,
                        "contact_type": contact_type,
                        "contact_value": value,
                        "is_primary": i == 0,
                    },
                )
        if contacts.fax:
            writer.insert(
                "church_contacts",
                {"church_id": organization_id, "contact_type": "fax", "contact_value": contacts.fax, "is_primary": False},
            )

        updates = {
            "address": contacts.address,
            "postal_code": contacts.postal_code,
            "phone": contacts.phones[0] if contacts.phones else None,
            "email": contacts.emails[0] if contacts.emails else None,
            "fax": contacts.fax,
        }
        updates = {k: v for k, v in updates.items() if v}
        if updates:
            set_clause = ", ".join(f"`{k}` = %s" for k in updates)
            writer.write(
                f"UPDATE churches SET {set_clause}, updated_at = CURRENT_TIMESTAMP WHERE id = %s",
                (*updates.values(), organization_id),
            )

    def _save_social_media(self, writer: _RowWriter, organization_id: int, structure: SiteStructure):
        writer.write("DELETE FROM church_social_media WHERE church_id = %s", (organization_id,))
        found = structure.social_media.platforms()
        for platform in self.SOCIAL_PLATFORMS:
            if found.get(platform):
                writer.insert(
                    "church_social_media",
                    {"church_id": organization_id, "platform": platform, "url": found[platform]},
                )

    def _save_media(self, writer: _RowWriter, organization_id: int, structure: SiteStructure):
        media = structure.media
        writer.write("DELETE FROM church_media WHERE church_id = %s", (organization_id,))

        if media.logo:
            writer.insert(
                "church_media",
                {"church_id": organization_id, "media_type": "logo", "url": media.logo, "title": "교회 로고"},
            )
            writer.write(
                "UPDATE churches SET logo_url = %s, updated_at = CURRENT_TIMESTAMP WHERE id = %s",
                (media.logo, organization_id),
            )

        for media_type, urls in (("banner", media.banner_images), ("gallery", media.gallery_images)):
            for i, url in enumerate(urls):
                writer.insert(
                    "church_media",
                    {"church_id": organization_id, "media_type": media_type, "url": url, "sort_order": i},
                )
        for video in media.videos:
            writer.insert(
                "church_media",
                {
                    "church_id": organization_id,
                    "media_type": "video",
                    "url": video.url,
                    "title": video.title,
                    "platform": video.platform,
                },
            )
        for document in media.documents:
            writer.insert(
                "church_media",
                {
                    "church_id": organization_id,
                    "media_type": "document",
                    "url": document.url,
                    "title": document.title,
                    "file_type": document.type,
                },
            )

    def _save_worship_times(self, writer: _RowWriter, organization_id: int, structure: SiteStructure):
        writer.write("DELETE FROM church_worship_times WHERE church_id = %s", (organization_id,))
        for i, worship in enumerate(structure.worship_times):
            writer.insert(
                "church_worship_times",
                {
                    "church_id": organization_id,
                    "name": worship.name,
                    "day_of_week": worship.day,
                    "time_display": worship.time,
                    "location": worship.location,
                    "notes": worship.notes,
                    "sort_order": i,
                },
            )

    # ------------------------------------------------------------------
    # Crawl log
    # ------------------------------------------------------------------

    def write_crawl_log(
        self,
        organization_id: int,
        result: CrawlResult,
        crawl_type: str,
        started_at: datetime,
        failed_rows: int = 0,
    ) -> Optional[int]:
        """
        Insert one crawl-log row.

        Status is "completed", or "completed_with_errors" when the save had
        failed rows. Returns the log id, or None if the insert itself failed.
        """
        structure = result.structure
        if result.progress is not None:
            pages_crawled = result.progress.crawled_pages
        else:
            pages_crawled = structure.metadata.total_pages if structure else 0

        summary = {
            "navigation": len(structure.navigation) if structure else 0,
            "boards": len(structure.boards) if structure else 0,
            "popups": len(result.popups),
            "dictionary": len(result.dictionary),
            "deepCrawl": crawl_type == "deep",
            "maxDepth": structure.metadata.max_depth if structure else 0,
            "failedRows": failed_rows,
            "errors": result.errors[:CRAWL_LOG_ERROR_SAMPLE],
        }
        writer = _RowWriter(self.client)
        return writer.insert(
            "church_crawl_logs",
            {
                "church_id": organization_id,
                "crawl_type": crawl_type,
                "status": "completed_with_errors" if failed_rows else "completed",
                "pages_crawled": pages_crawled,
                "items_extracted": len(result.dictionary),
                "errors_count": len(result.errors),
                "started_at": started_at,
                "completed_at": datetime.now(),
                "result_summary": _serialize_json(summary),
            },
        )

    # ------------------------------------------------------------------
    # Read-back
    # ------------------------------------------------------------------

    def get_structure(self, code: str) -> Optional[SiteStructure]:
        """Rebuild the stored structure of an organization, or None if unknown."""
        try:
            organization = self.get_organization(code)
        except OrganizationNotFoundError:
            return None

        rows = self.client.execute(
            "SELECT * FROM church_site_structure WHERE church_id = %s ORDER BY depth, sort_order",
            (organization.id,),
        )
        navigation_rows = [row for row in rows if not _is_board_row(row)]
        boards = [
            PageInfo(
                url=row.get("url") or "",
                title=row["title"],
                page_type="board",
                depth=0,
                content_type=row.get("content_type") or "board",
            )
            for row in rows
            if _is_board_row(row)
        ]

        return SiteStructure(
            organization=organization.identity(),
            navigation=build_tree(navigation_rows),
            boards=boards,
            metadata=SiteMetadata(
                total_pages=len(rows),
                max_depth=max((row["depth"] for row in rows), default=0),
            ),
        )

    def get_dictionary(self, code: str, category: Optional[str] = None) -> list[DictionaryEntry]:
        """Stored dictionary of an organization ordered by category then term."""
        try:
            organization = self.get_organization(code)
        except OrganizationNotFoundError:
            return []

        sql = "SELECT * FROM church_dictionary WHERE church_id = %s"
        params: tuple = (organization.id,)
        if category:
            sql += " AND category = %s"
            params += (category,)
        rows = self.client.execute(sql + " ORDER BY category, term", params)

        return [
            DictionaryEntry(
                term=row["term"],
                category=row["category"],
                subcategory=row.get("subcategory"),
                definition=row.get("definition"),
                aliases=_deserialize_json(row.get("aliases")) or [],
                related_terms=_deserialize_json(row.get("related_terms")) or [],
                metadata=_deserialize_json(row.get("metadata")) or {},
                source_url=row.get("source_url"),
            )
            for row in rows
        ]


def build_tree(rows: list[dict]) -> list[PageInfo]:
    """Nest structure rows by parent_id. Rows must come ordered by depth, sort_order."""
    nodes: dict[int, PageInfo] = {}
    roots: list[PageInfo] = []
    for row in rows:
        node = PageInfo(
            url=row.get("url") or "",
            title=row["title"],
            page_type=row["page_type"],
            depth=row["depth"],
            content_type=row.get("content_type"),
            extracted_data=_deserialize_json(row.get("extracted_data")),
            crawled=bool(row.get("crawled", False)),
            crawl_error=row.get("crawl_error"),
        )
        nodes[row["id"]] = node
        parent = nodes.get(row.get("parent_id"))
        if parent is None:
            roots.append(node)
        else:
            node.parent_url = parent.url or None
            parent.children.append(node)
    return roots
