"""
Data model for one crawl of an organization website.

Field names are snake_case in Python and serialize to the camelCase wire
names (`pageType`, `parentUrl`, `specialPages`, ...) with
`model_dump(by_alias=True)`.
"""

from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PageType = Literal["main", "menu", "submenu", "content", "board", "popup", "external", "modal"]
ContentType = Literal["static", "board", "gallery", "video", "list", "form", "popup"]
TriggerType = Literal["onclick", "href", "data-url", "window-open", "layer"]
DictionaryCategory = Literal["person", "department", "organization", "place", "event", "program"]

# Page type of a navigation node by its depth
PAGE_TYPE_BY_DEPTH: dict[int, PageType] = {1: "menu", 2: "submenu", 3: "content"}


class WireModel(BaseModel):
    """Base for models exchanged with storage and the analyzer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PageInfo(WireModel):
    """One page of the site: a navigation node, board, popup or crawled child."""

    url: str = ""
    title: str
    page_type: PageType = "menu"
    depth: int = Field(default=1, ge=0)
    parent_url: Optional[str] = None
    children: list["PageInfo"] = Field(default_factory=list)
    content_type: Optional[ContentType] = None
    extracted_data: Optional[dict[str, Any]] = None
    crawled: bool = False
    crawl_error: Optional[str] = None

    def iter_tree(self):
        """Yield this node and all descendants depth-first."""
        yield self
        for child in self.children:
            yield from child.iter_tree()


class PopupInfo(WireModel):
    """A same-domain page reachable only through a script or modal trigger."""

    url: str
    title: str = "팝업"
    trigger_type: TriggerType
    trigger_element: str = ""


class DictionaryEntry(WireModel):
    """A normalized domain term extracted from site content."""

    term: str
    category: DictionaryCategory
    subcategory: Optional[str] = None
    definition: Optional[str] = None
    aliases: list[str] = Field(default_factory=list)
    related_terms: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    source_url: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        """Deduplication key within one crawl."""
        return (self.term, self.category)


class TaxonomyNode(WireModel):
    name: str
    type: Optional[str] = None
    description: Optional[str] = None
    children: list["TaxonomyNode"] = Field(default_factory=list)


class ContactInfo(WireModel):
    phones: list[str] = Field(default_factory=list)
    emails: list[str] = Field(default_factory=list)
    fax: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None


class SocialMediaInfo(WireModel):
    youtube: Optional[str] = None
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    twitter: Optional[str] = None
    blog: Optional[str] = None
    kakao: Optional[str] = None
    naver_blog: Optional[str] = None
    naver_cafe: Optional[str] = None
    naver_tv: Optional[str] = None
    other: list[str] = Field(default_factory=list)

    def platforms(self) -> dict[str, str]:
        """Platform name -> URL for every platform that was found."""
        return {
            name: value
            for name, value in self.model_dump(exclude={"other"}).items()
            if value
        }


class VideoInfo(WireModel):
    url: str
    title: str
    platform: Literal["youtube", "vimeo"]


class DocumentInfo(WireModel):
    url: str
    title: str
    type: str


class MediaInfo(WireModel):
    logo: Optional[str] = None
    banner_images: list[str] = Field(default_factory=list)
    gallery_images: list[str] = Field(default_factory=list)
    videos: list[VideoInfo] = Field(default_factory=list)
    documents: list[DocumentInfo] = Field(default_factory=list)


class WorshipTimeInfo(WireModel):
    name: str
    day: str
    time: str
    location: Optional[str] = None
    notes: Optional[str] = None


class OrganizationIdentity(WireModel):
    name: str
    code: str
    url: str


class SiteMetadata(WireModel):
    total_pages: int = 0
    max_depth: int = 0
    has_login: bool = False
    has_mobile_version: bool = False
    technologies: list[str] = Field(default_factory=list)


class SiteStructure(WireModel):
    """Root aggregate of one crawl. Built fresh every run."""

    organization: OrganizationIdentity
    navigation: list[PageInfo] = Field(default_factory=list)
    boards: list[PageInfo] = Field(default_factory=list)
    special_pages: list[PageInfo] = Field(default_factory=list)
    metadata: SiteMetadata = Field(default_factory=SiteMetadata)
    contacts: Optional[ContactInfo] = None
    social_media: Optional[SocialMediaInfo] = None
    media: Optional[MediaInfo] = None
    worship_times: Optional[list[WorshipTimeInfo]] = None


class CrawlProgress(WireModel):
    """Snapshot emitted once per visited page."""

    total_pages: int
    crawled_pages: int
    current_url: str = ""
    current_depth: int = 0
    errors: list[str] = Field(default_factory=list)


ProgressCallback = Callable[[CrawlProgress], None]


class StructureAnalysis(WireModel):
    """
    Structure analyzer response.

    Every key defaults to an empty collection so a partial or empty
    response degrades to "nothing found".
    """

    navigation: list[PageInfo] = Field(default_factory=list)
    dictionary: list[DictionaryEntry] = Field(default_factory=list)
    taxonomy: list[TaxonomyNode] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("navigation", "dictionary", "taxonomy", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_dict(cls, value):
        return value if isinstance(value, dict) else {}

    def is_empty(self) -> bool:
        return not (self.navigation or self.dictionary or self.taxonomy)


class ExtendedInfo(WireModel):
    contacts_count: int = 0
    social_media_count: int = 0
    media_count: int = 0
    worship_times_count: int = 0


class CrawlResult(WireModel):
    success: bool
    organization_id: int = 0
    structure: Optional[SiteStructure] = None
    dictionary: list[DictionaryEntry] = Field(default_factory=list)
    taxonomy: list[TaxonomyNode] = Field(default_factory=list)
    popups: list[PopupInfo] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    crawl_time: int = 0  # milliseconds
    progress: Optional[CrawlProgress] = None
    extended_info: Optional[ExtendedInfo] = None


PageInfo.model_rebuild()
TaxonomyNode.model_rebuild()
