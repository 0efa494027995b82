from .site_structure import (
    PAGE_TYPE_BY_DEPTH,
    ContactInfo,
    ContentType,
    CrawlProgress,
    CrawlResult,
    DictionaryCategory,
    DictionaryEntry,
    DocumentInfo,
    ExtendedInfo,
    MediaInfo,
    OrganizationIdentity,
    PageInfo,
    PageType,
    PopupInfo,
    ProgressCallback,
    SiteMetadata,
    SiteStructure,
    SocialMediaInfo,
    StructureAnalysis,
    TaxonomyNode,
    TriggerType,
    VideoInfo,
    WorshipTimeInfo,
)

__all__ = [
    "PAGE_TYPE_BY_DEPTH",
    "ContactInfo",
    "ContentType",
    "CrawlProgress",
    "CrawlResult",
    "DictionaryCategory",
    "DictionaryEntry",
    "DocumentInfo",
    "ExtendedInfo",
    "MediaInfo",
    "OrganizationIdentity",
    "PageInfo",
    "PageType",
    "PopupInfo",
    "ProgressCallback",
    "SiteMetadata",
    "SiteStructure",
    "SocialMediaInfo",
    "StructureAnalysis",
    "TaxonomyNode",
    "TriggerType",
    "VideoInfo",
    "WorshipTimeInfo",
]
