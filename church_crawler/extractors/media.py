"""
Media asset extraction: logo, banner and gallery images, embedded videos, documents.
"""

from typing import Optional

from bs4 import BeautifulSoup

from ..models import DocumentInfo, MediaInfo, VideoInfo
from ..utils.url_helpers import normalize_url

LOGO_SELECTORS = [
    ".logo img",
    "#logo img",
    "h1 img",
    ".header-logo img",
    "a.logo img",
    '[class*="logo"] img',
]
BANNER_SELECTORS = [
    ".slider img", ".banner img", ".carousel img", ".swiper img",
    ".main-visual img", ".hero img", ".key-visual img",
    '[class*="banner"] img', '[class*="slide"] img',
]
GALLERY_SELECTORS = [
    ".gallery img", '[class*="gallery"] img', ".photo-list img",
    ".album img", '[class*="photo"] img',
]
VIDEO_PLATFORMS = {
    "youtube": ('iframe[src*="youtube"], iframe[src*="youtu.be"]', "YouTube 영상"),
    "vimeo": ('iframe[src*="vimeo"]', "Vimeo 영상"),
}
DOCUMENT_EXTENSIONS = ["pdf", "hwp", "doc", "docx"]


def _image_urls(soup: BeautifulSoup, selectors: list[str], base_url: str) -> list[str]:
    urls: list[str] = []
    for selector in selectors:
        for image in soup.select(selector):
            src = image.get("src") or image.get("data-src")
            if not src:
                continue
            url = normalize_url(src, base_url)
            if url not in urls:
                urls.append(url)
    return urls


def find_logo(soup: BeautifulSoup, base_url: str) -> Optional[str]:
    for selector in LOGO_SELECTORS:
        image = soup.select_one(selector)
        if image is not None and image.get("src"):
            return normalize_url(image["src"], base_url)
    return None


def extract_media_info(html: str, base_url: str) -> MediaInfo:
    """
    Extract media assets from a page.

    Args:
        html: Page HTML
        base_url: URL used to resolve relative sources

    Returns:
        MediaInfo with deduplicated banner and gallery image URLs
    """
    soup = BeautifulSoup(html, "html.parser")

    videos = []
    for platform, (selector, default_title) in VIDEO_PLATFORMS.items():
        for frame in soup.select(selector):
            if frame.get("src"):
                videos.append(VideoInfo(url=frame["src"], title=frame.get("title") or default_title, platform=platform))

    documents = []
    document_selector = ", ".join(f'a[href$=".{ext}"]' for ext in DOCUMENT_EXTENSIONS)
    for link in soup.select(document_selector):
        href = link["href"]
        documents.append(
            DocumentInfo(
                url=normalize_url(href, base_url),
                title=link.get_text().strip() or "문서",
                type=href.rsplit(".", 1)[-1].lower(),
            )
        )

    return MediaInfo(
        logo=find_logo(soup, base_url),
        banner_images=_image_urls(soup, BANNER_SELECTORS, base_url),
        gallery_images=_image_urls(soup, GALLERY_SELECTORS, base_url),
        videos=videos,
        documents=documents,
    )
