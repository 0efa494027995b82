"""
Deterministic extractor for regex-based contact and social-link extraction.

This module extracts factual data using pattern matching:
- Contact information (phone, fax, email, address, postal code)
- Social media channel URLs
"""

import re
from typing import Optional

from bs4 import BeautifulSoup

from ..constants import MAX_EMAILS, MAX_PHONES
from ..models import ContactInfo, SocialMediaInfo


class DeterministicExtractor:
    """
    Regex-based extractor for organization contact data.

    Provides high-confidence extraction without LLM calls for:
    - Phone: Seoul/regional landlines, nationwide 4-digit numbers, (0X) forms
    - Email: Standard email patterns, mailto: links first
    - Address: Korean province-prefixed addresses and 5-digit postal codes
    - Social media: Platform-specific URL patterns plus icon classes
    """

    PHONE_PATTERNS = [
        r"0\d{1,2}[-).\s]?\d{3,4}[-).\s]?\d{4}",  # 02-1234-5678, 031.123.4567
        r"\d{3,4}[-).\s]?\d{3,4}[-).\s]?\d{4}",  # 1588-1234-5678 style
        r"\(0\d{1,2}\)\s?\d{3,4}[-).\s]?\d{4}",  # (02) 1234-5678
    ]
    PHONE_SEPARATORS = re.compile(r"[\s.()-]")
    FAX_LABEL = re.compile(r"fax|팩스", re.IGNORECASE)
    FAX_WINDOW = 10  # characters before a number searched for a fax label

    EMAIL_PATTERN = r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"

    ADDRESS_PATTERNS = [
        r"(?:서울|부산|대구|인천|광주|대전|울산|세종|경기|강원|충북|충남|전북|전남|경북|경남|제주)[^\n<]{10,100}",
        r"\d{5}\s*[가-힣\s\d-]+",  # postal code followed by address
    ]
    POSTAL_CODE = re.compile(r"\d{5}")
    POSTAL_WINDOW = 10

    FOOTER_SELECTOR = "footer, .footer, #footer"
    CONTACT_SELECTOR = '[class*="contact"], [class*="address"], [class*="info"]'

    # Eight platforms recognized from the href itself
    SOCIAL_MEDIA_PATTERNS = {
        "youtube": r"youtube\.com|youtu\.be",
        "facebook": r"facebook\.com|fb\.com",
        "instagram": r"instagram\.com",
        "twitter": r"twitter\.com|//(?:www\.)?x\.com",
        "naver_blog": r"blog\.naver\.com",
        "naver_cafe": r"cafe\.naver\.com",
        "naver_tv": r"tv\.naver\.com",
        "kakao": r"pf\.kakao\.com|story\.kakao\.com|ch\.kakao\.com",
    }
    BLOG_PATTERN = r"blog|tistory|brunch"

    # Icon-class fallback when the href is a redirect or shortener
    SOCIAL_ICON_SELECTORS = {
        "youtube": 'i[class*="youtube"], .fa-youtube, .icon-youtube, [class*="sns_youtube"]',
        "facebook": 'i[class*="facebook"], .fa-facebook, .icon-facebook, [class*="sns_facebook"]',
        "instagram": 'i[class*="instagram"], .fa-instagram, .icon-instagram, [class*="sns_instagram"]',
    }

    def _region_text(self, soup: BeautifulSoup, selector: str) -> str:
        return " ".join(element.get_text(" ") for element in soup.select(selector))

    def extract_phones(self, text: str) -> tuple[list[str], Optional[str]]:
        """
        Find phone numbers in text.

        A number preceded within ten characters by "fax"/"팩스" is returned
        as the fax number instead.

        Returns:
            (phones, fax)
        """
        phones: list[str] = []
        seen_digits: set[str] = set()
        fax = None

        for pattern in self.PHONE_PATTERNS:
            for match in re.finditer(pattern, text):
                number = match.group(0).strip()
                digits = self.PHONE_SEPARATORS.sub("", number)
                if not 9 <= len(digits) <= 12 or digits in seen_digits:
                    continue
                seen_digits.add(digits)
                before = text[max(0, match.start() - self.FAX_WINDOW) : match.start()]
                if self.FAX_LABEL.search(before):
                    fax = fax or number
                else:
                    phones.append(number)

        return phones, fax

    def extract_contact_info(self, html: str) -> ContactInfo:
        """
        Extract contact information from HTML.

        Footer and contact-labeled regions are searched before the full body.
        tel:/mailto: anchors take precedence over regex hits.

        Args:
            html: HTML content to search

        Returns:
            ContactInfo with at most 5 phones and 3 emails
        """
        soup = BeautifulSoup(html, "html.parser")

        footer_text = self._region_text(soup, self.FOOTER_SELECTOR)
        contact_text = self._region_text(soup, self.CONTACT_SELECTOR)
        body_text = (soup.body or soup).get_text(" ")
        all_text = f"{footer_text} {contact_text} {body_text}"

        phones = []
        for link in soup.select('a[href^="tel:"]'):
            number = link["href"][len("tel:") :].strip()
            if number and number not in phones:
                phones.append(number)
        emails = []
        for link in soup.select('a[href^="mailto:"]'):
            address = link["href"][len("mailto:") :].split("?")[0].strip()
            if address and address not in emails:
                emails.append(address)

        anchor_digits = {self.PHONE_SEPARATORS.sub("", p) for p in phones}
        text_phones, fax = self.extract_phones(all_text)
        phones.extend(p for p in text_phones if self.PHONE_SEPARATORS.sub("", p) not in anchor_digits)

        for email in re.findall(self.EMAIL_PATTERN, all_text):
            if email not in emails and "example.com" not in email:
                emails.append(email)

        address, postal_code = self.extract_address(f"{footer_text} {contact_text}")

        return ContactInfo(
            phones=phones[:MAX_PHONES],
            emails=emails[:MAX_EMAILS],
            fax=fax,
            address=address,
            postal_code=postal_code,
        )

    def extract_address(self, text: str) -> tuple[Optional[str], Optional[str]]:
        """
        Extract (address, postal_code) from footer/contact text.

        Examples:
            >>> DeterministicExtractor().extract_address("06236 서울 강남구 테헤란로 123")
            ('서울 강남구 테헤란로 123', '06236')
        """
        for pattern in self.ADDRESS_PATTERNS:
            match = re.search(pattern, text)
            if not match:
                continue
            raw = re.sub(r"\s+", " ", match.group(0)).strip()
            # Postal code inside the match, or right before a province-led address
            postal = self.POSTAL_CODE.search(raw) or self.POSTAL_CODE.search(
                text[max(0, match.start() - self.POSTAL_WINDOW) : match.start()]
            )
            address = re.sub(r"^\d{5}\s*", "", raw).strip()
            return address or None, postal.group(0) if postal else None
        return None, None

    def extract_social_media(self, html: str) -> SocialMediaInfo:
        """
        Extract social media URLs using platform-specific patterns.

        Only absolute links are considered. The first link per platform wins.

        Args:
            html: HTML content to search

        Returns:
            SocialMediaInfo; unknown blogs (tistory, brunch) land in `blog`
        """
        soup = BeautifulSoup(html, "html.parser")
        found: dict[str, str] = {}

        for link in soup.find_all("a", href=True):
            href = link["href"].strip()
            if not href.startswith(("http://", "https://", "//")):
                continue
            platform = next(
                (name for name, pattern in self.SOCIAL_MEDIA_PATTERNS.items() if re.search(pattern, href, re.IGNORECASE)),
                None,
            )
            if platform:
                found.setdefault(platform, href)
            elif re.search(self.BLOG_PATTERN, href, re.IGNORECASE):
                found.setdefault("blog", href)

        for platform, selector in self.SOCIAL_ICON_SELECTORS.items():
            if platform in found:
                continue
            for icon in soup.select(selector):
                link = icon if icon.name == "a" else icon.find_parent("a")
                if link is not None and link.get("href"):
                    found[platform] = link["href"]
                    break

        return SocialMediaInfo(**found)
