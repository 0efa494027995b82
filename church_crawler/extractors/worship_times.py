"""
Worship schedule extraction.

Schedule sections come in two shapes: tables (name | time | location) and
lists/paragraphs of "name - time" or "name : time" lines.
"""

import re

from bs4 import BeautifulSoup, Tag

from ..constants import MAX_WORSHIP_TIMES
from ..models import WorshipTimeInfo

WORSHIP_KEYWORDS = ["예배", "주일", "수요", "새벽", "금요", "토요", "청년", "장년", "어린이", "유아", "영아"]
DAY_KEYWORDS = ["주일", "월요일", "화요일", "수요일", "목요일", "금요일", "토요일", "일요일", "매일"]
DEFAULT_DAY = "주일"

SCHEDULE_SELECTORS = [
    '[class*="worship"]', '[class*="service"]', '[class*="예배"]',
    ".time-table", ".schedule", '[id*="worship"]', '[id*="service"]',
]
TIME_RE = re.compile(r"(\d{1,2})[:\s]?(\d{0,2})\s*(am|pm|오전|오후)?", re.IGNORECASE)
NAME_SEPARATOR_RE = re.compile(r"[:\-–—]")
BLOCK_TAGS = ["div", "p", "ul", "ol", "table", "li"]


def _has_keyword(text: str, keywords: list[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def _day_of(*texts: str) -> str:
    return next((day for day in DAY_KEYWORDS if any(day in text for text in texts)), DEFAULT_DAY)


def _table_rows(section: Tag) -> list[WorshipTimeInfo]:
    times = []
    for row in section.find_all("tr"):
        cells = row.find_all(["td", "th"])
        # Header rows are all <th>
        if len(cells) < 2 or row.find("td") is None:
            continue
        name = cells[0].get_text().strip()
        time_text = cells[1].get_text().strip()
        if not _has_keyword(name, WORSHIP_KEYWORDS):
            continue
        location = cells[2].get_text().strip() if len(cells) >= 3 else None
        times.append(
            WorshipTimeInfo(name=name, day=_day_of(name, time_text), time=time_text, location=location or None)
        )
    return times


def _text_lines(section: Tag) -> list[WorshipTimeInfo]:
    times = []
    for element in section.find_all(["li", "p", "div"]):
        # Containers repeat their children's text; read only leaf blocks
        if element.find(BLOCK_TAGS) is not None:
            continue
        text = re.sub(r"\s+", " ", element.get_text()).strip()
        if not _has_keyword(text, WORSHIP_KEYWORDS):
            continue
        parts = NAME_SEPARATOR_RE.split(text)
        if len(parts) < 2:
            continue
        name = parts[0].strip()
        rest = ":".join(parts[1:]).strip()
        match = TIME_RE.search(rest)
        if not name or not match:
            continue
        notes = rest.replace(match.group(0), "", 1).strip()
        times.append(
            WorshipTimeInfo(name=name, day=_day_of(text), time=match.group(0).strip(), notes=notes or None)
        )
    return times


def extract_worship_times(html: str) -> list[WorshipTimeInfo]:
    """
    Extract worship service times from schedule-labeled sections.

    Returns:
        Up to 20 entries, unique by (name, day)
    """
    soup = BeautifulSoup(html, "html.parser")
    found: list[WorshipTimeInfo] = []
    for selector in SCHEDULE_SELECTORS:
        for section in soup.select(selector):
            found.extend(_table_rows(section))
            found.extend(_text_lines(section))

    unique: dict[tuple[str, str], WorshipTimeInfo] = {}
    for entry in found:
        unique.setdefault((entry.name, entry.day), entry)
    return list(unique.values())[:MAX_WORSHIP_TIMES]
