"""
Global constants for the church site crawler.

Centralizes magic numbers, request settings and keyword tables used
throughout the crawler for easier maintenance and tuning.
"""

# Crawl budgets (defaults for CrawlOptions)
DEFAULT_MAX_DEPTH = 3  # Menu root is depth 1; depth == max is still fetched
DEFAULT_MAX_PAGES = 100  # Shared by the navigation pass and the popup pass
DEFAULT_DELAY_MS = 500  # Fixed pause between fetches

# Network and Timeouts
REQUEST_TIMEOUT_SECONDS = 15.0
CONNECT_TIMEOUT_SECONDS = 10.0
HEAD_TIMEOUT_SECONDS = 5.0
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7",
}

# Extraction limits
MAX_NAV_TITLE_LENGTH = 100
MAX_LINK_TITLE_LENGTH = 200
MAX_PHONES = 5
MAX_EMAILS = 3
MAX_WORSHIP_TIMES = 20
ANALYZER_HTML_LIMIT = 15000  # Characters of homepage HTML sent to the analyzer
PEOPLE_HTML_LIMIT = 10000
CRAWL_LOG_ERROR_SAMPLE = 10  # Errors kept in the crawl-log summary
GENERIC_DICTIONARY_EVERY = 10  # Run the generic extractor on every Nth visited page
PEOPLE_PAGES_LIMIT = 5  # Pages fetched for people extraction outside deep-crawl mode

# Entry resolution thresholds
INTRO_MIN_BODY_TEXT = 500
INTRO_MAX_LINKS = 20
IFRAME_SHELL_MAX_TEXT = 200

# Page classification keyword sets (matched against lowercased "title url")
PEOPLE_KEYWORDS = [
    # Titles and roles
    "목사", "장로", "전도사", "사역자", "교역자", "집사", "권사", "담임",
    # Page kinds
    "소개", "인사", "교역", "섬기는", "직원",
    "staff", "pastor", "minister", "greetings", "introduction", "about", "leadership", "team",
]

ORGANIZATION_KEYWORDS = [
    # Structure
    "조직", "기구", "부서", "사역", "organization", "ministry", "department", "org",
    # Department kinds
    "선교부", "교육부", "찬양", "미디어", "복지", "긍휼", "양육", "전도", "봉사",
    "서무", "총무", "기획", "재정", "관리",
    # Districts and small groups
    "교구", "권역", "구역", "셀", "목장", "소그룹", "district", "cell", "zone",
    # Page kinds
    "각부서", "부서안내", "사역팀", "사역안내", "조직안내", "조직도",
    "봉사팀", "봉사부서", "ministries", "departments", "teams",
]

# Navigation titles that point at pastor pages (non deep-crawl people pass)
PASTOR_PAGE_KEYWORDS = ["목사", "담임", "교역자", "사역자"]

# Board URL patterns (matched case-insensitively against absolute URLs)
BOARD_URL_PATTERNS = [
    r"/board/",
    r"/bbs/",
    r"/notice",
    r"/news",
    r"/gallery",
    r"/photo",
    r"/video",
    r"board\.php",
    r"bbs\.php",
    r"list\.php",
]

# Hrefs never followed from content regions
SKIP_HREF_PREFIXES = ("#", "javascript:void", "mailto:", "tel:")

# Conventional locations of XML menu definitions
XML_MENU_PATHS = [
    "/core/xml/menu.xml.html",
    "/xml/menu.xml",
    "/data/menu.xml",
]
