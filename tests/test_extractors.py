"""Tests for contact, social, media, worship, link and metadata extraction."""

from church_crawler.extractors.deterministic import DeterministicExtractor
from church_crawler.extractors.links import (
    detect_boards,
    detect_technologies,
    extract_links_from_page,
    has_login,
    has_mobile_version,
    infer_content_type,
)
from church_crawler.extractors.media import extract_media_info
from church_crawler.extractors.structured_data import extract_page_metadata
from church_crawler.extractors.worship_times import extract_worship_times

BASE = "https://church.test"


class TestContactInfo:
    HTML = """
    <body>
      <a href="tel:02-1234-5678">전화하기</a>
      <a href="mailto:office@church.test?subject=문의">메일</a>
      <footer>
        <p>06236 서울 강남구 테헤란로 123</p>
        <p>전화 02-1234-5678 팩스 02-1234-5679</p>
        <p>info@church.test</p>
      </footer>
    </body>
    """

    def test_anchor_and_text_contacts(self):
        contacts = DeterministicExtractor().extract_contact_info(self.HTML)

        assert contacts.phones == ["02-1234-5678"]
        assert contacts.fax == "02-1234-5679"
        assert contacts.emails == ["office@church.test", "info@church.test"]

    def test_address_and_postal_code(self):
        contacts = DeterministicExtractor().extract_contact_info(self.HTML)

        assert contacts.address.startswith("서울 강남구 테헤란로 123")
        assert contacts.postal_code == "06236"

    def test_limits(self):
        numbers = " ".join(f"02-555-{1000 + i}" for i in range(8))
        emails = " ".join(f"user{i}@church.test" for i in range(5))
        contacts = DeterministicExtractor().extract_contact_info(f"<body><p>{numbers}</p><p>{emails}</p></body>")

        assert len(contacts.phones) == 5
        assert len(contacts.emails) == 3

    def test_extract_address(self):
        assert DeterministicExtractor().extract_address("06236 서울 강남구 테헤란로 123") == (
            "서울 강남구 테헤란로 123",
            "06236",
        )
        assert DeterministicExtractor().extract_address("주소 없음") == (None, None)

    def test_empty_page(self):
        contacts = DeterministicExtractor().extract_contact_info("<html></html>")
        assert contacts.phones == [] and contacts.emails == [] and contacts.address is None


class TestSocialMedia:
    def test_platforms(self):
        html = """
        <a href="https://www.youtube.com/@church">유튜브</a>
        <a href="https://www.youtube.com/@other">두번째</a>
        <a href="https://blog.naver.com/church">블로그</a>
        <a href="https://church.tistory.com">티스토리</a>
        <a href="https://www.instagram.com/church">인스타</a>
        <a href="https://x.com/church">X</a>
        <a href="/sns/fb"><i class="fa-facebook"></i></a>
        """

        social = DeterministicExtractor().extract_social_media(html)

        assert social.youtube == "https://www.youtube.com/@church"
        assert social.naver_blog == "https://blog.naver.com/church"
        assert social.blog == "https://church.tistory.com"
        assert social.instagram == "https://www.instagram.com/church"
        assert social.twitter == "https://x.com/church"
        assert social.facebook == "/sns/fb"
        assert len(social.platforms()) == 6

    def test_none_found(self):
        assert DeterministicExtractor().extract_social_media('<a href="/about">소개</a>').platforms() == {}


class TestMedia:
    def test_media_assets(self):
        html = """
        <div class="logo"><img src="/img/logo.png"></div>
        <div class="main-visual">
          <img src="/img/b1.jpg"><img data-src="/img/b2.jpg"><img src="/img/b1.jpg">
        </div>
        <div class="gallery"><img src="/g/1.jpg"></div>
        <iframe src="https://www.youtube.com/embed/abc" title="주일설교"></iframe>
        <iframe src="https://player.vimeo.com/video/1"></iframe>
        <a href="/files/bulletin.pdf">주보</a>
        <a href="/files/form.hwp"></a>
        """

        media = extract_media_info(html, BASE + "/")

        assert media.logo == f"{BASE}/img/logo.png"
        assert media.banner_images == [f"{BASE}/img/b1.jpg", f"{BASE}/img/b2.jpg"]
        assert media.gallery_images == [f"{BASE}/g/1.jpg"]
        assert [(v.platform, v.title) for v in media.videos] == [("youtube", "주일설교"), ("vimeo", "Vimeo 영상")]
        assert [(d.title, d.type) for d in media.documents] == [("주보", "pdf"), ("문서", "hwp")]

    def test_no_media(self):
        media = extract_media_info("<p>텍스트</p>", BASE)
        assert media.logo is None and media.banner_images == [] and media.videos == []


class TestWorshipTimes:
    def test_table_schedule(self):
        html = """
        <div class="worship"><table>
          <tr><th>예배</th><th>시간</th><th>장소</th></tr>
          <tr><td>주일 1부 예배</td><td>오전 9:00</td><td>본당</td></tr>
          <tr><td>수요예배</td><td>수요일 오후 7:30</td><td></td></tr>
          <tr><td>성경공부</td><td>화요일</td></tr>
        </table></div>
        """

        times = extract_worship_times(html)

        assert [(t.name, t.day, t.time) for t in times] == [
            ("주일 1부 예배", "주일", "오전 9:00"),
            ("수요예배", "수요일", "수요일 오후 7:30"),
        ]
        assert times[0].location == "본당"
        assert times[1].location is None

    def test_list_schedule(self):
        html = """
        <ul class="service-times">
          <li>새벽기도회 : 05:30</li>
          <li>금요기도회 - 20:30 (금요일)</li>
          <li>성경공부</li>
        </ul>
        """

        times = extract_worship_times(html)

        assert [(t.name, t.day, t.time) for t in times] == [
            ("새벽기도회", "주일", "05:30"),
            ("금요기도회", "금요일", "20:30"),
        ]
        assert times[0].notes is None
        assert times[1].notes == "(금요일)"

    def test_unique_and_capped(self):
        rows = "".join(f"<tr><td>예배 {i}</td><td>{i}:00</td></tr>" for i in range(30))
        rows += "<tr><td>예배 0</td><td>다른 시간</td></tr>"

        times = extract_worship_times(f'<div class="schedule"><table>{rows}</table></div>')

        assert len(times) == 20
        assert len({t.name for t in times}) == 20

    def test_no_schedule_section(self):
        assert extract_worship_times("<p>주일예배 오전 11시</p>") == []


class TestLinks:
    def test_content_region_links(self):
        html = """
        <header><a href="/about">소개</a></header>
        <main>
          <a href="/news/1">새 소식</a>
          <a href="/gallery/2"><img src="/g.jpg"></a>
          <a href="#top">맨위로</a>
          <a href="tel:0212345678">전화</a>
          <a href="https://other.org/">외부</a>
          <a href="/news/1">중복</a>
          <a href="/files/list">자료</a>
        </main>
        """
        page_url = f"{BASE}/about"

        links = extract_links_from_page(html, page_url, 1)

        assert [(link.url, link.title, link.page_type, link.content_type) for link in links] == [
            (f"{BASE}/news/1", "새 소식", "board", "board"),
            (f"{BASE}/gallery/2", "2", "content", "gallery"),
            (f"{BASE}/files/list", "자료", "content", "list"),
        ]
        assert all(link.depth == 2 and link.parent_url == page_url for link in links)

    def test_whole_body_without_content_region(self):
        html = '<body><a href="/a">가</a></body>'
        assert [link.url for link in extract_links_from_page(html, f"{BASE}/", 0)] == [f"{BASE}/a"]

    def test_infer_content_type(self):
        assert infer_content_type(f"{BASE}/bbs/list.php") == ("board", "board")
        assert infer_content_type(f"{BASE}/vod/1") == ("content", "video")
        assert infer_content_type(f"{BASE}/about/vision") == ("content", "static")

    def test_detect_boards(self):
        html = """
        <a href="/board/list.php?id=1">게시판</a>
        <a href="/about">소개</a>
        <a href="https://other.org/board/">외부</a>
        <a href="/bbs/"> </a>
        <a href="/board/list.php?id=1">중복</a>
        """

        boards = detect_boards(html, f"{BASE}/")

        assert [(b.url, b.title) for b in boards] == [
            (f"{BASE}/board/list.php?id=1", "게시판"),
            (f"{BASE}/bbs/", "bbs"),
        ]
        assert all(b.depth == 0 and b.page_type == "board" for b in boards)

    def test_site_markers(self):
        html = "<script src='/js/jquery.min.js'></script><link href='/wp-content/x.css'><a>로그인</a>"

        assert detect_technologies(html) == ["jQuery", "WordPress"]
        assert has_login(html)
        assert not has_mobile_version(html, "")
        assert has_mobile_version("", "width=device-width, initial-scale=1")


class TestPageMetadata:
    def test_head_tags(self):
        html = """
        <html><head>
          <meta charset="euc-kr">
          <title> 사랑의교회 </title>
          <meta name="description" content="환영합니다">
          <meta property="og:image" content="https://church.test/og.png">
          <meta name="viewport" content="width=device-width">
          <link rel="shortcut icon" href="/favicon.ico">
        </head></html>
        """

        metadata = extract_page_metadata(html)

        assert metadata["title"] == "사랑의교회"
        assert metadata["description"] == "환영합니다"
        assert metadata["ogImage"] == "https://church.test/og.png"
        assert metadata["favicon"] == "/favicon.ico"
        assert metadata["charset"] == "euc-kr"
        assert metadata["viewport"] == "width=device-width"
        assert metadata["keywords"] == ""

    def test_defaults(self):
        metadata = extract_page_metadata("<p>본문</p>")
        assert metadata["title"] == ""
        assert metadata["charset"] == "utf-8"
