"""Tests for popup and modal detection."""

from church_crawler.extractors.popups import detect_popups

BASE = "https://church.test/main"


class TestWindowOpen:
    def test_same_domain_window_open(self):
        html = """<button onclick="window.open('/notice/1')">공지</button>"""

        popups = detect_popups(html, BASE)

        assert len(popups) == 1
        assert popups[0].url == "https://church.test/notice/1"
        assert popups[0].trigger_type == "window-open"
        assert popups[0].title == "공지"
        assert popups[0].trigger_element == "button"

    def test_other_domain_window_open_ignored(self):
        html = """<button onclick="window.open('https://ads.example.net/notice/1')">광고</button>"""
        assert detect_popups(html, BASE) == []

    def test_same_url_reported_once(self):
        html = """
        <a onclick="window.open('/notice/1')">공지</a>
        <div data-url="/notice/1">공지 다시</div>
        """
        popups = detect_popups(html, BASE)

        assert [p.url for p in popups] == ["https://church.test/notice/1"]


class TestOtherTriggers:
    def test_location_href(self):
        html = """<div onclick="location.href='/event/2024'">행사</div>"""

        popups = detect_popups(html, BASE)

        assert popups[0].trigger_type == "onclick"
        assert popups[0].url == "https://church.test/event/2024"

    def test_popup_function_argument(self):
        html = """<a href="#" onclick="openPopup('/popup/view.asp?id=3')">팝업</a>"""

        popups = detect_popups(html, BASE)

        assert [(p.url, p.trigger_type) for p in popups] == [
            ("https://church.test/popup/view.asp?id=3", "onclick")
        ]

    def test_argument_without_path_ignored(self):
        html = """<a onclick="showLayer('modal')">열기</a>"""
        assert detect_popups(html, BASE) == []

    def test_data_attributes(self):
        html = """
        <div data-href="/popup/a.html" title="알림"></div>
        <div data-popup="http://church.test/popup/b.html">B</div>
        <div data-url="not-a-url">C</div>
        """
        popups = detect_popups(html, BASE)

        assert [p.url for p in popups] == [
            "https://church.test/popup/a.html",
            "http://church.test/popup/b.html",
        ]
        assert all(p.trigger_type == "data-url" for p in popups)
        assert popups[0].title == "알림"

    def test_javascript_anchor(self):
        html = """<a href="javascript:openWin('/popup/notice.html')">안내</a>"""

        popups = detect_popups(html, BASE)

        assert popups[0].url == "https://church.test/popup/notice.html"
        assert popups[0].trigger_type == "href"

    def test_layer_modal_with_content(self):
        html = """
        <a href="#" data-toggle="modal" data-target="#noticeLayer">공지 보기</a>
        <div id="noticeLayer"><p>이번 주 공지</p></div>
        <a class="layer-open" href="#emptyLayer">빈 레이어</a>
        <div id="emptyLayer"></div>
        """
        popups = detect_popups(html, BASE + "#top")

        assert len(popups) == 1
        assert popups[0].url == "https://church.test/main#noticeLayer"
        assert popups[0].trigger_type == "layer"
        assert popups[0].title == "공지 보기"


def test_detection_is_stateless():
    html = """<button onclick="window.open('/notice/1')">공지</button>"""
    assert detect_popups(html, BASE) == detect_popups(html, BASE)
