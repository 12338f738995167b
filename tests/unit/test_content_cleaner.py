"""
Tests for Content Cleaner
=========================
"""

import pytest

from hemeroteca.ingestion.content_cleaner import ContentCleaner


@pytest.fixture
def cleaner():
    return ContentCleaner(max_content_length=1000)


class TestCleanHtmlContent:

    def test_removes_scripts_navigation_and_footer(self, cleaner, make_article_html):
        html = make_article_html("First paragraph.", "Second   paragraph.").decode("utf-8")

        text = cleaner.clean_html_content(html)

        assert text == "First paragraph. Second paragraph."

    def test_comments_removed(self, cleaner):
        html = "<html><body><article><!-- ad slot --><p>Story</p></article></body></html>"
        assert cleaner.clean_html_content(html) == "Story"

    def test_generic_fallback_to_body(self, cleaner):
        html = "<html><body><div><p>Only a div</p></div></body></html>"
        assert cleaner.clean_html_content(html) == "Only a div"

    def test_entities_decoded(self, cleaner):
        html = "<article><p>Caf&eacute; &amp; t&eacute;</p></article>"
        assert cleaner.clean_html_content(html) == "Café & té"

    @pytest.mark.parametrize("html", ["", "   ", "<html><body><script>x()</script></body></html>"])
    def test_nothing_left(self, cleaner, html):
        assert cleaner.clean_html_content(html) == ""

    def test_truncated_to_max_length(self):
        cleaner = ContentCleaner(max_content_length=500)
        html = "<article><p>" + "palabra " * 200 + "</p></article>"

        text = cleaner.clean_html_content(html)

        assert len(text) <= 500
        assert not text.endswith(" ")


class TestSiteSelectors:

    ELPAIS_PAGE = (
        "<html><body><article>"
        "<div class='a_st'><p>Subtitle teaser</p></div>"
        "<div data-dtm-region='articulo_cuerpo'><p>Cuerpo uno.</p><p>Cuerpo dos.</p></div>"
        "</article></body></html>"
    )

    def test_selectors_for_known_hosts(self, cleaner):
        assert cleaner.selectors_for("https://elpais.com/espana/x.html")
        assert cleaner.selectors_for("https://www.elpais.com/x.html")
        assert cleaner.selectors_for("https://notelpais.com/x.html") == []
        assert cleaner.selectors_for(None) == []

    def test_site_selector_picks_article_body(self, cleaner):
        text = cleaner.clean_html_content(self.ELPAIS_PAGE, page_url="https://elpais.com/espana/x.html")
        assert text == "Cuerpo uno. Cuerpo dos."

    def test_unknown_site_uses_generic_containers(self, cleaner):
        text = cleaner.clean_html_content(self.ELPAIS_PAGE, page_url="https://blog.example.com/x")
        assert text == "Subtitle teaser Cuerpo uno. Cuerpo dos."

    def test_selector_without_match_falls_back(self, cleaner):
        html = "<html><body><main><p>Layout changed</p></main></body></html>"
        assert cleaner.clean_html_content(html, page_url="https://elpais.com/x.html") == "Layout changed"


def test_extract_text_only(cleaner):
    assert cleaner.extract_text_only("<b>Breaking:</b> <i>news</i>") == "Breaking: news"
    assert cleaner.extract_text_only("") == ""
