"""
Content Cleaner
===============

HTML to plain-text conversion for article pages.

This module provides:
- Removal of scripts, styles, navigation and other non-content markup
- Site-specific selection of the article body for known newspapers
- Whitespace normalization and length limiting
"""

import html
import re
from typing import List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Comment
from bs4.element import CData, Doctype, ProcessingInstruction

from ..utils.logging import get_logger_for_component


class ContentCleaner:
    """
    HTML content cleaner producing normalized article text.

    The article body is located with a site-specific CSS selector when the
    page host is known, then with the generic ``article``, ``main`` and
    ``body`` containers.
    """

    # HTML elements removed together with their content
    NON_CONTENT_ELEMENTS = {
        "script",
        "style",
        "iframe",
        "embed",
        "object",
        "applet",
        "form",
        "input",
        "button",
        "select",
        "textarea",
        "meta",
        "link",
        "base",
        "noscript",
        "canvas",
        "svg",
        "nav",
        "header",
        "footer",
        "aside",
        "figure",
    }

    # Host suffix -> selectors tried in order
    SITE_SELECTORS = {
        "elpais.com": ["article div[data-dtm-region=articulo_cuerpo] p"],
        "20minutos.es": ["article p"],
        "eldiario.es": ["main p.article-text"],
        "elmundo.es": ["article p"],
    }

    GENERIC_CONTAINERS = ["article", "main", "body"]

    WHITESPACE_PATTERN = re.compile(r"\s+")

    def __init__(self, max_content_length: int = 50000):
        """Initialize content cleaner.

        Args:
            max_content_length: Normalized text is truncated to this many characters
        """
        self.max_content_length = max_content_length
        self.logger = get_logger_for_component("content_cleaner")
        self.parser = "html.parser"

    def selectors_for(self, page_url: Optional[str]) -> List[str]:
        """Return the site-specific selectors for a page URL, if any."""
        if not page_url:
            return []

        host = (urlparse(page_url).hostname or "").lower()
        for suffix, selectors in self.SITE_SELECTORS.items():
            if host == suffix or host.endswith("." + suffix):
                return selectors
        return []

    def clean_html_content(self, html_content: str, page_url: Optional[str] = None) -> str:
        """
        Extract normalized article text from an HTML page.

        Args:
            html_content: Raw HTML of the article page
            page_url: URL of the page, used to pick site selectors

        Returns:
            Markup-free, whitespace-collapsed text; empty if nothing remains
        """
        if not html_content or not html_content.strip():
            return ""

        soup = BeautifulSoup(html_content, self.parser)

        self._remove_non_content_elements(soup)

        text = ""
        for selector in self.selectors_for(page_url):
            text = " ".join(
                node.get_text(separator=" ", strip=True) for node in soup.select(selector)
            )
            if text.strip():
                break
        else:
            text = self._extract_generic(soup)

        cleaned = self.normalize_text(text)
        self.logger.debug(f"Cleaned HTML: {len(html_content)} -> {len(cleaned)} chars")
        return cleaned

    def extract_text_only(self, html_content: str) -> str:
        """Strip all markup from a fragment such as a feed title or summary."""
        if not html_content or not html_content.strip():
            return ""

        soup = BeautifulSoup(html_content, self.parser)
        for element in soup(list(self.NON_CONTENT_ELEMENTS)):
            element.decompose()

        return self.normalize_text(soup.get_text(separator=" ", strip=True))

    def normalize_text(self, text: str) -> str:
        """Decode entities, collapse whitespace, trim and truncate."""
        if not text:
            return ""

        text = html.unescape(text)
        text = self.WHITESPACE_PATTERN.sub(" ", text).strip()

        if len(text) > self.max_content_length:
            text = text[: self.max_content_length].rstrip()

        return text

    def _extract_generic(self, soup: BeautifulSoup) -> str:
        for name in self.GENERIC_CONTAINERS:
            container = soup.find(name)
            if container is not None:
                text = container.get_text(separator=" ", strip=True)
                if text:
                    return text

        # Fragments without a body element
        return soup.get_text(separator=" ", strip=True)

    def _remove_non_content_elements(self, soup: BeautifulSoup) -> None:
        """Remove non-content elements, comments and processing instructions."""
        for element in soup.find_all(list(self.NON_CONTENT_ELEMENTS)):
            element.decompose()

        for element in soup.find_all(
            string=lambda text: isinstance(
                text, (Comment, CData, ProcessingInstruction, Doctype)
            )
        ):
            element.extract()
