# src/autojob/http/markup.py

"""HTML parsing with CSS selector queries (lxml + cssselect)."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import lxml.html
from lxml.etree import ParserError
from lxml.html import HtmlElement

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class HtmlDocument:
    """Parsed page; links are already absolute against `base_url`."""

    root: HtmlElement
    base_url: str

    def query_selector(self, selector: str) -> HtmlElement | None:
        found = self.root.cssselect(selector)
        return found[0] if found else None

    def query_selector_all(self, selector: str) -> list[HtmlElement]:
        return list(self.root.cssselect(selector))

    @property
    def title(self) -> str:
        el = self.query_selector("title")
        return (el.text_content() if el is not None else "").strip()


def parse_html(content: str, base_url: str) -> HtmlDocument:
    if not content or not content.strip():
        # lxml refuses empty documents; keep callers on the same code path.
        content = "<html><head></head><body></body></html>"
    try:
        root = lxml.html.document_fromstring(content, base_url=base_url)
    except ParserError:
        logger.warning("Unparseable HTML from %s; using an empty document", base_url)
        root = lxml.html.document_fromstring("<html><body></body></html>", base_url=base_url)
    root.make_links_absolute(base_url, resolve_base_href=True)
    return HtmlDocument(root=root, base_url=base_url)
