"""Conversion between feed HTML, stored markdown and display HTML."""

from __future__ import annotations

import html as html_lib
import logging
import re
from typing import List

import markdown as markdown_lib
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor
from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

logger = logging.getLogger(__name__)

__all__ = ["SafeMarkdownExtension", "html_to_markdown", "render_markdown_html"]

_SKIP_TAGS = {"script", "style", "noscript", "head", "template", "svg", "iframe", "object"}
_BLOCK_TAGS = {
    "p",
    "div",
    "section",
    "article",
    "header",
    "footer",
    "main",
    "aside",
    "nav",
    "figure",
    "figcaption",
    "address",
    "center",
    "details",
    "summary",
    "dl",
    "dt",
    "dd",
    "form",
    "fieldset",
}
_HEADINGS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6}
_IGNORED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)

_WHITESPACE = re.compile(r"\s+")
_SPACES_AROUND_NEWLINE = re.compile(r"[ \t]*\n[ \t]*")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_PLACEHOLDER = "\x00{}\x00"
_PLACEHOLDER_PATTERN = re.compile(r"\x00(\d+)\x00")
_URL_IGNORED_CHARS = re.compile(r"[\x00-\x20]")
_UNSAFE_SCHEMES = ("javascript:", "vbscript:", "data:")


def _clean_alt(alt: str) -> str:
    return _WHITESPACE.sub(" ", alt.replace("[", "").replace("]", "")).strip()


def _clean_src(src: str) -> str:
    return src.strip().replace(" ", "%20").replace("(", "%28").replace(")", "%29")


class _MarkdownRenderer:
    """Walks a parsed document and emits markdown.

    Preformatted blocks are rendered into placeholders so whitespace
    normalization of the surrounding blocks never touches them.
    """

    def __init__(self) -> None:
        self._verbatim: List[str] = []

    def convert(self, html: str) -> str:
        soup = BeautifulSoup(html, "lxml")
        rendered = self._render_children(soup)
        rendered = _SPACES_AROUND_NEWLINE.sub("\n", rendered)
        rendered = _EXCESS_NEWLINES.sub("\n\n", rendered).strip()
        return _PLACEHOLDER_PATTERN.sub(lambda match: self._verbatim[int(match.group(1))], rendered)

    def _render_children(self, node: Tag) -> str:
        return "".join(self._render(child) for child in node.children)

    def _render(self, node) -> str:
        if isinstance(node, _IGNORED_STRINGS):
            return ""
        if isinstance(node, NavigableString):
            # Markup escaped in the source must stay text.
            return html_lib.escape(_WHITESPACE.sub(" ", str(node)), quote=False)
        if not isinstance(node, Tag):
            return ""

        name = node.name.lower() if node.name else ""
        if name in _SKIP_TAGS:
            return ""
        if name in _HEADINGS:
            text = self._inline(node)
            return f"\n\n{'#' * _HEADINGS[name]} {text}\n\n" if text else ""
        if name in _BLOCK_TAGS:
            return f"\n\n{self._inline(node)}\n\n"
        if name == "br":
            return "\n"
        if name == "hr":
            return "\n\n---\n\n"
        if name == "img":
            return self._image(node)
        if name == "a":
            return self._link(node)
        if name in {"strong", "b"}:
            return self._wrap(node, "**")
        if name in {"em", "i"}:
            return self._wrap(node, "*")
        if name in {"del", "s", "strike"}:
            return self._wrap(node, "~~")
        if name == "code":
            text = node.get_text()
            return f"`{text}`" if text else ""
        if name == "pre":
            return self._preformatted(node)
        if name in {"ul", "ol"}:
            return self._list(node, ordered=name == "ol")
        if name == "blockquote":
            return self._blockquote(node)
        if name == "table":
            return self._table(node)
        return self._render_children(node)

    def _inline(self, node: Tag) -> str:
        return self._render_children(node).strip()

    def _wrap(self, node: Tag, marker: str) -> str:
        text = self._render_children(node)
        stripped = text.strip()
        if not stripped:
            return text
        leading = " " if text[:1].isspace() else ""
        trailing = " " if text[-1:].isspace() else ""
        return f"{leading}{marker}{stripped}{marker}{trailing}"

    def _image(self, node: Tag) -> str:
        src = node.get("src") or node.get("data-src") or ""
        if not isinstance(src, str) or not src.strip():
            return ""
        alt = node.get("alt") or ""
        if not isinstance(alt, str):
            alt = " ".join(alt)
        return f"![{_clean_alt(alt)}]({_clean_src(src)})"

    def _link(self, node: Tag) -> str:
        text = self._render_children(node).strip()
        href = node.get("href")
        if not isinstance(href, str) or not href.strip() or href.strip().startswith("javascript:"):
            return text
        if not text:
            return ""
        return f"[{text}]({_clean_src(href)})"

    def _preformatted(self, node: Tag) -> str:
        body = node.get_text().strip("\n")
        self._verbatim.append(f"```\n{body}\n```")
        return "\n\n" + _PLACEHOLDER.format(len(self._verbatim) - 1) + "\n\n"

    def _list(self, node: Tag, *, ordered: bool) -> str:
        lines: List[str] = []
        position = 1
        for child in node.children:
            if not isinstance(child, Tag) or child.name != "li":
                continue
            marker = f"{position}." if ordered else "-"
            position += 1
            content = _EXCESS_NEWLINES.sub("\n\n", self._render_children(child)).strip()
            content = _SPACES_AROUND_NEWLINE.sub("\n", content).replace("\n\n", "\n")
            indent = " " * (len(marker) + 1)
            lines.append(f"{marker} " + content.replace("\n", "\n" + indent))
        if not lines:
            return ""
        return "\n\n" + "\n".join(lines) + "\n\n"

    def _blockquote(self, node: Tag) -> str:
        content = _EXCESS_NEWLINES.sub("\n\n", self._render_children(node))
        content = _SPACES_AROUND_NEWLINE.sub("\n", content).strip()
        if not content:
            return ""
        quoted = "\n".join(f"> {line}" if line else ">" for line in content.split("\n"))
        return f"\n\n{quoted}\n\n"

    def _table(self, node: Tag) -> str:
        rows: List[List[str]] = []
        for row in node.find_all("tr"):
            cells = [
                _WHITESPACE.sub(" ", self._render_children(cell)).strip().replace("|", "\\|")
                for cell in row.find_all(["th", "td"])
            ]
            if cells:
                rows.append(cells)
        if not rows:
            return ""

        width = max(len(row) for row in rows)
        lines = []
        for index, row in enumerate(rows):
            padded = row + [""] * (width - len(row))
            lines.append("| " + " | ".join(padded) + " |")
            if index == 0:
                lines.append("|" + " --- |" * width)
        return "\n\n" + "\n".join(lines) + "\n\n"


def html_to_markdown(html: str) -> str:
    """Convert an HTML fragment to markdown.

    Never raises: when the markup cannot be rendered the original text is
    returned unchanged. Images come out as ``![alt](src)``.
    """

    if not html or not html.strip():
        return ""

    try:
        rendered = _MarkdownRenderer().convert(html)
    except Exception as exc:  # noqa: BLE001 - conversion must degrade to passthrough
        logger.warning("Could not convert HTML to markdown, storing it verbatim: %s", exc)
        return html

    return rendered


class _DropUnsafeUrls(Treeprocessor):
    """Removes ``href`` and ``src`` values that would run script when followed."""

    def run(self, root):
        for element in root.iter():
            for attribute in ("href", "src"):
                value = element.get(attribute)
                if value and _URL_IGNORED_CHARS.sub("", value).lower().startswith(_UNSAFE_SCHEMES):
                    del element.attrib[attribute]


class SafeMarkdownExtension(Extension):
    """Render raw HTML in markdown as escaped text and drop script URLs."""

    def extendMarkdown(self, md):
        md.preprocessors.deregister("html_block")
        md.inlinePatterns.deregister("html")
        md.treeprocessors.register(_DropUnsafeUrls(md), "drop_unsafe_urls", 5)


def render_markdown_html(text: str) -> str:
    """Render a stored markdown artifact to HTML for display.

    Raw HTML embedded in the markdown is shown as text, never as markup.
    """

    return markdown_lib.markdown(text, extensions=["extra", "sane_lists", SafeMarkdownExtension()])
