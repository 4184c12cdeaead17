"""Finding and rewriting image references embedded in stored markdown."""

from __future__ import annotations

import re
from typing import Mapping, Set

__all__ = ["extract_image_urls", "replace_img_tags", "rewrite_references"]

MARKDOWN_IMAGE = re.compile(r"!\[[^\]]*]\(([^)]+)\)")
HTML_IMAGE = re.compile(r"""<img\b[^>]*?\ssrc\s*=\s*["']([^"']+)["'][^>]*>""", re.IGNORECASE)

_IMG_TAG = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_SRC_ATTR = re.compile(r"""(?<![\w-])src\s*=\s*["']([^"']+)["']""", re.IGNORECASE)
_ALT_ATTR = re.compile(r"""(?<![\w-])alt\s*=\s*["']([^"']*)["']""", re.IGNORECASE)


def extract_image_urls(text: str) -> Set[str]:
    """Return every image URL referenced by ``![alt](url)`` or ``<img src=...>``."""

    urls = {match.group(1) for match in MARKDOWN_IMAGE.finditer(text)}
    urls.update(match.group(1) for match in HTML_IMAGE.finditer(text))
    return urls


def replace_img_tags(text: str, replacements: Mapping[str, str]) -> str:
    """Replace ``<img>`` tags with ``![alt](target)``.

    The target is the mapped local reference when ``replacements`` has one and
    the original source otherwise. Tags without a source are left untouched.
    """

    def _substitute(match: re.Match[str]) -> str:
        tag = match.group(0)
        src = _SRC_ATTR.search(tag)
        if src is None:
            return tag
        alt = _ALT_ATTR.search(tag)
        source = src.group(1)
        target = replacements.get(source, source)
        return f"![{alt.group(1) if alt else ''}]({target})"

    return _IMG_TAG.sub(_substitute, text)


def rewrite_references(text: str, replacements: Mapping[str, str]) -> str:
    """Point every image reference in ``text`` at its local copy.

    After the ``<img>`` tags are rewritten, remaining occurrences of each mapped
    URL are replaced as plain substrings, so a URL quoted elsewhere in the text
    (a caption, a link) is rewritten too. Longer URLs are replaced first so a
    mapped URL that prefixes another cannot clobber it.
    """

    updated = replace_img_tags(text, replacements)
    for url in sorted(replacements, key=len, reverse=True):
        updated = updated.replace(url, replacements[url])
    return updated
