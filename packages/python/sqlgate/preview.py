"""Preview rendering: SQL to HTML and emphasis of matched terms."""

from __future__ import annotations

import html
import re
from typing import TYPE_CHECKING

from .keywords import order_for_highlight, phrase_regex

if TYPE_CHECKING:
    from collections.abc import Iterable

HIGHLIGHT_OPEN = '<span style="color:red;font-weight:bold">'
HIGHLIGHT_CLOSE = "</span>"

_HTML_TEMPLATE = (
    '<!DOCTYPE html><html><head><meta charset="UTF-8"><style>'
    ".sql-wrap { font-family: Consolas, monospace; font-size: 11pt; background: #fff; "
    "color: #24292e; padding: 12px; white-space: pre-wrap; word-break: break-word; "
    "overflow: visible; margin: 0; }"
    '</style></head><body class="sql-wrap"><code>{body}</code></body></html>'
)

# Tags and style sheets are copied through untouched; only text between them is highlighted
_TAG_OR_TEXT = re.compile(r"(<style\b.*?</style>|<[^>]+>)|([^<]+|<)", re.IGNORECASE | re.DOTALL)


def sql_to_html(sql: str | None) -> str:
    """Render SQL as a standalone HTML page that keeps its exact layout."""
    text = (sql or "").replace("\r\n", "\n").replace("\r", "\n")
    body = html.escape(text, quote=False).replace("\n", "<br>").replace(" ", "&nbsp;")
    return _HTML_TEMPLATE.replace("{body}", body)


def _terms(keywords: Iterable[str | None] | None, actions: Iterable[str | None] | None) -> list[str]:
    return order_for_highlight([*(keywords or ()), *(actions or ())])


def _alternation(terms: list[str], gap: str, before: str) -> re.Pattern[str] | None:
    """One pattern for all terms, longest first.

    A single left-to-right pass means a shorter term can never match inside
    a span already claimed by a longer one.
    """
    if not terms:
        return None
    body = "|".join(phrase_regex(term, gap) for term in terms)
    return re.compile(rf"{before}(?:{body})(?!\w)", re.IGNORECASE)


def highlight_html(
    document: str | None,
    keywords: Iterable[str | None] | None,
    actions: Iterable[str | None] | None = None,
) -> str:
    """Wrap whole-word hits of keywords and actions in red bold spans.

    Only text content is touched, never markup. Words separated by
    ``&nbsp;`` (as produced by sql_to_html) still match multi-word phrases.
    """
    if document is None:
        return ""
    # (?<![\w&]) keeps entity names such as &nbsp; from matching
    pattern = _alternation(_terms(keywords, actions), r"(?:\s|&nbsp;)+", r"(?<![\w&])")
    if pattern is None:
        return document

    def emphasise(match: re.Match[str]) -> str:
        return f"{HIGHLIGHT_OPEN}{match.group(0)}{HIGHLIGHT_CLOSE}"

    out: list[str] = []
    for part in _TAG_OR_TEXT.finditer(document):
        tag, text = part.group(1), part.group(2)
        out.append(tag if tag is not None else pattern.sub(emphasise, text))
    return "".join(out)


def highlight_text(
    text: str | None,
    keywords: Iterable[str | None] | None,
    actions: Iterable[str | None] | None = None,
    marker: str = "**",
) -> str:
    """Plain-text counterpart of highlight_html, wrapping hits in ``marker``."""
    if text is None:
        return ""
    pattern = _alternation(_terms(keywords, actions), r"\s+", r"(?<!\w)")
    if pattern is None:
        return text
    return pattern.sub(lambda m: f"{marker}{m.group(0)}{marker}", text)
