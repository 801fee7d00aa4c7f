"""Whole-word keyword matching against SQL text."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

# Statement tags reviewed when no action keywords are configured explicitly
DEFAULT_ACTION_KEYWORDS = ("DELETE", "UPDATE", "DROP", "TRUNCATE", "ALTER", "MERGE")


def keyword_key(keyword: str) -> str:
    """Comparison key for a keyword: trimmed and lower-cased."""
    return keyword.strip().lower()


def dedupe_keywords(keywords: Iterable[str | None]) -> list[str]:
    """Drop blank entries and case-insensitive duplicates, keeping the first.

    Args:
        keywords: Keywords in priority order. ``None`` and blank entries are skipped.

    Returns:
        Trimmed keywords in first-seen order.
    """
    seen: set[str] = set()
    result: list[str] = []
    for keyword in keywords:
        if keyword is None or not keyword.strip():
            continue
        key = keyword_key(keyword)
        if key in seen:
            continue
        seen.add(key)
        result.append(keyword.strip())
    return result


def merge_keywords(*groups: Iterable[str | None]) -> list[str]:
    """Concatenate keyword groups and dedupe, earlier groups winning."""
    merged: list[str | None] = []
    for group in groups:
        merged.extend(group)
    return dedupe_keywords(merged)


def phrase_regex(keyword: str, gap: str = r"\s+") -> str:
    """Regex source for a phrase, its words joined by ``gap``."""
    return gap.join(re.escape(word) for word in keyword.split())


def keyword_pattern(keyword: str) -> re.Pattern[str]:
    """Compile the whole-word, case-insensitive pattern for a phrase.

    The words of a multi-word phrase may be separated by any run of
    whitespace, so ``DROP TABLE`` also matches ``drop\\n  table``. The
    phrase never matches inside a larger word.
    """
    return re.compile(rf"(?<!\w){phrase_regex(keyword)}(?!\w)", re.IGNORECASE)


def order_for_highlight(keywords: Iterable[str | None]) -> list[str]:
    """Dedupe keywords and sort them longest-first.

    Emphasis must be applied in this order so that a short phrase contained
    in a longer one (``DROP`` in ``DROP TABLE``) cannot split a span that was
    already emphasised. The sort is stable, so equal lengths keep their order.
    """
    return sorted(dedupe_keywords(keywords), key=len, reverse=True)


class KeywordMatcher:
    """Finds configured phrases that occur as whole words in a text.

    Patterns are compiled once per matcher; the matcher itself is immutable
    and safe to share between threads.

    Example:
        >>> matcher = KeywordMatcher(["drop", "DELETE", "Drop"])
        >>> matcher.keywords
        ('drop', 'DELETE')
        >>> matcher.match("DROP TABLE dropped_rows")
        ['drop']
    """

    def __init__(self, keywords: Iterable[str | None] = ()) -> None:
        self._keywords = tuple(dedupe_keywords(keywords))
        self._patterns = tuple(keyword_pattern(k) for k in self._keywords)

    @property
    def keywords(self) -> tuple[str, ...]:
        """The deduplicated phrases in configured order."""
        return self._keywords

    def match(self, text: str) -> list[str]:
        """Return the phrases found in ``text``, in configured order."""
        if not text or not self._keywords:
            return []
        return [
            keyword
            for keyword, pattern in zip(self._keywords, self._patterns)
            if pattern.search(text)
        ]

    def __bool__(self) -> bool:
        return bool(self._keywords)

    def __repr__(self) -> str:
        return f"KeywordMatcher({list(self._keywords)!r})"


def match_whole_text(text: str, keywords: Iterable[str | None]) -> list[str]:
    """One-shot form of :meth:`KeywordMatcher.match`."""
    return KeywordMatcher(keywords).match(text)
