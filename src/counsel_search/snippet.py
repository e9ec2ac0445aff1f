"""
Snippet and highlight helpers shared by the fuzzy engine and the orchestrator.
"""

import re
from typing import Iterable, List

# Half-width of the window used to count nearby query words
CONTEXT_WINDOW = 50


def _query_words(query: str) -> List[str]:
    return [word for word in query.lower().split() if word]


def best_match_position(content: str, query: str) -> int:
    """
    Offset in content with the most distinct query words nearby.

    Every occurrence of every query word is a candidate; a candidate's score is
    the number of distinct query words found within CONTEXT_WINDOW characters
    on either side. The earliest offset wins ties. Returns 0 when no query word
    occurs at all.
    """
    words = _query_words(query)
    content_lower = content.lower()

    best_position = 0
    best_score = 0

    for word in words:
        position = content_lower.find(word)
        while position != -1:
            window = content_lower[max(0, position - CONTEXT_WINDOW):position + CONTEXT_WINDOW]
            score = sum(1 for w in set(words) if w in window)
            if score > best_score or (score == best_score and score > 0 and position < best_position):
                best_score = score
                best_position = position
            position = content_lower.find(word, position + 1)

    return best_position


def make_snippet(content: str, query: str, max_length: int = 200) -> str:
    """
    Extract up to max_length characters of content centred on the best match.

    Args:
        content: Full document text
        query: Original query string
        max_length: Snippet length before ellipses are added

    Returns:
        Snippet, prefixed and/or suffixed with '...' when truncated
    """
    if not content:
        return ""

    position = best_match_position(content, query)
    start = max(0, position - max_length // 2)
    end = min(len(content), start + max_length)

    snippet = content[start:end].strip()
    if start > 0:
        snippet = '...' + snippet
    if end < len(content):
        snippet = snippet + '...'

    return snippet


def highlight_matches(text: str, terms: Iterable[str]) -> str:
    """Wrap every case-insensitive occurrence of the given terms in '**'."""
    unique_terms = sorted({t for t in terms if t}, key=len, reverse=True)
    if not unique_terms:
        return text

    pattern = re.compile('|'.join(re.escape(t) for t in unique_terms), re.IGNORECASE)
    return pattern.sub(lambda m: f"**{m.group(0)}**", text)
