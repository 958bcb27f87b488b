"""
Keyword extraction utilities.

Two tokenizers share this module:
- Query keywords index learned patterns (short, ordered, capped)
- Content keywords compare prompts and responses in the confidence gate
"""

import re
from typing import Iterable, List

from config import MAX_KEYWORDS, PATTERN_STOP_WORDS, RESPONSE_STOP_WORDS


CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
NON_WORD_RE = re.compile(r"[^\w\s]")


def extract_query_keywords(
    query: str,
    stop_words: Iterable[str] = PATTERN_STOP_WORDS,
    max_keywords: int = MAX_KEYWORDS,
) -> List[str]:
    """
    Extract up to max_keywords lowercase tokens from a user query.

    Tokens are whitespace-separated, longer than 2 characters and not stop
    words. Duplicates are dropped so the result is an ordered set.

    Example:
        >>> extract_query_keywords("Read the README and list the src folder")
        ['read', 'readme', 'list', 'src', 'folder']
    """
    stop = set(stop_words)
    keywords: List[str] = []

    for word in query.lower().split():
        if len(word) <= 2 or word in stop or word in keywords:
            continue
        keywords.append(word)
        if len(keywords) >= max_keywords:
            break

    return keywords


def extract_content_keywords(
    text: str,
    stop_words: Iterable[str] = RESPONSE_STOP_WORDS,
) -> List[str]:
    """
    Extract comparison keywords from free text.

    Fenced code blocks are removed, punctuation becomes whitespace and only
    tokens longer than 3 characters that are not stop words are kept.
    Duplicates are preserved.
    """
    stop = set(stop_words)
    clean = CODE_BLOCK_RE.sub("", text).lower()
    clean = NON_WORD_RE.sub(" ", clean)

    return [
        word for word in clean.split()
        if len(word) > 3 and word not in stop
    ]
