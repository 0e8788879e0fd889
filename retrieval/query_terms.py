"""Query term extraction for keyword-based code search."""

import re
from typing import List

STOP_WORDS = {
    "the", "and", "for", "with", "that", "this", "from", "into", "what", "where",
    "when", "which", "who", "why", "how", "does", "did", "doing", "are", "was",
    "were", "can", "could", "should", "would", "will", "have", "has", "had",
    "not", "but", "all", "any", "use", "used", "using", "get", "set", "about",
    "there", "their", "them", "then", "than", "some", "also", "just", "like",
    "you", "your", "our", "its", "way", "code", "file", "files", "function",
    "please", "show", "find", "make", "need", "want", "work", "works",
}

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
MIN_TERM_LENGTH = 3


def split_camel_case(identifier: str) -> str:
    """
    Split a camelCase/PascalCase identifier into capitalized words.

    Examples:
        getNeo4jDriver -> Get Neo4j Driver
        parseHTMLDocument -> Parse HTML Document
        UPPERCASE -> UPPERCASE
    """
    if not identifier or len(identifier) <= 1:
        return identifier

    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", identifier)
    spaced = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", spaced)

    return " ".join(word[:1].upper() + word[1:] for word in spaced.split(" ") if word)


def identifier_parts(token: str) -> List[str]:
    """Words inside a snake_case and/or camelCase identifier."""
    parts = []
    for chunk in token.split("_"):
        if chunk:
            parts.extend(split_camel_case(chunk).split(" "))
    return parts


def _is_term(word: str) -> bool:
    return len(word) >= MIN_TERM_LENGTH and word.lower() not in STOP_WORDS


def extract_search_terms(query: str, max_terms: int = 8) -> List[str]:
    """
    Pull keyword search terms out of a natural-language query.

    Identifiers are kept verbatim and followed by their word parts, so
    ``parseConfig`` yields ``parseConfig``, ``Parse`` and ``Config``.
    Duplicates are dropped case-insensitively in first-seen order.

    Args:
        query: User query
        max_terms: Maximum number of terms

    Returns:
        Search terms, most specific first
    """
    terms: List[str] = []
    seen = set()

    def add(word: str):
        key = word.lower()
        if key not in seen and _is_term(word):
            seen.add(key)
            terms.append(word)

    for token in _IDENTIFIER.findall(query):
        add(token)
        parts = identifier_parts(token)
        if len(parts) > 1:
            for part in parts:
                add(part)

    return terms[:max_terms]
