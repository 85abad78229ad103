"""
🔎 EVIDENCE EXTRACTION
======================
Pulls short, human-readable snippets out of analysis text so every
AI-derived flag can show the sentence that triggered it.

Sentences are split on terminal punctuation followed by whitespace.
Fragments shorter than 10 or longer than 400 characters are ignored
(headers, bullet stubs, pasted blobs); long sentences are cut to 200
characters with a trailing ellipsis.
"""

import re
from typing import List, Optional, Pattern, Union

from config.settings import settings

SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
ELLIPSIS = "..."
SEPARATOR = " ... "


def split_sentences(text: str) -> List[str]:
    """Split text into trimmed sentences, dropping degenerate fragments."""
    if not text:
        return []

    cfg = settings.engine
    sentences = []
    for raw in SENTENCE_SPLIT.split(text):
        sentence = raw.strip()
        if cfg.evidence_min_sentence_chars <= len(sentence) <= cfg.evidence_max_sentence_chars:
            sentences.append(sentence)
    return sentences


def _truncate(sentence: str) -> str:
    limit = settings.engine.evidence_truncate_chars
    if len(sentence) > limit:
        return sentence[:limit].rstrip() + ELLIPSIS
    return sentence


def extract_evidence(
    text: str,
    pattern: Union[str, Pattern],
    max_sentences: Optional[int] = None
) -> Optional[str]:
    """
    Find the sentences in `text` that match `pattern`.

    Args:
        text: Analysis output (summary, transcript notes, email digest)
        pattern: Regex (string or compiled); strings match case-insensitively
        max_sentences: Maximum sentences to keep (default 2)

    Returns:
        Matching sentences joined with " ... ", or None if nothing matched
    """
    if max_sentences is None:
        max_sentences = settings.engine.evidence_max_sentences
    if isinstance(pattern, str):
        pattern = re.compile(pattern, re.IGNORECASE)

    hits = [s for s in split_sentences(text) if pattern.search(s)]
    if not hits:
        return None

    return SEPARATOR.join(_truncate(s) for s in hits[:max_sentences])


def extract_surrounding_sentence(text: str, keyword: str) -> Optional[str]:
    """Return the first sentence containing `keyword` (literal, any case)."""
    if not keyword:
        return None

    needle = keyword.lower()
    for sentence in split_sentences(text):
        if needle in sentence.lower():
            return _truncate(sentence)
    return None
