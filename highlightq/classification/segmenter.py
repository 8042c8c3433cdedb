"""
Sentence segmentation and fingerprinting.

segment() is pure: same text in, same candidates out, no state between calls.
A trailing fragment without terminal punctuation is not treated as a
sentence.
"""

from __future__ import annotations

import hashlib
import re
from typing import TYPE_CHECKING

from highlightq.classification.models import Sentence
from highlightq.config import CACHE_KEY_PREFIX, MIN_SENTENCE_LENGTH

if TYPE_CHECKING:
    from highlightq.page.scanner import TextUnit

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+")


def segment(text: str, min_length: int = MIN_SENTENCE_LENGTH) -> list[str]:
    """
    Split `text` into sentence candidates.

    Args:
        text: Raw text of one text node
        min_length: Candidates shorter than this (after trimming) are dropped

    Returns:
        Trimmed candidates in document order
    """
    if not text or not isinstance(text, str):
        return []

    candidates = (match.group(0).strip() for match in _SENTENCE_RE.finditer(text))
    return [candidate for candidate in candidates if len(candidate) >= min_length]


def fingerprint(text: str) -> str:
    """Deterministic, order-sensitive cache key for a sentence."""
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return f"{CACHE_KEY_PREFIX}{digest[:32]}"


def build_sentences(
    unit: TextUnit, min_length: int = MIN_SENTENCE_LENGTH
) -> list[Sentence]:
    return [
        Sentence(text=text, fingerprint=fingerprint(text), source_unit=unit)
        for text in segment(unit.text, min_length=min_length)
    ]
