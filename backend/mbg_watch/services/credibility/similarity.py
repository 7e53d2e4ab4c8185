"""Narrative similarity metric used for duplicate and corroboration checks.

The metric blends two views of a narrative:

1. **Token Jaccard** -- bag-of-words overlap after normalization. Catches the
   same incident retold with different word order.
2. **Shingle Jaccard** -- overlap of consecutive word n-grams. Catches
   copy-pasted or lightly edited text.

``narrative_similarity(a, b)`` is the mean of the two. Both components are
Jaccard coefficients, so the result is symmetric and bounded in [0, 1].

Known limitations:
    - Very short narratives (fewer words than the shingle size) collapse to a
      single shingle, so the shingle view is all-or-nothing for them.
    - Tokens of two characters or fewer are dropped, which also drops short
      numbers such as class names ("3a") and hours ("07").
"""

import re

from .thresholds import SHINGLE_SIZE


def normalize_text(text: str) -> str:
    """Normalize text for comparison."""
    if not text:
        return ""
    text = text.lower()
    text = re.sub(r'[^\w\s]', '', text)
    text = re.sub(r'\s+', ' ', text).strip()
    return text


def tokenize(text: str) -> set:
    """Word tokens longer than two characters."""
    return {word for word in normalize_text(text).split() if len(word) > 2}


def jaccard_similarity(set1: set, set2: set) -> float:
    if not set1 or not set2:
        return 0.0
    union = len(set1 | set2)
    return len(set1 & set2) / union if union > 0 else 0.0


def create_shingles(text: str, shingle_size: int = SHINGLE_SIZE) -> set:
    """Word n-grams of the normalized text."""
    words = normalize_text(text).split()
    if not words:
        return set()
    if len(words) < shingle_size:
        return {tuple(words)}
    return {
        tuple(words[i:i + shingle_size])
        for i in range(len(words) - shingle_size + 1)
    }


def narrative_similarity(text1: str, text2: str, shingle_size: int = SHINGLE_SIZE) -> float:
    """Symmetric similarity in [0, 1] between two narratives."""
    token_score = jaccard_similarity(tokenize(text1), tokenize(text2))
    shingle_score = jaccard_similarity(
        create_shingles(text1, shingle_size),
        create_shingles(text2, shingle_size),
    )
    return round((token_score + shingle_score) / 2, 6)
