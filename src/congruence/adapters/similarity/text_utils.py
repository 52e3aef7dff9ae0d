# Licensed under the Apache License, Version 2.0
"""Small text helpers shared by the analyzer layers."""

from __future__ import annotations

import re
from typing import AbstractSet, Iterable

from rapidfuzz.distance import Levenshtein

STOP_WORDS = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all",
        "can", "her", "was", "one", "our", "out", "his", "has",
        "had", "were", "been", "have", "their", "its", "would",
        "will", "with", "this", "that", "from", "they", "which",
    }
)

RELATED_EXTENSIONS: tuple[frozenset[str], ...] = (
    frozenset({".js", ".ts", ".jsx", ".tsx", ".mjs", ".cjs"}),
    frozenset({".py", ".pyi"}),
    frozenset({".json", ".jsonc", ".json5"}),
    frozenset({".yml", ".yaml"}),
    frozenset({".md", ".mdx", ".markdown"}),
    frozenset({".htm", ".html"}),
    frozenset({".txt", ".text", ".rst"}),
)

_NON_WORD = re.compile(r"[^\w\s]")


def levenshtein_similarity(a: str, b: str) -> float:
    """1 - edit distance / longer length; two empty strings are identical."""
    if a == b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


def jaccard_similarity(a: AbstractSet, b: AbstractSet) -> float:
    if not a and not b:
        return 1.0
    union = a | b
    return len(a & b) / len(union) if union else 0.0


def normalize_text(text: str) -> str:
    return " ".join(text.lower().split())


def extract_keywords(content: str, min_length: int = 3) -> set[str]:
    words = _NON_WORD.sub(" ", content.lower()).split()
    return {w for w in words if len(w) >= min_length and w not in STOP_WORDS}


def extensions_related(ext_a: str, ext_b: str) -> bool:
    if ext_a == ext_b:
        return True
    return any(ext_a in group and ext_b in group for group in RELATED_EXTENSIONS)


def size_confidence(sizes: Iterable[int]) -> float:
    """Small inputs make any similarity measure less trustworthy."""
    sizes = list(sizes)
    avg = sum(sizes) / len(sizes) if sizes else 0
    if avg < 50:
        return 0.5
    if avg < 200:
        return 0.8
    return 1.0
