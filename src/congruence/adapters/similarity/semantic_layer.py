# Licensed under the Apache License, Version 2.0
from __future__ import annotations

import re
import threading
from typing import Optional

from ...domain.models import FileDescriptor, LayerScore
from ...ports.layer import SimilarityLayer
from .structure_layer import CODE_EXTENSIONS, MARKDOWN_EXTENSIONS
from .text_utils import extract_keywords, jaccard_similarity, size_confidence

_IDENTIFIER = re.compile(r"\b(?:def|function|class)\s+(\w+)")
_HEADING_TEXT = re.compile(r"^#{1,6}\s+(.+)$", re.MULTILINE)

_PATTERNS = {
    "error-handling": re.compile(r"\b(?:try|except|catch)\b"),
    "validation": re.compile(r"validat|verify|confirm", re.IGNORECASE),
    "testing": re.compile(r"\b(?:assert|expect|describe|pytest)\b"),
    "async": re.compile(r"\b(?:async|await)\b"),
    "logging": re.compile(r"\b(?:logger|logging|console\.log)\b"),
    "configuration": re.compile(r"\b(?:config|settings|options)\b", re.IGNORECASE),
}

# Maximum number of shared keywords listed in the breakdown.
_MAX_LISTED = 20


class SemanticLayer(SimilarityLayer):
    """Compares what files talk about: keyword overlap plus coarse topic patterns."""

    @property
    def name(self) -> str:
        return "semantic"

    def can_analyze(self, file_a: FileDescriptor, file_b: FileDescriptor) -> bool:
        return file_a.content is not None and file_b.content is not None

    def analyze(
        self,
        file_a: FileDescriptor,
        file_b: FileDescriptor,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> LayerScore:
        content_a, content_b = file_a.content or "", file_b.content or ""
        if content_a == content_b:
            return LayerScore(1.0, size_confidence((len(content_a),)), "identical content")

        keywords_a = _keywords(content_a, file_a.extension)
        keywords_b = _keywords(content_b, file_b.extension)
        if not keywords_a and not keywords_b:
            return LayerScore(0.0, 0.2, "no keywords to compare")

        shared = sorted(keywords_a & keywords_b)
        keyword_score = jaccard_similarity(keywords_a, keywords_b)
        patterns_a, patterns_b = _patterns(content_a), _patterns(content_b)
        pattern_score = jaccard_similarity(patterns_a, patterns_b)

        score = keyword_score * 0.7 + pattern_score * 0.3
        confidence = size_confidence((len(content_a), len(content_b)))
        return LayerScore(
            min(1.0, score),
            confidence,
            f"{len(shared)} shared keyword(s)",
            {
                "keywords": keyword_score,
                "patterns": pattern_score,
                "shared_keywords": shared[:_MAX_LISTED],
            },
        )


def _keywords(content: str, extension: str) -> set[str]:
    keywords = extract_keywords(content)
    if extension in CODE_EXTENSIONS:
        keywords |= {m.lower() for m in _IDENTIFIER.findall(content) if len(m) > 2}
    if extension in MARKDOWN_EXTENSIONS:
        for heading in _HEADING_TEXT.findall(content):
            keywords |= {w for w in heading.lower().split() if len(w) > 3}
    return keywords


def _patterns(content: str) -> set[str]:
    return {label for label, pattern in _PATTERNS.items() if pattern.search(content)}
