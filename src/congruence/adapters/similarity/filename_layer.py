# Licensed under the Apache License, Version 2.0
from __future__ import annotations

import re
import threading
from typing import Optional

from ...domain.models import FileDescriptor, LayerScore
from ...ports.layer import SimilarityLayer
from .text_utils import extensions_related, levenshtein_similarity, normalize_text

_VERSION = re.compile(r"^(.+?)[\s._-]?v?(\d+)$", re.IGNORECASE)
_DATE = re.compile(r"^(.+?)[-_]?(\d{4}[-_]?\d{2}[-_]?\d{2}|\d{2}[-_]?\d{2}[-_]?\d{4})")
_NUMBERED = re.compile(r"^(.+?)(\d+)$")
_PAREN_COPY = re.compile(r"^(.+?)\s*\(\d+\)$")

_BACKUP_WORDS = ("backup", "bak", "old", "archive")
_COPY_WORDS = ("copy", "dup", "duplicate", "clone")
_CODE_SUFFIXES = ("controller", "service", "component", "module", "helper", "util", "manager", "handler")
_CODE_PREFIXES = ("test", "mock", "stub", "base", "abstract")


class FilenameLayer(SimilarityLayer):
    """
    Compares file names: stem edit distance, extension family and naming
    patterns such as versions (`notes_v2`), backups (`notes.bak`), copies
    (`notes (1)`), dates and numbered sequences.
    """

    @property
    def name(self) -> str:
        return "filename"

    def analyze(
        self,
        file_a: FileDescriptor,
        file_b: FileDescriptor,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> LayerScore:
        if file_a.name == file_b.name:
            return LayerScore(1.0, 0.9, "identical file names", {"patterns": ["exact_match"]})

        patterns: list[str] = []
        stem_a, stem_b = file_a.stem, file_b.stem

        base = self._base_similarity(stem_a, stem_b, patterns)
        ext = self._extension_similarity(file_a.extension, file_b.extension, patterns)
        pattern = self._pattern_score(stem_a, stem_b, patterns)

        score = min(1.0, base * 0.4 + ext * 0.2 + pattern * 0.4)
        # A bare name match says little without a recognised naming pattern.
        confidence = 0.8 if pattern > 0 else 0.5
        explanation = (
            f"name patterns: {', '.join(patterns)}" if patterns else "no shared naming pattern"
        )
        return LayerScore(
            score,
            confidence,
            explanation,
            {"base": base, "extension": ext, "pattern": pattern, "patterns": patterns},
        )

    # --- scoring parts ------------------------------------------------------

    def _base_similarity(self, stem_a: str, stem_b: str, patterns: list[str]) -> float:
        norm_a, norm_b = normalize_text(stem_a), normalize_text(stem_b)
        similarity = levenshtein_similarity(norm_a, norm_b)
        if stem_a.lower() == stem_b.lower():
            similarity = max(similarity, 0.9)
            patterns.append("case_variation")
        if re.sub(r"[-_]", "", norm_a) == re.sub(r"[-_]", "", norm_b):
            similarity = max(similarity, 0.95)
            patterns.append("separator_variation")
        return similarity

    def _extension_similarity(self, ext_a: str, ext_b: str, patterns: list[str]) -> float:
        if ext_a == ext_b:
            return 1.0
        if extensions_related(ext_a, ext_b):
            patterns.append("related_extensions")
            return 0.7
        return 0.0

    def _pattern_score(self, stem_a: str, stem_b: str, patterns: list[str]) -> float:
        checks = (
            ("version_pattern", 0.8, _is_version_pair),
            ("backup_pattern", 0.75, _is_backup_pair),
            ("copy_pattern", 0.75, _is_copy_pair),
            ("date_pattern", 0.85, _is_dated_pair),
            ("number_sequence", 0.85, _is_numbered_pair),
        )
        best = 0.0
        for label, value, check in checks:
            if check(stem_a, stem_b):
                patterns.append(label)
                best = max(best, value)
        affix = _common_affix(stem_a.lower(), stem_b.lower())
        if affix > 0.5:
            patterns.append("common_affix")
            best = max(best, affix)
        return min(1.0, best)


def _is_version_pair(a: str, b: str) -> bool:
    ma, mb = _VERSION.match(a), _VERSION.match(b)
    if ma and mb:
        base_a, base_b = ma.group(1).lower(), mb.group(1).lower()
        return base_a == base_b or levenshtein_similarity(base_a, base_b) > 0.8
    if ma:
        return ma.group(1).lower() == b.lower()
    if mb:
        return mb.group(1).lower() == a.lower()
    return False


def _strip_word(text: str, word: str) -> str:
    return re.sub(rf"[_-]?{word}[_-]?", "", text, count=1)


def _is_backup_pair(a: str, b: str) -> bool:
    la, lb = a.lower(), b.lower()
    for word in _BACKUP_WORDS:
        if word in la or word in lb:
            if _strip_word(la, word) == _strip_word(lb, word):
                return True
            if _strip_word(la, word) == lb or _strip_word(lb, word) == la:
                return True
    return False


def _is_copy_pair(a: str, b: str) -> bool:
    la, lb = a.lower(), b.lower()
    for word in _COPY_WORDS:
        if word not in la and word not in lb:
            continue
        for pattern in (
            rf"^(.+)[_-]{word}$",
            rf"^{word}[_-]?of[_-](.+)$",
            rf"^(.+)[_-]{word}[_-]?\d*$",
        ):
            ma, mb = re.match(pattern, la), re.match(pattern, lb)
            if (ma and lb == ma.group(1)) or (mb and la == mb.group(1)):
                return True

    pa, pb = _PAREN_COPY.match(a), _PAREN_COPY.match(b)
    if pa and pb:
        return pa.group(1) == pb.group(1)
    return bool((pa and pa.group(1) == b) or (pb and pb.group(1) == a))


def _is_dated_pair(a: str, b: str) -> bool:
    ma, mb = _DATE.match(a), _DATE.match(b)
    if not (ma and mb):
        return False
    base_a, base_b = ma.group(1).lower(), mb.group(1).lower()
    return base_a == base_b or levenshtein_similarity(base_a, base_b) > 0.8


def _is_numbered_pair(a: str, b: str) -> bool:
    ma, mb = _NUMBERED.match(a), _NUMBERED.match(b)
    return bool(ma and mb and ma.group(1).lower() == mb.group(1).lower())


def _common_affix(a: str, b: str) -> float:
    for suffix in _CODE_SUFFIXES:
        if a.endswith(suffix) and b.endswith(suffix):
            base_a, base_b = a[: -len(suffix)], b[: -len(suffix)]
            if base_a and base_b and base_a != base_b:
                return 0.6
    for prefix in _CODE_PREFIXES:
        if a.startswith(prefix) and b.startswith(prefix):
            return 0.6

    shortest = min(len(a), len(b))
    prefix_len = 0
    while prefix_len < shortest and a[prefix_len] == b[prefix_len]:
        prefix_len += 1
    suffix_len = 0
    while suffix_len < shortest and a[-1 - suffix_len] == b[-1 - suffix_len]:
        suffix_len += 1

    common = max(prefix_len, suffix_len)
    avg_len = (len(a) + len(b)) / 2
    if common > 3 and common / avg_len > 0.4:
        return common / avg_len
    return 0.0
