# Licensed under the Apache License, Version 2.0
from __future__ import annotations

import json
import re
import threading
from typing import Any, Optional

from ...domain.models import FileDescriptor, LayerScore
from ...ports.layer import SimilarityLayer
from .text_utils import jaccard_similarity, levenshtein_similarity, size_confidence

CODE_EXTENSIONS = frozenset({".py", ".pyi", ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"})
MARKDOWN_EXTENSIONS = frozenset({".md", ".mdx", ".markdown"})
JSON_EXTENSIONS = frozenset({".json", ".jsonc"})
YAML_EXTENSIONS = frozenset({".yml", ".yaml"})

_HEADING = re.compile(r"^(#{1,6})\s+(.+)$", re.MULTILINE)
_LIST_ITEM = re.compile(r"^\s*[-*+]\s+", re.MULTILINE)
_YAML_KEY = re.compile(r"^(\w+):")
_PARAGRAPH_BREAK = re.compile(r"\n\n+")

_CODE_TOKENS = (
    ("IMPORT", re.compile(r"^\s*(?:import\s+\S|from\s+\S+\s+import\s)", re.MULTILINE)),
    ("EXPORT", re.compile(r"\bexport\s+(?:default\s+)?(?:const|function|class|interface|type|enum)\b")),
    ("FUNCTION", re.compile(r"\b(?:def|function)\s+\w+")),
    ("CLASS", re.compile(r"\bclass\s+\w+")),
    ("INTERFACE", re.compile(r"\binterface\s+\w+")),
    ("ARROW_FUNCTION", re.compile(r"=>\s*\{")),
    ("DECORATOR", re.compile(r"^\s*@\w+", re.MULTILINE)),
)

# Maximum number of shared elements listed in the breakdown.
_MAX_LISTED = 10


class StructureLayer(SimilarityLayer):
    """
    Compares document shape rather than wording: heading hierarchy for
    markdown, key sets for JSON and YAML, declaration sequences for code and
    line/paragraph/indentation shape for everything else.
    """

    @property
    def name(self) -> str:
        return "structure"

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
        if not content_a.strip() and not content_b.strip():
            return LayerScore(1.0, 0.3, "both files are empty")

        ext_a, ext_b = file_a.extension, file_b.extension
        exts = {ext_a, ext_b}
        common: list[str] = []
        if exts & CODE_EXTENSIONS:
            kind, score = "code", self._code(content_a, content_b, common)
        elif exts & MARKDOWN_EXTENSIONS:
            kind, score = "markdown", self._markdown(content_a, content_b, common)
        elif exts & JSON_EXTENSIONS:
            kind, score = "json", self._json(content_a, content_b, common)
        elif exts & YAML_EXTENSIONS:
            kind, score = "yaml", self._yaml(content_a, content_b)
        else:
            kind, score = "generic", _generic(content_a, content_b)

        confidence = size_confidence((len(content_a), len(content_b)))
        if ext_a != ext_b:
            score *= 0.9
            confidence *= 0.9
        return LayerScore(
            min(1.0, score),
            confidence,
            f"{kind} structure compared; {len(common)} shared element(s)",
            {"kind": kind, "common_structures": common[:_MAX_LISTED]},
        )

    def _code(self, a: str, b: str, common: list[str]) -> float:
        tokens_a, tokens_b = _code_tokens(a), _code_tokens(b)
        set_a, set_b = set(tokens_a), set(tokens_b)
        common.extend(sorted(set_a & set_b))
        score = jaccard_similarity(set_a, set_b)
        if tokens_a and tokens_b:
            score = score * 0.6 + _sequence_similarity(tokens_a, tokens_b) * 0.4
        return score

    def _markdown(self, a: str, b: str, common: list[str]) -> float:
        headings_a, headings_b = _HEADING.findall(a), _HEADING.findall(b)
        if not headings_a and not headings_b:
            paragraphs = _ratio(len(_PARAGRAPH_BREAK.split(a)), len(_PARAGRAPH_BREAK.split(b)))
            lists = _ratio(len(_LIST_ITEM.findall(a)), len(_LIST_ITEM.findall(b)))
            return paragraphs * 0.5 + lists * 0.5

        hierarchy_a = "-".join(str(len(level)) for level, _ in headings_a)
        hierarchy_b = "-".join(str(len(level)) for level, _ in headings_b)
        texts_a = {text.strip().lower() for _, text in headings_a}
        texts_b = {text.strip().lower() for _, text in headings_b}
        common.extend(f"heading: {t}" for t in sorted(texts_a & texts_b))
        return (
            levenshtein_similarity(hierarchy_a, hierarchy_b) * 0.6
            + jaccard_similarity(texts_a, texts_b) * 0.4
        )

    def _json(self, a: str, b: str, common: list[str]) -> float:
        try:
            keys_a, keys_b = _json_keys(json.loads(a)), _json_keys(json.loads(b))
        except ValueError:
            return _generic(a, b)
        common.extend(f"json-key: {k}" for k in sorted(keys_a & keys_b))
        return jaccard_similarity(keys_a, keys_b)

    def _yaml(self, a: str, b: str) -> float:
        lines_a, lines_b = _meaningful_lines(a), _meaningful_lines(b)
        keys_a = {m.group(1) for m in map(_YAML_KEY.match, lines_a) if m}
        keys_b = {m.group(1) for m in map(_YAML_KEY.match, lines_b) if m}
        indent = levenshtein_similarity(_indentation(lines_a), _indentation(lines_b))
        return jaccard_similarity(keys_a, keys_b) * 0.7 + indent * 0.3


def _generic(a: str, b: str) -> float:
    lines_a, lines_b = a.split("\n"), b.split("\n")
    line_count = _ratio(len(lines_a), len(lines_b))
    paragraphs = _ratio(len(_PARAGRAPH_BREAK.split(a)), len(_PARAGRAPH_BREAK.split(b)))
    indent = levenshtein_similarity(_indentation(lines_a), _indentation(lines_b))
    return line_count * 0.3 + paragraphs * 0.3 + indent * 0.4


def _ratio(x: int, y: int) -> float:
    return 1.0 - abs(x - y) / max(x, y, 1)


def _code_tokens(content: str) -> list[str]:
    found: list[tuple[int, str]] = []
    for label, pattern in _CODE_TOKENS:
        found.extend((m.start(), label) for m in pattern.finditer(content))
    return [label for _, label in sorted(found)]


def _sequence_similarity(a: list[str], b: list[str]) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return sum(1 for x, y in zip(a, b) if x == y) / longest


def _json_keys(obj: Any, prefix: str = "") -> set[str]:
    keys: set[str] = set()
    if isinstance(obj, dict):
        for key, value in obj.items():
            full = f"{prefix}.{key}" if prefix else str(key)
            keys.add(full)
            if isinstance(value, dict):
                keys |= _json_keys(value, full)
    return keys


def _meaningful_lines(content: str) -> list[str]:
    return [
        line for line in content.split("\n") if line.strip() and not line.strip().startswith("#")
    ]


def _indentation(lines: list[str]) -> str:
    return "".join(str(len(line) - len(line.lstrip())) for line in lines)
