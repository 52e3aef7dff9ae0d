# Licensed under the Apache License, Version 2.0
from __future__ import annotations

import hashlib
import threading
from typing import Optional

from ...domain.models import FileDescriptor, LayerScore
from ...ports.layer import SimilarityLayer
from .text_utils import size_confidence

try:
    import ssdeep as _ssdeep  # pip install ssdeep
except Exception:
    _ssdeep = None


class SsdeepContentLayer(SimilarityLayer):
    """
    Raw content comparison: SHA-256 equality first, then an ssdeep
    (context-triggered piecewise) fuzzy-hash match score.

    Declines pairs without content on both sides, and every pair when the
    ssdeep backend is not installed.
    """

    @property
    def name(self) -> str:
        return "content"

    def can_analyze(self, file_a: FileDescriptor, file_b: FileDescriptor) -> bool:
        return _ssdeep is not None and file_a.content is not None and file_b.content is not None

    def analyze(
        self,
        file_a: FileDescriptor,
        file_b: FileDescriptor,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> LayerScore:
        data_a = (file_a.content or "").encode("utf-8")
        data_b = (file_b.content or "").encode("utf-8")
        confidence = size_confidence((len(data_a), len(data_b)))

        if hashlib.sha256(data_a).digest() == hashlib.sha256(data_b).digest():
            return LayerScore(1.0, confidence, "identical content hash", {"hash_match": True})

        if _ssdeep is None:
            raise RuntimeError("ssdeep backend not available")
        digest_a = _ssdeep.hash(data_a)
        if cancel_event is not None and cancel_event.is_set():
            raise RuntimeError("cancelled")
        digest_b = _ssdeep.hash(data_b)
        match = int(_ssdeep.compare(digest_a, digest_b))
        return LayerScore(
            max(0, min(100, match)) / 100.0,
            confidence,
            f"fuzzy hash match {match}%",
            {"hash_match": False, "ssdeep_match": match},
        )
