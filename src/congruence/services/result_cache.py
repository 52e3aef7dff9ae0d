# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..domain.models import SimilarityResult

logger = logging.getLogger(__name__)

_KEY_SEPARATOR = "\x00"


def pair_key(path_a: str, path_b: str) -> str:
    """Order-independent key for a file pair."""
    return _KEY_SEPARATOR.join(sorted((path_a, path_b)))


@dataclass(frozen=True)
class CacheEntry:
    result: SimilarityResult
    created_at: float


class ResultCache:
    """
    Thread-safe, TTL-expiring store of pairwise results.

    - One lock guards every read and write; an entry is stored whole or not at all.
    - Expiry is lazy: a stale entry is dropped when it is next read.
    - When full, the oldest tenth of the entries is evicted.
    - `clear()` bumps a generation counter; `put()` with an older generation is
      ignored so a result computed under a replaced configuration never lands.
    """

    def __init__(
        self,
        ttl_ms: int,
        max_entries: int = 1000,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_ms = int(ttl_ms)
        self._max_entries = int(max_entries)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def configure(self, ttl_ms: int, max_entries: int) -> None:
        """Apply new limits and drop everything cached so far."""
        with self._lock:
            self._ttl_ms = int(ttl_ms)
            self._max_entries = int(max_entries)
            self._entries.clear()
            self._generation += 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1

    def get(self, key: str) -> Optional[SimilarityResult]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            age_ms = (self._clock() - entry.created_at) * 1000.0
            if self._ttl_ms and age_ms > self._ttl_ms:
                del self._entries[key]
                logger.debug("ResultCache.get: expired entry after %.0f ms", age_ms)
                return None
            return entry.result

    def put(self, key: str, result: SimilarityResult, generation: Optional[int] = None) -> bool:
        """Store a result; returns False when the generation is out of date."""
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._entries[key] = CacheEntry(result=result, created_at=self._clock())
            if len(self._entries) > self._max_entries:
                self._evict_oldest()
            return True

    def _evict_oldest(self) -> None:
        count = max(1, self._max_entries // 10)
        oldest = sorted(self._entries.items(), key=lambda kv: kv[1].created_at)[:count]
        for key, _entry in oldest:
            del self._entries[key]
        logger.debug("ResultCache: evicted %d oldest entries", len(oldest))
