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

import threading
from abc import ABC, abstractmethod
from typing import Optional

from ..domain.models import FileDescriptor, LayerScore


class SimilarityLayer(ABC):
    """
    Abstract interface for one similarity heuristic (filename, structure, ...).

    The service only ever talks to layers through this contract. A layer may
    be called from several threads at once and must not keep per-call state
    on the instance.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name of the layer; also its key in weights and results."""
        raise NotImplementedError

    def can_analyze(self, file_a: FileDescriptor, file_b: FileDescriptor) -> bool:
        """Return False to decline a pair (e.g. content is missing)."""
        return True

    @abstractmethod
    def analyze(
        self,
        file_a: FileDescriptor,
        file_b: FileDescriptor,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> LayerScore:
        """
        Compare two files and return a LayerScore. May raise; the caller
        records a failure as a zero score.

        `cancel_event` is set once the comparison has run out of time. Long
        running layers should check it and give up early.
        """
        raise NotImplementedError
