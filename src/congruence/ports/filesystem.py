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

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Optional

from ..domain.models import FileMetadata


class FilesystemPort(ABC):
    """Abstract interface for filesystem access used to build descriptors."""

    @abstractmethod
    def walk(self, root: Path) -> Iterator[Path]:
        """Recursively yield file paths under the given root."""
        raise NotImplementedError

    @abstractmethod
    def stat(self, path: Path) -> FileMetadata:
        """Return size, extension, mime type and mtime for a given path."""
        raise NotImplementedError

    @abstractmethod
    def read_text(self, path: Path, max_bytes: int) -> Optional[str]:
        """Return decoded text, or None when the file is larger than max_bytes or binary."""
        raise NotImplementedError
