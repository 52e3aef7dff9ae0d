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

from typing import Optional


class CongruenceError(Exception):
    """Base exception for domain-specific errors."""


class ConfigurationError(CongruenceError):
    """Invalid weights, thresholds or performance settings."""


class AnalysisError(CongruenceError):
    """Malformed input, e.g. a file descriptor with an empty path."""


class LayerError(CongruenceError):
    """
    A single analyzer layer failed.

    Never surfaced to callers of the service: the orchestrator converts it
    into a zero score for that layer.
    """

    def __init__(self, message: str, layer_name: str) -> None:
        super().__init__(message)
        self.layer_name = layer_name


class AnalysisTimeoutError(CongruenceError):
    """The layers of one comparison did not all finish within the budget."""

    def __init__(self, message: str, timeout_ms: int, pending: Optional[list] = None) -> None:
        super().__init__(message)
        self.timeout_ms = timeout_ms
        self.pending = list(pending or [])


class ServiceClosedError(CongruenceError):
    """The service was used after `close()`."""


class FilesystemError(CongruenceError):
    """Unreadable paths, permission issues, undecodable content, etc."""
