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

from typing import Iterable, List

from ..domain.models import SimilarityResult


def rank_results(results: Iterable[SimilarityResult]) -> List[SimilarityResult]:
    """
    Order results best first: descending score, then descending confidence.
    `sorted` is stable, so equal results keep their input order.
    """
    return sorted(results, key=lambda r: (-r.overall_score, -r.overall_confidence))
