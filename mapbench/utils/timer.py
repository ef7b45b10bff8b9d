# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import time
from typing import Callable, Optional

NANOS_PER_MICRO = 1_000
NANOS_PER_SECOND = 1_000_000_000


class Timer:
    """Monotonic stopwatch, optionally bounded by a run budget.

    Iterations are timed with a plain ``Timer()``; a benchmark run uses
    ``Timer(budget_seconds)`` and polls ``expired()`` between iterations.
    """

    def __init__(self, budget_seconds: Optional[float] = None, clock: Optional[Callable[[], int]] = None):
        """
        :param budget_seconds: Run budget checked by ``expired()``, None for unbounded
        :param clock: Nanosecond clock, time.perf_counter_ns by default
        """
        self._clock = clock if clock is not None else time.perf_counter_ns
        self._budget_ns = int(budget_seconds * NANOS_PER_SECOND) if budget_seconds is not None else None
        self._started = self._clock()

    def elapsed_nanos(self) -> int:
        return self._clock() - self._started

    def elapsed_micros(self) -> int:
        return self.elapsed_nanos() // NANOS_PER_MICRO

    def elapsed_seconds(self) -> float:
        return self.elapsed_nanos() / NANOS_PER_SECOND

    def expired(self) -> bool:
        """True once the budget has been used up; never for an unbounded timer."""
        return self._budget_ns is not None and self.elapsed_nanos() >= self._budget_ns
