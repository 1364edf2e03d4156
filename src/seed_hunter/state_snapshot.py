from dataclasses import dataclass
from typing import Optional

from seed_hunter.search import SearchResult, SearchState


@dataclass(frozen=True, slots=True)
class SearchSnapshot:
    """Immutable view of the search handed from the worker thread to the UI."""

    version: int
    state: SearchState
    start_seed: int
    current_seed: int
    fingerprint: int
    iterations: int
    elapsed: float
    result: Optional[SearchResult] = None

    @property
    def rate(self) -> float:
        """Candidates per second."""
        if self.elapsed <= 0:
            return 0.0
        return self.iterations / self.elapsed

    @property
    def complete(self) -> bool:
        return self.state is not SearchState.SEARCHING
