import threading
import time
from typing import Optional

from seed_hunter.search import SearchEngine, SearchResult
from seed_hunter.state_queue import SingleSlotQueue
from seed_hunter.state_snapshot import SearchSnapshot


class SnapshotPublisher:
    """Turns engine progress into versioned snapshots on a queue."""

    def __init__(self, engine: SearchEngine, state_queue: SingleSlotQueue[SearchSnapshot]) -> None:
        self.engine = engine
        self.state_queue = state_queue
        self.version = 0
        self.started = time.monotonic()

    def snapshot(self) -> SearchSnapshot:
        engine = self.engine
        self.version += 1
        return SearchSnapshot(
            version=self.version,
            state=engine.state,
            start_seed=engine.start_seed,
            current_seed=engine.seed,
            fingerprint=engine.target,
            iterations=engine.iterations,
            elapsed=time.monotonic() - self.started,
            result=engine.result,
        )

    def __call__(self, engine: SearchEngine) -> None:
        self.state_queue.publish(self.snapshot())


def search_seed(
    engine: SearchEngine,
    state_queue: SingleSlotQueue[SearchSnapshot],
    *,
    max_iterations: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> Optional[SearchResult]:
    """
    Run the engine on the calling thread, publishing progress for the UI.

    The queue is always closed on the way out so the UI loop can exit,
    including when the oracle raises or the cap is exhausted.
    """
    publisher = SnapshotPublisher(engine, state_queue)
    try:
        publisher(engine)
        result = engine.run(max_iterations=max_iterations, cancel=cancel, on_progress=publisher)
        # Final state snapshot.
        publisher(engine)
        return result
    finally:
        state_queue.close()
