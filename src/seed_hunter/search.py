import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from seed_hunter.keystream import BUFFER_SIZE, encode, words_from_bytes
from seed_hunter.oracle import ModExpOracle, OracleFn
from seed_hunter.twister import U32, MersenneTwister

logger = logging.getLogger(__name__)

SEED_STRIDE = 2
PROGRESS_INTERVAL = 256

ProgressFn = Callable[["SearchEngine"], None]


class SearchState(str, Enum):
    SEARCHING = "searching"
    FOUND = "found"

    def __str__(self):
        return self.value


class OracleOutputError(ValueError):
    """Raised when an oracle returns something other than a full buffer."""


class SearchExhausted(RuntimeError):
    """Raised when an iteration cap runs out before a match."""

    def __init__(self, iterations: int, next_seed: int):
        super().__init__(f"No match after {iterations} candidates; next seed would be {next_seed:08X}")
        self.iterations = iterations
        self.next_seed = next_seed


def format_words(words: List[int], per_line: int = 4) -> str:
    lines = []
    for i in range(0, len(words), per_line):
        lines.append(" ".join(f"{w:08X}" for w in words[i:i + per_line]))
    return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class SearchResult:
    seed: int
    plaintext: bytes
    ciphertext: bytes
    iterations: int

    @property
    def plaintext_words(self) -> List[int]:
        return words_from_bytes(self.plaintext)

    @property
    def ciphertext_words(self) -> List[int]:
        return words_from_bytes(self.ciphertext)

    def report(self) -> str:
        """Plain-text report in the same shape the bootloader tooling prints."""
        return "\n".join([
            "**** FOUND ****",
            f"Seed: {self.seed:08X}",
            "",
            "Key Data:",
            format_words(self.plaintext_words),
            "Seed Data:",
            format_words(self.ciphertext_words),
        ])


def next_candidate(seed: int, stride: int = SEED_STRIDE) -> int:
    return (seed + stride) & U32


class SearchEngine:
    """
    Walks candidate seeds until the first ciphertext word matches the fingerprint.

    Only the low 32 bits of the fingerprint are compared, against the first
    little-endian word of the ciphertext. A wider fingerprint is accepted but
    truncated, which is what the original tool did with its 64-bit argument.
    """

    def __init__(
        self,
        start_seed: int,
        fingerprint: int,
        oracle: Optional[OracleFn] = None,
        *,
        stride: int = SEED_STRIDE,
    ) -> None:
        self.start_seed = start_seed & U32
        self.target = fingerprint & U32
        self.oracle = oracle or ModExpOracle()
        self.stride = stride

        self.seed = self.start_seed
        self.state = SearchState.SEARCHING
        self.iterations = 0
        self.result: Optional[SearchResult] = None

        if fingerprint > U32:
            logger.warning(
                "Fingerprint %X is wider than 32 bits; only %08X is compared",
                fingerprint, self.target,
            )

    def evaluate(self, seed: int) -> Tuple[bytes, bytes]:
        """Run one candidate through a fresh generator and the oracle."""
        mt = MersenneTwister()
        mt.seed(seed)
        plaintext = encode(mt)
        ciphertext = self.oracle(plaintext)
        if len(ciphertext) != BUFFER_SIZE:
            raise OracleOutputError(
                f"Oracle returned {len(ciphertext)} bytes for seed {seed:08X}; expected {BUFFER_SIZE}"
            )
        return plaintext, ciphertext

    def step(self) -> Optional[SearchResult]:
        """Try the current candidate. Returns the result on a match, otherwise advances."""
        if self.state is SearchState.FOUND:
            return self.result

        current = self.seed
        plaintext, ciphertext = self.evaluate(current)
        self.iterations += 1

        if int.from_bytes(ciphertext[:4], "little") == self.target:
            self.state = SearchState.FOUND
            self.result = SearchResult(
                seed=current,
                plaintext=plaintext,
                ciphertext=ciphertext,
                iterations=self.iterations,
            )
            logger.info("Seed %08X matches after %d candidates", current, self.iterations)
            return self.result

        self.seed = next_candidate(current, self.stride)
        return None

    def run(
        self,
        max_iterations: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
        on_progress: Optional[ProgressFn] = None,
        progress_interval: int = PROGRESS_INTERVAL,
    ) -> Optional[SearchResult]:
        """
        Search until a match. Unbounded unless `max_iterations` is given.

        Returns None if `cancel` is set before a match. Raises SearchExhausted
        when the cap is reached. Oracle errors propagate.
        """
        logger.info(
            "Searching from seed %08X for fingerprint %08X (stride %d)",
            self.seed, self.target, self.stride,
        )
        budget = max_iterations
        while self.state is SearchState.SEARCHING:
            if cancel is not None and cancel.is_set():
                logger.info("Search cancelled at seed %08X after %d candidates", self.seed, self.iterations)
                return None
            if budget is not None:
                if budget <= 0:
                    raise SearchExhausted(self.iterations, self.seed)
                budget -= 1

            self.step()

            if on_progress is not None and self.iterations % progress_interval == 0:
                logger.debug("At seed %08X, %d candidates tried", self.seed, self.iterations)
                on_progress(self)

        return self.result
