import threading

import pytest

from seed_hunter.keystream import encode_seed, words_from_bytes
from seed_hunter.oracle import ModExpOracle
from seed_hunter.search import (
    SEED_STRIDE,
    OracleOutputError,
    SearchEngine,
    SearchExhausted,
    SearchResult,
    SearchState,
    format_words,
    next_candidate,
)


class RecordingOracle:
    """Identity oracle that remembers every plaintext it was asked about."""

    def __init__(self):
        self.calls = []

    def __call__(self, plaintext: bytes) -> bytes:
        self.calls.append(plaintext)
        return plaintext


def first_word(seed: int) -> int:
    return words_from_bytes(encode_seed(seed))[0]


def candidate(start_seed: int, n: int) -> int:
    return (start_seed + SEED_STRIDE * n) & 0xFFFFFFFF


class TestCandidates:
    """Test suite for seed progression helpers"""

    def test_stride(self):
        assert SEED_STRIDE == 2
        assert next_candidate(0x10) == 0x12

    def test_wraps(self):
        assert next_candidate(0xFFFFFFFF) == 0x00000001
        assert next_candidate(0xFFFFFFFE) == 0x00000000


class TestSearchEngine:
    """Test suite for SearchEngine"""

    def test_initial_state(self):
        engine = SearchEngine(0x1001, 0xAABBCCDD, RecordingOracle())
        assert engine.state is SearchState.SEARCHING
        assert engine.seed == 0x1001
        assert engine.iterations == 0
        assert engine.result is None

    def test_progression(self):
        """The n-th non-matching iteration uses start + 2n"""
        start = 0x2000
        target = first_word(candidate(start, 3))
        oracle = RecordingOracle()
        engine = SearchEngine(start, target, oracle)

        seen = []
        while engine.state is SearchState.SEARCHING:
            seen.append(engine.seed)
            engine.step()

        assert seen == [candidate(start, n) for n in range(4)]
        assert engine.result.seed == candidate(start, 3)
        assert engine.result.iterations == 4
        assert oracle.calls == [encode_seed(s) for s in seen]

    def test_progression_wraps(self):
        start = 0xFFFFFFFD
        engine = SearchEngine(start, first_word(0x00000001), RecordingOracle())
        result = engine.run(max_iterations=10)
        assert result.seed == 0x00000001
        assert result.iterations == 3

    def test_even_start_reports_uncoerced_seed(self):
        """An even start seed is searched as seed | 1 but reported as given"""
        engine = SearchEngine(0x4000, first_word(0x4001), RecordingOracle())
        result = engine.run(max_iterations=1)
        assert result.seed == 0x4000
        assert result.plaintext == encode_seed(0x4001)

    def test_fingerprint_truncated_to_32_bits(self):
        """Only the low 32 bits of a wide fingerprint are compared"""
        target = first_word(0x31)
        engine = SearchEngine(0x31, (0xDEADBEEF << 32) | target, RecordingOracle())
        assert engine.target == target
        assert engine.run(max_iterations=1).seed == 0x31

    def test_step_after_found_is_noop(self):
        oracle = RecordingOracle()
        engine = SearchEngine(0x51, first_word(0x51), oracle)
        result = engine.step()
        assert engine.state is SearchState.FOUND
        assert engine.step() is result
        assert len(oracle.calls) == 1

    def test_fresh_generator_per_candidate(self):
        """Evaluating a seed twice gives the same plaintext"""
        engine = SearchEngine(0, 0, RecordingOracle())
        assert engine.evaluate(0x77)[0] == engine.evaluate(0x77)[0]

    def test_max_iterations(self):
        start = 0x9000
        engine = SearchEngine(start, first_word(start - 2), RecordingOracle())
        with pytest.raises(SearchExhausted) as exc_info:
            engine.run(max_iterations=5)
        assert exc_info.value.iterations == 5
        assert exc_info.value.next_seed == candidate(start, 5)
        assert engine.state is SearchState.SEARCHING

    def test_cancel(self):
        cancel = threading.Event()
        cancel.set()
        engine = SearchEngine(0x11, 0, RecordingOracle())
        assert engine.run(cancel=cancel) is None
        assert engine.iterations == 0

    def test_cancel_from_progress(self):
        cancel = threading.Event()
        engine = SearchEngine(0x11, first_word(0x9), RecordingOracle())
        result = engine.run(cancel=cancel, on_progress=lambda e: cancel.set(), progress_interval=3)
        assert result is None
        assert engine.iterations == 3

    def test_progress_interval(self):
        calls = []
        start = 0x501
        engine = SearchEngine(start, first_word(candidate(start, 9)), RecordingOracle())
        engine.run(on_progress=lambda e: calls.append(e.iterations), progress_interval=4)
        assert calls == [4, 8]

    def test_oracle_error_propagates(self):
        def broken(plaintext: bytes) -> bytes:
            raise MemoryError("bignum exhausted")

        engine = SearchEngine(0x1, 0, broken)
        with pytest.raises(MemoryError, match="bignum exhausted"):
            engine.run()


# First ciphertext words the bootloader tooling printed for these seeds.
KNOWN_FINGERPRINTS = {
    0x6B8B4567: 0x300E9592,
    0x00001001: 0x81D599D5,
}


class TestEndToEnd:
    """Search against the firmware key"""

    @pytest.mark.parametrize("seed, fingerprint", sorted(KNOWN_FINGERPRINTS.items()))
    def test_known_fingerprint(self, seed, fingerprint):
        """The encoder and oracle reproduce the recorded first ciphertext word"""
        ciphertext = ModExpOracle()(encode_seed(seed))
        assert words_from_bytes(ciphertext)[0] == fingerprint

    @pytest.mark.parametrize("seed, fingerprint", sorted(KNOWN_FINGERPRINTS.items()))
    def test_found_on_first_iteration(self, seed, fingerprint):
        engine = SearchEngine(seed, fingerprint, ModExpOracle())
        result = engine.run(max_iterations=1)

        assert engine.state is SearchState.FOUND
        assert result.iterations == 1
        assert result.seed == seed
        assert result.ciphertext_words[0] == fingerprint
        assert result.plaintext == encode_seed(seed)
        assert result.plaintext_words[63] >> 16 == 0x0002
        assert result.plaintext[245] == 0

    def test_found_after_a_few_candidates(self):
        """Starting two candidates early still lands on the recorded seed"""
        seed, fingerprint = 0x00001001, KNOWN_FINGERPRINTS[0x00001001]
        result = SearchEngine(seed - 4, fingerprint, ModExpOracle()).run(max_iterations=10)
        assert result.seed == seed
        assert result.iterations == 3


class TestSearchResult:
    """Test suite for SearchResult"""

    def test_report(self):
        plaintext = encode_seed(0x21)
        result = SearchResult(seed=0x21, plaintext=plaintext, ciphertext=plaintext, iterations=1)
        lines = result.report().splitlines()
        assert lines[0] == "**** FOUND ****"
        assert lines[1] == "Seed: 00000021"
        assert lines[3] == "Key Data:"
        assert lines[4].split()[0] == f"{result.plaintext_words[0]:08X}"
        assert lines[20] == "Seed Data:"
        assert len(lines) == 37

    def test_format_words(self):
        assert format_words([1, 2, 3, 4, 0xABCDEF12]) == "00000001 00000002 00000003 00000004\nABCDEF12"


class TestOracleOutput:
    """Test suite for oracle output checks"""

    def test_short_output_rejected_on_first_call(self):
        """A truncated buffer fails before it can match"""
        engine = SearchEngine(0x1, first_word(0x1), lambda plaintext: plaintext[:4])
        with pytest.raises(OracleOutputError, match="returned 4 bytes for seed 00000001"):
            engine.step()
        assert engine.state is SearchState.SEARCHING
        assert engine.iterations == 0
