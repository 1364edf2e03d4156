from typing import List

N = 624  # Length of the state vector.
M = 397  # Lookahead distance used by the reload.
MATRIX_A = 0x9908B0DF
SEED_MULTIPLIER = 69069

HI_BIT = 0x80000000
LO_BITS = 0x7FFFFFFF
U32 = 0xFFFFFFFF


def temper(y: int) -> int:
    """Apply the output tempering to a raw state word."""
    y ^= y >> 11
    y ^= (y << 7) & 0x9D2C5680
    y ^= (y << 15) & 0xEFC60000
    return (y ^ (y >> 18)) & U32


def _mix(s0: int, s1: int) -> int:
    """Combine the high bit of s0 with the low 31 bits of s1, shift, and fold in the matrix."""
    y = ((s0 & HI_BIT) | (s1 & LO_BITS)) >> 1
    if s1 & 1:
        y ^= MATRIX_A
    return y


class MersenneTwister:
    """
    MT19937 as recoded by Cokus, seeded with Knuth's 69069 LCG.

    This is the flavour found in the bootloader: the seed is forced odd,
    the state is reloaded in two passes around the wrap point, and the
    countdown in `left` mirrors the firmware's so the reload happens on
    exactly the same draw.
    """

    def __init__(self) -> None:
        self.state: List[int] = [0] * N
        self.left = -1  # -1 means never seeded.
        self.index = 0
        self.reloads = 0

    def seed(self, value: int) -> None:
        """Fill the state vector from the 69069 LCG. Forces the seed odd."""
        x = (value | 1) & U32
        state = self.state
        state[0] = x
        for i in range(1, N):
            x = (x * SEED_MULTIPLIER) & U32
            state[i] = x
        self.left = 0
        self.index = 0

    def reload(self) -> int:
        """Regenerate all N state words and return the first tempered output."""
        if self.left < -1:
            self.seed(1)

        state = self.state
        self.left = N - 1
        self.index = 1
        self.reloads += 1

        # First pass: the lookahead has not wrapped yet.
        s0, s1 = state[0], state[1]
        for i in range(N - M):
            state[i] = state[i + M] ^ _mix(s0, s1)
            s0, s1 = s1, state[i + 2]

        # Second pass: the lookahead continues from the start of the vector.
        for i in range(N - M, N - 1):
            state[i] = state[i + M - N] ^ _mix(s0, s1)
            s0 = s1
            if i + 2 < N:
                s1 = state[i + 2]

        # The last word pairs with the freshly written state[0].
        s1 = state[0]
        state[N - 1] = state[M - 1] ^ _mix(s0, s1)
        return temper(s1)

    def next(self) -> int:
        """Draw the next tempered 32-bit word."""
        self.left -= 1
        if self.left < 0:
            return self.reload()

        y = self.state[self.index]
        self.index += 1
        return temper(y)

    def words(self, count: int) -> List[int]:
        return [self.next() for _ in range(count)]


def seeded(value: int) -> MersenneTwister:
    """Return a fresh generator seeded with `value`."""
    mt = MersenneTwister()
    mt.seed(value)
    return mt
