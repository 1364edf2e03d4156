import struct
from typing import List, Tuple

from seed_hunter.twister import MersenneTwister, seeded

WORD_COUNT = 64
BUFFER_SIZE = WORD_COUNT * 4  # 256 bytes, one 2048-bit RSA block.
ZEROED_OFFSET = 245  # Cleared unconditionally by SBOOT at 800167d4.
FINAL_WORD_ADDEND = 0x0200

_WORDS = struct.Struct(f"<{WORD_COUNT}I")


def bswap32(x: int) -> int:
    """Reverse the byte order of a 32-bit word."""
    return (
        ((x & 0xFF000000) >> 24)
        | ((x & 0x00FF0000) >> 8)
        | ((x & 0x0000FF00) << 8)
        | ((x & 0x000000FF) << 24)
    )


def patch_final_word(raw: int) -> int:
    """
    Replace the high half of the last draw the way the bootloader does.

    The firmware keeps the low 16 bits, swaps them to the top, adds 0x0200
    and swaps back. Stored little-endian this leaves `00 02` in the top two
    bytes of the buffer. Keep both swaps; the carry behaviour of the add is
    part of what has to match.
    """
    return bswap32((bswap32(raw & 0xFFFF) + FINAL_WORD_ADDEND) & 0xFFFFFFFF)


def unpatch_final_word(word: int) -> int:
    """Invert `patch_final_word`, recovering the low 16 bits of the raw draw."""
    return bswap32((bswap32(word) - FINAL_WORD_ADDEND) & 0xFFFFFFFF)


def draw_words(mt: MersenneTwister) -> Tuple[List[int], int]:
    """Draw the 64 words for one buffer. Returns (words, raw final draw)."""
    words = [mt.next() for _ in range(WORD_COUNT - 1)]
    raw_final = mt.next()
    words.append(patch_final_word(raw_final))
    return words, raw_final


def encode(mt: MersenneTwister) -> bytes:
    """Build the 256-byte plaintext buffer from the next 64 draws of `mt`."""
    words, _ = draw_words(mt)
    buf = bytearray(_WORDS.pack(*words))
    buf[ZEROED_OFFSET] = 0
    return bytes(buf)


def encode_seed(seed: int) -> bytes:
    """Encode the buffer produced by a freshly seeded generator."""
    return encode(seeded(seed))


def words_from_bytes(buf: bytes) -> List[int]:
    """Reinterpret a 256-byte buffer as 64 little-endian words."""
    if len(buf) != BUFFER_SIZE:
        raise ValueError(f"buffer must be {BUFFER_SIZE} bytes, got {len(buf)}")
    return list(_WORDS.unpack(buf))


def to_int(buf: bytes) -> int:
    return int.from_bytes(buf, "little")


def from_int(value: int) -> bytes:
    return value.to_bytes(BUFFER_SIZE, "little")
