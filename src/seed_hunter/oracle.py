import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from seed_hunter.keystream import BUFFER_SIZE, from_int, to_int

logger = logging.getLogger(__name__)

OracleFn = Callable[[bytes], bytes]

# RSA public key 0x136 from the supplier bootloader (SBOOT).
FIRMWARE_MODULUS_HEX = (
    "de5a5615fdda3b76b4ecd8754228885e7bf11fdd6c8c18ac24230f7f770006cf"
    "e60465384e6a5ab4daa3009abc65bff2abb1da1428ce7a925366a14833dcd181"
    "83bad61b2c66f0d8b9c4c90bf27fe9d1c55bf2830306a13d4559df60783f5809"
    "547ffd364dbccea7a7c2fc32a0357ceba3e932abcac6bd6398894a1a22f63bdc"
    "45b5da8b3c4e80f8c097ca7ffd18ff6c78c81e94c016c080ee6c5322e1aeb59d"
    "2123dce1e4dd20d0f1cdb017326b4fd813c060e8d2acd62e703341784dca6676"
    "32233de57db820f149964b3f4f0c785c39e2534a7ae36fd115b9f06457822f8a"
    "9b7ce7533777a4fb03610d6b4018ab332be4e7ad2f4ac193040e5a037417bc53"
)
FIRMWARE_EXPONENT = 65537


class KeyLoadError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class RsaPublicKey:
    n: int
    e: int = FIRMWARE_EXPONENT

    @property
    def bits(self) -> int:
        return self.n.bit_length()

    @classmethod
    def firmware(cls) -> "RsaPublicKey":
        """The key baked into the bootloader."""
        return cls(n=int(FIRMWARE_MODULUS_HEX, 16), e=FIRMWARE_EXPONENT)

    @classmethod
    def from_pem(cls, path: str | Path) -> "RsaPublicKey":
        """Load an RSA public key from a PEM file."""
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            raise KeyLoadError(f"Could not read key file {path}: {e}") from e

        try:
            key = serialization.load_pem_public_key(data)
        except ValueError as e:
            raise KeyLoadError(f"Not a PEM public key: {path}") from e

        if not isinstance(key, rsa.RSAPublicKey):
            raise KeyLoadError(f"Not an RSA public key: {path}")

        numbers = key.public_numbers()
        return cls(n=numbers.n, e=numbers.e)


class ModExpOracle:
    """Computes plaintext^e mod n over 256-byte little-endian buffers."""

    def __init__(self, key: RsaPublicKey | None = None) -> None:
        self.key = key or RsaPublicKey.firmware()
        if self.key.n < 2:
            raise KeyLoadError(f"Modulus must be at least 2, got {self.key.n}")
        if self.key.bits > BUFFER_SIZE * 8:
            raise KeyLoadError(
                f"Modulus is {self.key.bits} bits; at most {BUFFER_SIZE * 8} fit the buffer"
            )
        logger.debug("Oracle ready: %d-bit modulus, e=%d", self.key.bits, self.key.e)

    def __call__(self, plaintext: bytes) -> bytes:
        return from_int(pow(to_int(plaintext), self.key.e, self.key.n))
