import hashlib
import time
from typing import NamedTuple

KEY_LENGTH = 16
SALT = b"salt"
HASH_NAME = "md5"


class WorkProof(NamedTuple):
    digest: bytes
    rounds: int
    elapsed_ms: float


def seed_key(seed: bytes) -> bytes:
    key = bytes(seed[:KEY_LENGTH])
    return key.ljust(KEY_LENGTH, b"\x00")


class BusyWorkEngine:
    """Burns CPU with chained PBKDF2 rounds until a deadline has passed.

    Every round feeds its output into the next one, so the loop cannot be
    skipped, and the final key is reproducible for a given seed and round
    count.
    """

    def derive(self, key: bytes, iterations: int) -> bytes:
        return hashlib.pbkdf2_hmac(HASH_NAME, key, SALT, iterations, dklen=KEY_LENGTH)

    def run_measured(self, seed: bytes, target_ms: int, iterations: int) -> WorkProof:
        if target_ms < 0:
            raise ValueError("target_ms must be >= 0")
        if iterations < 1:
            raise ValueError("iterations must be >= 1")

        started = time.monotonic()
        deadline = started + target_ms / 1000.0
        key = seed_key(seed)
        rounds = 0
        while True:
            key = self.derive(key, iterations)
            rounds += 1
            if time.monotonic() >= deadline:
                break
        elapsed_ms = (time.monotonic() - started) * 1000.0
        return WorkProof(digest=key, rounds=rounds, elapsed_ms=elapsed_ms)

    def run(self, seed: bytes, target_ms: int, iterations: int) -> bytes:
        return self.run_measured(seed, target_ms, iterations).digest
