import hashlib
import time

import pytest

from compilesim.core.busywork import KEY_LENGTH, BusyWorkEngine, seed_key


def test_seed_key_truncates_and_pads_to_sixteen_bytes():
    assert seed_key(b"ab") == b"ab" + b"\x00" * 14
    assert seed_key(b"0123456789abcdefXYZ") == b"0123456789abcdef"
    assert len(seed_key(b"")) == KEY_LENGTH


def test_zero_target_runs_exactly_one_round():
    engine = BusyWorkEngine()
    proof = engine.run_measured(b"test doc test doc", 0, 7)

    expected = hashlib.pbkdf2_hmac("md5", b"test doc test do", b"salt", 7, dklen=16)
    assert proof.rounds == 1
    assert proof.digest == expected


def test_zero_target_is_reproducible():
    engine = BusyWorkEngine()

    assert engine.run(b"seed", 0, 100) == engine.run(b"seed", 0, 100)


def test_never_returns_before_target_elapsed():
    engine = BusyWorkEngine()
    for target_ms in (0, 20, 80):
        started = time.monotonic()
        proof = engine.run_measured(b"seed", target_ms, 1)
        elapsed_ms = (time.monotonic() - started) * 1000.0

        assert elapsed_ms >= target_ms
        assert proof.elapsed_ms >= target_ms
        assert proof.rounds >= 1


def test_longer_target_runs_more_rounds():
    engine = BusyWorkEngine()

    assert engine.run_measured(b"seed", 50, 1).rounds > engine.run_measured(b"seed", 0, 1).rounds


def test_digest_length_is_constant():
    engine = BusyWorkEngine()

    assert len(engine.run(b"x", 0, 1)) == KEY_LENGTH
    assert len(engine.run(b"x" * 5000, 10, 1)) == KEY_LENGTH


def test_invalid_arguments_are_rejected():
    engine = BusyWorkEngine()
    with pytest.raises(ValueError):
        engine.run(b"seed", -1, 1)
    with pytest.raises(ValueError):
        engine.run(b"seed", 0, 0)
