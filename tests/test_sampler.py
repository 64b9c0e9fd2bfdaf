import math
import random
import statistics

import pytest

from compilesim.core.config import WorkParameters
from compilesim.core.sampler import DurationSampler, approx_standard_normal, lognormal_params


def test_lognormal_params_match_moment_identities():
    mu, sigma = lognormal_params(5.0, 1.2)

    assert mu == pytest.approx(math.log(25.0 / math.sqrt(25.0 + 1.44)))
    assert sigma == pytest.approx(math.sqrt(math.log(1 + 1.44 / 25.0)))


def test_approx_standard_normal_has_unit_moments():
    rng = random.Random(7)
    draws = [approx_standard_normal(rng, 50) for _ in range(5000)]

    assert statistics.mean(draws) == pytest.approx(0.0, abs=0.05)
    assert statistics.pstdev(draws) == pytest.approx(1.0, abs=0.05)


def test_sampled_rate_mean_matches_configured_mean():
    sampler = DurationSampler(WorkParameters(), rng=random.Random(11))
    rates = [sampler.sample_rate() for _ in range(5000)]

    assert statistics.mean(rates) == pytest.approx(5.0, rel=0.03)
    assert statistics.pstdev(rates) == pytest.approx(1.2, rel=0.15)


def test_zero_sd_gives_exact_rate():
    sampler = DurationSampler(WorkParameters(work_rate_mean=2.0, work_rate_sd=0.0))

    assert sampler.sample(100) == 200


def test_zero_size_yields_zero_and_negative_size_is_rejected():
    sampler = DurationSampler(WorkParameters())

    assert sampler.sample(0) == 0
    with pytest.raises(ValueError):
        sampler.sample(-1)


def test_samples_are_never_negative():
    sampler = DurationSampler(WorkParameters(work_rate_mean=0.5, work_rate_sd=3.0), rng=random.Random(3))

    assert all(sampler.sample(n) >= 0 for n in range(1, 500))


def test_expected_target_grows_with_document_size():
    means = []
    for size in (100, 200, 400):
        sampler = DurationSampler(WorkParameters(), rng=random.Random(42))
        means.append(statistics.mean(sampler.sample(size) for _ in range(2000)))

    assert means[0] < means[1] < means[2]


def test_same_seed_is_reproducible():
    first = DurationSampler(WorkParameters(), rng=random.Random(5))
    second = DurationSampler(WorkParameters(), rng=random.Random(5))

    assert [first.sample(640) for _ in range(10)] == [second.sample(640) for _ in range(10)]
