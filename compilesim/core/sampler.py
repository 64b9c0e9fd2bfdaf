import math
import random
from typing import Optional, Tuple

from .config import WorkParameters


def lognormal_params(mean: float, sd: float) -> Tuple[float, float]:
    """Convert a linear-space mean/sd into the (mu, sigma) of the underlying normal.

    See https://en.wikipedia.org/wiki/Log-normal_distribution
    """
    if mean <= 0:
        raise ValueError("mean must be > 0")
    m2 = mean * mean
    s2 = sd * sd
    mu = math.log(m2 / math.sqrt(m2 + s2))
    sigma = math.sqrt(math.log(1 + s2 / m2))
    return mu, sigma


def approx_standard_normal(rng: random.Random, n: int = 50) -> float:
    """Central-limit approximation of a standard normal draw.

    The mean of n uniforms on [0, 1) has mean 1/2 and variance 1/(12n).
    Not very accurate in the tails, but cheap.
    """
    total = 0.0
    for _ in range(n):
        total += rng.random()
    return (total / n - 0.5) * math.sqrt(12.0 * n)


class DurationSampler:
    """Decides how long a simulated compile should take.

    The work rate (ms per character) is log-normally distributed with the
    configured linear-space mean and standard deviation; the target duration
    is that rate times the document size.
    """

    def __init__(self, params: WorkParameters, rng: Optional[random.Random] = None):
        self.params = params
        self.rng = rng or random.Random()
        self.mu, self.sigma = lognormal_params(params.work_rate_mean, params.work_rate_sd)

    def sample_rate(self) -> float:
        z = approx_standard_normal(self.rng, self.params.normal_samples)
        return math.exp(self.mu + z * self.sigma)

    def sample(self, document_size: int) -> int:
        if document_size < 0:
            raise ValueError("document_size must be >= 0")
        if document_size == 0:
            return 0
        return max(0, int(round(self.sample_rate() * document_size)))
