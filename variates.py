import datetime as _dt
import hashlib
import math

import numpy as np

from config import InvalidParameterError


def _generate_seed_from_timestamp() -> int:
    ts = _dt.datetime.now(_dt.timezone.utc).isoformat()
    return int.from_bytes(hashlib.sha256(ts.encode()).digest()[:8], "big") % (2**32 - 1)


def _check_finite(**values: float) -> None:
    for name, value in values.items():
        if not math.isfinite(value):
            raise InvalidParameterError(f"{name} must be finite, got {value}")


def normal(mean: float, variance: float, rng: np.random.Generator) -> float:
    """
    Draws one sample from N(mean, variance) with the Box-Muller transform.

    Args:
        mean: Mean of the distribution.
        variance: Variance of the distribution (not the standard deviation).
        rng: Entropy source; the only state this function consumes.
    """
    _check_finite(mean=mean, variance=variance)
    if variance < 0:
        raise InvalidParameterError(f"variance must be non-negative, got {variance}")

    u1 = rng.random()
    while u1 == 0.0:  # ln(0)
        u1 = rng.random()
    u2 = rng.random()
    z0 = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return mean + z0 * math.sqrt(variance)


def lognormal(mean: float, variance: float, rng: np.random.Generator) -> float:
    """
    Draws one log-normal sample parameterised by the mean and variance of the
    log-normal itself.

    The nested normal draw uses ``mean``/``variance`` directly rather than a
    standard normal, so the output is not a textbook log-normal with these
    moments.
    """
    _check_finite(mean=mean, variance=variance)
    if mean <= 0:
        raise InvalidParameterError(f"log-normal mean must be positive, got {mean}")
    if variance < 0:
        raise InvalidParameterError(f"variance must be non-negative, got {variance}")

    sigma_y = math.sqrt(math.log(1.0 + variance / mean**2))
    mu_y = math.log(mean) - 0.5 * sigma_y * sigma_y
    return math.exp(mu_y + sigma_y * normal(mean, variance, rng))
