"""
ConvCode Code Configuration
Holds the (n, k, m) parameters of a rate-1/n feed-forward convolutional code,
its generator tap patterns and the derived state mask.
"""

import logging
from typing import Dict, List

import numpy as np

from convcode.core.bits import oct_to_dec, dec_to_oct
from convcode.core.errors import (
    ConfigurationError,
    OutOfRangeError,
    InvalidArgumentError,
    AllocationError,
)

logger = logging.getLogger(__name__)

# Register states are 32-bit words, one bit per memory element.
MAX_MEMORY = 31


class CodeConfig:
    """
    Parameters and generator set of an (n, 1, m) convolutional code.

    Generator i is stored as an (m+1)-bit tap pattern. Bit m taps the
    current input, bit m-1-j taps the input from j+1 steps earlier.
    """

    # Well-known generator sets, octal digits as printed in the literature
    STANDARD_CODES = {
        'k3_rate_half': {
            'name': 'K=3 rate 1/2',
            'n': 2,
            'm': 2,
            'generators': [7, 5],
            'description': 'Textbook constraint-length-3 code, free distance 5.',
        },
        'k3_rate_third': {
            'name': 'K=3 rate 1/3',
            'n': 3,
            'm': 2,
            'generators': [5, 7, 7],
            'description': 'Constraint-length-3 rate 1/3 code, free distance 8.',
        },
        'k5_rate_half': {
            'name': 'K=5 rate 1/2',
            'n': 2,
            'm': 4,
            'generators': [23, 35],
            'description': 'Constraint-length-5 code, free distance 7.',
        },
        'nasa_k7': {
            'name': 'CCSDS/NASA K=7 rate 1/2',
            'n': 2,
            'm': 6,
            'generators': [171, 133],
            'description': 'Deep-space standard code, free distance 10.',
        },
        'lte_k7_third': {
            'name': 'K=7 rate 1/3',
            'n': 3,
            'm': 6,
            'generators': [133, 171, 165],
            'description': 'Mother code of the LTE control channels, free distance 15.',
        },
    }

    def __init__(self, n: int = 2, k: int = 1, m: int = 2):
        if k != 1:
            raise ConfigurationError(f"Only single-input codes are supported, got k={k}")
        if n < 1:
            raise ConfigurationError(f"Number of outputs must be >= 1, got n={n}")
        if not 0 <= m <= MAX_MEMORY:
            raise ConfigurationError(f"Memory size must be in [0, {MAX_MEMORY}], got m={m}")

        self.n = int(n)
        self.k = int(k)
        self.m = int(m)
        self.state_mask = (1 << self.m) - 1
        self.n_states = 1 << self.m

        try:
            self.generators = np.zeros(self.n, dtype=np.int64)
        except MemoryError as e:
            raise AllocationError(f"Cannot allocate {self.n} generator slots") from e

        logger.debug("Configured (%d, %d, %d) code, %d states", self.n, self.k, self.m, self.n_states)

    @classmethod
    def from_dict(cls, config: Dict) -> 'CodeConfig':
        """
        Build a configuration from a dict.

        Expected keys: 'n', 'm', 'generators' (octal digits); 'k' defaults to 1.
        """
        try:
            n = config['n']
            m = config['m']
            generators = config['generators']
        except KeyError as e:
            raise ConfigurationError(f"Missing required config key: {e}") from e

        if len(generators) != n:
            raise ConfigurationError(f"Expected {n} generators, got {len(generators)}")

        code_config = cls(n=n, k=config.get('k', 1), m=m)
        for index, generator in enumerate(generators):
            code_config.set_generator(generator, index)
        return code_config

    @classmethod
    def from_preset(cls, name: str) -> 'CodeConfig':
        """Build one of the STANDARD_CODES by name."""
        if name not in cls.STANDARD_CODES:
            raise ConfigurationError(
                f"Unknown preset '{name}', available: {sorted(cls.STANDARD_CODES)}"
            )
        return cls.from_dict(cls.STANDARD_CODES[name])

    def _check_index(self, index: int):
        if not 0 <= index < self.n:
            raise OutOfRangeError(
                f"Generator index {index} out of range for n={self.n}",
                value=index, limit=self.n,
            )

    def set_generator(self, octal_value: int, index: int):
        """Store generator `index` given in octal digits, e.g. 171 for 0o171."""
        self._check_index(index)
        self.set_taps(oct_to_dec(octal_value), index)

    def set_taps(self, taps: int, index: int):
        """Store generator `index` given directly as a binary tap pattern."""
        self._check_index(index)
        taps = int(taps)
        if taps < 0 or taps >> (self.m + 1):
            raise InvalidArgumentError(
                f"Tap pattern {taps:#b} does not fit in m+1={self.m + 1} bits"
            )
        self.generators[index] = taps
        logger.debug("Generator %d set to %s (octal)", index, dec_to_oct(taps))

    def unset_generators(self) -> List[int]:
        """Indices of generators still at their zero default."""
        return [i for i in range(self.n) if self.generators[i] == 0]

    def rate(self) -> float:
        return self.k / self.n

    def get_summary(self) -> Dict:
        return {
            'n': self.n,
            'k': self.k,
            'm': self.m,
            'constraint_length': self.m + 1,
            'n_states': self.n_states,
            'rate': self.rate(),
            'generators_octal': [dec_to_oct(int(g)) for g in self.generators],
        }
