"""
ConvCode BPSK Mapping
Antipodal mapping assumed by the BCJR decoder's AWGN channel model.
"""

import numpy as np

from convcode.core.errors import InvalidArgumentError


class BPSKModulator:
    """Binary phase shift keying: bit 1 = +1.0, bit 0 = -1.0."""

    def modulate(self, bits) -> np.ndarray:
        """Convert bit array to unit-energy antipodal symbols."""
        bits = np.asarray(bits, dtype=float).ravel()
        return 2.0 * bits - 1.0

    def demodulate(self, symbols) -> np.ndarray:
        """Hard decision on received symbols."""
        symbols = np.asarray(symbols, dtype=float).ravel()
        return (symbols > 0).astype(int)


def noise_variance(ebn0: float, rate: float) -> float:
    """
    Per-dimension noise variance of unit-energy BPSK at a given Eb/N0.

    Es = rate * Eb, so sigma^2 = N0 / 2 = 1 / (2 * rate * Eb/N0).
    """
    if not np.isfinite(ebn0) or ebn0 <= 0:
        raise InvalidArgumentError(f"Eb/N0 must be finite and > 0 (linear), got {ebn0}")
    return 1.0 / (2.0 * rate * ebn0)
