"""
ConvCode Hard Encoder
Streams hard bits through the shift register, n output bits per input bit.
"""

import logging

import numpy as np

from convcode.core.bits import symbol_to_bits
from convcode.core.errors import InvalidArgumentError
from convcode.core.trellis import ShiftRegister

logger = logging.getLogger(__name__)


class ConvolutionalEncoder:
    """
    Rate 1/n feed-forward encoder.
    The register keeps its state across encode() calls until zero_state().
    """

    def __init__(self, register: ShiftRegister):
        self.register = register

    @property
    def n(self) -> int:
        return self.register.trellis.n

    def encode(self, bits) -> np.ndarray:
        """Encode input bits, output is time-major: all n bits of step t, then t+1."""
        bits = np.asarray(bits).ravel()
        if bits.size and not np.all((bits == 0) | (bits == 1)):
            raise InvalidArgumentError("Input bits must be 0/1")

        if 0 in self.register.trellis.generators:
            logger.warning("Encoding with unset generator(s); their outputs are all zero")

        output = []
        for bit in bits:
            symbol = self.register.next_output(int(bit))
            output.extend(symbol_to_bits(symbol, self.n))

        return np.array(output, dtype=int)

    def zero_state(self):
        self.register.zero_state()
