"""
ConvCode Convolutional Code
Single entry point tying configuration, trellis, encoder and BCJR decoder
together for one (n, 1, m) code.
"""

import logging
from typing import Dict, List

import numpy as np

from convcode.core.bcjr import BCJRDecoder
from convcode.core.bits import count_1bits, count_0bits
from convcode.core.config import CodeConfig
from convcode.core.encoder import ConvolutionalEncoder
from convcode.core.trellis import Trellis, ShiftRegister

logger = logging.getLogger(__name__)


class ConvolutionalCode:
    """
    Rate 1/n non-recursive convolutional code.

    Typical use:
        code = ConvolutionalCode(n=2, k=1, m=2)
        code.set_generator(7, 0)
        code.set_generator(5, 1)
        coded = code.encode(bits)
        p_one = code.decode_bcjr(received, ebn0=10.0)

    The shift register persists across encode() calls, so a long stream can
    be fed in pieces; call zero_state() to start a new frame. Not safe for
    concurrent use, keep one instance per stream.
    """

    def __init__(self, n: int = 2, k: int = 1, m: int = 2):
        self._init_from_config(CodeConfig(n, k, m))

    def _init_from_config(self, config: CodeConfig):
        self.config = config
        self._trellis = Trellis(config)
        self._decoder = None
        self._register = ShiftRegister(self._trellis)
        self.encoder = ConvolutionalEncoder(self._register)

    @classmethod
    def from_config(cls, config: CodeConfig) -> 'ConvolutionalCode':
        code = cls.__new__(cls)
        code._init_from_config(config)
        return code

    @classmethod
    def from_dict(cls, config: Dict) -> 'ConvolutionalCode':
        return cls.from_config(CodeConfig.from_dict(config))

    @classmethod
    def from_preset(cls, name: str) -> 'ConvolutionalCode':
        return cls.from_config(CodeConfig.from_preset(name))

    @property
    def n(self) -> int:
        return self.config.n

    @property
    def k(self) -> int:
        return self.config.k

    @property
    def m(self) -> int:
        return self.config.m

    @property
    def state_mask(self) -> int:
        return self.config.state_mask

    @property
    def trellis(self) -> Trellis:
        return self._sync_trellis()

    @property
    def register(self) -> ShiftRegister:
        self._sync_trellis()
        return self._register

    def _sync_trellis(self) -> Trellis:
        """Swap in a fresh trellis if a generator changed since the last one."""
        if self._trellis.generators != tuple(int(g) for g in self.config.generators):
            self._trellis = Trellis(self.config)
            self._decoder = None
            self._register.trellis = self._trellis
        return self._trellis

    def set_generator(self, octal_value: int, index: int):
        """Set generator `index` from octal digits (171 means 0o171)."""
        self.config.set_generator(octal_value, index)

    def set_internal_state(self, state: int):
        self.register.set_state(state)

    def rate(self) -> float:
        return self.config.rate()

    @property
    def current_state(self) -> int:
        return self._register.current_state

    @property
    def last_state(self) -> int:
        return self._register.last_state

    def zero_state(self):
        self._register.zero_state()

    def next_state(self, state: int, input_bit: int) -> int:
        return self.trellis.next_state(state, input_bit)

    def next_output(self, state: int, input_bit: int) -> int:
        return self.trellis.next_output(state, input_bit)

    def prev_states(self, state: int) -> List[int]:
        return self.trellis.prev_states(state)

    def prev_output(self, prev_state: int, input_bit: int) -> int:
        return self.trellis.prev_output(prev_state, input_bit)

    def count_1bits(self, x: int) -> int:
        return count_1bits(x)

    def count_0bits(self, x: int) -> int:
        return count_0bits(x)

    def encode(self, bits) -> np.ndarray:
        self._sync_trellis()
        return self.encoder.encode(bits)

    def decode_bcjr(self, observations, ebn0: float, prior: float = 0.5,
                    terminated: bool = False) -> np.ndarray:
        """
        Posterior P(bit = 1) per decoded input bit.

        observations are BPSK channel values (bit 1 sent as +1), n per
        input bit in encoder output order. The trellis is assumed to start
        in state 0; its end is free unless `terminated` is set.

        ebn0 is linear and must be finite and > 0; inf raises
        InvalidArgumentError. Approach the noiseless limit with a large
        finite value such as 1e3.
        """
        trellis = self._sync_trellis()
        if self._decoder is None:
            self._decoder = BCJRDecoder(trellis)
        return self._decoder.decode(observations, ebn0, prior, terminated)

    def get_summary(self) -> Dict:
        summary = self.config.get_summary()
        summary['current_state'] = self.current_state
        summary['last_state'] = self.last_state
        return summary
