"""
ConvCode: rate-1/n convolutional encoder with a soft-output BCJR decoder.

Public API:
    - ConvolutionalCode(n, k, m): configure, encode, decode_bcjr
    - CodeConfig, Trellis, ShiftRegister, ConvolutionalEncoder, BCJRDecoder
    - hard_decision(posteriors), posterior_to_llr(posteriors)
"""

import logging

from convcode.core.ccode import ConvolutionalCode
from convcode.core.config import CodeConfig
from convcode.core.trellis import Trellis, ShiftRegister
from convcode.core.encoder import ConvolutionalEncoder
from convcode.core.bcjr import BCJRDecoder, hard_decision, posterior_to_llr
from convcode.core.modulation import BPSKModulator, noise_variance
from convcode.core.errors import (
    ConvCodeError,
    ConfigurationError,
    OutOfRangeError,
    InvalidArgumentError,
    AllocationError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "1.0.0"

__all__ = [
    "ConvolutionalCode",
    "CodeConfig",
    "Trellis",
    "ShiftRegister",
    "ConvolutionalEncoder",
    "BCJRDecoder",
    "hard_decision",
    "posterior_to_llr",
    "BPSKModulator",
    "noise_variance",
    "ConvCodeError",
    "ConfigurationError",
    "OutOfRangeError",
    "InvalidArgumentError",
    "AllocationError",
]
