"""
Extended tests for ConvCode.
Edge cases, noisy channels, long blocks, trellis termination, priors,
logging and reproducibility.
"""

import logging

import numpy as np
import pytest

from convcode import (
    ConvolutionalCode,
    CodeConfig,
    BCJRDecoder,
    BPSKModulator,
    noise_variance,
    hard_decision,
    InvalidArgumentError,
    AllocationError,
)

bpsk = BPSKModulator()


def awgn(symbols, ebn0, rate, rng):
    sigma = np.sqrt(noise_variance(ebn0, rate))
    return symbols + rng.normal(0.0, sigma, symbols.size)


# ══════════════════════════════════════════════════════════════
# 1. Streaming & session state
# ══════════════════════════════════════════════════════════════

def test_register_persists_across_calls():
    code = ConvolutionalCode.from_preset('nasa_k7')
    bits = np.array([1, 0, 1, 1, 0, 0, 1, 0, 1, 1], dtype=int)
    whole = code.encode(bits)

    code.zero_state()
    pieces = np.concatenate([code.encode(bits[:3]), code.encode(bits[3:])])
    assert np.array_equal(whole, pieces)


def test_bit_at_a_time_matches_block():
    code = ConvolutionalCode.from_preset('k3_rate_third')
    bits = [0, 1, 1, 0, 1, 0, 0, 1]
    block = code.encode(bits)

    code.zero_state()
    streamed = np.concatenate([code.encode([b]) for b in bits])
    assert np.array_equal(block, streamed)


def test_zero_state_restarts_frame():
    code = ConvolutionalCode.from_preset('k3_rate_half')
    first = code.encode([1, 0, 1, 1])
    continued = code.encode([1, 0, 1, 1])
    code.zero_state()
    restarted = code.encode([1, 0, 1, 1])
    assert np.array_equal(first, restarted)
    assert not np.array_equal(first, continued)


def test_two_dimensional_input_is_flattened():
    code = ConvolutionalCode.from_preset('k3_rate_half')
    flat = code.encode([1, 0, 1, 1])
    code.zero_state()
    matrix = code.encode(np.array([[1, 0], [1, 1]]))
    assert np.array_equal(flat, matrix)


def test_generator_change_rebuilds_trellis():
    code = ConvolutionalCode.from_preset('k3_rate_half')
    before = code.encode([1, 1, 1])
    code.zero_state()
    code.set_generator(5, 0)
    after = code.encode([1, 1, 1])
    assert not np.array_equal(before, after)
    assert code.next_output(0, 1) == 0b11
    assert code.next_output(3, 1) == 0b00


def test_large_memory_encodes_without_tables():
    code = ConvolutionalCode(n=2, k=1, m=20)
    code.set_generator(6000001, 0)
    code.set_generator(4000001, 1)
    encoded = code.encode([1, 0, 1])

    # g0 taps the input, the previous input and the oldest; g1 the input and the oldest
    assert encoded.tolist() == [1, 1, 1, 0, 1, 1]
    assert code.current_state == 0b101 << 17
    assert code.prev_states(code.current_state) == [1 << 18, (1 << 18) | 1]
    assert not code.trellis.tables_built


def test_decoder_builds_tables_once():
    code = ConvolutionalCode.from_preset('k3_rate_half')
    code.encode([1, 0, 1])
    assert not code.trellis.tables_built

    code.decode_bcjr(np.zeros(6), ebn0=2.0)
    tables = code.trellis._tables
    assert tables is not None
    code.decode_bcjr(np.zeros(6), ebn0=2.0)
    assert code.trellis._tables is tables


# ══════════════════════════════════════════════════════════════
# 2. Noisy channel decoding
# ══════════════════════════════════════════════════════════════

def test_bcjr_corrects_awgn_errors():
    code = ConvolutionalCode.from_preset('nasa_k7')
    rng = np.random.default_rng(1234)
    bits = rng.integers(0, 2, 500)
    coded = code.encode(bits)
    tx = bpsk.modulate(coded)

    ebn0 = 10 ** (4.0 / 10)
    rx = awgn(tx, ebn0, code.rate(), rng)

    raw_ber = np.mean(bpsk.demodulate(rx) != coded)
    decoded = hard_decision(code.decode_bcjr(rx, ebn0))
    ber = np.mean(decoded != bits)
    assert ber < 0.01, f"BER={ber:.4f}"
    assert raw_ber > ber, f"raw={raw_ber:.4f} decoded={ber:.4f}"


def test_soft_output_confidence_tracks_errors():
    code = ConvolutionalCode.from_preset('k3_rate_half')
    rng = np.random.default_rng(99)
    bits = rng.integers(0, 2, 2000)
    ebn0 = 10 ** (1.0 / 10)
    rx = awgn(bpsk.modulate(code.encode(bits)), ebn0, code.rate(), rng)

    posteriors = code.decode_bcjr(rx, ebn0)
    confidence = np.abs(posteriors - 0.5)
    errors = hard_decision(posteriors) != bits
    assert errors.any()
    # Wrong decisions are made with less confidence than right ones
    assert confidence[errors].mean() < confidence[~errors].mean()


def test_long_block_stays_finite():
    code = ConvolutionalCode.from_preset('k5_rate_half')
    rng = np.random.default_rng(5)
    bits = rng.integers(0, 2, 5000)
    ebn0 = 2.0
    rx = awgn(bpsk.modulate(code.encode(bits)), ebn0, code.rate(), rng)

    posteriors = code.decode_bcjr(rx, ebn0)
    assert posteriors.shape == (5000,)
    assert np.all(np.isfinite(posteriors))
    assert np.all((posteriors >= 0.0) & (posteriors <= 1.0))


def test_very_high_ebn0_does_not_underflow():
    code = ConvolutionalCode.from_preset('nasa_k7')
    rng = np.random.default_rng(11)
    bits = rng.integers(0, 2, 300)
    rx = bpsk.modulate(code.encode(bits))
    rx = rx + rng.normal(0.0, 0.3, rx.size)

    posteriors = code.decode_bcjr(rx, ebn0=1e6)
    assert np.all(np.isfinite(posteriors))


# ══════════════════════════════════════════════════════════════
# 3. Priors & termination
# ══════════════════════════════════════════════════════════════

def test_uninformative_observations_return_prior():
    code = ConvolutionalCode.from_preset('k3_rate_half')
    posteriors = code.decode_bcjr(np.zeros(20), ebn0=3.0, prior=0.3)
    assert np.allclose(posteriors, 0.3)


@pytest.mark.parametrize("prior", [0.0, 1.0])
def test_deterministic_prior(prior):
    code = ConvolutionalCode.from_preset('k3_rate_half')
    rng = np.random.default_rng(2)
    posteriors = code.decode_bcjr(rng.normal(0.0, 1.0, 16), ebn0=3.0, prior=prior)
    assert np.allclose(posteriors, prior)


def test_terminated_trellis_forces_tail_to_zero():
    code = ConvolutionalCode.from_preset('k3_rate_half')
    posteriors = code.decode_bcjr(np.zeros(12), ebn0=3.0, prior=0.3, terminated=True)
    assert np.allclose(posteriors[:4], 0.3)
    assert np.allclose(posteriors[4:], 0.0)


def test_terminated_roundtrip_with_tail_bits():
    code = ConvolutionalCode.from_preset('k5_rate_half')
    rng = np.random.default_rng(21)
    bits = rng.integers(0, 2, 100)
    framed = np.concatenate([bits, np.zeros(code.m, dtype=int)])
    ebn0 = 10 ** (5.0 / 10)
    rx = awgn(bpsk.modulate(code.encode(framed)), ebn0, code.rate(), rng)

    decoded = hard_decision(code.decode_bcjr(rx, ebn0, terminated=True))
    assert np.array_equal(decoded[-code.m:], np.zeros(code.m, dtype=int))
    assert np.mean(decoded[:len(bits)] != bits) < 0.03


def test_contradictory_prior_and_termination():
    code = ConvolutionalCode.from_preset('k3_rate_half')
    with pytest.raises(InvalidArgumentError):
        code.decode_bcjr(np.zeros(8), ebn0=3.0, prior=1.0, terminated=True)


# ══════════════════════════════════════════════════════════════
# 4. Degenerate codes
# ══════════════════════════════════════════════════════════════

def test_repetition_code_without_memory():
    code = ConvolutionalCode(n=3, k=1, m=0)
    for i in range(3):
        code.set_generator(1, i)
    encoded = code.encode([1, 0])
    assert encoded.tolist() == [1, 1, 1, 0, 0, 0]

    posteriors = code.decode_bcjr(bpsk.modulate(encoded), ebn0=100.0)
    assert np.allclose(posteriors, [1.0, 0.0], atol=1e-6)


def test_rate_one_code():
    code = ConvolutionalCode(n=1, k=1, m=1)
    code.set_generator(3, 0)
    encoded = code.encode([1, 1, 0, 1])
    assert encoded.tolist() == [1, 0, 1, 1]
    decoded = hard_decision(code.decode_bcjr(bpsk.modulate(encoded), ebn0=100.0))
    assert decoded.tolist() == [1, 1, 0, 1]


def test_observations_must_be_finite():
    code = ConvolutionalCode.from_preset('k3_rate_half')
    with pytest.raises(InvalidArgumentError):
        code.decode_bcjr([0.5, np.nan, 1.0, -1.0], ebn0=2.0)


# ══════════════════════════════════════════════════════════════
# 5. Logging & resource errors
# ══════════════════════════════════════════════════════════════

def test_unset_generator_warning(caplog):
    code = ConvolutionalCode(n=2, k=1, m=2)
    code.set_generator(7, 0)
    with caplog.at_level(logging.WARNING, logger='convcode'):
        encoded = code.encode([1, 1])
    assert 'unset generator' in caplog.text
    assert encoded.tolist()[1::2] == [0, 0]


def test_generator_allocation_failure(monkeypatch):
    def fail(*args, **kwargs):
        raise MemoryError

    monkeypatch.setattr('convcode.core.config.np.zeros', fail)
    with pytest.raises(AllocationError):
        CodeConfig(n=2, k=1, m=2)


def test_trellis_metric_allocation_failure(monkeypatch):
    decoder = BCJRDecoder(ConvolutionalCode.from_preset('k3_rate_half').trellis)

    def fail(*args, **kwargs):
        raise MemoryError

    monkeypatch.setattr('convcode.core.bcjr.np.full', fail)
    with pytest.raises(AllocationError):
        decoder.decode(np.zeros(8), ebn0=2.0)


# ══════════════════════════════════════════════════════════════
# 6. Reproducibility & determinism
# ══════════════════════════════════════════════════════════════

def test_decoding_is_deterministic():
    code = ConvolutionalCode.from_preset('lte_k7_third')
    rng = np.random.default_rng(8)
    bits = rng.integers(0, 2, 64)
    rx = awgn(bpsk.modulate(code.encode(bits)), 1.5, code.rate(), rng)

    first = code.decode_bcjr(rx, 1.5)
    second = code.decode_bcjr(rx, 1.5)
    assert np.array_equal(first, second)


def test_separate_instances_are_independent():
    a = ConvolutionalCode.from_preset('k3_rate_half')
    b = ConvolutionalCode.from_preset('k3_rate_half')
    a.encode([1, 1, 0])
    assert b.current_state == 0
    assert np.array_equal(b.encode([1, 0, 1, 1]), [1, 1, 1, 0, 0, 0, 0, 1])
