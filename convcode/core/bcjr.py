"""
ConvCode BCJR Decoder
Forward-backward (MAP) decoding over the code trellis with an AWGN/BPSK
channel model. Returns per-bit posterior probabilities.
"""

import logging

import numpy as np

from convcode.core.errors import InvalidArgumentError, AllocationError
from convcode.core.modulation import noise_variance
from convcode.core.trellis import Trellis

logger = logging.getLogger(__name__)

# Clip for probabilities converted to LLRs, keeps LLRs within about +/-34.5
_LLR_EPS = 1e-15


class BCJRDecoder:
    """
    Soft-output BCJR decoder.

    State metrics are kept in the log domain and renormalised at every
    step, so long blocks do not underflow. The decoder never touches an
    encoder's shift register; all working arrays are per call.
    """

    def __init__(self, trellis: Trellis):
        self.trellis = trellis
        self.n = trellis.n
        self.n_states = trellis.n_states
        self._build_tables()

    def _build_tables(self):
        """Edge tables in both directions and the BPSK symbol of every edge."""
        self.next_state = self.trellis.next_state_table
        # (state, input, n) antipodal symbols, 0 -> -1, 1 -> +1
        self.edge_symbols = 2.0 * self.trellis.output_bits - 1.0

        # Every state has exactly two incoming edges for k=1
        self.in_prev = np.zeros((self.n_states, 2), dtype=np.int64)
        self.in_bit = np.zeros((self.n_states, 2), dtype=np.int64)
        for state in range(self.n_states):
            for j, (prev, input_bit, _) in enumerate(self.trellis.incoming_edges(state)):
                self.in_prev[state, j] = prev
                self.in_bit[state, j] = input_bit

    def _branch_metrics(self, received: np.ndarray, sigma2: float, prior: float) -> np.ndarray:
        """
        log gamma(t, s, u) up to a per-step constant.

        -|r - x|^2 / 2sigma^2 = (r.x)/sigma^2 - (|r|^2 + n) / 2sigma^2; the
        second term is the same for every edge at time t and cancels in the
        renormalisation.
        """
        T = received.shape[0]
        symbols = self.edge_symbols.reshape(self.n_states * 2, self.n)
        correlation = received @ symbols.T / sigma2
        with np.errstate(divide='ignore'):
            log_prior = np.log(np.array([1.0 - prior, prior]))
        return correlation.reshape(T, self.n_states, 2) + log_prior

    @staticmethod
    def _normalise(log_metric: np.ndarray) -> np.ndarray:
        total = np.logaddexp.reduce(log_metric)
        if not np.isfinite(total):
            raise InvalidArgumentError("Observations and priors admit no trellis path")
        return log_metric - total

    def posteriors(self, observations, ebn0: float, prior: float = 0.5,
                   terminated: bool = False) -> np.ndarray:
        """
        Posterior probabilities of each input bit.

        Args:
            observations: Real channel values, n per trellis step, time-major.
            ebn0: Eb/N0 on a linear scale, finite and > 0.
            prior: P(input bit = 1).
            terminated: Pin the end of the trellis to state 0 instead of
                        leaving it free. The caller must have encoded m
                        zero tail bits.

        Returns:
            (T, 2) array, column b holds P(bit = b); rows sum to 1.
        """
        received = np.asarray(observations, dtype=float).ravel()
        if received.size % self.n != 0:
            raise InvalidArgumentError(
                f"Observation length {received.size} is not a multiple of n={self.n}"
            )
        if not np.all(np.isfinite(received)):
            raise InvalidArgumentError("Observations must be finite")
        if not 0.0 <= prior <= 1.0:
            raise InvalidArgumentError(f"Prior must be in [0, 1], got {prior}")
        sigma2 = noise_variance(ebn0, 1.0 / self.n)

        if 0 in self.trellis.generators:
            logger.warning("Decoding with unset generator(s); posteriors may be uninformative")

        T = received.size // self.n
        if T == 0:
            return np.zeros((0, 2))

        try:
            log_gamma = self._branch_metrics(received.reshape(T, self.n), sigma2, prior)
            log_alpha = np.full((T + 1, self.n_states), -np.inf)
            log_beta = np.full((T + 1, self.n_states), -np.inf)
        except MemoryError as e:
            raise AllocationError(
                f"Cannot allocate trellis metrics for {T} steps x {self.n_states} states"
            ) from e

        # Forward pass, trellis starts in the all-zero state
        log_alpha[0, 0] = 0.0
        for t in range(T):
            cand = log_alpha[t][self.in_prev] + log_gamma[t][self.in_prev, self.in_bit]
            log_alpha[t + 1] = self._normalise(np.logaddexp(cand[:, 0], cand[:, 1]))

        # Backward pass
        if terminated:
            log_beta[T, 0] = 0.0
        else:
            log_beta[T] = 0.0
        for t in range(T - 1, -1, -1):
            cand = log_beta[t + 1][self.next_state] + log_gamma[t]
            log_beta[t] = self._normalise(np.logaddexp(cand[:, 0], cand[:, 1]))

        # alpha(t, s) * gamma(t, s, u) * beta(t+1, next(s, u)), summed per input bit
        joint = log_alpha[:-1, :, None] + log_gamma + log_beta[1:][:, self.next_state]
        log_bit = np.logaddexp.reduce(joint, axis=1)
        log_total = np.logaddexp.reduce(log_bit, axis=1, keepdims=True)
        post = np.exp(log_bit - log_total)

        logger.debug("BCJR decoded %d steps over %d states (Eb/N0=%g, prior=%g, terminated=%s)",
                     T, self.n_states, ebn0, prior, terminated)
        return post

    def decode(self, observations, ebn0: float, prior: float = 0.5,
               terminated: bool = False) -> np.ndarray:
        """P(bit = 1) for each trellis step."""
        return self.posteriors(observations, ebn0, prior, terminated)[:, 1]


def hard_decision(posteriors, threshold: float = 0.5) -> np.ndarray:
    """Bits whose posterior P(bit = 1) exceeds `threshold`."""
    return (np.asarray(posteriors, dtype=float) > threshold).astype(int)


def posterior_to_llr(posteriors) -> np.ndarray:
    """log(P(1) / P(0)); positive favours bit 1."""
    p = np.clip(np.asarray(posteriors, dtype=float), _LLR_EPS, 1.0 - _LLR_EPS)
    return np.log(p) - np.log1p(-p)
