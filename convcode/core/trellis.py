"""
ConvCode Trellis State Machine
Pure forward/inverse transition and output functions of a rate-1/n
feed-forward code, plus a shift register for bit-at-a-time streaming.
"""

import logging
from typing import List, Tuple

import numpy as np

from convcode.core.bits import parity
from convcode.core.config import CodeConfig
from convcode.core.errors import OutOfRangeError, InvalidArgumentError, AllocationError

logger = logging.getLogger(__name__)


def _check_bit(bit) -> int:
    if bit not in (0, 1):
        raise InvalidArgumentError(f"Input bit must be 0 or 1, got {bit!r}")
    return int(bit)


class Trellis:
    """
    Trellis of an (n, 1, m) code.

    The state holds the previous m inputs, most recent in bit m-1. For a step
    with input u the combined register is (u << m) | state; the next state
    drops its lowest bit.

    Transitions and outputs are computed directly from the register. The
    full 2^m x 2 tables are only built the first time a decoder asks for them.
    """

    def __init__(self, config: CodeConfig):
        self.n = config.n
        self.m = config.m
        self.n_states = config.n_states
        self.state_mask = config.state_mask
        # Snapshot, later set_generator calls need a new Trellis
        self.generators = tuple(int(g) for g in config.generators)
        self._tables = None

    @property
    def tables_built(self) -> bool:
        return self._tables is not None

    @property
    def next_state_table(self) -> np.ndarray:
        return self._build_trellis()[0]

    @property
    def output_table(self) -> np.ndarray:
        return self._build_trellis()[1]

    @property
    def output_bits(self) -> np.ndarray:
        return self._build_trellis()[2]

    def _build_trellis(self):
        """Precompute all state transitions and expected outputs, once."""
        if self._tables is not None:
            return self._tables

        try:
            next_state_table = np.zeros((self.n_states, 2), dtype=np.int64)
            output_table = np.zeros((self.n_states, 2), dtype=np.int64)
            output_bits = np.zeros((self.n_states, 2, self.n), dtype=np.int8)
        except MemoryError as e:
            raise AllocationError(
                f"Cannot allocate trellis tables for {self.n_states} states"
            ) from e

        for state in range(self.n_states):
            for input_bit in range(2):
                reg = (input_bit << self.m) | state
                next_state_table[state, input_bit] = reg >> 1

                bits = [parity(g & reg) for g in self.generators]
                symbol = 0
                for b in bits:
                    symbol = (symbol << 1) | b
                output_table[state, input_bit] = symbol
                output_bits[state, input_bit] = bits

        self._tables = (next_state_table, output_table, output_bits)
        logger.debug("Built trellis: %d states x 2 inputs, %d outputs per edge",
                     self.n_states, self.n)
        return self._tables

    def _check_state(self, state) -> int:
        try:
            integral = int(state) == state
        except (TypeError, ValueError):
            integral = False
        if not integral:
            raise InvalidArgumentError(f"State must be an integer, got {state!r}")
        if not 0 <= state <= self.state_mask:
            raise OutOfRangeError(
                f"State {state} out of range [0, {self.state_mask}]",
                value=state, limit=self.state_mask,
            )
        return int(state)

    def next_state(self, state: int, input_bit: int) -> int:
        """Shift `input_bit` into the register and keep m bits."""
        state = self._check_state(state)
        input_bit = _check_bit(input_bit)
        return ((input_bit << self.m) | state) >> 1

    def next_output(self, state: int, input_bit: int) -> int:
        """
        Output symbol of the edge leaving `state` on `input_bit`.

        Bit n-1-i of the symbol is the parity of generator i applied to
        the combined register.
        """
        state = self._check_state(state)
        input_bit = _check_bit(input_bit)
        reg = (input_bit << self.m) | state
        symbol = 0
        for g in self.generators:
            symbol = (symbol << 1) | parity(g & reg)
        return symbol

    def prev_states(self, state: int) -> List[int]:
        """All states with an edge into `state` (at most two)."""
        state = self._check_state(state)
        if self.m == 0:
            return [0]
        # The dropped bit is free, the other m-1 bits are fixed by `state`
        base = (state << 1) & self.state_mask
        return [base, base | 1]

    def edge_input(self, prev_state: int, state: int) -> int:
        """Input bit labelling the edge prev_state -> state."""
        state = self._check_state(state)
        for input_bit in range(2):
            if self.next_state(prev_state, input_bit) == state:
                return input_bit
        raise InvalidArgumentError(f"No trellis edge from state {prev_state} to {state}")

    def prev_output(self, prev_state: int, input_bit: int) -> int:
        """Output symbol labelling the incoming edge of next_state(prev_state, input_bit)."""
        return self.next_output(prev_state, input_bit)

    def incoming_edges(self, state: int) -> List[Tuple[int, int, int]]:
        """(prev_state, input_bit, output) for every edge entering `state`."""
        edges = []
        for prev in self.prev_states(state):
            for input_bit in range(2):
                if self.next_state(prev, input_bit) == state:
                    edges.append((prev, input_bit, self.prev_output(prev, input_bit)))
        return edges


class ShiftRegister:
    """
    Encoder memory carried between calls.
    Lets callers stream one bit at a time through a Trellis.
    """

    def __init__(self, trellis: Trellis):
        self.trellis = trellis
        self._current_state = 0
        self._last_state = 0

    @property
    def current_state(self) -> int:
        return self._current_state

    @property
    def last_state(self) -> int:
        return self._last_state

    def set_state(self, state: int):
        self._current_state = self.trellis._check_state(state)

    def zero_state(self):
        """Reset to the all-zero start-of-frame state."""
        self._current_state = 0
        self._last_state = 0

    def _advance(self, input_bit: int) -> int:
        new_state = self.trellis.next_state(self._current_state, input_bit)
        self._last_state = self._current_state
        self._current_state = new_state
        return new_state

    def next_state(self, input_bit: int) -> int:
        """Advance on `input_bit`, return the new state."""
        return self._advance(input_bit)

    def next_output(self, input_bit: int) -> int:
        """Advance on `input_bit`, return the output symbol of the edge taken."""
        symbol = self.trellis.next_output(self._current_state, input_bit)
        self._advance(input_bit)
        return symbol

    def prev_output(self, input_bit: int) -> int:
        return self.trellis.prev_output(self._last_state, input_bit)
