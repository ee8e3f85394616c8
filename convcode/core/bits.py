"""
ConvCode Bit Utilities
Population counts, parity and octal/binary conversion shared by
the configuration layer and the trellis state machine.
"""

from typing import Iterable, List

from convcode.core.errors import InvalidArgumentError


def count_1bits(x: int) -> int:
    """Number of set bits in a non-negative integer."""
    return bin(int(x)).count('1')


def count_0bits(x: int, width: int = 32) -> int:
    """Number of clear bits of x within a register of `width` bits."""
    x = int(x)
    if x >> width:
        raise InvalidArgumentError(f"Value {x} does not fit in {width} bits")
    return width - count_1bits(x)


def parity(x: int) -> int:
    """XOR-reduction of all bits of x."""
    return count_1bits(x) & 1


def oct_to_dec(octal_digits: int) -> int:
    """
    Interpret the decimal digits of an integer as an octal number.

    Generators are conventionally written in octal, so 171 means 0o171 (= 121).
    """
    octal_digits = int(octal_digits)
    if octal_digits < 0:
        raise InvalidArgumentError(f"Octal value must be non-negative, got {octal_digits}")
    try:
        return int(str(octal_digits), 8)
    except ValueError as e:
        raise InvalidArgumentError(f"{octal_digits} is not a valid octal number") from e


def dec_to_oct(value: int) -> int:
    """Inverse of oct_to_dec: 121 -> 171."""
    value = int(value)
    if value < 0:
        raise InvalidArgumentError(f"Value must be non-negative, got {value}")
    return int(format(value, 'o'))


def symbol_to_bits(symbol: int, n: int) -> List[int]:
    """Split an n-bit output symbol into its bits, MSB first."""
    return [(symbol >> (n - 1 - i)) & 1 for i in range(n)]


def bits_to_symbol(bits: Iterable[int]) -> int:
    """Pack bits (MSB first) into one integer symbol."""
    symbol = 0
    for bit in bits:
        symbol = (symbol << 1) | (int(bit) & 1)
    return symbol
