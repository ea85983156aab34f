from __future__ import annotations

from functools import total_ordering

import numpy as np

from ._utils import words as _w
from ._utils.conversions import (
    bytes_to_words,
    int_to_words,
    words_to_bytes,
    words_to_int,
)
from .errors import InvalidArgument, NotInvertible

_EMPTY = np.empty(0, dtype=np.uint32)
_EMPTY.flags.writeable = False

_DECIMAL_CHUNK = 10**9
_DECIMAL_CHUNK_WORDS = int_to_words(_DECIMAL_CHUNK)
_DECIMAL_CHUNK_WORDS.flags.writeable = False


@total_ordering
class BigInt:
    """
    Arbitrary-precision signed integer in sign-magnitude form.

    The magnitude is a read-only np.uint32 array, most significant word first,
    without leading zero words; zero has sign 0 and an empty magnitude. Values
    are immutable: every operation returns a new BigInt.
    """

    __slots__ = ("_sign", "_mag")

    # largest bit length of any value constructed so far (diagnostics only).
    # Updated without a lock: concurrent constructions may lose an update.
    _max_bits = 0

    def __init__(self, sign: int = 0, magnitude=None):
        if sign not in (-1, 0, 1):
            raise InvalidArgument(f"sign must be -1, 0 or 1, got {sign}")
        if magnitude is None:
            mag = _EMPTY
        else:
            raw = np.asarray(magnitude)
            if raw.ndim != 1:
                raise InvalidArgument("magnitude must be a 1-d sequence of words")
            if raw.shape[0] == 0:
                mag = _EMPTY
            else:
                if not np.issubdtype(raw.dtype, np.integer):
                    raise InvalidArgument("magnitude words must be integers")
                if raw.min() < 0 or raw.max() > 0xFFFFFFFF:
                    raise InvalidArgument("magnitude words must fit in 32 bits")
                mag = _w.strip(raw.astype(np.uint32))
        if mag.shape[0] and sign == 0:
            raise InvalidArgument("non-zero magnitude needs a non-zero sign")
        self._init(sign, mag)

    def _init(self, sign: int, mag: np.ndarray):
        if mag.shape[0] == 0:
            sign = 0
            mag = _EMPTY
        elif mag.flags.writeable:
            mag.flags.writeable = False
        self._sign = sign
        self._mag = mag

        if mag.shape[0]:
            bits = _w.WORD_BITS * (mag.shape[0] - 1) + int(mag[0]).bit_length()
            if bits > BigInt._max_bits:
                BigInt._max_bits = bits

    @classmethod
    def _new(cls, sign: int, mag: np.ndarray) -> BigInt:
        # mag must already be canonical
        obj = object.__new__(cls)
        obj._init(sign, mag)
        return obj

    ## ==================================================================================
    ## construction / export
    ## ==================================================================================

    @classmethod
    def from_int(cls, value: int) -> BigInt:
        if value == 0:
            return ZERO
        sign = 1 if value > 0 else -1
        return cls._new(sign, int_to_words(abs(value)))

    @classmethod
    def from_big_endian_bytes(cls, data: bytes) -> BigInt:
        """Interpret ``data`` as a non-negative big-endian magnitude."""
        return cls._new(1, bytes_to_words(data))

    def to_big_endian_bytes(self) -> bytes:
        """
        Big-endian bytes of the magnitude.

        Zero gives ``b""``. Any non-zero value below 65536 is always two bytes
        long, so a single-byte value gets one leading zero. Larger values carry
        no leading zero byte.
        """
        if self._sign == 0:
            return b""
        if self._mag.shape[0] == 1 and self._mag[0] < 0x10000:
            return int(self._mag[0]).to_bytes(2, "big")
        return words_to_bytes(self._mag)

    @property
    def sign(self) -> int:
        return self._sign

    @property
    def words(self) -> np.ndarray:
        return self._mag.copy()

    def is_zero(self) -> bool:
        return self._sign == 0

    def bit_length(self) -> int:
        return _w.bit_length(self._mag)

    def __int__(self) -> int:
        return self._sign * words_to_int(self._mag)

    @staticmethod
    def max_bits() -> int:
        return BigInt._max_bits

    @staticmethod
    def reset_max_bits():
        BigInt._max_bits = 0

    ## ==================================================================================
    ## arithmetic
    ## ==================================================================================

    def negate(self) -> BigInt:
        return BigInt._new(-self._sign, self._mag)

    def abs(self) -> BigInt:
        return self if self._sign >= 0 else self.negate()

    def add(self, other: BigInt) -> BigInt:
        if other._sign == 0:
            return self
        if self._sign == 0:
            return other

        if self._sign == other._sign:
            return BigInt._new(self._sign, _w.add(self._mag, other._mag))

        cmp = _w.compare(self._mag, other._mag)
        if cmp == 0:
            return ZERO
        if cmp > 0:
            return BigInt._new(self._sign, _w.sub(self._mag, other._mag))
        return BigInt._new(other._sign, _w.sub(other._mag, self._mag))

    def subtract(self, other: BigInt) -> BigInt:
        return self.add(other.negate())

    def multiply(self, other: BigInt) -> BigInt:
        if self._sign == 0 or other._sign == 0:
            return ZERO
        return BigInt._new(self._sign * other._sign, _w.mul(self._mag, other._mag))

    def _divmod_magnitudes(self, divisor: BigInt):
        if divisor._sign == 0:
            raise InvalidArgument("division by zero")
        return _w.divmod_(self._mag, divisor._mag)

    def divide(self, divisor: BigInt) -> BigInt:
        """Quotient truncated toward zero."""
        if self._sign == 0:
            if divisor._sign == 0:
                raise InvalidArgument("division by zero")
            return ZERO
        q, _ = self._divmod_magnitudes(divisor)
        return BigInt._new(self._sign * divisor._sign, q)

    def remainder(self, divisor: BigInt) -> BigInt:
        """Remainder truncated toward zero; takes the sign of ``self``."""
        if self._sign == 0:
            if divisor._sign == 0:
                raise InvalidArgument("division by zero")
            return ZERO
        _, r = self._divmod_magnitudes(divisor)
        return BigInt._new(self._sign, r)

    def mod(self, divisor: BigInt) -> BigInt:
        """Remainder in ``[0, divisor)``; ``divisor`` must be positive."""
        if divisor._sign <= 0:
            raise InvalidArgument("modulus must be positive")
        r = self.remainder(divisor)
        return r.add(divisor) if r._sign < 0 else r

    def gcd(self, other: BigInt) -> BigInt:
        a = self.abs()
        b = other.abs()

        if a._mag.shape[0] <= 1 and b._mag.shape[0] <= 1:
            x = np.uint64(a._mag[0]) if a._sign else np.uint64(0)
            y = np.uint64(b._mag[0]) if b._sign else np.uint64(0)
            return BigInt.from_int(int(_w.gcd_word(x, y)))

        while b._sign != 0:
            a, b = b, a.mod(b)
        return a

    def mod_inverse(self, modulus: BigInt) -> BigInt:
        """
        Multiplicative inverse of ``self`` modulo ``modulus`` via extended
        Euclid. The result lies in ``[0, modulus)``.

        Raises:
          InvalidArgument: modulus <= 0
          NotInvertible:   gcd(self, modulus) != 1
        """
        if modulus._sign <= 0:
            raise InvalidArgument("modulus must be positive")

        # invariant: u1 * self == u3 (mod modulus), same for v1/v3
        u1, u3 = ONE, self.mod(modulus)
        v1, v3 = ZERO, modulus
        while v3._sign > 0:
            q = u3.divide(v3)
            u1, v1 = v1, u1.subtract(v1.multiply(q))
            u3, v3 = v3, u3.subtract(v3.multiply(q))

        if u3 != ONE:
            raise NotInvertible(f"{self} has no inverse modulo {modulus}")
        return u1.mod(modulus)

    @staticmethod
    def pow(base: int, exponent: int) -> BigInt:
        """``base ** exponent`` for unsigned ``base`` and ``exponent``; 0**0 == 1."""
        if base < 0 or exponent < 0:
            raise InvalidArgument("base and exponent must be unsigned")

        result = ONE
        square = BigInt.from_int(base)
        while exponent:
            if exponent & 1:
                result = result.multiply(square)
            exponent >>= 1
            if exponent:
                square = square.multiply(square)
        return result

    def shift_left(self, n: int) -> BigInt:
        if n < 0:
            return self.shift_right(-n)
        if n == 0 or self._sign == 0:
            return self
        return BigInt._new(self._sign, _w.shift_left(self._mag, n))

    def shift_right(self, n: int) -> BigInt:
        """Arithmetic right shift, rounding toward negative infinity."""
        if n < 0:
            return self.shift_left(-n)
        if n == 0 or self._sign == 0:
            return self

        shifted = BigInt._new(self._sign, _w.shift_right(self._mag, n))
        if self._sign < 0 and shifted.shift_left(n) != self:
            shifted = shifted.subtract(ONE)
        return shifted

    __add__ = add
    __sub__ = subtract
    __mul__ = multiply
    __mod__ = mod
    __neg__ = negate
    __abs__ = abs

    def __lshift__(self, n: int) -> BigInt:
        return self.shift_left(n)

    def __rshift__(self, n: int) -> BigInt:
        return self.shift_right(n)

    ## ==================================================================================
    ## ordering
    ## ==================================================================================

    def compare(self, other: BigInt) -> int:
        if self._sign != other._sign:
            return 1 if self._sign > other._sign else -1
        if self._sign == 0:
            return 0
        return self._sign * _w.compare(self._mag, other._mag)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BigInt):
            return NotImplemented
        return self._sign == other._sign and np.array_equal(self._mag, other._mag)

    def __lt__(self, other) -> bool:
        if not isinstance(other, BigInt):
            return NotImplemented
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash((self._sign, self._mag.tobytes()))

    ## ==================================================================================
    ## rendering
    ## ==================================================================================

    def to_string(self, radix: int = 10) -> str:
        if radix not in (10, 16):
            raise InvalidArgument("only base 10 or 16 are supported")
        if self._sign == 0:
            return "0"

        if radix == 16:
            digits = "".join(f"{int(w):08x}" for w in self._mag).lstrip("0")
        else:
            chunks = []
            mag = self._mag
            while mag.shape[0]:
                mag, r = _w.divmod_(mag, _DECIMAL_CHUNK_WORDS)
                chunks.append(words_to_int(r))
            digits = str(chunks[-1]) + "".join(f"{c:09d}" for c in reversed(chunks[:-1]))

        return "-" + digits if self._sign < 0 else digits

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"BigInt({self.to_string()})"


ZERO = BigInt()
ONE = BigInt._new(1, int_to_words(1))
