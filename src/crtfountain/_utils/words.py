import numba as nb
import numpy as np

# ---------------------------
# Magnitude kernels over 32-bit words.
#    A magnitude is a 1-d np.uint32 array, most significant word first.
#    Canonical magnitudes carry no leading zero words; zero is the empty array.
#    Every intermediate is widened to np.uint64 so carries and borrows never
#    mix signed and unsigned integer types.
# ---------------------------

WORD_BITS = 32

_ZERO = np.uint64(0)
_ONE = np.uint64(1)
_TOP = np.uint64(WORD_BITS - 1)
_SHIFT = np.uint64(WORD_BITS)
_MASK = np.uint64(0xFFFFFFFF)
_RADIX = np.uint64(1 << WORD_BITS)


@nb.njit(cache=True)
def _clone(x: np.ndarray, start: int) -> np.ndarray:
    out = np.empty(x.shape[0] - start, dtype=np.uint32)
    for i in range(out.shape[0]):
        out[i] = x[start + i]
    return out


@nb.njit(cache=True)
def strip(x: np.ndarray) -> np.ndarray:
    """Copy of ``x`` without leading zero words."""
    i = 0
    n = x.shape[0]
    while i < n and x[i] == np.uint32(0):
        i += 1
    return _clone(x, i)


@nb.njit(cache=True)
def bit_length(x: np.ndarray) -> int:
    n = x.shape[0]
    if n == 0:
        return 0
    w = np.uint64(x[0])
    bits = 0
    while w != _ZERO:
        w = w >> _ONE
        bits += 1
    return WORD_BITS * (n - 1) + bits


@nb.njit(cache=True)
def compare(x: np.ndarray, y: np.ndarray) -> int:
    """Unsigned comparison of two canonical magnitudes: -1, 0 or 1."""
    if x.shape[0] != y.shape[0]:
        return 1 if x.shape[0] > y.shape[0] else -1
    for i in range(x.shape[0]):
        if x[i] != y[i]:
            return 1 if x[i] > y[i] else -1
    return 0


@nb.njit(cache=True)
def add(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    nx = x.shape[0]
    ny = y.shape[0]
    n = max(nx, ny) + 1
    out = np.empty(n, dtype=np.uint32)

    carry = _ZERO
    for k in range(n):  # k counts words from the least significant end
        s = carry
        if k < nx:
            s += np.uint64(x[nx - 1 - k])
        if k < ny:
            s += np.uint64(y[ny - 1 - k])
        out[n - 1 - k] = np.uint32(s & _MASK)
        carry = s >> _SHIFT

    return strip(out)


@nb.njit(cache=True)
def sub(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """x - y, requires x >= y."""
    nx = x.shape[0]
    ny = y.shape[0]
    out = np.empty(nx, dtype=np.uint32)

    borrow = _ZERO
    for k in range(nx):
        a = np.uint64(x[nx - 1 - k])
        b = borrow
        if k < ny:
            b += np.uint64(y[ny - 1 - k])
        if a >= b:
            out[nx - 1 - k] = np.uint32(a - b)
            borrow = _ZERO
        else:
            out[nx - 1 - k] = np.uint32(a + _RADIX - b)
            borrow = _ONE

    return strip(out)


@nb.njit(cache=True)
def mul(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Schoolbook product, O(len(x) * len(y)) word multiplications."""
    nx = x.shape[0]
    ny = y.shape[0]
    if nx == 0 or ny == 0:
        return np.empty(0, dtype=np.uint32)

    out = np.zeros(nx + ny, dtype=np.uint32)
    for i in range(nx - 1, -1, -1):
        a = np.uint64(x[i])
        carry = _ZERO
        for j in range(ny - 1, -1, -1):
            # (2^32-1)^2 + 2*(2^32-1) == 2^64-1, so this never wraps
            t = a * np.uint64(y[j]) + np.uint64(out[i + j + 1]) + carry
            out[i + j + 1] = np.uint32(t & _MASK)
            carry = t >> _SHIFT
        out[i] = np.uint32(carry)

    return strip(out)


@nb.njit(cache=True)
def shift_left(x: np.ndarray, n: int) -> np.ndarray:
    m = x.shape[0]
    if m == 0:
        return np.empty(0, dtype=np.uint32)

    words = n // WORD_BITS
    bits = n % WORD_BITS
    sb = np.uint64(bits)
    rb = np.uint64(WORD_BITS - bits)

    # word k (from the least significant end) lands at out[m - k]
    out = np.zeros(m + words + 1, dtype=np.uint32)
    carry = _ZERO
    for k in range(m):
        w = np.uint64(x[m - 1 - k])
        if bits == 0:
            out[m - k] = np.uint32(w)
        else:
            out[m - k] = np.uint32(((w << sb) & _MASK) | carry)
            carry = w >> rb
    out[0] = np.uint32(carry)

    return strip(out)


@nb.njit(cache=True)
def shift_right(x: np.ndarray, n: int) -> np.ndarray:
    m = x.shape[0]
    words = n // WORD_BITS
    if words >= m:
        return np.empty(0, dtype=np.uint32)

    bits = n % WORD_BITS
    sb = np.uint64(bits)
    lb = np.uint64(WORD_BITS - bits)

    keep = m - words
    out = np.empty(keep, dtype=np.uint32)
    for i in range(keep):
        w = np.uint64(x[i]) >> sb
        if bits != 0 and i > 0:
            w = w | ((np.uint64(x[i - 1]) << lb) & _MASK)
        out[i] = np.uint32(w)

    return strip(out)


# ---------------------------
# Division
#    Long division by repeated shift-and-subtract. The working buffers are
#    allocated once per call and updated in place at every step.
# ---------------------------


@nb.njit(inline="always")
def _compare_fixed(x: np.ndarray, y: np.ndarray) -> int:
    # equal-length buffers, leading zeros allowed
    for i in range(x.shape[0]):
        if x[i] != y[i]:
            return 1 if x[i] > y[i] else -1
    return 0


@nb.njit(inline="always")
def _sub_in_place(x: np.ndarray, y: np.ndarray):
    # x -= y over equal-length buffers, x >= y
    borrow = _ZERO
    for i in range(x.shape[0] - 1, -1, -1):
        a = np.uint64(x[i])
        b = np.uint64(y[i]) + borrow
        if a >= b:
            x[i] = np.uint32(a - b)
            borrow = _ZERO
        else:
            x[i] = np.uint32(a + _RADIX - b)
            borrow = _ONE


@nb.njit(inline="always")
def _shift_right_one_in_place(x: np.ndarray):
    n = x.shape[0]
    for i in range(n - 1, 0, -1):
        x[i] = np.uint32(
            (np.uint64(x[i]) >> _ONE) | ((np.uint64(x[i - 1]) & _ONE) << _TOP)
        )
    if n > 0:
        x[0] = np.uint32(np.uint64(x[0]) >> _ONE)


@nb.njit(cache=True)
def divmod_word(x: np.ndarray, d: np.uint64):
    """Quotient and remainder of ``x`` by a single non-zero word ``d``."""
    n = x.shape[0]
    q = np.empty(n, dtype=np.uint32)
    rem = _ZERO
    for i in range(n):
        # rem < d < 2^32, so cur < 2^64
        cur = (rem << _SHIFT) | np.uint64(x[i])
        q[i] = np.uint32(cur // d)
        rem = cur % d

    r = np.empty(1, dtype=np.uint32)
    r[0] = np.uint32(rem)
    return strip(q), strip(r)


@nb.njit(cache=True)
def divmod_(x: np.ndarray, y: np.ndarray):
    """
    Quotient and remainder of canonical magnitudes, ``y`` non-empty.

    Returns:
      q : canonical np.uint32 magnitude of x // y
      r : canonical np.uint32 magnitude of x % y
    """
    cmp = compare(x, y)
    if cmp < 0:
        return np.empty(0, dtype=np.uint32), _clone(x, 0)
    if cmp == 0:
        return np.ones(1, dtype=np.uint32), np.empty(0, dtype=np.uint32)
    if y.shape[0] == 1:
        return divmod_word(x, np.uint64(y[0]))

    n = x.shape[0]
    shift = bit_length(x) - bit_length(y)

    rem = _clone(x, 0)
    q = np.zeros(n, dtype=np.uint32)

    # divisor aligned with the top bit of x, padded to n words
    d = np.zeros(n, dtype=np.uint32)
    aligned = shift_left(y, shift)
    offset = n - aligned.shape[0]
    for i in range(aligned.shape[0]):
        d[offset + i] = aligned[i]

    for s in range(shift, -1, -1):
        if _compare_fixed(rem, d) >= 0:
            _sub_in_place(rem, d)
            k = n - 1 - s // WORD_BITS
            q[k] = np.uint32(q[k] | np.uint32(1 << (s % WORD_BITS)))
        _shift_right_one_in_place(d)

    return strip(q), strip(rem)


@nb.njit(cache=True)
def gcd_word(a: np.uint64, b: np.uint64) -> np.uint64:
    while b != _ZERO:
        a, b = b, a % b
    return a
