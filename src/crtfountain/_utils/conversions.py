import numpy as np

WORD_BYTES = 4

## ======================================================================================
## bytes <-> words
## ======================================================================================


def bytes_to_words(data: bytes) -> np.ndarray:
    """
    Convert big-endian bytes to a canonical np.uint32 magnitude.
    Leading zero bytes are dropped; empty or all-zero input gives an empty array.
    """
    data = bytes(data).lstrip(b"\x00")
    if not data:
        return np.empty(0, dtype=np.uint32)
    nwords = (len(data) + WORD_BYTES - 1) // WORD_BYTES
    padded = data.rjust(nwords * WORD_BYTES, b"\x00")
    return np.frombuffer(padded, dtype=">u4").astype(np.uint32)


def words_to_bytes(words: np.ndarray) -> bytes:
    """Minimal big-endian bytes for a magnitude, no leading zero byte."""
    return words.astype(">u4").tobytes().lstrip(b"\x00")


## ======================================================================================
## int <-> words
## ======================================================================================


def int_to_words(value: int) -> np.ndarray:
    if value < 0:
        raise ValueError("magnitude must be non-negative")
    return bytes_to_words(value.to_bytes((value.bit_length() + 7) // 8, "big"))


def words_to_int(words: np.ndarray) -> int:
    return int.from_bytes(words.astype(">u4").tobytes(), "big")
