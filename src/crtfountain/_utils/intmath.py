SIZE_OF_SHORT = 2

MIN_BUNDLE_SIZE = 128
TARGET_MAX_BUNDLES = 100


def div_round_up(num: int, divisor: int) -> int:
    if num < 0:
        raise ValueError("num must be >= 0")
    if divisor < 1:
        raise ValueError("divisor must be >= 1")
    return (num + divisor - 1) // divisor


def round_up_even(n: int) -> int:
    return n + (n % 2)


def bundle_size_for(length: int) -> int:
    """
    Pick a bundle size (bytes) for ``length`` bytes of data.

    Aims for about 100 bundles per transfer, never less than 128 bytes per
    bundle and always even. Rounding the per-bundle share up keeps the
    minimum bundle count at or below 100 for every length.
    """
    if length < 0:
        raise ValueError("length must be >= 0")
    return max(MIN_BUNDLE_SIZE, round_up_even(div_round_up(length, TARGET_MAX_BUNDLES)))
