from typing import NamedTuple, Sequence

from .bigint import ONE, ZERO, BigInt
from .errors import InvalidArgument

SLICE_RANGE = 65536


class CoefficientSet(NamedTuple):
    weights: tuple  # tuple[BigInt, ...], pre-multiplied CRT coefficients
    base: BigInt  # product of all moduli
    moduli: tuple  # tuple[BigInt, ...]


def uniqueness_bound(min_bundles: int) -> BigInt:
    """65536 ** min_bundles: every hunk value lies below this bound."""
    return BigInt.pow(SLICE_RANGE, min_bundles)


def product(values: Sequence[BigInt]) -> BigInt:
    acc = ONE
    for v in values:
        acc = acc.multiply(v)
    return acc


def compute_coefficients(moduli: Sequence[BigInt]) -> CoefficientSet:
    """
    Precompute CRT weights for a set of pairwise-coprime moduli.

    For each modulus m_i the weight is ``k_i * P_i`` where ``P_i`` is the
    product of the other moduli (reduced mod base after every multiplication)
    and ``k_i`` is the inverse of ``P_i`` modulo ``m_i``. The weights only
    depend on the set of moduli, so one CoefficientSet serves every hunk of
    a reconstruction pass.
    """
    moduli = tuple(moduli)
    if not moduli:
        raise InvalidArgument("at least one modulus is required")

    base = product(moduli)

    weights = []
    for i, own in enumerate(moduli):
        partial = ONE
        for j, m in enumerate(moduli):
            if j == i:
                continue
            partial = partial.multiply(m).mod(base)
        k = partial.mod(own).mod_inverse(own)
        weights.append(k.multiply(partial))

    return CoefficientSet(weights=tuple(weights), base=base, moduli=moduli)


def combine(
    parts: Sequence[BigInt], coefficients: CoefficientSet, count: int
) -> BigInt:
    """
    Returns the unique value in [0, base) congruent to ``parts[i]`` modulo
    ``moduli[i]`` for every i.
    """
    if len(parts) != count or len(coefficients.weights) != count:
        raise InvalidArgument(
            f"expected {count} parts for {len(coefficients.weights)} weights, got {len(parts)}"
        )

    base = coefficients.base
    result = ZERO
    for weight, part in zip(coefficients.weights, parts):
        result = result.add(weight.multiply(part)).mod(base)
    return result


def split(value: BigInt, moduli: Sequence[BigInt]) -> list[BigInt]:
    """Residues of ``value`` modulo each modulus; the inverse of combine."""
    return [value.mod(m) for m in moduli]
