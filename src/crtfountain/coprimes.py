import logging
import threading
from typing import Iterable

from .bigint import ONE, BigInt
from .errors import Exhausted, InvalidArgument

log = logging.getLogger(__name__)

MAX_COPRIME = 65535


class CoprimeSequence:
    """
    Growing cache of pairwise-coprime moduli below 65536, indexed by bundle.

    Seeded with 65535 and extended downward on demand: a candidate is accepted
    only if it is coprime with every value already present. Once computed, the
    value at an index never changes, so one instance can be shared by every
    encoder and decoder in a process. Growth is serialised by a lock.
    """

    def __init__(self, seed: int = MAX_COPRIME):
        if not (1 <= seed <= MAX_COPRIME):
            raise InvalidArgument(f"seed must be in [1, {MAX_COPRIME}]")
        self._values: list[BigInt] = [BigInt.from_int(seed)]
        self._candidate = seed
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._values)

    def value_at(self, index: int) -> BigInt:
        if index < 0:
            raise InvalidArgument(f"bundle index must be >= 0, got {index}")
        # list.append is atomic, so cached positions can be read without the lock
        if index < len(self._values):
            return self._values[index]
        with self._lock:
            self._extend(index + 1)
            return self._values[index]

    def values(self, indices: Iterable[int]) -> list[BigInt]:
        indices = list(indices)
        if indices:
            self.value_at(max(indices))
        return [self.value_at(i) for i in indices]

    def _extend(self, count: int):
        start = len(self._values)
        while len(self._values) < count:
            self._candidate -= 1
            if self._candidate < 1:
                raise Exhausted(f"no coprime left for index {len(self._values)}")

            cop = BigInt.from_int(self._candidate)
            if all(cop.gcd(value) == ONE for value in self._values):
                self._values.append(cop)

        if len(self._values) > start:
            log.debug(
                "coprime sequence grew %d -> %d (last value %s)",
                start,
                len(self._values),
                self._values[-1],
            )


# shared by every Fountain / Bucket that is not given its own sequence
DEFAULT_COPRIMES = CoprimeSequence()
