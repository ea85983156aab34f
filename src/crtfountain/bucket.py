import logging
import threading

from ._interface import Bundle, Config, Recoverer
from ._utils.intmath import SIZE_OF_SHORT
from .bigint import BigInt
from .coprimes import DEFAULT_COPRIMES, CoprimeSequence
from .crt import CoefficientSet, combine, compute_coefficients, product, uniqueness_bound
from .errors import Incomplete, InvalidArgument, ReconstructionFailed

log = logging.getLogger(__name__)


class Bucket(Recoverer):
    """
    Data sink for the Fountain.

    Receives bundles keyed by index, in any order, and reconstructs the
    original data once the product of the received moduli exceeds
    ``65536 ** min_bundles``. ``length`` and ``bundle_size`` must match the
    sender's values.
    """

    def __init__(
        self,
        length: int,
        bundle_size: int,
        coprimes: CoprimeSequence | None = None,
    ):
        self.config = Config.create(length, bundle_size)
        self.coprimes = coprimes if coprimes is not None else DEFAULT_COPRIMES
        self._bound = uniqueness_bound(self.config.min_bundles)
        self._bundles: dict[int, bytes] = {}
        self._lock = threading.Lock()

    def push(self, bundle_index: int, bundle_data: Bundle) -> None:
        if bundle_index < 0:
            raise InvalidArgument(f"bundle index must be >= 0, got {bundle_index}")
        if len(bundle_data) != self.config.bundle_size:
            raise InvalidArgument(
                f"bundle data size {len(bundle_data)} does not match "
                f"expected bundle size {self.config.bundle_size}"
            )
        with self._lock:
            self._bundles[bundle_index] = bytes(bundle_data)

    @property
    def received(self) -> tuple[int, ...]:
        with self._lock:
            return tuple(sorted(self._bundles))

    def __len__(self) -> int:
        with self._lock:
            return len(self._bundles)

    def _modulus_product(self, indices) -> BigInt:
        return product(self.coprimes.values(indices))

    def is_complete(self) -> bool:
        return self._modulus_product(self.received) > self._bound

    def progress(self) -> float:
        """Approximate share of the uniqueness bound covered so far, in [0, 1]."""
        covered = self._modulus_product(self.received).bit_length() - 1
        needed = self._bound.bit_length() - 1
        return max(0.0, min(1.0, covered / needed))

    def recover_data(self) -> bytes:
        with self._lock:
            bundles = dict(self._bundles)

        indices = sorted(bundles)
        moduli = self.coprimes.values(indices)
        if not indices or product(moduli) <= self._bound:
            raise Incomplete(f"{len(indices)} bundles are not enough to recover the data")

        coefficients = compute_coefficients(moduli)
        reduced: CoefficientSet | None = None

        hunk_size = self.config.hunk_size
        count = len(indices)
        hunks = []
        for hunk_num in range(self.config.num_hunks):
            pos = hunk_num * SIZE_OF_SHORT
            parts = [
                BigInt.from_int((bundles[i][pos] << 8) | bundles[i][pos + 1])
                for i in indices
            ]

            hunk = combine(parts, coefficients, count).to_big_endian_bytes()
            if len(hunk) > hunk_size:
                if reduced is None:
                    reduced = self._reduced_coefficients(indices, moduli)
                hunk = combine(parts[:-1], reduced, count - 1).to_big_endian_bytes()
                if len(hunk) != hunk_size:
                    raise ReconstructionFailed(
                        f"hunk {hunk_num} recovered as {len(hunk)} bytes, "
                        f"expected {hunk_size}"
                    )

            hunks.append(hunk.rjust(hunk_size, b"\x00"))

        data = b"".join(hunks)
        log.info(
            "recovered %d bytes from %d bundles", self.config.length, len(indices)
        )
        return data[: self.config.length]

    def _reduced_coefficients(self, indices, moduli) -> CoefficientSet:
        """
        Coefficients without the highest-indexed bundle, used when a hunk
        overshoots its byte size. The reduced set must still exceed the
        uniqueness bound, otherwise its combination is not determined.
        """
        log.warning(
            "hunk overshot %d bytes; retrying without bundle %d",
            self.config.hunk_size,
            indices[-1],
        )
        reduced = moduli[:-1]
        if not reduced or product(reduced) <= self._bound:
            raise ReconstructionFailed(
                f"bundles {indices[0]}..{indices[-1]} are inconsistent and too few "
                f"remain without bundle {indices[-1]}"
            )
        return compute_coefficients(reduced)
