import logging
from typing import Iterator

from ._interface import Bundle, Config, Producer
from ._utils.intmath import SIZE_OF_SHORT
from .bigint import BigInt
from .coprimes import DEFAULT_COPRIMES, CoprimeSequence
from .errors import InvalidArgument, Overflow

log = logging.getLogger(__name__)


class Fountain(Producer):
    """
    Rateless encoder: turns a byte buffer into bundles for any bundle index.

    The zero-padded data is cut into ``bundle_size / 2`` hunks of
    ``min_bundles * 2`` bytes, each held as a BigInt. The bundle for index
    ``i`` holds, for every hunk, its residue modulo ``coprime(i)`` as a
    2-byte big-endian slice.
    """

    def __init__(
        self,
        data: bytes,
        bundle_size: int,
        coprimes: CoprimeSequence | None = None,
    ):
        data = bytes(data)
        self.config = Config.create(len(data), bundle_size)
        self.coprimes = coprimes if coprimes is not None else DEFAULT_COPRIMES

        padded = data.ljust(self.config.padded_length, b"\x00")
        hunk_size = self.config.hunk_size
        self._hunks = tuple(
            BigInt.from_big_endian_bytes(padded[i * hunk_size : (i + 1) * hunk_size])
            for i in range(self.config.num_hunks)
        )

        log.debug(
            "fountain: %d bytes, bundle size %d, %d hunks of %d bytes, min %d bundles",
            self.config.length,
            bundle_size,
            len(self._hunks),
            hunk_size,
            self.config.min_bundles,
        )

    @property
    def min_bundles(self) -> int:
        return self.config.min_bundles

    def generate(self, bundle_index: int, extra_size: int = 0, offset: int = 0) -> Bundle:
        """
        Bundle for ``bundle_index``, written at ``offset`` into a zeroed buffer of
        ``bundle_size + extra_size`` bytes. The extra space is left for a framing
        layer and is not interpreted here.
        """
        bundle_size = self.config.bundle_size
        if bundle_index < 0:
            raise InvalidArgument(f"bundle index must be >= 0, got {bundle_index}")
        if extra_size < 0 or offset < 0 or offset > extra_size:
            raise InvalidArgument(
                f"offset {offset} does not fit a bundle of {bundle_size} bytes "
                f"with {extra_size} extra bytes"
            )

        modulus = self.coprimes.value_at(bundle_index)
        buffer = bytearray(bundle_size + extra_size)

        for i, hunk in enumerate(self._hunks):
            part = hunk.mod(modulus).to_big_endian_bytes()
            pos = offset + i * SIZE_OF_SHORT

            # non-zero residues below 65536 always export as 2 bytes
            if len(part) == 2:
                buffer[pos : pos + 2] = part
            elif len(part) == 0:  # an actual zero residue
                pass
            else:
                raise Overflow(
                    f"bundle {bundle_index} produced a {len(part)}-byte residue"
                )

        return bytes(buffer)

    def bundles(self, start: int = 0) -> Iterator[tuple[int, Bundle]]:
        """Endless stream of (index, bundle) pairs starting at ``start``."""
        index = start
        while True:
            yield index, self.generate(index)
            index += 1
