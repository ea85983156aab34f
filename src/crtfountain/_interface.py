from abc import ABC, abstractmethod
from typing import NamedTuple

from ._utils.intmath import SIZE_OF_SHORT, div_round_up
from .errors import DataTooLarge, InvalidArgument

Bundle = bytes  # one 2-byte residue per hunk
Packet = bytes  # framed bundle: index, declared length, bundle, checksum

MAX_MIN_BUNDLES = 100


class Config(NamedTuple):
    """
    Geometry shared by both ends of a transfer.

    The sender and the receiver build it from the same (length, bundle_size)
    pair, which is how they agree on the hunk layout without negotiating.
    """

    length: int
    bundle_size: int

    @classmethod
    def create(cls, length: int, bundle_size: int) -> "Config":
        if length < 0:
            raise InvalidArgument(f"length must be >= 0, got {length}")
        if bundle_size <= 0 or bundle_size % SIZE_OF_SHORT:
            raise InvalidArgument(
                f"bundle size must be a positive even number, got {bundle_size}"
            )

        config = cls(length, bundle_size)
        if config.min_bundles > MAX_MIN_BUNDLES:
            raise DataTooLarge(
                f"data too long, would require {config.min_bundles} bundles "
                f"(max {MAX_MIN_BUNDLES})"
            )
        return config

    @property
    def bundle_shorts(self) -> int:
        return self.bundle_size // SIZE_OF_SHORT

    @property
    def padded_length(self) -> int:
        # empty data still occupies one bundle so the hunk layout stays defined
        return max(1, div_round_up(self.length, self.bundle_size)) * self.bundle_size

    @property
    def min_bundles(self) -> int:
        return self.padded_length // self.bundle_size

    @property
    def hunk_size(self) -> int:
        return self.min_bundles * SIZE_OF_SHORT

    @property
    def num_hunks(self) -> int:
        return self.padded_length // self.hunk_size


class Producer(ABC):
    @abstractmethod
    def generate(self, bundle_index: int, extra_size: int = 0, offset: int = 0) -> Bundle:
        """returns the bundle for ``bundle_index``"""


class Recoverer(ABC):
    @abstractmethod
    def push(self, bundle_index: int, bundle_data: Bundle) -> None:
        """records a received bundle"""

    @abstractmethod
    def is_complete(self) -> bool:
        """true once the received bundles determine the data uniquely"""

    @abstractmethod
    def recover_data(self) -> bytes:
        """returns the reconstructed data"""
