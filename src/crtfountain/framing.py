"""
Packet framing around core bundles.

Layout, big-endian throughout::

    [0..3]     bundle index (uint32)
    [4..7]     declared length of the original data (uint32)
    [8..N-5]   bundle payload
    [N-4..N-1] checksum over bytes [0..N-5]

A receiver drops (treats as lost) any packet that is too short, fails its
checksum, carries a payload of the wrong size, or declares a length that
disagrees with the session established by the first valid packet.
"""

import logging
import threading
from typing import Iterator

from ._interface import Packet
from ._utils.intmath import bundle_size_for
from .bucket import Bucket
from .coprimes import CoprimeSequence
from .errors import FountainError, Incomplete, InvalidArgument
from .fountain import Fountain

log = logging.getLogger(__name__)

INDEX_SIZE = 4
LENGTH_SIZE = 4
CHECKSUM_SIZE = 4
HEADER_SIZE = INDEX_SIZE + LENGTH_SIZE
OVERHEAD = HEADER_SIZE + CHECKSUM_SIZE

_U32 = 0xFFFFFFFF
_ZERO_HASH = 0x800800


def _mix(h: int) -> int:
    h ^= h >> 16
    h = (h * 0x7FEB352D) & _U32
    h ^= h >> 15
    h = (h * 0x846CA68B) & _U32
    h ^= h >> 16
    return h


def data_hash(data: bytes, length: int | None = None) -> int:
    """
    32-bit avalanche hash of the first ``length`` bytes of ``data``.

    Not cryptographic; it only has to make accidental corruption visible.
    Never returns zero.
    """
    if length is None:
        length = len(data)
    length &= _U32

    h = length
    for b in data[:length]:
        h = _mix((h + b) & _U32)

    h = _mix(h ^ length)
    h = (h + length) & _U32
    return h or _ZERO_HASH


class PacketEncoder:
    """Sender side: frames Fountain bundles into self-describing packets."""

    def __init__(
        self,
        data: bytes,
        bundle_size: int | None = None,
        first_index: int = 1,
        coprimes: CoprimeSequence | None = None,
    ):
        data = bytes(data)
        if len(data) > _U32:
            raise InvalidArgument("data length does not fit the 32-bit length field")

        self.length = len(data)
        self.bundle_size = bundle_size_for(self.length) if bundle_size is None else bundle_size
        self._fountain = Fountain(data, self.bundle_size, coprimes)
        self._next_index = first_index

    def packet(self, index: int) -> Packet:
        if not (0 <= index <= _U32):
            raise InvalidArgument(f"bundle index {index} does not fit 32 bits")

        buffer = bytearray(
            self._fountain.generate(index, extra_size=OVERHEAD, offset=HEADER_SIZE)
        )
        buffer[0:INDEX_SIZE] = index.to_bytes(INDEX_SIZE, "big")
        buffer[INDEX_SIZE:HEADER_SIZE] = self.length.to_bytes(LENGTH_SIZE, "big")

        checked = len(buffer) - CHECKSUM_SIZE
        buffer[checked:] = data_hash(buffer, checked).to_bytes(CHECKSUM_SIZE, "big")
        return bytes(buffer)

    def next_packet(self) -> Packet:
        index = self._next_index
        self._next_index += 1
        return self.packet(index)

    def __iter__(self) -> Iterator[Packet]:
        while True:
            yield self.next_packet()


class PacketDecoder:
    """
    Receiver side: validates packets and feeds their bundles to a Bucket.

    The first packet that passes its checksum fixes the session: its declared
    length (and the bundle size derived from it, unless one was given) sizes
    the Bucket.
    """

    def __init__(
        self,
        bundle_size: int | None = None,
        coprimes: CoprimeSequence | None = None,
    ):
        self._bundle_size = bundle_size
        self._coprimes = coprimes
        self._bucket: Bucket | None = None
        self._length: int | None = None
        self._lock = threading.Lock()

    @property
    def length(self) -> int | None:
        return self._length

    @property
    def bucket(self) -> Bucket | None:
        return self._bucket

    def deliver(self, packet: Packet) -> bool:
        """Returns True if the packet was accepted, False if it was dropped."""
        packet = bytes(packet)
        if len(packet) <= OVERHEAD:
            log.debug("dropped packet: %d bytes is too short", len(packet))
            return False

        checked = len(packet) - CHECKSUM_SIZE
        if int.from_bytes(packet[checked:], "big") != data_hash(packet, checked):
            log.debug("dropped packet: checksum mismatch")
            return False

        index = int.from_bytes(packet[0:INDEX_SIZE], "big")
        length = int.from_bytes(packet[INDEX_SIZE:HEADER_SIZE], "big")
        payload = packet[HEADER_SIZE:checked]

        bucket = self._session(length)
        if bucket is None:
            return False
        if length != self._length:
            log.warning(
                "dropped packet %d: declares %d bytes, session has %d",
                index,
                length,
                self._length,
            )
            return False
        if len(payload) != bucket.config.bundle_size:
            log.debug(
                "dropped packet %d: payload of %d bytes, expected %d",
                index,
                len(payload),
                bucket.config.bundle_size,
            )
            return False

        bucket.push(index, payload)
        return True

    def _session(self, length: int) -> Bucket | None:
        with self._lock:
            if self._bucket is None:
                bundle_size = self._bundle_size or bundle_size_for(length)
                try:
                    self._bucket = Bucket(length, bundle_size, self._coprimes)
                except FountainError as e:
                    log.warning("dropped packet: cannot open a session for it (%s)", e)
                    return None
                self._length = length
                log.info(
                    "session established: %d bytes, bundle size %d", length, bundle_size
                )
            return self._bucket

    def is_complete(self) -> bool:
        return self._bucket is not None and self._bucket.is_complete()

    def recover_data(self) -> bytes:
        if self._bucket is None:
            raise Incomplete("no valid packet has been received")
        return self._bucket.recover_data()
