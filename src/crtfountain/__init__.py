import logging

from ._interface import Bundle, Config, Packet, Producer, Recoverer
from ._utils.intmath import bundle_size_for
from .bigint import ONE, ZERO, BigInt
from .bucket import Bucket
from .coprimes import DEFAULT_COPRIMES, MAX_COPRIME, CoprimeSequence
from .crt import CoefficientSet, combine, compute_coefficients, split, uniqueness_bound
from .errors import (
    DataTooLarge,
    ErrorKind,
    Exhausted,
    FountainError,
    Incomplete,
    InvalidArgument,
    NotInvertible,
    Overflow,
    ReconstructionFailed,
)
from .fountain import Fountain
from .framing import PacketDecoder, PacketEncoder, data_hash

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BigInt",
    "Bucket",
    "Bundle",
    "CoefficientSet",
    "Config",
    "CoprimeSequence",
    "DEFAULT_COPRIMES",
    "DataTooLarge",
    "ErrorKind",
    "Exhausted",
    "Fountain",
    "FountainError",
    "Incomplete",
    "InvalidArgument",
    "MAX_COPRIME",
    "NotInvertible",
    "ONE",
    "Overflow",
    "Packet",
    "PacketDecoder",
    "PacketEncoder",
    "Producer",
    "ReconstructionFailed",
    "Recoverer",
    "ZERO",
    "bundle_size_for",
    "combine",
    "compute_coefficients",
    "data_hash",
    "split",
    "uniqueness_bound",
]
