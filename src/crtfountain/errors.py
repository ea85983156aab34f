from enum import Enum


class ErrorKind(Enum):
    INVALID_ARGUMENT = "invalid_argument"
    NOT_INVERTIBLE = "not_invertible"
    EXHAUSTED = "exhausted"
    OVERFLOW = "overflow"
    DATA_TOO_LARGE = "data_too_large"
    RECONSTRUCTION_FAILED = "reconstruction_failed"


class FountainError(Exception):
    """
    Base of every failure raised by this package.

    ``kind`` tells callers which of the closed set of failure modes occurred,
    so they can branch on it without matching exception messages.
    """

    kind: ErrorKind

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind.value)


class InvalidArgument(FountainError, ValueError):
    """Malformed size, shape or range of an input."""

    kind = ErrorKind.INVALID_ARGUMENT


class Incomplete(InvalidArgument):
    """Recovery was requested before enough bundles were received."""


class NotInvertible(FountainError, ArithmeticError):
    kind = ErrorKind.NOT_INVERTIBLE


class Exhausted(FountainError, ArithmeticError):
    """The coprime sequence ran out of candidates."""

    kind = ErrorKind.EXHAUSTED


class Overflow(FountainError, ArithmeticError):
    """An encoded residue did not fit in its 2-byte slice."""

    kind = ErrorKind.OVERFLOW


class DataTooLarge(FountainError):
    kind = ErrorKind.DATA_TOO_LARGE


class ReconstructionFailed(FountainError):
    """CRT reconstruction produced a hunk of the wrong size."""

    kind = ErrorKind.RECONSTRUCTION_FAILED
