"""
Exceptions raised by the filtering pipeline.
"""


class SensorFilterError(Exception):
    """Base class for all sensorfilt errors."""


class InvalidSpec(SensorFilterError, ValueError):
    """
    A filter specification or configuration cannot be realised.

    Raised at initialisation time (order out of range, cutoff at or above
    Nyquist, non-positive rates). The host must not start cycling after this.
    """


class PreconditionViolation(SensorFilterError, RuntimeError):
    """A component was used in a way its state does not allow."""
