"""
Exception and warning types raised by the absorption correction.
"""


class CorrectionError(Exception):
    """Base class for all errors raised while computing a correction."""


class ConfigurationError(CorrectionError, ValueError):
    """The oriented sample geometry failed its surface sanity checks."""


class PreconditionViolation(CorrectionError, ValueError):
    """An attenuation coefficient or density is outside its valid range."""


class DegenerateResult(CorrectionError, ArithmeticError):
    """No generation was accumulated, so the correction ratio is undefined."""


class NumericalWarning(UserWarning):
    """A ray query produced a zero-length escape path for a separated point."""
