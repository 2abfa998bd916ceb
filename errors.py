"""
Error taxonomy for the withholding engine and the reverse solver.

Everything raised here is a synchronous failure of the call: no partial results,
no silent defaults. The solver does not add kinds of its own.
"""


class SimulatorError(Exception):
    """Base class for every error raised by the calculation core."""


class ConfigurationError(SimulatorError):
    """No rate dataset was supplied before calculating."""


class ValidationError(SimulatorError, ValueError):
    """Malformed calculation input or malformed dataset document."""


class TableNotFoundError(SimulatorError, LookupError):
    """The resolved table id (I..VII) is absent from the dataset."""


class BandNotFoundError(SimulatorError, LookupError):
    """A table has neither a matching bounded band nor an open "over" band."""


class UnsupportedFormulaError(SimulatorError):
    """A deduction expression does not match `a * b * (c - R)`."""
