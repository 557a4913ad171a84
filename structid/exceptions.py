class IdentifiabilityError(Exception):
    """Base class for all errors raised by structid."""


class ConfigurationError(IdentifiabilityError, ValueError):
    """
    Raised for invalid inputs: unknown engines or variable change policies,
    probabilities outside (0, 1), empty or malformed generator groups,
    functions that do not live in the working ring.
    """


class DegeneracyError(IdentifiabilityError, ArithmeticError):
    """Raised when no evaluation point keeps every pivot and denominator non-zero."""


class UnrepresentableQuantity(UserWarning):
    """Category of the advisory emitted when a known quantity is dropped."""
