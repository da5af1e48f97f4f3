"""Custom exceptions for the admission toolkit."""


class AdmissionError(Exception):
    """Base class for admission toolkit exceptions.

    All custom exceptions should inherit from this class so callers can
    catch toolkit failures with a single except clause.
    """

    def __init__(self, message: str = "Admission error"):
        self.message = message
        super().__init__(message)


class InvalidConfiguration(AdmissionError, ValueError):
    """Raised when a limiter is constructed with a non-positive parameter.

    The limiter is never created in this case.
    """

    def __init__(self, parameter: str, value: object, detail: str | None = None):
        self.parameter = parameter
        self.value = value
        message = detail or f"{parameter} must be positive, got {value!r}"
        super().__init__(message)


class UnknownAlgorithmError(AdmissionError, ValueError):
    """Raised when the limiter factory is asked for an algorithm it lacks."""

    def __init__(self, algorithm: str):
        self.algorithm = algorithm
        super().__init__(f"Unknown admission algorithm: {algorithm!r}")


def require_positive(parameter: str, value: object) -> None:
    """Raise InvalidConfiguration unless value is a positive real number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfiguration(
            parameter, value, f"{parameter} must be a number, got {value!r}"
        )
    if not value > 0:
        raise InvalidConfiguration(parameter, value)


def require_positive_int(parameter: str, value: object) -> None:
    """Raise InvalidConfiguration unless value is a positive integer."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfiguration(
            parameter, value, f"{parameter} must be an integer, got {value!r}"
        )
    if value <= 0:
        raise InvalidConfiguration(parameter, value)
