"""Client-side error taxonomy."""


class CalculatorError(Exception):
    """Base class for calculator client errors."""

    pass


class FetchError(CalculatorError):
    """Reading the rate table failed (transport error or non-2xx status)."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status


class SubmitError(CalculatorError):
    """Writing the rate table was rejected locally or by the server."""

    def __init__(self, message: str, status: int | None = None, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.field = field


class StorageCorruption(CalculatorError):
    """A locally stored value could not be decoded."""

    pass


class AuthDenied(CalculatorError):
    """The user is signed in but lacks the role required for an action."""

    pass
