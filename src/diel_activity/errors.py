"""Exceptions and warnings raised while building occasions and fitting models."""


class DielActivityError(ValueError):
    """Base class for input and configuration problems."""


class ParseError(DielActivityError):
    """A timestamp or numeric field could not be parsed."""

    def __init__(self, message: str, row: int | None = None, column: str | None = None):
        self.row = row
        self.column = column
        if row is not None:
            where = f"row {row}" + (f", column '{column}'" if column else "")
            message = f"{message} ({where})"
        super().__init__(message)


class ValidationError(DielActivityError):
    """Input is well formed but inconsistent (e.g. start after end)."""


class ConfigurationError(DielActivityError):
    """A setting or deployment row leaves the computation undefined."""


class ConfigurationWarning(UserWarning):
    """A setting is accepted but makes some output ambiguous."""


class DataWarning(UserWarning):
    """Rows were dropped or skipped."""
