"""
Error taxonomy.

Remote errors are caught where the call is made, logged and turned into a
single user notification. Validation errors never leave the form layer.
"""
from typing import Dict, Optional


class TablerosError(Exception):
    """Base class for every error raised by the boards."""
    pass


class ConfigError(TablerosError):
    """Raised when configuration is invalid or incomplete."""
    pass


class RemoteReadError(TablerosError):
    """A read against the record store or object storage failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteWriteError(TablerosError):
    """An insert, update or delete against the record store failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(TablerosError):
    """Form data failed validation. Carries one message per field."""

    def __init__(self, field_errors: Dict[str, str]):
        self.field_errors = dict(field_errors)
        super().__init__(
            "; ".join(f"{k}: {v}" for k, v in self.field_errors.items())
        )


class NotFoundError(TablerosError):
    """A referenced item is not in the local board list."""
    pass


class MalformedDataError(TablerosError):
    """A record carries a value outside its closed enumeration, or a date that does not parse."""
    pass
