# Copyright (c) 2025, itsdave GmbH and contributors
# For license information, please see license.txt

"""
Exceptions raised by the statement codecs, the conversion engine and the comparator.

Every error carries an optional location: the 1-based line (MT940) or row (CSV)
and the field tag or column name. XML structure errors carry the element path
instead.
"""


class StatementError(Exception):
    """Base exception for statement parsing, serialization and conversion errors."""

    def __init__(self, message, line=None, field=None):
        self.message = message
        self.line = line
        self.field = field
        super().__init__(self._render())

    def _render(self):
        location = []
        if self.line is not None:
            location.append(f"line {self.line}")
        if self.field:
            location.append(f"({self.field})" if location else self.field)
        if location:
            return f"{' '.join(location)}: {self.message}"
        return self.message


class Mt940ParseError(StatementError):
    """Raised when an MT940 field is malformed or appears out of order."""
    pass


class XmlStructureError(StatementError):
    """Raised when a CAMT.053 document is malformed or lacks a required element."""

    def __init__(self, message, path=None):
        self.path = path
        super().__init__(message, field=path)


class InvalidDateError(StatementError):
    """Raised when a date does not parse as a valid calendar date."""
    pass


class InvalidAmountError(StatementError):
    """Raised when an amount does not parse as a decimal number."""
    pass


class MissingFieldError(StatementError):
    """Raised when a field required by the statement model is absent."""
    pass


class InvalidFormatError(StatementError):
    """Raised when the input does not match the expected layout (CSV header, encoding)."""
    pass


class InconsistentStatementError(StatementError):
    """Raised when a statement mixes currencies."""
    pass


class ConversionError(StatementError):
    """Raised when a statement cannot be represented in the target format."""
    pass
