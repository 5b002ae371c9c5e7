# Copyright (c) 2025, itsdave GmbH and contributors
# For license information, please see license.txt

"""
Statement format codecs

This package provides a parser and a generator for each statement format:
- MT940: SWIFT text format
- camt.053: ISO 20022 XML format (end-of-day statements)
- CSV: tabular export with one row per transaction
"""

import logging
from enum import Enum

from statement_converter.errors import InvalidFormatError
from statement_converter.formats.camt053 import generate_camt053, parse_camt053, read_camt053, write_camt053
from statement_converter.formats.csv_format import generate_csv, parse_csv, read_csv, write_csv
from statement_converter.formats.mt940 import generate_mt940, parse_mt940, read_mt940, write_mt940


logger = logging.getLogger(__name__)


class Format(Enum):
    MT940 = "mt940"
    CAMT053 = "camt053"
    CSV = "csv"

    @classmethod
    def from_string(cls, name):
        """
        Look up a format by name, e.g. "MT940", "camt.053" or "csv".

        Raises:
            InvalidFormatError: If the name is not a supported format
        """
        aliases = {
            "mt940": cls.MT940,
            "mt-940": cls.MT940,
            "swift": cls.MT940,
            "sta": cls.MT940,
            "camt053": cls.CAMT053,
            "camt.053": cls.CAMT053,
            "camt": cls.CAMT053,
            "xml": cls.CAMT053,
            "csv": cls.CSV,
        }
        fmt = aliases.get(str(name or "").strip().lower())
        if fmt is None:
            raise InvalidFormatError(f"Unsupported format: {name}")
        return fmt

    @property
    def extension(self):
        """File extension used for exports of this format."""
        return {"mt940": "sta", "camt053": "xml", "csv": "csv"}[self.value]


def parse(fmt, stream, settings=None):
    """
    Parse one statement from a stream.

    Args:
        fmt: Format of the input
        stream: Binary or text file-like object
        settings: Settings object of that format (Mt940Settings, ...)

    Returns:
        Statement
    """
    logger.debug("Parsing %s statement", fmt.value)
    if fmt is Format.MT940:
        return read_mt940(stream, settings)
    elif fmt is Format.CAMT053:
        return read_camt053(stream, settings)
    elif fmt is Format.CSV:
        return read_csv(stream, settings)
    raise InvalidFormatError(f"Unsupported format: {fmt}")


def serialize(fmt, statement, stream, settings=None):
    """
    Write one statement to a stream.

    Args:
        fmt: Target format
        statement: Statement to write
        stream: Binary or text file-like object
        settings: Settings object of that format (Mt940Settings, ...)
    """
    logger.debug("Writing %s statement %r", fmt.value, statement.statement_id)
    if fmt is Format.MT940:
        write_mt940(statement, stream, settings)
    elif fmt is Format.CAMT053:
        write_camt053(statement, stream, settings)
    elif fmt is Format.CSV:
        write_csv(statement, stream, settings)
    else:
        raise InvalidFormatError(f"Unsupported format: {fmt}")


__all__ = [
    'Format', 'parse', 'serialize',
    'parse_mt940', 'generate_mt940', 'read_mt940', 'write_mt940',
    'parse_camt053', 'generate_camt053', 'read_camt053', 'write_camt053',
    'parse_csv', 'generate_csv', 'read_csv', 'write_csv',
]
