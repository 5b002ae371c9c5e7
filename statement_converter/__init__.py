# Copyright (c) 2025, itsdave GmbH and contributors
# For license information, please see license.txt

"""
Statement Converter

Parse, write, convert and compare bank account statements in MT940,
camt.053 (ISO 20022) and CSV format.
"""

import logging

from statement_converter.compare import ComparisonResult, Difference, compare
from statement_converter.conversion import convert, convert_stream, converter
from statement_converter.errors import (
    ConversionError,
    InconsistentStatementError,
    InvalidAmountError,
    InvalidDateError,
    InvalidFormatError,
    MissingFieldError,
    Mt940ParseError,
    StatementError,
    XmlStructureError,
)
from statement_converter.formats import Format, parse, serialize
from statement_converter.models import Balance, CreditDebit, Statement, Transaction
from statement_converter.settings import Camt053Settings, ConverterSettings, CsvSettings, Mt940Settings

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    'Balance', 'CreditDebit', 'Statement', 'Transaction',
    'Format', 'parse', 'serialize',
    'convert', 'converter', 'convert_stream',
    'compare', 'ComparisonResult', 'Difference',
    'ConverterSettings', 'Mt940Settings', 'Camt053Settings', 'CsvSettings',
    'StatementError', 'Mt940ParseError', 'XmlStructureError', 'InvalidDateError',
    'InvalidAmountError', 'MissingFieldError', 'InvalidFormatError',
    'InconsistentStatementError', 'ConversionError',
]
