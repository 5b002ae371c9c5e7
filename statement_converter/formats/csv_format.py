# Copyright (c) 2025, itsdave GmbH and contributors
# For license information, please see license.txt

"""
CSV statement Parser and Generator

The first row names the columns. Column names are matched case-insensitively
against a set of aliases (English and the usual German bank export names),
spaces and dashes counting as underscores. Every other row is one transaction,
except rows whose description (or reference) is the configured opening or
closing balance marker, which become the statement balances.

Decimal separator, thousands separator, date format, delimiter and encoding
come from CsvSettings and are never guessed from the data.

Row numbers in errors are line numbers of the file with the header as row 1.
"""

import io
import logging
import re
from datetime import datetime
from decimal import Decimal

import pandas as pd

from statement_converter.errors import (
    InvalidAmountError,
    InvalidDateError,
    InvalidFormatError,
)
from statement_converter.models import (
    Balance,
    CreditDebit,
    Statement,
    Transaction,
    format_amount,
)
from statement_converter.settings import CsvSettings
from statement_converter.streams import read_text, write_text


logger = logging.getLogger(__name__)

# Columns written by generate_csv
CSV_COLUMNS = [
    "reference",
    "booking_date",
    "value_date",
    "amount",
    "direction",
    "currency",
    "description",
]

COLUMN_ALIASES = {
    "reference": ["reference", "ref", "document_no", "transaction_id", "id"],
    "booking_date": ["booking_date", "date", "transaction_date", "buchungstag", "buchungsdatum"],
    "value_date": ["value_date", "valuta", "valutadatum"],
    "amount": ["amount", "betrag"],
    "debit_amount": ["debit_amount", "debit", "soll"],
    "credit_amount": ["credit_amount", "credit", "haben"],
    "direction": ["direction", "credit_debit", "credit/debit", "debit/credit", "dc", "cdt_dbt_ind"],
    "currency": ["currency", "ccy", "waehrung", "währung"],
    "description": ["description", "purpose", "narrative", "details", "verwendungszweck"],
    "account": ["account", "iban", "account_id"],
}

AMOUNT_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")

# Header is row 1
FIRST_DATA_ROW = 2


def _normalize_header(name):
    return re.sub(r"[\s\-]+", "_", str(name).strip().lower())


def _map_columns(header):
    """
    Map canonical column names to the header names found in the file.

    Raises:
        InvalidFormatError: If no date column or no amount column(s) exist
    """
    normalized = {_normalize_header(name): name for name in header}
    columns = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in normalized:
                columns[canonical] = normalized[alias]
                break

    if "booking_date" not in columns:
        raise InvalidFormatError("missing date column", line=1)
    has_pair = "debit_amount" in columns and "credit_amount" in columns
    if "amount" not in columns and not has_pair:
        raise InvalidFormatError("missing amount column (or debit/credit amount columns)", line=1)
    return columns


# ========== Parsing ==========

def read_csv(stream, settings=None):
    """Parse a CSV statement from a binary or text stream."""
    settings = settings or CsvSettings()
    return parse_csv(read_text(stream, settings.encoding), settings)


def parse_csv(text, settings=None):
    """
    Parse CSV text into a Statement.

    Args:
        text: CSV content including the header row
        settings: CsvSettings

    Returns:
        Statement: statement_id is empty, account_id comes from an account
            column if present

    Raises:
        InvalidFormatError: On an unusable header, broken quoting or mixed currencies
        InvalidAmountError: On amounts that do not parse with the configured separators
        InvalidDateError: On dates that do not match the configured date format
    """
    settings = settings or CsvSettings()

    try:
        frame = pd.read_csv(
            io.StringIO(text),
            sep=settings.delimiter,
            dtype=str,
            keep_default_na=False,
        )
    except pd.errors.EmptyDataError as e:
        raise InvalidFormatError("CSV input is empty", line=1) from e
    except pd.errors.ParserError as e:
        raise InvalidFormatError(f"malformed CSV: {e}") from e

    columns = _map_columns(frame.columns)

    opening_balance = None
    closing_balance = None
    transactions = []
    currency = None
    account_id = ""

    opening_marker = settings.opening_balance_marker.strip().upper()
    closing_marker = settings.closing_balance_marker.strip().upper()

    for row_number, record in enumerate(frame.to_dict("records"), start=FIRST_DATA_ROW):
        row = _CsvRow(record, columns, row_number)

        row_currency = row.get("currency") or settings.default_currency
        if currency is None:
            currency = row_currency
        elif row_currency != currency:
            raise InvalidFormatError(
                f"mixed currencies {currency} and {row_currency}", row_number, columns.get("currency")
            )

        if row.get("account") and not account_id:
            account_id = row.get("account")

        amount, credit_or_debit = _parse_amount_and_direction(row, settings)
        booking_date = _parse_date(row, "booking_date", settings)

        markers = {row.get("description").upper(), row.get("reference").upper()}
        if opening_marker in markers:
            opening_balance = Balance(amount, row_currency, booking_date, credit_or_debit)
            continue
        if closing_marker in markers:
            closing_balance = Balance(amount, row_currency, booking_date, credit_or_debit)
            continue

        value_date = booking_date
        if row.get("value_date"):
            value_date = _parse_date(row, "value_date", settings)

        transactions.append(Transaction(
            reference=row.get("reference"),
            amount=amount,
            credit_or_debit=credit_or_debit,
            booking_date=booking_date,
            value_date=value_date,
            description=row.get("description"),
        ))

    statement = Statement(
        statement_id="",
        account_id=account_id,
        opening_balance=opening_balance,
        closing_balance=closing_balance,
        transactions=transactions,
        currency=currency or settings.default_currency,
    )
    logger.debug("Parsed CSV statement with %d transactions", len(statement.transactions))
    return statement


class _CsvRow:
    """One data row with access by canonical column name."""

    def __init__(self, record, columns, number):
        self.record = record
        self.columns = columns
        self.number = number

    def column(self, canonical):
        return self.columns.get(canonical)

    def get(self, canonical):
        value = self.record.get(self.columns.get(canonical))
        # Short rows are padded with NaN by pandas
        if not isinstance(value, str):
            return ""
        return value.strip()


def _parse_amount_and_direction(row, settings):
    """
    Determine magnitude and direction of a row.

    The direction comes from the direction column, else from the sign of the
    amount, else from which of the debit/credit amount columns is filled.
    """
    if row.column("amount") and (row.get("amount") or not row.column("debit_amount")):
        amount = _parse_amount(row, "amount", settings)
        if row.column("direction"):
            if amount < 0:
                raise InvalidAmountError(
                    "negative amount together with a direction column", row.number, row.column("amount")
                )
            try:
                credit_or_debit = CreditDebit.from_code(row.get("direction"))
            except ValueError as e:
                raise InvalidFormatError(str(e), row.number, row.column("direction")) from e
            return amount, credit_or_debit
        if amount < 0:
            return -amount, CreditDebit.DEBIT
        return amount, CreditDebit.CREDIT

    debit = _parse_amount(row, "debit_amount", settings) if row.get("debit_amount") else None
    credit = _parse_amount(row, "credit_amount", settings) if row.get("credit_amount") else None
    if debit is not None and credit is not None:
        raise InvalidAmountError(
            "both debit and credit amount are filled", row.number, row.column("credit_amount")
        )
    if debit is not None:
        return abs(debit), CreditDebit.DEBIT
    if credit is not None:
        return abs(credit), CreditDebit.CREDIT
    raise InvalidAmountError("missing amount", row.number, row.column("amount") or row.column("debit_amount"))


def _parse_amount(row, canonical, settings):
    raw = row.get(canonical)
    text = raw.replace(" ", "").replace("\u00a0", "")
    if settings.thousands_separator:
        text = text.replace(settings.thousands_separator, "")

    # Trailing sign as in some German bank exports ("12,50-")
    if text.endswith("-") and not text.startswith(("-", "+")):
        text = "-" + text[:-1]

    if settings.decimal_separator == ",":
        if "." in text:
            raise InvalidAmountError(f"invalid amount {raw!r}", row.number, row.column(canonical))
        text = text.replace(",", ".")

    if not AMOUNT_RE.match(text):
        raise InvalidAmountError(f"invalid amount {raw!r}", row.number, row.column(canonical))
    return Decimal(text)


def _parse_date(row, canonical, settings):
    raw = row.get(canonical)
    try:
        return datetime.strptime(raw, settings.date_format).date()
    except ValueError as e:
        raise InvalidDateError(
            f"invalid date {raw!r}, expected format {settings.date_format}", row.number, row.column(canonical)
        ) from e


# ========== Generation ==========

def write_csv(statement, stream, settings=None):
    """Serialize a Statement as CSV to a binary or text stream."""
    settings = settings or CsvSettings()
    write_text(stream, generate_csv(statement, settings), settings.encoding)


def generate_csv(statement, settings=None):
    """
    Generate CSV content, one row per transaction.

    Statement id, account id and balances have no column and are not written.

    Returns:
        str: CSV content as string
    """
    settings = settings or CsvSettings()
    currency = statement.currency or settings.default_currency

    data = []
    for transaction in statement.transactions:
        data.append([
            transaction.reference,
            transaction.booking_date.strftime(settings.date_format),
            transaction.value_date.strftime(settings.date_format),
            format_amount(transaction.amount, settings.decimal_separator),
            transaction.credit_or_debit.value,
            currency,
            transaction.description,
        ])

    df = pd.DataFrame(data, columns=CSV_COLUMNS)
    buffer = io.StringIO()
    df.to_csv(buffer, sep=settings.delimiter, index=False, lineterminator="\n")

    logger.debug("Generated CSV statement with %d transactions", len(statement.transactions))
    return buffer.getvalue()
