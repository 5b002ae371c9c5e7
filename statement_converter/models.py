# Copyright (c) 2025, itsdave GmbH and contributors
# For license information, please see license.txt

"""
Statement data model shared by all formats.

A Statement holds one account's reporting period: opening and closing
balances and the transactions in document order. Amounts are always
non-negative Decimal magnitudes; the direction is carried separately by
CreditDebit.

Information that exists in one format but has no structural home in another
travels in Transaction.extra under well-known keys (see below), so each
codec only has to know its own mapping.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple

from statement_converter.errors import ConversionError, InconsistentStatementError


CENT = Decimal("0.01")

# Generic "other" transaction code (SWIFT NMSC = miscellaneous), used when a
# source format carries no transaction type.
DEFAULT_TRANSACTION_TYPE = "NMSC"

# Placeholder for identifiers that are mandatory in CAMT.053 but empty in the model
NOT_PROVIDED = "NOTPROVIDED"

# Well-known keys of Transaction.extra
EXTRA_TRANSACTION_TYPE = "transaction_type"
EXTRA_BANK_REFERENCE = "bank_reference"
EXTRA_REVERSAL = "reversal"
EXTRA_FUNDS_CODE = "funds_code"
EXTRA_SUPPLEMENTARY_DETAILS = "supplementary_details"
EXTRA_GVCODE = "gvcode"
EXTRA_POSTING_TEXT = "posting_text"
EXTRA_PRIMANOTA = "primanota"
EXTRA_COUNTERPARTY_BIC = "counterparty_bic"
EXTRA_COUNTERPARTY_IBAN = "counterparty_iban"
EXTRA_COUNTERPARTY_NAME = "counterparty_name"
EXTRA_TEXT_KEY_EXTENSION = "text_key_extension"
EXTRA_END_TO_END_ID = "end_to_end_id"
EXTRA_ADDITIONAL_INFO = "additional_info"
EXTRA_BTC_DOMAIN = "btc_domain"
EXTRA_BTC_FAMILY = "btc_family"
EXTRA_BTC_SUBFAMILY = "btc_subfamily"
EXTRA_BTC_ISSUER = "btc_issuer"

TRUE = "true"


class CreditDebit(Enum):
    """Direction of a balance or booking."""

    CREDIT = "C"
    DEBIT = "D"

    @classmethod
    def from_code(cls, code):
        """
        Parse a direction indicator.

        Accepts the MT940 letters, the ISO 20022 codes and the usual spelled-out
        and signed variants, case-insensitively.

        Raises:
            ValueError: If the code is not a known indicator
        """
        normalized = str(code or "").strip().upper()
        if normalized in ("C", "CR", "CRDT", "CREDIT", "+"):
            return cls.CREDIT
        if normalized in ("D", "DR", "DBIT", "DEBIT", "-"):
            return cls.DEBIT
        raise ValueError(f"Invalid credit/debit indicator: {code!r}")

    @property
    def iso_code(self):
        return "CRDT" if self is CreditDebit.CREDIT else "DBIT"

    @property
    def sign(self):
        return 1 if self is CreditDebit.CREDIT else -1

    def opposite(self):
        return CreditDebit.DEBIT if self is CreditDebit.CREDIT else CreditDebit.CREDIT


def _check_amount(amount, owner):
    if isinstance(amount, float) or not isinstance(amount, Decimal):
        raise TypeError(f"{owner} amount must be a Decimal, got {type(amount).__name__}")
    if not amount.is_finite():
        raise ValueError(f"{owner} amount must be finite, got {amount}")
    if amount < 0:
        raise ValueError(f"{owner} amount must be a non-negative magnitude, got {amount}")


def normalize_amount(amount):
    """Return the amount with at least two fraction digits, never dropping precision."""
    if amount.as_tuple().exponent > -2:
        return amount.quantize(CENT)
    return amount


def format_amount(amount, decimal_separator="."):
    """Render an amount without exponent or thousands separators."""
    return format(normalize_amount(amount), "f").replace(".", decimal_separator)


@dataclass(frozen=True)
class Balance:
    amount: Decimal
    currency: str
    date: date
    credit_or_debit: CreditDebit

    def __post_init__(self):
        _check_amount(self.amount, "Balance")

    @classmethod
    def from_signed(cls, amount, currency, date):
        """Build a balance from a signed amount (negative means debit)."""
        direction = CreditDebit.DEBIT if amount < 0 else CreditDebit.CREDIT
        return cls(amount=abs(amount), currency=currency, date=date, credit_or_debit=direction)

    @property
    def signed_amount(self):
        return self.amount * self.credit_or_debit.sign


@dataclass(frozen=True)
class Transaction:
    reference: str
    amount: Decimal
    credit_or_debit: CreditDebit
    booking_date: date
    value_date: Optional[date] = None
    description: str = ""
    extra: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        _check_amount(self.amount, "Transaction")
        if self.value_date is None:
            object.__setattr__(self, "value_date", self.booking_date)

    @property
    def signed_amount(self):
        return self.amount * self.credit_or_debit.sign


@dataclass(frozen=True)
class Statement:
    statement_id: str
    account_id: str
    opening_balance: Optional[Balance] = None
    closing_balance: Optional[Balance] = None
    transactions: Tuple[Transaction, ...] = ()
    currency: Optional[str] = None
    sequence_number: Optional[str] = None
    account_holder: Optional[str] = None
    information: str = ""

    def __post_init__(self):
        object.__setattr__(self, "transactions", tuple(self.transactions))

        balances = [b for b in (self.opening_balance, self.closing_balance) if b is not None]
        if self.currency is None and balances:
            object.__setattr__(self, "currency", balances[0].currency)

        for balance in balances:
            if balance.currency != self.currency:
                raise InconsistentStatementError(
                    f"Balance currency {balance.currency} differs from statement currency {self.currency}"
                )

    def net_movement(self):
        """Signed sum of all transactions."""
        return sum((t.signed_amount for t in self.transactions), Decimal("0"))

    def derived_balances(self):
        """
        Return (opening, closing), deriving a missing balance from the other one.

        The closing balance is the opening balance plus the net movement, dated
        at the last booking date; the opening balance is derived backwards and
        dated at the first booking date.

        Raises:
            ConversionError: If the statement has neither balance
        """
        opening, closing = self.opening_balance, self.closing_balance
        if opening is None and closing is None:
            raise ConversionError(
                f"Statement {self.statement_id!r} has no opening or closing balance"
            )

        booking_dates = [t.booking_date for t in self.transactions]
        if closing is None:
            closing = Balance.from_signed(
                opening.signed_amount + self.net_movement(),
                opening.currency,
                max(booking_dates + [opening.date]),
            )
        elif opening is None:
            opening = Balance.from_signed(
                closing.signed_amount - self.net_movement(),
                closing.currency,
                min(booking_dates + [closing.date]),
            )
        return opening, closing
