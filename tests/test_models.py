"""
Test suite for the statement data model.
"""
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from statement_converter.errors import ConversionError, InconsistentStatementError
from statement_converter.models import (
    Balance,
    CreditDebit,
    Statement,
    Transaction,
    format_amount,
    normalize_amount,
)


class TestCreditDebit:

    @pytest.mark.parametrize("code", ["C", "cr", "CRDT", "credit", "+"])
    def test_credit_codes(self, code):
        assert CreditDebit.from_code(code) is CreditDebit.CREDIT

    @pytest.mark.parametrize("code", ["D", "dr", "DBIT", "Debit", "-"])
    def test_debit_codes(self, code):
        assert CreditDebit.from_code(code) is CreditDebit.DEBIT

    def test_unknown_code(self):
        with pytest.raises(ValueError):
            CreditDebit.from_code("X")

    def test_iso_code_and_sign(self):
        assert CreditDebit.CREDIT.iso_code == "CRDT"
        assert CreditDebit.DEBIT.iso_code == "DBIT"
        assert CreditDebit.DEBIT.sign == -1
        assert CreditDebit.CREDIT.opposite() is CreditDebit.DEBIT


class TestAmounts:

    def test_float_is_rejected(self):
        with pytest.raises(TypeError):
            Transaction("A", 1.5, CreditDebit.CREDIT, date(2024, 3, 4))

    def test_negative_amount_is_rejected(self):
        with pytest.raises(ValueError):
            Balance(Decimal("-1.00"), "EUR", date(2024, 3, 4), CreditDebit.CREDIT)

    def test_balance_from_signed(self):
        balance = Balance.from_signed(Decimal("-12.50"), "EUR", date(2024, 3, 4))

        assert balance.amount == Decimal("12.50")
        assert balance.credit_or_debit is CreditDebit.DEBIT
        assert balance.signed_amount == Decimal("-12.50")

    def test_normalize_keeps_precision(self):
        assert str(normalize_amount(Decimal("5"))) == "5.00"
        assert str(normalize_amount(Decimal("1.2345"))) == "1.2345"

    def test_format_amount(self):
        assert format_amount(Decimal("1234.5"), ",") == "1234,50"
        assert format_amount(Decimal("1E+3")) == "1000.00"


class TestStatement:

    def test_value_date_defaults_to_booking_date(self):
        tx = Transaction("A", Decimal("1.00"), CreditDebit.CREDIT, date(2024, 3, 4))

        assert tx.value_date == date(2024, 3, 4)

    def test_transactions_become_tuple(self, sample_statement):
        assert isinstance(sample_statement.transactions, tuple)

    def test_currency_from_balances(self, sample_statement):
        assert sample_statement.currency == "EUR"

    def test_mixed_currencies(self, sample_statement):
        usd = replace(sample_statement.closing_balance, currency="USD")

        with pytest.raises(InconsistentStatementError):
            replace(sample_statement, closing_balance=usd)

    def test_net_movement(self, sample_statement):
        assert sample_statement.net_movement() == Decimal("150.25")

    def test_derived_balances_keep_existing(self, sample_statement):
        opening, closing = sample_statement.derived_balances()

        assert opening is sample_statement.opening_balance
        assert closing is sample_statement.closing_balance

    def test_derived_closing_balance(self, sample_statement):
        statement = replace(sample_statement, closing_balance=None)
        _, closing = statement.derived_balances()

        assert closing == sample_statement.closing_balance

    def test_derived_balance_can_turn_debit(self, sample_statement):
        tx = Transaction("B", Decimal("1500.00"), CreditDebit.DEBIT, date(2024, 3, 5))
        statement = replace(sample_statement, closing_balance=None, transactions=[tx])
        _, closing = statement.derived_balances()

        assert closing.amount == Decimal("500.00")
        assert closing.credit_or_debit is CreditDebit.DEBIT

    def test_no_balances(self):
        statement = Statement(statement_id="S", account_id="A")

        with pytest.raises(ConversionError):
            statement.derived_balances()
