"""
Test suite for the CSV parser and generator.
"""
import io
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from conftest import assert_same_transactions
from statement_converter.errors import InvalidAmountError, InvalidDateError, InvalidFormatError
from statement_converter.formats.csv_format import generate_csv, parse_csv, read_csv, write_csv
from statement_converter.models import CreditDebit
from statement_converter.settings import CsvSettings


SAMPLE_CSV = """reference,booking_date,value_date,amount,direction,currency,description
INV-1001,2024-03-04,2024-03-04,250.25,C,EUR,Invoice 1001 payment
RENT-03,2024-03-05,2024-03-06,100.00,D,EUR,Rent March
"""

GERMAN_SETTINGS = CsvSettings(
    delimiter=";",
    decimal_separator=",",
    thousands_separator=".",
    date_format="%d.%m.%Y",
)

GERMAN_CSV = """Buchungstag;Valuta;Betrag;Währung;Verwendungszweck
04.03.2024;05.03.2024;-1.234,56;EUR;Miete März
05.03.2024;05.03.2024;99,90;EUR;Gutschrift
"""


class TestParseCsv:

    def test_basic_rows(self):
        statement = parse_csv(SAMPLE_CSV)

        assert statement.statement_id == ""
        assert statement.account_id == ""
        assert statement.currency == "EUR"
        assert statement.opening_balance is None
        assert len(statement.transactions) == 2

        tx = statement.transactions[1]
        assert tx.reference == "RENT-03"
        assert tx.amount == Decimal("100.00")
        assert tx.credit_or_debit is CreditDebit.DEBIT
        assert tx.booking_date == date(2024, 3, 5)
        assert tx.value_date == date(2024, 3, 6)
        assert tx.description == "Rent March"

    def test_german_export_with_signed_amounts(self):
        statement = parse_csv(GERMAN_CSV, GERMAN_SETTINGS)

        first, second = statement.transactions
        assert first.amount == Decimal("1234.56")
        assert first.credit_or_debit is CreditDebit.DEBIT
        assert first.booking_date == date(2024, 3, 4)
        assert first.value_date == date(2024, 3, 5)
        assert first.description == "Miete März"
        assert first.reference == ""
        assert second.amount == Decimal("99.90")
        assert second.credit_or_debit is CreditDebit.CREDIT

    def test_header_aliases_are_case_insensitive(self):
        text = "Ref,Transaction Date,Amount,Credit/Debit,Details\nA-1,2024-03-04,10.00,CRDT,Test\n"
        tx = parse_csv(text).transactions[0]

        assert tx.reference == "A-1"
        assert tx.credit_or_debit is CreditDebit.CREDIT
        assert tx.description == "Test"

    def test_debit_and_credit_columns(self):
        text = "date,debit amount,credit amount,description\n2024-03-04,12.50,,Coffee\n2024-03-05,,500.00,Salary\n"
        first, second = parse_csv(text).transactions

        assert first.amount == Decimal("12.50")
        assert first.credit_or_debit is CreditDebit.DEBIT
        assert second.amount == Decimal("500.00")
        assert second.credit_or_debit is CreditDebit.CREDIT

    def test_balance_marker_rows(self):
        text = (
            "date,amount,description\n"
            "2024-03-01,1000.00,OPENING BALANCE\n"
            "2024-03-04,250.25,Invoice 1001 payment\n"
            "2024-03-05,1250.25,Closing Balance\n"
        )
        statement = parse_csv(text)

        assert len(statement.transactions) == 1
        assert statement.opening_balance.amount == Decimal("1000.00")
        assert statement.opening_balance.date == date(2024, 3, 1)
        assert statement.closing_balance.amount == Decimal("1250.25")

    def test_account_column(self):
        text = "iban,date,amount\nDE89370400440532013000,2024-03-04,1.00\n"

        assert parse_csv(text).account_id == "DE89370400440532013000"

    def test_default_currency(self):
        text = "date,amount\n2024-03-04,1.00\n"

        assert parse_csv(text, CsvSettings(default_currency="CHF")).currency == "CHF"

    def test_quoted_description_with_delimiter(self):
        text = 'date,amount,description\n2024-03-04,1.00,"Rent, March"\n'

        assert parse_csv(text).transactions[0].description == "Rent, March"

    def test_read_from_binary_stream(self):
        data = GERMAN_CSV.encode("cp1252")
        settings = replace(GERMAN_SETTINGS, encoding="cp1252")
        statement = read_csv(io.BytesIO(data), settings)

        assert statement.transactions[0].description == "Miete März"


class TestCsvErrors:

    def test_non_numeric_amount_names_row(self):
        text = SAMPLE_CSV.replace("100.00", "abc")

        with pytest.raises(InvalidAmountError) as excinfo:
            parse_csv(text)
        assert excinfo.value.line == 3
        assert excinfo.value.field == "amount"

    def test_wrong_decimal_separator(self):
        with pytest.raises(InvalidAmountError) as excinfo:
            parse_csv(SAMPLE_CSV.replace("250.25", '"250,25"'))
        assert excinfo.value.line == 2

    def test_invalid_date(self):
        with pytest.raises(InvalidDateError) as excinfo:
            parse_csv(SAMPLE_CSV.replace("2024-03-06", "06.03.2024"))
        assert excinfo.value.line == 3
        assert excinfo.value.field == "value_date"

    def test_missing_amount_column(self):
        with pytest.raises(InvalidFormatError):
            parse_csv("reference,date,description\nA,2024-03-04,x\n")

    def test_missing_date_column(self):
        with pytest.raises(InvalidFormatError):
            parse_csv("reference,amount\nA,1.00\n")

    def test_negative_amount_with_direction(self):
        with pytest.raises(InvalidAmountError):
            parse_csv(SAMPLE_CSV.replace("100.00", "-100.00"))

    def test_invalid_direction(self):
        with pytest.raises(InvalidFormatError) as excinfo:
            parse_csv(SAMPLE_CSV.replace(",D,", ",X,"))
        assert excinfo.value.field == "direction"

    def test_mixed_currencies(self):
        with pytest.raises(InvalidFormatError) as excinfo:
            parse_csv(SAMPLE_CSV.replace(",D,EUR,", ",D,USD,"))
        assert excinfo.value.line == 3

    def test_empty_input(self):
        with pytest.raises(InvalidFormatError):
            parse_csv("")


class TestGenerateCsv:

    def test_layout(self, sample_statement):
        lines = generate_csv(sample_statement).splitlines()

        assert lines[0] == "reference,booking_date,value_date,amount,direction,currency,description"
        assert lines[1] == "INV-1001,2024-03-04,2024-03-04,250.25,C,EUR,Invoice 1001 payment"
        assert lines[2] == "RENT-03,2024-03-05,2024-03-06,100.00,D,EUR,Rent March"
        assert len(lines) == 3

    def test_round_trip(self, sample_statement):
        parsed = parse_csv(generate_csv(sample_statement))

        assert_same_transactions(parsed, sample_statement)
        assert parsed.opening_balance is None

    def test_round_trip_with_german_settings(self, sample_statement):
        tx = replace(sample_statement.transactions[0], amount=Decimal("12345.678"), description="Rent; March")
        statement = replace(sample_statement, transactions=[tx])
        output = generate_csv(statement, GERMAN_SETTINGS)

        assert "04.03.2024;04.03.2024;12345,678;C" in output
        assert_same_transactions(parse_csv(output, GERMAN_SETTINGS), statement)

    def test_multiline_description_round_trip(self, sample_statement):
        tx = replace(sample_statement.transactions[0], description="Invoice 1001\npayment")
        statement = replace(sample_statement, transactions=[tx])

        assert parse_csv(generate_csv(statement)).transactions[0].description == "Invoice 1001\npayment"

    def test_header_only_for_empty_statement(self, sample_statement):
        output = generate_csv(replace(sample_statement, transactions=[]))

        assert output == "reference,booking_date,value_date,amount,direction,currency,description\n"
        assert parse_csv(output).transactions == ()

    def test_write_to_binary_stream(self, sample_statement):
        stream = io.BytesIO()
        write_csv(sample_statement, stream)

        assert stream.getvalue().startswith(b"reference,booking_date")
