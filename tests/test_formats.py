"""
Test suite for format lookup and stream dispatch.
"""
import io

import pytest

from statement_converter.errors import InvalidFormatError
from statement_converter.formats import Format, parse, serialize


class TestFormat:

    @pytest.mark.parametrize("name, expected", [
        ("MT940", Format.MT940),
        ("mt-940", Format.MT940),
        ("swift", Format.MT940),
        ("camt.053", Format.CAMT053),
        ("CAMT053", Format.CAMT053),
        ("xml", Format.CAMT053),
        (" csv ", Format.CSV),
    ])
    def test_from_string(self, name, expected):
        assert Format.from_string(name) is expected

    def test_unknown_format(self):
        with pytest.raises(InvalidFormatError):
            Format.from_string("pdf")

    def test_extension(self):
        assert Format.MT940.extension == "sta"
        assert Format.CAMT053.extension == "xml"
        assert Format.CSV.extension == "csv"


class TestDispatch:

    @pytest.mark.parametrize("fmt", list(Format))
    def test_serialize_then_parse(self, fmt, sample_statement):
        stream = io.BytesIO()
        serialize(fmt, sample_statement, stream)
        stream.seek(0)

        parsed = parse(fmt, stream)
        assert [t.amount for t in parsed.transactions] == [t.amount for t in sample_statement.transactions]

    def test_parse_text_stream(self, sample_mt940):
        statement = parse(Format.MT940, io.StringIO(sample_mt940))

        assert statement.statement_id == "STMT2014011501"
