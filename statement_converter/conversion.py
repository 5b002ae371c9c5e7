# Copyright (c) 2025, itsdave GmbH and contributors
# For license information, please see license.txt

"""
Conversion between statement formats.

All formats share one Statement model, so converting is the identity on the
model: the target's generator applies its own defaults and overflow rules
when writing. convert() only checks up front that the target can represent
the statement and hands out an independent copy. Balances (amounts, dates,
currency) are never changed.
"""

import logging
from dataclasses import replace
from functools import partial

from statement_converter.formats import Format, parse, serialize
from statement_converter.formats.camt053 import check_camt053_constraints
from statement_converter.formats.mt940 import check_mt940_constraints
from statement_converter.settings import ConverterSettings


logger = logging.getLogger(__name__)


def convert(statement, source, target):
    """
    Prepare a statement read from one format for writing in another.

    Args:
        statement: Statement as parsed from the source format
        source: Format the statement was read from
        target: Format the statement will be written in

    Returns:
        Statement: Copy of the statement with its own extra dicts

    Raises:
        ConversionError: If the target format cannot represent the statement
    """
    if target is Format.MT940:
        check_mt940_constraints(statement)
    elif target is Format.CAMT053:
        check_camt053_constraints(statement)

    logger.debug(
        "Converting statement %r from %s to %s", statement.statement_id, source.value, target.value
    )
    return replace(
        statement,
        transactions=[replace(t, extra=dict(t.extra)) for t in statement.transactions],
    )


def converter(source, target):
    """Return the Statement -> Statement conversion function for a format pair."""
    return partial(convert, source=source, target=target)


def convert_stream(source, target, input_stream, output_stream, settings=None):
    """
    Read a statement in one format and write it in another.

    Args:
        source: Format of input_stream
        target: Format to write to output_stream
        input_stream: Binary or text file-like object to read
        output_stream: Binary or text file-like object to write
        settings: ConverterSettings, defaults for all formats if omitted

    Returns:
        Statement: The converted statement
    """
    settings = settings or ConverterSettings()
    statement = parse(source, input_stream, settings.for_format(source))
    converted = convert(statement, source, target)
    serialize(target, converted, output_stream, settings.for_format(target))
    return converted
