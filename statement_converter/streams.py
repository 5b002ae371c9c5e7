# Copyright (c) 2025, itsdave GmbH and contributors
# For license information, please see license.txt

"""Stream helpers shared by the codecs. Streams may be opened in binary or text mode."""

import io

from statement_converter.errors import InvalidFormatError


def read_bytes(stream, encoding="utf-8"):
    data = stream.read()
    if isinstance(data, str):
        return data.encode(encoding)
    return bytes(data)


def read_text(stream, encoding="utf-8"):
    data = stream.read()
    if isinstance(data, str):
        return data
    try:
        return bytes(data).decode(encoding)
    except UnicodeDecodeError as e:
        raise InvalidFormatError(f"Input is not valid {encoding}: {e}") from e


def write_text(stream, text, encoding="utf-8"):
    if isinstance(stream, io.TextIOBase):
        stream.write(text)
    else:
        stream.write(text.encode(encoding))
