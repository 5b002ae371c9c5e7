# Copyright (c) 2025, itsdave GmbH and contributors
# For license information, please see license.txt

"""
Per-format settings.

Settings are plain values handed to the codecs by the caller. Nothing here is
auto-detected from the input: decimal separator, date format and encoding are
decided up front so that ambiguous files are never guessed at.
"""

import codecs
from dataclasses import dataclass, field, fields
from datetime import date


@dataclass
class Mt940Settings:
    encoding: str = "utf-8"
    # SWIFT specifies CRLF, German banks mostly deliver LF
    line_ending: str = "\n"
    # Transliterate umlauts and replace characters outside the SWIFT set
    sanitize: bool = True

    def __post_init__(self):
        _check_encoding(self.encoding)
        if self.line_ending not in ("\n", "\r\n"):
            raise ValueError(f"Unsupported MT940 line ending: {self.line_ending!r}")


@dataclass
class Camt053Settings:
    default_currency: str = "EUR"
    indent: str = "  "
    encoding: str = "utf-8"

    def __post_init__(self):
        _check_currency(self.default_currency)
        _check_encoding(self.encoding)


@dataclass
class CsvSettings:
    delimiter: str = ","
    decimal_separator: str = "."
    thousands_separator: str = ""
    date_format: str = "%Y-%m-%d"
    encoding: str = "utf-8"
    default_currency: str = "EUR"
    opening_balance_marker: str = "OPENING BALANCE"
    closing_balance_marker: str = "CLOSING BALANCE"

    def __post_init__(self):
        if len(self.delimiter) != 1:
            raise ValueError(f"CSV delimiter must be a single character: {self.delimiter!r}")
        if self.decimal_separator not in (".", ","):
            raise ValueError(f"Decimal separator must be '.' or ',': {self.decimal_separator!r}")
        if self.thousands_separator == self.decimal_separator:
            raise ValueError("Thousands separator must differ from the decimal separator")
        try:
            date(2000, 1, 31).strftime(self.date_format)
        except ValueError as e:
            raise ValueError(f"Invalid CSV date format {self.date_format!r}: {e}")
        _check_encoding(self.encoding)
        _check_currency(self.default_currency)


@dataclass
class ConverterSettings:
    """Settings for all formats, as handed over by the calling layer."""

    mt940: Mt940Settings = field(default_factory=Mt940Settings)
    camt053: Camt053Settings = field(default_factory=Camt053Settings)
    csv: CsvSettings = field(default_factory=CsvSettings)

    def for_format(self, fmt):
        """Return the settings object of the given Format."""
        return getattr(self, fmt.value)

    @classmethod
    def from_mapping(cls, mapping):
        """
        Build settings from a nested mapping, e.g. a loaded TOML/JSON config.

        Args:
            mapping: {"mt940": {...}, "camt053": {...}, "csv": {...}}

        Returns:
            ConverterSettings

        Raises:
            ValueError: On unknown sections or keys
        """
        sections = {"mt940": Mt940Settings, "camt053": Camt053Settings, "csv": CsvSettings}
        unknown = set(mapping or {}) - set(sections)
        if unknown:
            raise ValueError(f"Unknown settings section(s): {', '.join(sorted(unknown))}")

        kwargs = {}
        for name, settings_class in sections.items():
            values = dict((mapping or {}).get(name) or {})
            allowed = {f.name for f in fields(settings_class)}
            extra_keys = set(values) - allowed
            if extra_keys:
                raise ValueError(f"Unknown {name} setting(s): {', '.join(sorted(extra_keys))}")
            kwargs[name] = settings_class(**values)
        return cls(**kwargs)


def _check_encoding(encoding):
    try:
        codecs.lookup(encoding)
    except LookupError:
        raise ValueError(f"Unknown encoding: {encoding!r}")


def _check_currency(currency):
    if not (isinstance(currency, str) and len(currency) == 3 and currency.isalpha() and currency.isupper()):
        raise ValueError(f"Currency must be a three-letter ISO 4217 code: {currency!r}")
