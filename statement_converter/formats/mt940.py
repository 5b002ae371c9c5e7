# Copyright (c) 2025, itsdave GmbH and contributors
# For license information, please see license.txt

"""
SWIFT MT940 (Customer Statement Message) Parser and Generator

MT940 Structure:
- :20: Transaction Reference Number (statement id)
- :25: Account Identification
- :28C: Statement Number/Sequence Number
- :60F: Opening Balance
- :61: Statement Line (one per transaction)
- :86: Information to Account Owner (plain text or structured ?XX format)
- :62F: Closing Balance
- -: Statement separator

Lines that do not start with a recognized tag continue the previous field.
The parser first scans the input into tagged fields, keeping the line number
where each field starts, then walks the fields with a small state machine
(header -> body -> closed) that enforces the field order.

Structured :86: narratives follow the German DK convention:
- GV-Code directly after :86: (before ?00)
- ?00: Buchungstext (posting text)
- ?10: Primanota
- ?20-?29, ?60-?63: Verwendungszweck (purpose)
- ?30: BIC Gegenkonto
- ?31: IBAN Gegenkonto
- ?32-?33: Name Gegenkonto
- ?34: Textschluesselergaenzung
Sub-fields ?70-?99 carry "key=value" pairs for transaction data that has no
MT940 field of its own.
"""

import logging
import re
from collections import namedtuple
from datetime import date
from decimal import Decimal

from statement_converter.errors import (
    ConversionError,
    InvalidAmountError,
    InvalidDateError,
    MissingFieldError,
    Mt940ParseError,
)
from statement_converter.models import (
    CENT,
    DEFAULT_TRANSACTION_TYPE,
    EXTRA_BANK_REFERENCE,
    EXTRA_COUNTERPARTY_BIC,
    EXTRA_COUNTERPARTY_IBAN,
    EXTRA_COUNTERPARTY_NAME,
    EXTRA_FUNDS_CODE,
    EXTRA_GVCODE,
    EXTRA_POSTING_TEXT,
    EXTRA_PRIMANOTA,
    EXTRA_REVERSAL,
    EXTRA_SUPPLEMENTARY_DETAILS,
    EXTRA_TEXT_KEY_EXTENSION,
    EXTRA_TRANSACTION_TYPE,
    TRUE,
    Balance,
    CreditDebit,
    Statement,
    Transaction,
)
from statement_converter.settings import Mt940Settings
from statement_converter.streams import read_text, write_text


logger = logging.getLogger(__name__)

# SWIFT character set (limited to printable ASCII subset)
SWIFT_CHARS = set('ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789/-?:().,\' +')

SWIFT_REPLACEMENTS = {
    'ä': 'ae', 'ö': 'oe', 'ü': 'ue', 'ß': 'ss',
    'Ä': 'AE', 'Ö': 'OE', 'Ü': 'UE',
    'é': 'e', 'è': 'e', 'ê': 'e', 'ë': 'e',
    'á': 'a', 'à': 'a', 'â': 'a', 'ã': 'a',
    'í': 'i', 'ì': 'i', 'î': 'i', 'ï': 'i',
    'ó': 'o', 'ò': 'o', 'ô': 'o', 'õ': 'o',
    'ú': 'u', 'ù': 'u', 'û': 'u',
    'ñ': 'n', 'ç': 'c',
    '€': 'EUR',
    '&': '+',
}

RECOGNIZED_TAGS = {"20", "21", "25", "28", "28C", "60F", "60M", "61", "86", "62F", "62M", "64", "65"}
HEADER_TAGS = {"20", "21", "25", "28", "28C"}

TAG_RE = re.compile(r"^:(\d{2}[A-Z]?):(.*)$")
BALANCE_RE = re.compile(r"^(?P<mark>[CD])(?P<date>\d{6})(?P<currency>[A-Z]{3})(?P<amount>.+)$")
STATEMENT_LINE_RE = re.compile(
    r"^(?P<value_date>\d{6})"
    r"(?P<entry_date>\d{4})?"
    r"(?P<mark>RC|RD|EC|ED|C|D)"
    r"(?P<funds_code>[A-Z])?"
    r"(?P<amount>[0-9,.]+)"
    r"(?P<type>[A-Z][A-Z0-9]{3})"
    r"(?P<reference>.*?)"
    r"(?://(?P<bank_reference>.*))?$"
)
AMOUNT_RE = re.compile(r"^\d+(,\d*)?$")
TRANSACTION_TYPE_RE = re.compile(r"^[NFS][A-Z0-9]{3}$")
GVCODE_RE = re.compile(r"^\d{3}$")

STRUCTURED_NARRATIVE_RE = re.compile(r"^(\d{3})?\?\d{2}")
SUBFIELD_RE = re.compile(r"\?(\d{2})")
SUBFIELD_KEY_RE = re.compile(r"^subfield_(\d{2})$")

NO_REFERENCE = "NONREF"
DEFAULT_SEQUENCE_NUMBER = "0/1"

SUBFIELD_WIDTH = 27
PURPOSE_CODES = [f"{code:02d}" for code in range(20, 30)] + ["60", "61", "62", "63"]
NAME_CODES = ["32", "33"]
NARRATIVE_CODES = {
    "00": EXTRA_POSTING_TEXT,
    "10": EXTRA_PRIMANOTA,
    "30": EXTRA_COUNTERPARTY_BIC,
    "31": EXTRA_COUNTERPARTY_IBAN,
    "34": EXTRA_TEXT_KEY_EXTENSION,
}
OVERFLOW_CODES = [f"{code:02d}" for code in range(70, 100)]

# extra keys rendered in the :61: line itself
STATEMENT_LINE_KEYS = {
    EXTRA_TRANSACTION_TYPE,
    EXTRA_BANK_REFERENCE,
    EXTRA_REVERSAL,
    EXTRA_FUNDS_CODE,
    EXTRA_SUPPLEMENTARY_DETAILS,
}
NARRATIVE_KEYS = set(NARRATIVE_CODES.values()) | {EXTRA_GVCODE, EXTRA_COUNTERPARTY_NAME}

HEADER, BODY, CLOSED = "header", "body", "closed"


_Field = namedtuple("_Field", ["tag", "line", "lines"])


def _label(field):
    return f":{field.tag}:"


# ========== Parsing ==========

def read_mt940(stream, settings=None):
    """
    Parse an MT940 statement from a binary or text stream.

    Args:
        stream: File-like object opened for reading
        settings: Mt940Settings (encoding)

    Returns:
        Statement
    """
    settings = settings or Mt940Settings()
    return parse_mt940(read_text(stream, settings.encoding))


def parse_mt940(text):
    """
    Parse MT940 text into a Statement.

    Args:
        text: Complete MT940 message (one statement)

    Returns:
        Statement

    Raises:
        Mt940ParseError: On malformed or out-of-order fields
        InvalidDateError: On dates that are not calendar dates
        InvalidAmountError: On amounts that are not decimals
        MissingFieldError: If :20: or :25: never appears
    """
    fields = _scan_fields(text)

    state = HEADER
    header = {}
    opening_balance = None
    closing_balance = None
    information = None
    transactions = []
    current = None

    for field in fields:
        tag = field.tag

        if tag in HEADER_TAGS:
            if state != HEADER:
                raise Mt940ParseError("header field after the opening balance", field.line, _label(field))
            key = "28C" if tag == "28" else tag
            if key in header:
                raise Mt940ParseError("duplicate field", field.line, _label(field))
            header[key] = "".join(line.strip() for line in field.lines)

        elif tag in ("60F", "60M"):
            if state != HEADER:
                raise Mt940ParseError("opening balance out of order", field.line, _label(field))
            opening_balance = _parse_balance(field)
            state = BODY

        elif tag == "61":
            if state == CLOSED:
                raise Mt940ParseError("statement line after the closing balance", field.line, _label(field))
            if current is not None:
                transactions.append(_build_transaction(current))
            current = _parse_statement_line(field)
            state = BODY

        elif tag == "86":
            if current is not None and state == BODY:
                if current["narrative_line"] is not None:
                    raise Mt940ParseError("second :86: for one statement line", field.line, _label(field))
                description, extra = _parse_narrative(field.lines)
                current["narrative_line"] = field.line
                current["description"] = description
                current["extra"].update(extra)
            elif information is None:
                information = "\n".join(line.rstrip() for line in field.lines)
            else:
                raise Mt940ParseError("duplicate statement information", field.line, _label(field))

        elif tag in ("62F", "62M"):
            if state == CLOSED:
                raise Mt940ParseError("duplicate closing balance", field.line, _label(field))
            closing_balance = _parse_balance(field)
            if opening_balance is not None and closing_balance.currency != opening_balance.currency:
                raise Mt940ParseError(
                    f"closing balance currency {closing_balance.currency} differs from "
                    f"opening balance currency {opening_balance.currency}",
                    field.line, _label(field)
                )
            state = CLOSED

        elif tag in ("64", "65"):
            # Available balances are validated but not part of the model
            if state == HEADER:
                raise Mt940ParseError("available balance before the opening balance", field.line, _label(field))
            _parse_balance(field)

        # :21: (related reference) needs no handling beyond the header checks above

    if current is not None:
        transactions.append(_build_transaction(current))

    if "20" not in header:
        raise MissingFieldError("missing statement reference", field=":20:")
    if "25" not in header:
        raise MissingFieldError("missing account identification", field=":25:")

    statement = Statement(
        statement_id=header["20"],
        account_id=header["25"],
        opening_balance=opening_balance,
        closing_balance=closing_balance,
        transactions=transactions,
        sequence_number=header.get("28C"),
        information=information or "",
    )
    logger.debug(
        "Parsed MT940 statement %r with %d transactions",
        statement.statement_id, len(statement.transactions)
    )
    return statement


def _scan_fields(text):
    """Split the input into tagged fields, attaching continuation lines to the previous field."""
    fields = []
    terminated = False

    text = text.lstrip("\ufeff")
    for line_number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped:
            # Whitespace-only lines are blank narrative lines, empty ones are layout
            if line and fields and not terminated:
                fields[-1].lines.append(line)
            continue

        if terminated:
            # Trailer blocks ({5:...}) may follow the terminator
            if stripped.startswith("{") or stripped.startswith("-"):
                continue
            raise Mt940ParseError(
                "content after the statement terminator (one statement per input)", line_number
            )

        if stripped == "-" or stripped.startswith("-}"):
            terminated = True
            continue

        if stripped.startswith("{"):
            # SWIFT envelope {1:...}{2:...}{4: - a field may follow on the same line
            if "{4:" not in stripped:
                continue
            line = stripped.split("{4:", 1)[1]
            if not line:
                continue

        match = TAG_RE.match(line)
        if match and match.group(1) in RECOGNIZED_TAGS:
            fields.append(_Field(match.group(1), line_number, [match.group(2)]))
        elif fields:
            fields[-1].lines.append(line)
        else:
            raise Mt940ParseError(f"content before the first field: {stripped[:35]!r}", line_number)

    return fields


def _parse_balance(field):
    content = "".join(line.strip() for line in field.lines)
    match = BALANCE_RE.match(content)
    if not match:
        raise Mt940ParseError(f"malformed balance {content!r}", field.line, _label(field))

    return Balance(
        amount=_parse_amount(match.group("amount"), field),
        currency=match.group("currency"),
        date=_parse_date(match.group("date"), field),
        credit_or_debit=CreditDebit(match.group("mark")),
    )


def _parse_statement_line(field):
    content = field.lines[0].strip()
    match = STATEMENT_LINE_RE.match(content)
    if not match:
        raise Mt940ParseError(f"malformed statement line {content!r}", field.line, _label(field))

    value_date = _parse_date(match.group("value_date"), field)
    booking_date = value_date
    if match.group("entry_date"):
        booking_date = _parse_entry_date(match.group("entry_date"), value_date, field)

    extra = {EXTRA_TRANSACTION_TYPE: match.group("type")}

    # RC/RD reverse a previous credit/debit: the booking has the opposite direction
    mark = match.group("mark")
    credit_or_debit = CreditDebit(mark[-1])
    if mark.startswith("R"):
        credit_or_debit = credit_or_debit.opposite()
        extra[EXTRA_REVERSAL] = TRUE

    if match.group("funds_code"):
        extra[EXTRA_FUNDS_CODE] = match.group("funds_code")
    if match.group("bank_reference"):
        extra[EXTRA_BANK_REFERENCE] = match.group("bank_reference").strip()

    details = [line.strip() for line in field.lines[1:] if line.strip()]
    if details:
        extra[EXTRA_SUPPLEMENTARY_DETAILS] = "\n".join(details)

    reference = match.group("reference").strip()
    if reference == NO_REFERENCE:
        reference = ""

    return {
        "reference": reference,
        "amount": _parse_amount(match.group("amount"), field),
        "credit_or_debit": credit_or_debit,
        "booking_date": booking_date,
        "value_date": value_date,
        "description": "",
        "extra": extra,
        "narrative_line": None,
    }


def _build_transaction(values):
    values = dict(values)
    values.pop("narrative_line")
    return Transaction(**values)


def _parse_narrative(lines):
    """
    Parse the lines of a :86: field.

    Returns:
        tuple: (description, extra) - extra is empty for plain narratives
    """
    joined = "".join(line for line in lines if line.strip())
    if not STRUCTURED_NARRATIVE_RE.match(joined):
        return "\n".join(line.rstrip() for line in lines), {}

    parts = SUBFIELD_RE.split(joined)
    extra = {}
    if parts[0]:
        extra[EXTRA_GVCODE] = parts[0]

    purpose = []
    name = []
    for code, value in zip(parts[1::2], parts[2::2]):
        if code in PURPOSE_CODES:
            purpose.append(value)
        elif code in NAME_CODES:
            name.append(value)
        elif code in NARRATIVE_CODES:
            extra[NARRATIVE_CODES[code]] = value
        elif code in OVERFLOW_CODES and "=" in value:
            key, _, overflow_value = value.partition("=")
            extra[key] = overflow_value
        else:
            key = f"subfield_{code}"
            extra[key] = extra.get(key, "") + value

    if name:
        extra[EXTRA_COUNTERPARTY_NAME] = "".join(name)
    return "".join(purpose), extra


def _parse_date(value, field):
    """Parse YYMMDD; the century is always 20."""
    try:
        return date(2000 + int(value[0:2]), int(value[2:4]), int(value[4:6]))
    except ValueError:
        raise InvalidDateError(f"invalid date {value!r}", field.line, _label(field))


def _parse_entry_date(value, value_date, field):
    """Parse the MMDD entry date, taking the year from the value date."""
    month, day = int(value[0:2]), int(value[2:4])
    year = value_date.year
    # Booked in December, valued in January (and vice versa)
    if month == 12 and value_date.month == 1:
        year -= 1
    elif month == 1 and value_date.month == 12:
        year += 1
    try:
        return date(year, month, day)
    except ValueError:
        raise InvalidDateError(f"invalid entry date {value!r}", field.line, _label(field))


def _parse_amount(value, field):
    """Parse an amount with comma as decimal separator."""
    value = value.strip()
    if not AMOUNT_RE.match(value):
        raise InvalidAmountError(f"invalid amount {value!r}", field.line, _label(field))
    return Decimal(value.replace(",", "."))


# ========== Generation ==========

def write_mt940(statement, stream, settings=None):
    """Serialize a Statement as MT940 to a binary or text stream."""
    settings = settings or Mt940Settings()
    write_text(stream, generate_mt940(statement, settings), settings.encoding)


def generate_mt940(statement, settings=None):
    """
    Generate an MT940 text document.

    Args:
        statement: Statement to serialize
        settings: Mt940Settings (line ending, sanitizing)

    Returns:
        str: MT940 content as string

    Raises:
        ConversionError: If the statement cannot be expressed in MT940
    """
    settings = settings or Mt940Settings()
    check_mt940_constraints(statement)

    lines = []

    # :20: Transaction Reference Number
    lines.append(f":20:{_sanitize_swift(statement.statement_id, settings)}")

    # :25: Account Identification
    lines.append(f":25:{_sanitize_swift(statement.account_id, settings)}")

    # :28C: Statement Number/Sequence Number (0/1 as default)
    lines.append(f":28C:{statement.sequence_number or DEFAULT_SEQUENCE_NUMBER}")

    # :60F: Opening Balance
    if statement.opening_balance is not None:
        lines.append(_format_balance_line("60F", statement.opening_balance))

    information = _format_plain_lines(statement.information, settings)
    if information and statement.closing_balance is None:
        # Without :62F: a trailing :86: would be read as the last transaction's narrative
        lines.extend(information)

    for transaction in statement.transactions:
        lines.extend(_format_transaction_lines(transaction, settings))
        lines.extend(_format_info_lines(transaction, settings))

    # :62F: Closing Balance
    if statement.closing_balance is not None:
        lines.append(_format_balance_line("62F", statement.closing_balance))
        lines.extend(information)

    # Statement separator
    lines.append("-")

    logger.debug(
        "Generated MT940 statement %r with %d transactions",
        statement.statement_id, len(statement.transactions)
    )
    return settings.line_ending.join(lines) + settings.line_ending


def check_mt940_constraints(statement):
    """
    Check that a statement can be written as MT940 without losing amounts or dates.

    Raises:
        ConversionError: On amounts with more than two decimals, dates outside
            2000-2099 or more overflow data than the ?70-?99 sub-fields hold
    """
    balances = [
        ("opening balance", statement.opening_balance),
        ("closing balance", statement.closing_balance),
    ]
    for label, balance in balances:
        if balance is not None:
            _check_amount(balance.amount, label)
            _check_date(balance.date, label)

    for index, transaction in enumerate(statement.transactions, start=1):
        label = f"transaction {index}"
        _check_amount(transaction.amount, label)
        _check_date(transaction.booking_date, label)
        _check_date(transaction.value_date, label)

        _, overflow = _split_extra(transaction)
        used_codes = {m.group(1) for m in map(SUBFIELD_KEY_RE.match, transaction.extra) if m}
        free_codes = [code for code in OVERFLOW_CODES if code not in used_codes]
        if len(overflow) > len(free_codes):
            raise ConversionError(
                f"{len(overflow)} extra fields exceed the {len(free_codes)} free :86: sub-fields",
                field=label
            )


def _check_amount(amount, label):
    if amount != amount.quantize(CENT):
        raise ConversionError(f"amount {amount} has more than two decimals", field=label)


def _check_date(value, label):
    if not 2000 <= value.year <= 2099:
        raise ConversionError(f"date {value.isoformat()} outside the YYMMDD range", field=label)


def _format_balance_line(field_tag, balance):
    """
    Format a balance line (:60F:, :62F:).

    Format: :xxF:CYYMMDDCCCNNNNNNNNNNN,NN
    - C/D: Credit or Debit indicator
    - YYMMDD: Date
    - CCC: Currency code
    - N: Amount (comma as decimal separator)
    """
    date_str = balance.date.strftime("%y%m%d")
    amount_str = _format_mt940_amount(balance.amount)
    return f":{field_tag}:{balance.credit_or_debit.value}{date_str}{balance.currency}{amount_str}"


def _format_transaction_lines(transaction, settings):
    """
    Format a transaction line (:61:) plus its optional supplementary details line.

    Format: :61:YYMMDDMMDD[R]CNNNN,NNTTTTREFERENCE//BANKREFERENCE
    - YYMMDD: Value date
    - MMDD: Entry/Booking date
    - [R]C/D: Credit/Debit, RC/RD for reversals
    - N: Amount
    - TTTT: Transaction type (NMSC as default)
    - REFERENCE: Customer reference, NONREF as placeholder
    - //: Bank reference
    """
    extra = transaction.extra

    value_date_str = transaction.value_date.strftime("%y%m%d")
    entry_date_str = transaction.booking_date.strftime("%m%d")

    if extra.get(EXTRA_REVERSAL) == TRUE:
        cd_indicator = "R" + transaction.credit_or_debit.opposite().value
    else:
        cd_indicator = transaction.credit_or_debit.value

    funds_code = extra.get(EXTRA_FUNDS_CODE, "")
    if not re.match(r"^[A-Z]$", funds_code):
        funds_code = ""

    amount_str = _format_mt940_amount(transaction.amount)
    tx_type = _transaction_type(transaction)

    reference = _sanitize_swift(transaction.reference, settings).replace("//", "/").strip()
    ref_part = reference or NO_REFERENCE

    bank_ref = ""
    if extra.get(EXTRA_BANK_REFERENCE):
        bank_ref = f"//{_sanitize_swift(extra[EXTRA_BANK_REFERENCE], settings)}"

    lines = [f":61:{value_date_str}{entry_date_str}{cd_indicator}{funds_code}{amount_str}{tx_type}{ref_part}{bank_ref}"]
    if extra.get(EXTRA_SUPPLEMENTARY_DETAILS):
        lines.extend(_escape_continuation(_sanitize_swift(line, settings))
                     for line in extra[EXTRA_SUPPLEMENTARY_DETAILS].split("\n") if line.strip())
    return lines


def _transaction_type(transaction):
    tx_type = transaction.extra.get(EXTRA_TRANSACTION_TYPE, "")
    return tx_type if TRANSACTION_TYPE_RE.match(tx_type) else DEFAULT_TRANSACTION_TYPE


def _split_extra(transaction):
    """
    Split transaction.extra into narrative sub-fields and overflow entries.

    Returns:
        tuple: (narrative, overflow) dicts; overflow holds everything without an MT940 home
    """
    narrative = {}
    overflow = {}
    for key, value in transaction.extra.items():
        if key == EXTRA_TRANSACTION_TYPE and not TRANSACTION_TYPE_RE.match(value):
            overflow[key] = value
        elif key == EXTRA_GVCODE and not GVCODE_RE.match(value):
            overflow[key] = value
        elif key in STATEMENT_LINE_KEYS:
            continue
        elif key in NARRATIVE_KEYS or SUBFIELD_KEY_RE.match(key):
            narrative[key] = value
        else:
            overflow[key] = value
    return narrative, overflow


def _format_info_lines(transaction, settings):
    """
    Format information lines (:86:).

    Plain descriptions are written line by line. As soon as the transaction
    carries narrative sub-fields or data without an MT940 home, the structured
    ?XX format is used with each sub-field on a new line.
    """
    narrative, overflow = _split_extra(transaction)
    description = transaction.description

    plain = not STRUCTURED_NARRATIVE_RE.match(description.replace("\n", ""))
    if not narrative and not overflow and plain:
        return _format_plain_lines(description, settings)

    # Start :86: line with GV-Code
    first_line = f":86:{narrative.get(EXTRA_GVCODE, '')}"

    # ?00: Buchungstext (posting text)
    if narrative.get(EXTRA_POSTING_TEXT):
        first_line += f"?00{_subfield_value(narrative[EXTRA_POSTING_TEXT], settings)}"
    lines = [first_line]

    # ?10: Primanota
    if narrative.get(EXTRA_PRIMANOTA):
        lines.append(f"?10{_subfield_value(narrative[EXTRA_PRIMANOTA], settings)}")

    # ?20-?29, ?60-?63: Verwendungszweck (purpose) - split into 27-char chunks
    purpose = _subfield_value(description, settings)
    purpose_parts = [purpose[i:i + SUBFIELD_WIDTH] for i in range(0, len(purpose), SUBFIELD_WIDTH)]
    if len(purpose_parts) > len(PURPOSE_CODES):
        logger.warning(
            "Purpose of transaction %r truncated to %d characters",
            transaction.reference, SUBFIELD_WIDTH * len(PURPOSE_CODES)
        )
    for code, part in zip(PURPOSE_CODES, purpose_parts or [""]):
        lines.append(f"?{code}{part}")

    # ?30: BIC Gegenkonto, ?31: IBAN Gegenkonto
    for code in ("30", "31"):
        value = narrative.get(NARRATIVE_CODES[code])
        if value:
            lines.append(f"?{code}{_subfield_value(value, settings)}")

    # ?32-?33: Name Gegenkonto (max 2 x 27 chars)
    counterparty_name = _subfield_value(narrative.get(EXTRA_COUNTERPARTY_NAME, ""), settings)
    if len(counterparty_name) > SUBFIELD_WIDTH * len(NAME_CODES):
        logger.warning("Counterparty name of transaction %r truncated", transaction.reference)
    for i, code in enumerate(NAME_CODES):
        part = counterparty_name[i * SUBFIELD_WIDTH:(i + 1) * SUBFIELD_WIDTH]
        if part:
            lines.append(f"?{code}{part}")

    # ?34: Textschluesselergaenzung
    if narrative.get(EXTRA_TEXT_KEY_EXTENSION):
        lines.append(f"?34{_subfield_value(narrative[EXTRA_TEXT_KEY_EXTENSION], settings)}")

    # Sub-fields without a named meaning, kept as read
    used_codes = set()
    for key in sorted(narrative):
        match = SUBFIELD_KEY_RE.match(key)
        if match:
            used_codes.add(match.group(1))
            lines.append(f"?{match.group(1)}{_subfield_value(narrative[key], settings)}")

    # ?70-?99: key=value pairs for data without an MT940 home
    free_codes = [code for code in OVERFLOW_CODES if code not in used_codes]
    for code, (key, value) in zip(free_codes, overflow.items()):
        lines.append(f"?{code}{_subfield_key(key)}={_subfield_value(value, settings)}")

    return lines


def _format_plain_lines(text, settings):
    if not text:
        return []
    text_lines = [_sanitize_swift(line, settings) for line in text.split("\n")]
    # Empty lines are skipped by the parser, a single space keeps a blank line
    return [f":86:{text_lines[0]}"] + [_escape_continuation(line) if line.strip() else " " for line in text_lines[1:]]


def _escape_continuation(line):
    """Keep continuation lines from being read as a new field, terminator or envelope."""
    match = TAG_RE.match(line)
    if (match and match.group(1) in RECOGNIZED_TAGS) or line.strip().startswith(("-", "{")):
        return " " + line
    return line


def _subfield_value(text, settings):
    """Sub-field values are single-line and must not contain the ? delimiter."""
    text = _sanitize_swift(str(text).replace("\r", " ").replace("\n", " "), settings)
    return text.replace("?", " ")


def _subfield_key(key):
    """Overflow keys are identifiers and written without transliteration."""
    return re.sub(r"[?=\s]", "_", str(key))


def _format_mt940_amount(amount):
    """
    Format amount for MT940.

    Format: digits with comma as decimal separator, no thousands separator
    Example: 75000,00
    """
    return format(amount.quantize(CENT), "f").replace(".", ",")


def _sanitize_swift(text, settings):
    """
    Sanitize text for SWIFT MT940 format.

    - Replace German umlauts with ASCII equivalents
    - Keep only SWIFT-allowed characters
    """
    if not text:
        return ""

    text = str(text)
    if not settings.sanitize:
        return text

    for old, new in SWIFT_REPLACEMENTS.items():
        text = text.replace(old, new)

    return ''.join(c if c in SWIFT_CHARS else ' ' for c in text)
