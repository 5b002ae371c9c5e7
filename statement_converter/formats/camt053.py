# Copyright (c) 2025, itsdave GmbH and contributors
# For license information, please see license.txt

"""
ISO 20022 camt.053 (Bank to Customer Statement) Parser and Generator

This module reads and writes XML files conforming to the camt.053.001.08
standard for end-of-day bank account statements, using the pyiso20022
dataclasses with the xsdata parser and serializer.

The parser is lenient about element order and unknown elements, and strict
about the elements the statement model needs. Every structural problem is
reported as XmlStructureError with the element path, e.g.
Document/BkToCstmrStmt/Stmt/Ntry[2]/BookgDt.
"""

import logging
import re
import warnings
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from pyiso20022.camt import camt_053_001_08 as camt053
from xsdata.exceptions import ConverterWarning, ParserError
from xsdata.formats.dataclass.parsers import XmlParser
from xsdata.formats.dataclass.parsers.config import ParserConfig
from xsdata.formats.dataclass.parsers.handlers import XmlEventHandler
from xsdata.formats.dataclass.serializers import XmlSerializer
from xsdata.formats.dataclass.serializers.config import SerializerConfig
from xsdata.models.datatype import XmlDate, XmlDateTime

from statement_converter.errors import ConversionError, XmlStructureError
from statement_converter.models import (
    DEFAULT_TRANSACTION_TYPE,
    EXTRA_ADDITIONAL_INFO,
    EXTRA_BANK_REFERENCE,
    EXTRA_BTC_DOMAIN,
    EXTRA_BTC_FAMILY,
    EXTRA_BTC_ISSUER,
    EXTRA_BTC_SUBFAMILY,
    EXTRA_COUNTERPARTY_BIC,
    EXTRA_COUNTERPARTY_IBAN,
    EXTRA_COUNTERPARTY_NAME,
    EXTRA_END_TO_END_ID,
    EXTRA_POSTING_TEXT,
    EXTRA_REVERSAL,
    EXTRA_TRANSACTION_TYPE,
    NOT_PROVIDED,
    TRUE,
    Balance,
    CreditDebit,
    Statement,
    Transaction,
    normalize_amount,
)
from statement_converter.settings import Camt053Settings
from statement_converter.streams import read_bytes, write_text


logger = logging.getLogger(__name__)

CAMT053_NAMESPACE = "urn:iso:std:iso:20022:tech:xsd:camt.053.001.08"

# Namespace map for camt.053.001.08 (default namespace without prefix)
CAMT053_NS_MAP = {
    None: CAMT053_NAMESPACE,
    "xsi": "http://www.w3.org/2001/XMLSchema-instance"
}

NAMESPACE_RE = re.compile(rb'xmlns(?::\w+)?="(urn:iso:std:iso:20022:tech:xsd:camt\.053\.[\d.]+)"')
IBAN_RE = re.compile(r"^[A-Z]{2}\d{2}[A-Z0-9]{11,30}$")

STMT_PATH = "Document/BkToCstmrStmt/Stmt"

# Opening booked, previously closed booked (fallback), closing booked
OPENING_BALANCE_CODES = ("OPBD", "PRCD")
CLOSING_BALANCE_CODE = "CLBD"

USTRD_LENGTH = 140

# ActiveOrHistoricCurrencyAndAmount allows 5 fraction digits
MAX_FRACTION_DIGITS = 5

# extra keys with a home in the camt.053 document
CAMT_EXTRA_KEYS = {
    EXTRA_TRANSACTION_TYPE,
    EXTRA_BANK_REFERENCE,
    EXTRA_REVERSAL,
    EXTRA_POSTING_TEXT,
    EXTRA_COUNTERPARTY_BIC,
    EXTRA_COUNTERPARTY_IBAN,
    EXTRA_COUNTERPARTY_NAME,
    EXTRA_END_TO_END_ID,
    EXTRA_ADDITIONAL_INFO,
    EXTRA_BTC_DOMAIN,
    EXTRA_BTC_FAMILY,
    EXTRA_BTC_SUBFAMILY,
    EXTRA_BTC_ISSUER,
}


# ========== Parsing ==========

def read_camt053(stream, settings=None):
    """Parse a camt.053 statement from a binary or text stream."""
    settings = settings or Camt053Settings()
    return parse_camt053(read_bytes(stream, settings.encoding))


def parse_camt053(data):
    """
    Parse a camt.053.001.08 document into a Statement.

    Only the first Stmt of the document is read.

    Args:
        data: XML document as bytes or str

    Returns:
        Statement

    Raises:
        XmlStructureError: On malformed XML, other camt.053 versions and
            missing or invalid required elements
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    _check_namespace(data)

    parser = XmlParser(
        config=ParserConfig(fail_on_unknown_properties=False, fail_on_unknown_attributes=False),
        handler=XmlEventHandler,
    )
    try:
        # Unconvertible values are kept as strings and validated below
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConverterWarning)
            document = parser.from_bytes(data, camt053.Document)
    except (ParserError, SyntaxError) as e:
        raise XmlStructureError(f"malformed camt.053 document: {e}", "Document") from e

    if document.bk_to_cstmr_stmt is None:
        raise XmlStructureError("missing element", "Document/BkToCstmrStmt")
    statements = document.bk_to_cstmr_stmt.stmt
    if not statements:
        raise XmlStructureError("missing element", STMT_PATH)
    if len(statements) > 1:
        logger.debug("Document contains %d statements, reading the first one", len(statements))

    statement = _parse_statement(statements[0])
    logger.debug(
        "Parsed camt.053 statement %r with %d transactions",
        statement.statement_id, len(statement.transactions)
    )
    return statement


def _check_namespace(data):
    namespaces = {ns.decode("ascii") for ns in NAMESPACE_RE.findall(data)}
    if CAMT053_NAMESPACE in namespaces:
        return
    if namespaces:
        raise XmlStructureError(
            f"unsupported namespace {sorted(namespaces)[0]}, expected {CAMT053_NAMESPACE}", "Document"
        )
    raise XmlStructureError(f"not a {CAMT053_NAMESPACE} document", "Document")


def _parse_statement(stmt):
    statement_id = _required_text(stmt.id, f"{STMT_PATH}/Id")

    if stmt.acct is None:
        raise XmlStructureError("missing element", f"{STMT_PATH}/Acct")
    account_id = _account_id(stmt.acct.id, f"{STMT_PATH}/Acct/Id")

    balances = {}
    for bal in stmt.bal:
        code = _balance_code(bal)
        if code and code not in balances:
            balances[code] = _parse_balance(bal, f"{STMT_PATH}/Bal[{code}]")

    opening_balance = next((balances[c] for c in OPENING_BALANCE_CODES if c in balances), None)
    if opening_balance is None:
        raise XmlStructureError("missing opening balance", f"{STMT_PATH}/Bal[OPBD]")
    closing_balance = balances.get(CLOSING_BALANCE_CODE)
    if closing_balance is None:
        raise XmlStructureError("missing closing balance", f"{STMT_PATH}/Bal[{CLOSING_BALANCE_CODE}]")
    if closing_balance.currency != opening_balance.currency:
        raise XmlStructureError(
            f"closing balance currency {closing_balance.currency} differs from "
            f"opening balance currency {opening_balance.currency}",
            f"{STMT_PATH}/Bal[{CLOSING_BALANCE_CODE}]/Amt"
        )

    currency = opening_balance.currency
    transactions = [
        _parse_entry(entry, f"{STMT_PATH}/Ntry[{index}]", currency)
        for index, entry in enumerate(stmt.ntry, start=1)
    ]

    sequence_number = None
    if isinstance(stmt.elctrnc_seq_nb, Decimal):
        sequence_number = str(stmt.elctrnc_seq_nb)

    return Statement(
        statement_id="" if statement_id == NOT_PROVIDED else statement_id,
        account_id="" if account_id == NOT_PROVIDED else account_id,
        opening_balance=opening_balance,
        closing_balance=closing_balance,
        transactions=transactions,
        currency=currency,
        sequence_number=sequence_number,
        account_holder=stmt.acct.nm or None,
        information=stmt.addtl_stmt_inf or "",
    )


def _account_id(acct_id, path):
    if acct_id is None:
        raise XmlStructureError("missing element", path)
    if acct_id.iban:
        return acct_id.iban.strip()
    if acct_id.othr is not None and acct_id.othr.id:
        return acct_id.othr.id.strip()
    raise XmlStructureError("missing IBAN or Othr/Id", path)


def _balance_code(bal):
    if bal.tp is None or bal.tp.cd_or_prtry is None:
        return None
    code = bal.tp.cd_or_prtry.cd
    return getattr(code, "value", code)


def _parse_balance(bal, path):
    amount, currency = _parse_amount(bal.amt, f"{path}/Amt")
    return Balance(
        amount=amount,
        currency=currency,
        date=_parse_date(bal.dt, f"{path}/Dt"),
        credit_or_debit=_parse_credit_debit(bal.cdt_dbt_ind, f"{path}/CdtDbtInd"),
    )


def _parse_entry(entry, path, currency):
    """Parse an Entry (Ntry) element into a Transaction."""
    amount, entry_currency = _parse_amount(entry.amt, f"{path}/Amt")
    if entry_currency != currency:
        raise XmlStructureError(
            f"entry currency {entry_currency} differs from statement currency {currency}", f"{path}/Amt"
        )

    credit_or_debit = _parse_credit_debit(entry.cdt_dbt_ind, f"{path}/CdtDbtInd")
    booking_date = _parse_date(entry.bookg_dt, f"{path}/BookgDt")
    value_date = booking_date
    if entry.val_dt is not None:
        value_date = _parse_date(entry.val_dt, f"{path}/ValDt")

    extra = {}
    if entry.acct_svcr_ref:
        extra[EXTRA_BANK_REFERENCE] = entry.acct_svcr_ref
    if entry.rvsl_ind is True:
        extra[EXTRA_REVERSAL] = TRUE
    extra.update(_parse_bank_transaction_code(entry.bk_tx_cd))
    if entry.addtl_ntry_inf:
        extra[EXTRA_POSTING_TEXT] = entry.addtl_ntry_inf

    description = ""
    tx_dtls = _first_transaction_details(entry)
    if tx_dtls is not None:
        details_extra, description = _parse_transaction_details(tx_dtls, credit_or_debit)
        extra.update(details_extra)

    if not description:
        description = extra.get(EXTRA_ADDITIONAL_INFO) or extra.get(EXTRA_POSTING_TEXT) or ""

    return Transaction(
        reference=(entry.ntry_ref or "").strip(),
        amount=amount,
        credit_or_debit=credit_or_debit,
        booking_date=booking_date,
        value_date=value_date,
        description=description,
        extra=extra,
    )


def _parse_bank_transaction_code(bk_tx_cd):
    extra = {}
    if bk_tx_cd is None:
        return extra

    domn = bk_tx_cd.domn
    if domn is not None:
        if domn.cd:
            extra[EXTRA_BTC_DOMAIN] = domn.cd
        if domn.fmly is not None:
            if domn.fmly.cd:
                extra[EXTRA_BTC_FAMILY] = domn.fmly.cd
            if domn.fmly.sub_fmly_cd:
                extra[EXTRA_BTC_SUBFAMILY] = domn.fmly.sub_fmly_cd

    if bk_tx_cd.prtry is not None:
        if bk_tx_cd.prtry.cd:
            extra[EXTRA_TRANSACTION_TYPE] = bk_tx_cd.prtry.cd
        if bk_tx_cd.prtry.issr:
            extra[EXTRA_BTC_ISSUER] = bk_tx_cd.prtry.issr
    return extra


def _first_transaction_details(entry):
    for ntry_dtls in entry.ntry_dtls:
        if ntry_dtls.tx_dtls:
            return ntry_dtls.tx_dtls[0]
    return None


def _parse_transaction_details(tx_dtls, credit_or_debit):
    """
    Read references, counterparty and remittance information of TxDtls.

    Returns:
        tuple: (extra, description)
    """
    extra = {}
    is_credit = credit_or_debit is CreditDebit.CREDIT

    if tx_dtls.refs is not None and tx_dtls.refs.end_to_end_id:
        if tx_dtls.refs.end_to_end_id != NOT_PROVIDED:
            extra[EXTRA_END_TO_END_ID] = tx_dtls.refs.end_to_end_id

    # Credit: counterparty is debtor, Debit: counterparty is creditor
    pties = tx_dtls.rltd_pties
    if pties is not None:
        party, account = (pties.dbtr, pties.dbtr_acct) if is_credit else (pties.cdtr, pties.cdtr_acct)
        if party is None and account is None:
            party, account = (pties.cdtr, pties.cdtr_acct) if is_credit else (pties.dbtr, pties.dbtr_acct)
        if party is not None and party.pty is not None and party.pty.nm:
            extra[EXTRA_COUNTERPARTY_NAME] = party.pty.nm
        if account is not None and account.id is not None and account.id.iban:
            extra[EXTRA_COUNTERPARTY_IBAN] = account.id.iban

    agts = tx_dtls.rltd_agts
    if agts is not None:
        agent = agts.dbtr_agt if is_credit else agts.cdtr_agt
        if agent is None:
            agent = agts.cdtr_agt if is_credit else agts.dbtr_agt
        if agent is not None and agent.fin_instn_id is not None and agent.fin_instn_id.bicfi:
            extra[EXTRA_COUNTERPARTY_BIC] = agent.fin_instn_id.bicfi

    if tx_dtls.addtl_tx_inf:
        extra[EXTRA_ADDITIONAL_INFO] = tx_dtls.addtl_tx_inf

    description = ""
    if tx_dtls.rmt_inf is not None and tx_dtls.rmt_inf.ustrd:
        description = _join_ustrd(tx_dtls.rmt_inf.ustrd)

    return extra, description


def _join_ustrd(chunks):
    """
    Rebuild a description from Ustrd elements.

    Each Ustrd is one line, except that a chunk of exactly 140 characters
    continues in the next one. An empty chunk ends such a line.
    """
    lines = []
    current = None
    for chunk in chunks:
        chunk = chunk or ""
        current = chunk if current is None else current + chunk
        if len(chunk) != USTRD_LENGTH:
            lines.append(current)
            current = None
    if current is not None:
        lines.append(current)
    return "\n".join(lines)


def _required_text(value, path):
    if value is None or not str(value).strip():
        raise XmlStructureError("missing element", path)
    return str(value).strip()


def _parse_amount(amt, path):
    if amt is None or amt.value is None:
        raise XmlStructureError("missing element", path)

    value = amt.value
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise XmlStructureError(f"invalid amount {amt.value!r}", path) from e
    if not value.is_finite() or value < 0:
        raise XmlStructureError(f"invalid amount {amt.value!r}", path)

    if not amt.ccy:
        raise XmlStructureError("missing currency", f"{path}/@Ccy")
    return value, amt.ccy


def _parse_credit_debit(code, path):
    if code is None:
        raise XmlStructureError("missing element", path)
    if isinstance(code, camt053.CreditDebitCode):
        return CreditDebit.from_code(code.value)
    raise XmlStructureError(f"invalid credit/debit code {code!r}", path)


def _parse_date(choice, path):
    if choice is None:
        raise XmlStructureError("missing element", path)

    value = choice.dt if choice.dt is not None else choice.dt_tm
    try:
        if isinstance(value, XmlDate):
            return value.to_date()
        if isinstance(value, XmlDateTime):
            return value.to_datetime().date()
    except ValueError as e:
        # Lexically valid but not a calendar date, e.g. 2024-02-30
        raise XmlStructureError(f"invalid date {value}: {e}", path) from e
    if value is None:
        raise XmlStructureError("missing Dt or DtTm", path)
    raise XmlStructureError(f"invalid date {value!r}", path)


# ========== Generation ==========

def write_camt053(statement, stream, settings=None):
    """Serialize a Statement as camt.053 to a binary or text stream."""
    settings = settings or Camt053Settings()
    write_text(stream, generate_camt053(statement, settings), settings.encoding)


def generate_camt053(statement, settings=None):
    """
    Generate a camt.053.001.08 XML document.

    A missing opening or closing balance is derived from the other one and the
    transactions. A statement without any balance starts from zero. Transaction
    data without a camt.053 element is dropped.

    Args:
        statement: Statement to serialize
        settings: Camt053Settings (default currency, indentation)

    Returns:
        str: XML content as string

    Raises:
        ConversionError: On amounts with more than five decimals
    """
    settings = settings or Camt053Settings()
    check_camt053_constraints(statement)

    currency = statement.currency or settings.default_currency
    opening_balance, closing_balance = _statement_balances(statement, currency)
    statement_id = statement.statement_id or NOT_PROVIDED

    creation_dt = XmlDateTime.from_datetime(datetime.now().replace(microsecond=0))

    # Group Header
    grp_hdr = camt053.GroupHeader81(
        msg_id=statement_id,
        cre_dt_tm=creation_dt
    )

    # Balances (OPBD = Opening Booked, CLBD = Closing Booked)
    balances = [
        _create_balance("OPBD", opening_balance),
        _create_balance("CLBD", closing_balance)
    ]

    dropped = set()
    for transaction in statement.transactions:
        dropped.update(set(transaction.extra) - CAMT_EXTRA_KEYS)
    if dropped:
        logger.warning(
            "Statement %r: camt.053 has no element for %s, values dropped",
            statement.statement_id, ", ".join(sorted(dropped))
        )

    # Statement
    stmt = camt053.AccountStatement9(
        id=statement_id,
        elctrnc_seq_nb=_electronic_sequence_number(statement.sequence_number),
        cre_dt_tm=creation_dt,
        acct=_create_account(statement, currency),
        bal=balances,
        txs_summry=_create_transaction_summary(statement.transactions),
        ntry=[_create_entry(trans, currency) for trans in statement.transactions],
        addtl_stmt_inf=statement.information or None
    )

    # Document
    doc = camt053.Document(
        bk_to_cstmr_stmt=camt053.BankToCustomerStatementV08(
            grp_hdr=grp_hdr,
            stmt=[stmt]
        )
    )

    # Serialize to XML
    config = SerializerConfig(
        indent=settings.indent or None,
        xml_declaration=True,
        encoding=settings.encoding.upper()
    )
    serializer = XmlSerializer(config=config)

    logger.debug(
        "Generated camt.053 statement %r with %d transactions",
        statement.statement_id, len(statement.transactions)
    )
    return serializer.render(doc, ns_map=CAMT053_NS_MAP)


def check_camt053_constraints(statement):
    """
    Check that a statement can be written as camt.053.

    Raises:
        ConversionError: If an amount has more fraction digits than the
            schema allows
    """
    amounts = [("transaction %d" % index, t.amount) for index, t in enumerate(statement.transactions, start=1)]
    for label, balance in (("opening balance", statement.opening_balance),
                           ("closing balance", statement.closing_balance)):
        if balance is not None:
            amounts.append((label, balance.amount))

    for label, amount in amounts:
        if -amount.as_tuple().exponent > MAX_FRACTION_DIGITS:
            raise ConversionError(
                f"amount {amount} has more than {MAX_FRACTION_DIGITS} decimals", field=label
            )


def _statement_balances(statement, currency):
    """
    Return (opening, closing) for the document.

    Exports without balances (most CSV files) start from a zero opening balance
    at the first booking date, the closing balance follows from the bookings.
    """
    if statement.opening_balance is None and statement.closing_balance is None:
        booking_dates = [t.booking_date for t in statement.transactions]
        opening = Balance(
            amount=Decimal("0.00"),
            currency=currency,
            date=min(booking_dates) if booking_dates else date.today(),
            credit_or_debit=CreditDebit.CREDIT,
        )
        statement = replace(statement, opening_balance=opening)
    return statement.derived_balances()


def _electronic_sequence_number(sequence_number):
    """ElctrncSeqNb from an MT940 style "5/1" sequence number, if numeric."""
    number = (sequence_number or "").split("/")[0].strip()
    return Decimal(number) if number.isdigit() else None


def _create_account(statement, currency):
    """Create the Account (Acct) element."""
    account_id = statement.account_id or NOT_PROVIDED

    # Account identification
    if IBAN_RE.match(account_id):
        acct_id = camt053.AccountIdentification4Choice(iban=account_id)
    else:
        acct_id = camt053.AccountIdentification4Choice(
            othr=camt053.GenericAccountIdentification1(id=account_id)
        )

    return camt053.CashAccount39(
        id=acct_id,
        ccy=currency,
        nm=_sanitize_text(statement.account_holder, 70)
    )


def _create_balance(balance_type, balance):
    """Create a Balance (Bal) element."""
    return camt053.CashBalance8(
        tp=camt053.BalanceType13(
            cd_or_prtry=camt053.BalanceType10Choice(cd=balance_type)
        ),
        amt=camt053.ActiveOrHistoricCurrencyAndAmount(
            value=normalize_amount(balance.amount),
            ccy=balance.currency
        ),
        cdt_dbt_ind=_credit_debit_code(balance.credit_or_debit),
        dt=camt053.DateAndDateTime2Choice(dt=XmlDate.from_date(balance.date))
    )


def _create_transaction_summary(transactions):
    """Create the Transaction Summary (TxsSummry) element."""
    if not transactions:
        return None

    credits = [t.amount for t in transactions if t.credit_or_debit is CreditDebit.CREDIT]
    debits = [t.amount for t in transactions if t.credit_or_debit is CreditDebit.DEBIT]

    # Total entries
    ttl_ntries = camt053.NumberAndSumOfTransactions4(
        nb_of_ntries=str(len(transactions))
    )

    # Credit entries
    ttl_cdt_ntries = None
    if credits:
        ttl_cdt_ntries = camt053.NumberAndSumOfTransactions1(
            nb_of_ntries=str(len(credits)),
            sum=normalize_amount(sum(credits, Decimal("0")))
        )

    # Debit entries
    ttl_dbt_ntries = None
    if debits:
        ttl_dbt_ntries = camt053.NumberAndSumOfTransactions1(
            nb_of_ntries=str(len(debits)),
            sum=normalize_amount(sum(debits, Decimal("0")))
        )

    return camt053.TotalTransactions6(
        ttl_ntries=ttl_ntries,
        ttl_cdt_ntries=ttl_cdt_ntries,
        ttl_dbt_ntries=ttl_dbt_ntries
    )


def _create_entry(transaction, currency):
    """Create an Entry (Ntry) element for a transaction."""
    extra = transaction.extra

    return camt053.ReportEntry10(
        ntry_ref=transaction.reference or None,
        amt=camt053.ActiveOrHistoricCurrencyAndAmount(
            value=normalize_amount(transaction.amount),
            ccy=currency
        ),
        cdt_dbt_ind=_credit_debit_code(transaction.credit_or_debit),
        rvsl_ind=True if extra.get(EXTRA_REVERSAL) == TRUE else None,
        sts=camt053.EntryStatus1Choice(cd="BOOK"),
        bookg_dt=camt053.DateAndDateTime2Choice(dt=XmlDate.from_date(transaction.booking_date)),
        val_dt=camt053.DateAndDateTime2Choice(dt=XmlDate.from_date(transaction.value_date)),
        acct_svcr_ref=extra.get(EXTRA_BANK_REFERENCE) or None,
        bk_tx_cd=_create_bank_transaction_code(extra),
        ntry_dtls=[camt053.EntryDetails9(tx_dtls=[_create_transaction_details(transaction)])],
        addtl_ntry_inf=extra.get(EXTRA_POSTING_TEXT) or None
    )


def _create_bank_transaction_code(extra):
    """Create the BkTxCd element: ISO domain code when complete, proprietary code always."""
    domn = None
    if extra.get(EXTRA_BTC_DOMAIN) and extra.get(EXTRA_BTC_FAMILY) and extra.get(EXTRA_BTC_SUBFAMILY):
        domn = camt053.BankTransactionCodeStructure5(
            cd=extra[EXTRA_BTC_DOMAIN],
            fmly=camt053.BankTransactionCodeStructure6(
                cd=extra[EXTRA_BTC_FAMILY],
                sub_fmly_cd=extra[EXTRA_BTC_SUBFAMILY]
            )
        )

    return camt053.BankTransactionCodeStructure4(
        domn=domn,
        prtry=camt053.ProprietaryBankTransactionCodeStructure1(
            cd=extra.get(EXTRA_TRANSACTION_TYPE) or DEFAULT_TRANSACTION_TYPE,
            issr=extra.get(EXTRA_BTC_ISSUER) or None
        )
    )


def _create_transaction_details(transaction):
    """Create TransactionDetails (TxDtls) element."""
    extra = transaction.extra
    is_credit = transaction.credit_or_debit is CreditDebit.CREDIT

    refs = camt053.TransactionReferences6(
        end_to_end_id=extra.get(EXTRA_END_TO_END_ID) or NOT_PROVIDED
    )

    # Related agents (counterparty bank)
    rltd_agts = None
    if extra.get(EXTRA_COUNTERPARTY_BIC):
        fin_instn = camt053.BranchAndFinancialInstitutionIdentification6(
            fin_instn_id=camt053.FinancialInstitutionIdentification18(
                bicfi=extra[EXTRA_COUNTERPARTY_BIC]
            )
        )
        if is_credit:
            rltd_agts = camt053.TransactionAgents5(dbtr_agt=fin_instn)
        else:
            rltd_agts = camt053.TransactionAgents5(cdtr_agt=fin_instn)

    # Remittance information (purpose), max 140 chars per Ustrd
    rmt_inf = None
    if transaction.description:
        rmt_inf = camt053.RemittanceInformation16(ustrd=_split_ustrd(transaction.description))

    return camt053.EntryTransaction10(
        refs=refs,
        rltd_pties=_create_related_parties(extra, is_credit),
        rltd_agts=rltd_agts,
        rmt_inf=rmt_inf,
        addtl_tx_inf=_sanitize_text(extra.get(EXTRA_ADDITIONAL_INFO), 500)
    )


def _split_ustrd(description):
    """
    Split a description into Ustrd chunks, the inverse of _join_ustrd.

    Blank lines become empty Ustrd elements. A line filling whole chunks that
    is followed by another line gets an empty chunk so the lines stay apart.
    """
    lines = description.split("\n")
    chunks = []
    for index, line in enumerate(lines):
        line = _clean_text(line)
        parts = [line[i:i + USTRD_LENGTH] for i in range(0, len(line), USTRD_LENGTH)] or [""]
        if len(parts[-1]) == USTRD_LENGTH and index < len(lines) - 1:
            parts.append("")
        chunks.extend(parts)
    return chunks


def _create_related_parties(extra, is_credit):
    """Create RelatedParties (RltdPties) element."""
    name = _sanitize_text(extra.get(EXTRA_COUNTERPARTY_NAME), 140)
    iban = extra.get(EXTRA_COUNTERPARTY_IBAN)
    if not name and not iban:
        return None

    # Counterparty account
    counterparty_acct = None
    if iban:
        counterparty_acct = camt053.CashAccount38(
            id=camt053.AccountIdentification4Choice(iban=iban)
        )

    party = None
    if name:
        party = camt053.Party40Choice(pty=camt053.PartyIdentification135(nm=name))

    if is_credit:
        # Credit: counterparty is debtor
        return camt053.TransactionParties6(dbtr=party, dbtr_acct=counterparty_acct)
    # Debit: counterparty is creditor
    return camt053.TransactionParties6(cdtr=party, cdtr_acct=counterparty_acct)


def _credit_debit_code(credit_or_debit):
    return camt053.CreditDebitCode(credit_or_debit.iso_code)


def _clean_text(text):
    """Replace control characters, keeping the text otherwise unchanged."""
    return ''.join(c if c.isprintable() else ' ' for c in str(text))


def _sanitize_text(text, max_length=None):
    """Sanitize text for XML - remove invalid characters and truncate if needed."""
    if not text:
        return None

    # Remove control characters and normalize whitespace
    text = ' '.join(_clean_text(text).split())

    if max_length and len(text) > max_length:
        text = text[:max_length]

    return text if text else None
