"""
Shared fixtures: sample statements in the model and in each wire format.
"""
from datetime import date
from decimal import Decimal

import pytest

from statement_converter.models import Balance, CreditDebit, Statement, Transaction


SAMPLE_MT940 = """:20:STMT2014011501
:25:DE89370400440532013000
:28C:1/1
:60F:C140114EUR10000,00
:61:1401150115D1500,00NCHK123//REF1
:86:Payment to vendor
:61:1401160116C250,50NTRFINV-2014-07
:86:166?00SEPA-GUTSCHRIFT?10931
?20Rechnung 2014-07
?30COBADEFFXXX
?31DE44500105175407324931
?32Max Mustermann
:62F:C140116EUR8750,50
-
"""

CAMT_HEADER = """<?xml version="1.0" encoding="UTF-8"?>
<Document xmlns="urn:iso:std:iso:20022:tech:xsd:camt.053.001.08">
  <BkToCstmrStmt>
    <GrpHdr>
      <MsgId>MSG-1</MsgId>
      <CreDtTm>2024-03-05T18:00:00</CreDtTm>
    </GrpHdr>
    <Stmt>
      <Id>STMT-1</Id>
      <CreDtTm>2024-03-05T18:00:00</CreDtTm>
      <Acct>
        <Id><IBAN>DE89370400440532013000</IBAN></Id>
        <Ccy>EUR</Ccy>
        <Nm>Max Mustermann</Nm>
      </Acct>
"""

CAMT_FOOTER = """    </Stmt>
  </BkToCstmrStmt>
</Document>
"""

OPBD_BALANCE = """      <Bal>
        <Tp><CdOrPrtry><Cd>OPBD</Cd></CdOrPrtry></Tp>
        <Amt Ccy="EUR">1000.00</Amt>
        <CdtDbtInd>CRDT</CdtDbtInd>
        <Dt><Dt>2024-03-01</Dt></Dt>
      </Bal>
"""

CLBD_BALANCE = """      <Bal>
        <Tp><CdOrPrtry><Cd>CLBD</Cd></CdOrPrtry></Tp>
        <Amt Ccy="EUR">1150.25</Amt>
        <CdtDbtInd>CRDT</CdtDbtInd>
        <Dt><Dt>2024-03-05</Dt></Dt>
      </Bal>
"""

CREDIT_ENTRY = """      <Ntry>
        <NtryRef>INV-1001</NtryRef>
        <Amt Ccy="EUR">250.25</Amt>
        <CdtDbtInd>CRDT</CdtDbtInd>
        <Sts><Cd>BOOK</Cd></Sts>
        <BookgDt><Dt>2024-03-04</Dt></BookgDt>
        <ValDt><Dt>2024-03-04</Dt></ValDt>
        <AcctSvcrRef>BANKREF-1</AcctSvcrRef>
        <BkTxCd>
          <Domn>
            <Cd>PMNT</Cd>
            <Fmly><Cd>RCDT</Cd><SubFmlyCd>ESCT</SubFmlyCd></Fmly>
          </Domn>
          <Prtry><Cd>NTRF</Cd></Prtry>
        </BkTxCd>
        <NtryDtls>
          <TxDtls>
            <Refs><EndToEndId>E2E-1001</EndToEndId></Refs>
            <RltdPties>
              <Dbtr><Pty><Nm>Erika Mustermann</Nm></Pty></Dbtr>
              <DbtrAcct><Id><IBAN>DE44500105175407324931</IBAN></Id></DbtrAcct>
            </RltdPties>
            <RltdAgts>
              <DbtrAgt><FinInstnId><BICFI>INGDDEFFXXX</BICFI></FinInstnId></DbtrAgt>
            </RltdAgts>
            <RmtInf>
              <Ustrd>Invoice 1001</Ustrd>
              <Ustrd>payment</Ustrd>
            </RmtInf>
          </TxDtls>
        </NtryDtls>
      </Ntry>
"""

DEBIT_ENTRY = """      <Ntry>
        <NtryRef>RENT-03</NtryRef>
        <Amt Ccy="EUR">100.00</Amt>
        <CdtDbtInd>DBIT</CdtDbtInd>
        <Sts><Cd>BOOK</Cd></Sts>
        <BookgDt><Dt>2024-03-05</Dt></BookgDt>
        <AddtlNtryInf>Rent March</AddtlNtryInf>
      </Ntry>
"""


def camt_document(*parts):
    """Assemble a camt.053.001.08 document from balance and entry snippets."""
    return CAMT_HEADER + "".join(parts) + CAMT_FOOTER


@pytest.fixture
def sample_mt940():
    return SAMPLE_MT940


@pytest.fixture
def sample_camt():
    return camt_document(OPBD_BALANCE, CLBD_BALANCE, CREDIT_ENTRY, DEBIT_ENTRY)


@pytest.fixture
def sample_statement():
    """Statement with balances and one credit and one debit booking."""
    return Statement(
        statement_id="STMT-1",
        account_id="DE89370400440532013000",
        opening_balance=Balance(Decimal("1000.00"), "EUR", date(2024, 3, 1), CreditDebit.CREDIT),
        closing_balance=Balance(Decimal("1150.25"), "EUR", date(2024, 3, 5), CreditDebit.CREDIT),
        transactions=[
            Transaction(
                reference="INV-1001",
                amount=Decimal("250.25"),
                credit_or_debit=CreditDebit.CREDIT,
                booking_date=date(2024, 3, 4),
                value_date=date(2024, 3, 4),
                description="Invoice 1001 payment",
            ),
            Transaction(
                reference="RENT-03",
                amount=Decimal("100.00"),
                credit_or_debit=CreditDebit.DEBIT,
                booking_date=date(2024, 3, 5),
                value_date=date(2024, 3, 6),
                description="Rent March",
            ),
        ],
    )


def assert_same_transactions(left, right):
    """Compare the modelled fields that survive every format."""
    assert len(left.transactions) == len(right.transactions)
    for a, b in zip(left.transactions, right.transactions):
        assert a.reference == b.reference
        assert a.amount == b.amount
        assert a.credit_or_debit is b.credit_or_debit
        assert a.booking_date == b.booking_date
        assert a.value_date == b.value_date
        assert a.description == b.description
