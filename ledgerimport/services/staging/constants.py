"""Constants for column-mapping suggestions."""

# Header alias table: normalized spreadsheet header -> canonical target field.
# Headers are normalized by lowercasing and dropping spaces, underscores,
# dots, dashes and "#".
HEADER_ALIASES: dict[str, str] = {
    # AccountNumber
    "accountnumber": "AccountNumber",
    "accountno": "AccountNumber",
    "acctno": "AccountNumber",
    "acctnumber": "AccountNumber",
    "acct": "AccountNumber",
    "account": "AccountNumber",
    "glaccount": "AccountNumber",
    "glcode": "AccountNumber",
    "accountcode": "AccountNumber",
    # AccountName
    "accountname": "AccountName",
    "acctname": "AccountName",
    "accountdescription": "AccountName",
    "accounttitle": "AccountName",
    # AccountType
    "accounttype": "AccountType",
    "accttype": "AccountType",
    "type": "AccountType",
    # Description
    "description": "Description",
    "desc": "Description",
    "memo": "Description",
    "narration": "Description",
    "details": "Description",
    # Amount
    "amount": "Amount",
    "amt": "Amount",
    "balance": "Amount",
    "netamount": "Amount",
    "value": "Amount",
    # DebitAmount
    "debit": "DebitAmount",
    "debitamount": "DebitAmount",
    "dr": "DebitAmount",
    # CreditAmount
    "credit": "CreditAmount",
    "creditamount": "CreditAmount",
    "cr": "CreditAmount",
    # TransactionDate
    "date": "TransactionDate",
    "transactiondate": "TransactionDate",
    "txndate": "TransactionDate",
    "postingdate": "TransactionDate",
    "entrydate": "TransactionDate",
    # ReferenceNumber
    "reference": "ReferenceNumber",
    "referencenumber": "ReferenceNumber",
    "ref": "ReferenceNumber",
    "refno": "ReferenceNumber",
    "journalnumber": "ReferenceNumber",
    "documentnumber": "ReferenceNumber",
    # ParentAccount
    "parentaccount": "ParentAccountNumber",
    "parentaccountnumber": "ParentAccountNumber",
    # IsActive
    "active": "IsActive",
    "isactive": "IsActive",
    "status": "IsActive",
}

# Characters ignored when comparing headers with field names
IGNORED_HEADER_CHARS = " _.-#/"
