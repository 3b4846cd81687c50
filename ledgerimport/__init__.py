"""LedgerImport - asynchronous spreadsheet import client for the accounting platform."""

__version__ = "0.3.0"
