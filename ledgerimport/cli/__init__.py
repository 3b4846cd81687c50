"""Command line tools for LedgerImport."""
