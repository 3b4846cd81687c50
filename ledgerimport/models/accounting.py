"""Chart-of-accounts reconciliation and general ledger models."""

from datetime import datetime

from pydantic import Field

from ledgerimport.models.base import WireModel


class MatchingStatistics(WireModel):
    """Reconciliation summary of a shop chart of accounts against the master chart."""

    total_shop_accounts: int = 0
    matched_accounts: int = 0
    potential_matches: int = 0
    unmatched_accounts: int = 0
    match_rate: float = 0.0

    @property
    def can_proceed(self) -> bool:
        """Whether a general ledger may be imported for this shop.

        Requires a non-empty, fully reconciled chart of accounts.
        """
        return (
            self.total_shop_accounts > 0
            and self.unmatched_accounts == 0
            and self.matched_accounts == self.total_shop_accounts
        )


class LedgerEntry(WireModel):
    """A general ledger row already stored on the server."""

    entry_id: int
    account_number: str
    account_name: str | None = None
    description: str = ""
    amount: float = 0.0
    debit_amount: float | None = None
    credit_amount: float | None = None
    transaction_date: datetime | None = None
    period_date: datetime | None = None
    reference_number: str | None = None


class ExistingLedger(WireModel):
    """General ledger entries already present for a shop and period."""

    entries: list[LedgerEntry] = Field(default_factory=list)
    total_records: int = 0

    @property
    def exists(self) -> bool:
        return self.total_records > 0 or bool(self.entries)
