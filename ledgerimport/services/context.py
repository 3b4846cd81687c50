"""Operator selection state that scopes every import operation."""

import calendar
from dataclasses import dataclass, field
from datetime import date


@dataclass
class ImportSessionContext:
    """Program, shops and accounting period chosen by the operator.

    Passed explicitly into staging and commit calls. Ledger imports act on
    the first selected shop.
    """

    program_id: int | None = None
    shop_ids: list[int] = field(default_factory=list)
    period: date | None = None

    @property
    def primary_shop_id(self) -> int | None:
        return self.shop_ids[0] if self.shop_ids else None

    @property
    def is_complete(self) -> bool:
        return self.program_id is not None and bool(self.shop_ids) and self.period is not None

    @property
    def period_label(self) -> str | None:
        """Period as ``YYYY-MM``."""
        if self.period is None:
            return None
        return f"{self.period.year}-{self.period.month:02d}"

    def period_bounds(self) -> tuple[date, date]:
        """First and last day of the period's month.

        Raises:
            ValueError: If no period is selected.
        """
        if self.period is None:
            raise ValueError("No period selected")
        year, month = self.period.year, self.period.month
        last_day = calendar.monthrange(year, month)[1]
        return date(year, month, 1), date(year, month, last_day)

    def require(self) -> tuple[int, int, date]:
        """Return (program_id, primary shop id, period) or raise ValueError."""
        if self.program_id is None:
            raise ValueError("No program selected")
        if not self.shop_ids:
            raise ValueError("No shop selected")
        if self.period is None:
            raise ValueError("No period selected")
        return self.program_id, self.shop_ids[0], self.period

    def clear(self) -> None:
        self.program_id = None
        self.shop_ids = []
        self.period = None
