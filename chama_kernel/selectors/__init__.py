"""Selectors for the chama kernel (read side)."""

from chama_kernel.selectors.ledger_selector import (
    LedgerEntry,
    LedgerSelector,
    MemberTotalDiscrepancy,
    MirrorMismatch,
    MirroringReport,
)
from chama_kernel.selectors.loan_selector import LoanPosition, LoanSelector
from chama_kernel.selectors.portfolio_selector import (
    GroupSummary,
    MemberPortfolio,
    PortfolioSelector,
)

__all__ = [
    "GroupSummary",
    "LedgerEntry",
    "LedgerSelector",
    "LoanPosition",
    "LoanSelector",
    "MemberPortfolio",
    "MemberTotalDiscrepancy",
    "MirrorMismatch",
    "MirroringReport",
    "PortfolioSelector",
]
