"""
Chama Kernel

Record keeping for a member-owned investment group, built around an
append-only transaction ledger with:
- Automatic, exactly-once ledger mirroring of contributions, repayments
  and penalties
- Atomic, idempotent contribution and dividend batch runs
- Derived (never stored) portfolio and loan balances
- A hash-chained audit log
"""

__version__ = "0.1.0"
