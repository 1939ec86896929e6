"""
Accounting Package.

Derives balances, locked capital and realized P&L from the
cash and order ledgers, and the admin KPI trends.

Modules:
- aggregator: Pure balance computation over ledger snapshots
- positions: Order invariants and position lifecycle
- kpi: Current vs prior 30-day window figures
- service: Balance reads against the ledger store
- transactions: Cash requests and their review
"""
