"""
Trading bounded context: domain layer.

This module contains all domain logic for paper trading:
- Ledger engine (balances, positions, transactions)
- Portfolio valuation and ledger reconciliation
- Market data, recommendation, identity and watchlist ports
"""
